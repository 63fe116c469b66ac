"""
Command-line options shared by the enhancement tools.
"""

from __future__ import annotations

import argparse
import logging

from models.enhancement_settings import SETTING_RANGES, EnhancementSettings
from services.image_enhancement_service import GRAY_REFERENCES

LOG_FORMAT = '%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s'


def add_settings_arguments(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("enhancement settings")
    for name, rng in SETTING_RANGES.items():
        group.add_argument(
            f"--{name}",
            type=float,
            default=rng.default,
            help=f"{rng.minimum:g} to {rng.maximum:g}, step {rng.step:g} (default {rng.default:g})",
        )
    parser.add_argument(
        "--gray-reference",
        choices=GRAY_REFERENCES,
        default=None,
        help="gray value used by saturation (default: $SATURATION_GRAY_REFERENCE or 'source')",
    )
    parser.add_argument("--verbose", action="store_true")


def settings_from_args(args: argparse.Namespace) -> EnhancementSettings:
    return EnhancementSettings.from_mapping({name: getattr(args, name) for name in SETTING_RANGES})


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        datefmt='%H:%M:%S'
    )


__all__ = ["add_settings_arguments", "settings_from_args", "configure_logging"]
