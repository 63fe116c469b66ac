"""
Enhance every image of a folder with one set of slider values.

    frame-enhance-batch scans/ --output-dir scans/enhanced --gamma 1.4
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from tqdm import tqdm

from cli.arguments import add_settings_arguments, configure_logging, settings_from_args
from models.errors import InputValidationError
from pipeline.frame_enhancer import ENHANCED_DIR, enhance_gallery
from services.image_service import ImageService
from services.image_enhancement_service import ImageEnhancementService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Enhance a folder of images")
    parser.add_argument("folder", type=str)
    parser.add_argument("--output-dir", type=str, default=ENHANCED_DIR)
    parser.add_argument("--recursive", action="store_true")
    add_settings_arguments(parser)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    try:
        settings = settings_from_args(args)
        paths = enhance_gallery(
            args.folder,
            settings,
            output_dir=args.output_dir,
            recursive=args.recursive,
            enhancement_service=ImageEnhancementService(gray_reference=args.gray_reference),
            image_service=ImageService(),
        )
        written = list(tqdm(paths, desc="enhance", unit="img", ncols=70))
    except InputValidationError as e:
        logger.error(f"Invalid input: {e}")
        return 2
    except NotADirectoryError as e:
        logger.error(f"Not a directory: {e}")
        return 1

    logger.info(f"Enhanced {len(written)} image(s) into {args.output_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
