"""
Enhance one image, or one frame of a video, from the command line.

    frame-enhance photo.png --contrast 20 --sharpness 40
    frame-enhance clip.mp4 --frame 120 --brightness 10 -o still.png
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from cli.arguments import add_settings_arguments, configure_logging, settings_from_args
from models.errors import InputValidationError
from pipeline.frame_enhancer import enhance_frame
from services.image_service import ImageService
from services.image_enhancement_service import ImageEnhancementService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Enhance a single image or video frame")
    parser.add_argument("input", type=str, help="image or video file")
    parser.add_argument(
        "-o", "--output", type=str, default=None,
        help="output file; format follows the suffix (default: enhanced-<name>.jpg beside the input)",
    )
    position = parser.add_mutually_exclusive_group()
    position.add_argument("--frame", type=int, default=None, help="video frame index to capture")
    position.add_argument("--timestamp-ms", type=float, default=None, help="video position to capture")
    add_settings_arguments(parser)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    image_service = ImageService()
    input_path = Path(args.input)

    try:
        settings = settings_from_args(args)
        enhancement_service = ImageEnhancementService(gray_reference=args.gray_reference)

        if image_service.is_video(input_path.name):
            source = image_service.capture_frame(
                input_path, frame_index=args.frame, timestamp_ms=args.timestamp_ms
            )
        else:
            if args.frame is not None or args.timestamp_ms is not None:
                logger.warning("--frame / --timestamp-ms ignored for still images")
            source = image_service.load(input_path)

        enhanced = enhance_frame(
            source,
            settings,
            enhancement_service=enhancement_service,
            image_service=image_service,
        )

        if args.output:
            enhanced.path = Path(args.output)
            image_service.save(enhanced)
            written = enhanced.path
        else:
            written = image_service.export(enhanced, input_path.parent, source.name)

    except InputValidationError as e:
        logger.error(f"Invalid input: {e}")
        return 2
    except FileNotFoundError as e:
        logger.error(str(e))
        return 1

    logger.info(f"Saved {written}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
