"""
Frame Enhancer Pipeline
Renders one frame with the current slider settings, or a whole folder of
frames with a single settings vector.
"""

from __future__ import annotations

import os
import time
import logging
from pathlib import Path
from typing import Iterator
from dotenv import load_dotenv

from models.image import Image
from models.enhancement_settings import EnhancementSettings
from services.image_service import ImageService
from services.image_enhancement_service import ImageEnhancementService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

ENHANCED_DIR = os.getenv("ENHANCED_DIR_PATH", "data/enhanced_gallery")


def enhance_frame(
    img: Image,
    settings: EnhancementSettings,
    *,
    enhancement_service: ImageEnhancementService = None,
    image_service: ImageService = None,
) -> Image:
    """
    Render a single frame.

    The source Image only gains an ``original_pixels`` snapshot; the returned
    Image is new and carries the enhanced pixels plus the source name.

    Args:
        img: Source frame (RGBA)
        settings: Slider values for this render
        enhancement_service: Service running the pixel pipeline
        image_service: Service for image bookkeeping

    Returns:
        Image: Enhanced frame
    """
    enhancement_service = enhancement_service or ImageEnhancementService()
    image_service = image_service or ImageService()

    image_service.preserve_original_state(img)

    started = time.perf_counter()
    enhanced = enhancement_service.enhance(img, settings)
    elapsed_ms = (time.perf_counter() - started) * 1000

    logger.debug(
        f"Rendered {img.width}x{img.height} frame in {elapsed_ms:.1f} ms "
        f"({settings.as_dict()})"
    )
    return enhanced


def enhance_gallery(
    folder: str | Path,
    settings: EnhancementSettings,
    *,
    output_dir: str | Path = ENHANCED_DIR,
    recursive: bool = False,
    enhancement_service: ImageEnhancementService = None,
    image_service: ImageService = None,
) -> Iterator[Path]:
    """
    For every image in *folder*:
        • run the pipeline with *settings*
        • export as ``enhanced-<stem>.jpg`` under *output_dir*
    Yields the written paths one by one.
    """
    enhancement_service = enhancement_service or ImageEnhancementService()
    image_service = image_service or ImageService()

    for img in image_service.stream_gallery(folder, recursive=recursive):
        enhanced = enhance_frame(
            img,
            settings,
            enhancement_service=enhancement_service,
            image_service=image_service,
        )
        path = image_service.export(enhanced, output_dir, img.name)
        logger.info(f"Enhanced {img.name} → {path.name}")
        yield path
