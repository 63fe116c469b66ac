from __future__ import annotations

from typing import Union
import os
import logging

import cv2
import numpy as np
from dotenv import load_dotenv

from models.image import Image
from models.enhancement_settings import EnhancementSettings
from models.errors import InvalidBufferError, InvalidSettingsError

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

GRAY_REFERENCE_SOURCE = "source"
GRAY_REFERENCE_PROGRESSIVE = "progressive"
GRAY_REFERENCES = (GRAY_REFERENCE_SOURCE, GRAY_REFERENCE_PROGRESSIVE)

BufferLike = Union[bytes, bytearray, memoryview, np.ndarray]


class ImageEnhancementService:
    """
    Tonal + spatial enhancement of a single RGBA frame.
    *   No I/O here; works only with RGBA uint8 arrays / Image objects.
    *   Stateless between calls; every call returns a fresh array.

    Stage order: tonal → blur (and stop) | sharpen.
    """

    def __init__(self, gray_reference: str = None):
        """
        Args:
            gray_reference: where the saturation stage takes its gray value from.
                "source" uses the untouched input pixel; "progressive" re-reads
                the pixel while its channels are being overwritten (R, then G,
                then B), as the legacy web tool did.
        """
        self.gray_reference = (
            gray_reference or os.getenv("SATURATION_GRAY_REFERENCE", GRAY_REFERENCE_SOURCE)
        ).strip().lower()
        if self.gray_reference not in GRAY_REFERENCES:
            raise ValueError(
                f"gray_reference must be one of {GRAY_REFERENCES}, got {self.gray_reference!r}"
            )
        logger.debug(f"ImageEnhancementService initialized (gray reference: {self.gray_reference})")

    # ─── Public API ────────────────────────────────────────────────
    def enhance(self, img: Image, settings: EnhancementSettings) -> Image:
        """Return a *new* Image; the source keeps its pixels."""
        pixels = self.enhance_pixels(img.pixels, settings)
        original = img.original_pixels if img.original_pixels is not None else img.pixels
        return Image(pixels=pixels, original_pixels=original, name=img.name)

    def enhance_buffer(
        self,
        buffer: BufferLike,
        width: int,
        height: int,
        settings: EnhancementSettings,
    ) -> bytes:
        """
        Flat row-major RGBA in, flat row-major RGBA out.
        """
        if width <= 0 or height <= 0:
            raise InvalidBufferError(f"Invalid dimensions {width}x{height}")

        flat = np.frombuffer(buffer, dtype=np.uint8) if not isinstance(buffer, np.ndarray) else buffer
        if flat.dtype != np.uint8:
            raise InvalidBufferError(f"Expected uint8 buffer, got {flat.dtype}")
        if flat.size != width * height * 4:
            raise InvalidBufferError(
                f"Buffer holds {flat.size} bytes, {width}x{height} RGBA needs {width * height * 4}"
            )

        pixels = flat.reshape(height, width, 4)
        return self.enhance_pixels(pixels, settings).tobytes()

    def enhance_pixels(self, pixels: np.ndarray, settings: EnhancementSettings) -> np.ndarray:
        self._check_pixels(pixels)
        if settings.gamma <= 0:
            raise InvalidSettingsError(f"gamma must be positive, got {settings.gamma}")

        out = self._apply_tonal(pixels, settings)

        # blur and sharpen never combine
        if settings.blur > 0:
            return self._apply_blur(out, settings.blur)

        if settings.sharpness > 0:
            out = self._apply_sharpen(out, settings.sharpness)
        return out

    # ─── Stages ────────────────────────────────────────────────────
    def _apply_tonal(self, pixels: np.ndarray, s: EnhancementSettings) -> np.ndarray:
        out = pixels.copy()
        source = pixels[..., :3].astype(np.float64)

        brightness_fac = 1 + s.brightness / 100
        contrast_fac = 1 + s.contrast / 100
        exposure_fac = 1 + s.exposure / 100
        inv_gamma = 1 / s.gamma
        saturation_fac = s.saturation / 100

        if self.gray_reference == GRAY_REFERENCE_SOURCE:
            gray = source.mean(axis=2)

        for c in range(3):
            value = source[..., c] * brightness_fac
            value = ((value / 255 - 0.5) * contrast_fac + 0.5) * 255
            value = value * exposure_fac

            undefined = None
            if s.gamma != 1:
                base = value / 255
                if float(inv_gamma).is_integer():
                    value = 255 * np.power(base, int(inv_gamma))
                else:
                    # a fractional power of a negative base has no real value; stored as 0
                    undefined = base < 0
                    value = 255 * np.power(np.clip(base, 0, None), inv_gamma)

            if self.gray_reference == GRAY_REFERENCE_PROGRESSIVE:
                gray = out[..., :3].astype(np.float64).mean(axis=2)
            value = value + saturation_fac * (value - gray)
            if undefined is not None:
                value = np.where(undefined, 0.0, value)

            out[..., c] = _to_channel(value)
        return out

    @staticmethod
    def _apply_blur(pixels: np.ndarray, radius: float) -> np.ndarray:
        out = pixels.copy()
        rgb = np.ascontiguousarray(pixels[..., :3])
        out[..., :3] = cv2.GaussianBlur(
            rgb, (0, 0), sigmaX=radius, sigmaY=radius, borderType=cv2.BORDER_REPLICATE
        )
        return out

    @staticmethod
    def _apply_sharpen(pixels: np.ndarray, sharpness: float) -> np.ndarray:
        """
        Unsharp step against the 4-connected neighbour mean:
            new = cur + (cur - mean(up, down, left, right)) * k
        Reads come from the untouched input; the 1 px border is passed through.
        """
        out = pixels.copy()
        height, width = pixels.shape[:2]
        if height < 3 or width < 3:
            return out

        k = sharpness / 100
        snapshot = pixels[..., :3].astype(np.float64)
        centre = snapshot[1:-1, 1:-1]
        neighbour_mean = (
            snapshot[:-2, 1:-1] + snapshot[2:, 1:-1] + snapshot[1:-1, :-2] + snapshot[1:-1, 2:]
        ) / 4

        out[1:-1, 1:-1, :3] = _to_channel(centre + (centre - neighbour_mean) * k)
        return out

    # ─── Internal helpers ──────────────────────────────────────────
    @staticmethod
    def _check_pixels(pixels: np.ndarray) -> None:
        if not isinstance(pixels, np.ndarray):
            raise InvalidBufferError(f"Expected numpy array, got {type(pixels).__name__}")
        if pixels.dtype != np.uint8:
            raise InvalidBufferError(f"Expected uint8 pixels, got {pixels.dtype}")
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise InvalidBufferError(f"Expected (H, W, 4) RGBA pixels, got shape {pixels.shape}")
        if pixels.size == 0:
            raise InvalidBufferError("Empty pixel buffer")


def _to_channel(value: np.ndarray) -> np.ndarray:
    """Round half to even, then clamp into an 8-bit channel."""
    return np.clip(np.rint(value), 0, 255).astype(np.uint8)
