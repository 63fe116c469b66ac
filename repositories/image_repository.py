from __future__ import annotations

from pathlib import Path
from typing import Union, Iterable, Iterator
from io import BytesIO
import logging
import os

import numpy as np
import cv2
from PIL import Image as PILImage
from dotenv import load_dotenv

from models.image import Image
from models.errors import InvalidBufferError

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# Formats Pillow cannot write with an alpha channel
_NO_ALPHA_SUFFIXES = {".jpg", ".jpeg", ".bmp"}


class ImageRepository:
    """
    Handles file I/O and decoding for Image entities.
    Everything leaving this class is RGBA uint8.
    """
    def __init__(self):
        self.VALID_EXTS = {
            ext.strip().lower()
            for ext in os.getenv("VALID_IMAGE_EXTENSIONS", ".png,.jpg,.jpeg,.bmp,.webp,.tif,.tiff").split(",")
            if ext.strip()
        }

    @staticmethod
    def create_image(pixels: np.ndarray, path: Union[str, Path] = None, name: str = None) -> Image:
        if path is None:
            return Image(pixels=pixels, name=name)
        return Image(pixels=pixels, path=Path(path), name=name or Path(path).name)

    # ─── decoding ─────────────────────────────────────────────────────
    @staticmethod
    def _to_rgba(arr: np.ndarray) -> np.ndarray:
        """Normalise an OpenCV decode result (gray / BGR / BGRA) to RGBA."""
        if arr.dtype != np.uint8:
            raise InvalidBufferError(f"Only 8-bit images are supported, got {arr.dtype}")
        if arr.ndim == 2:
            return cv2.cvtColor(arr, cv2.COLOR_GRAY2RGBA)
        channels = arr.shape[2]
        if channels == 1:
            return cv2.cvtColor(arr[:, :, 0], cv2.COLOR_GRAY2RGBA)
        if channels == 3:
            return cv2.cvtColor(arr, cv2.COLOR_BGR2RGBA)
        if channels == 4:
            return cv2.cvtColor(arr, cv2.COLOR_BGRA2RGBA)
        raise InvalidBufferError(f"Unsupported channel count: {channels}")

    def load(self, path: Union[str, Path]) -> Image:
        path = Path(path)
        arr = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
        if arr is None:
            raise FileNotFoundError(f"Image not found or unreadable: {path}")
        return Image(pixels=self._to_rgba(arr), path=path, name=path.name)

    def decode(self, data: bytes, name: str = None) -> Image:
        """Decode an in-memory upload."""
        buf = np.frombuffer(data, dtype=np.uint8)
        arr = cv2.imdecode(buf, cv2.IMREAD_UNCHANGED) if buf.size else None
        if arr is None:
            raise InvalidBufferError(f"Could not decode image data{f' ({name})' if name else ''}")
        return Image(pixels=self._to_rgba(arr), name=name)

    def read_video_frame(
        self,
        path: Union[str, Path],
        frame_index: int = None,
        timestamp_ms: float = None,
    ) -> Image:
        """
        Capture a single frame of a video file (first frame by default).
        """
        path = Path(path)
        capture = cv2.VideoCapture(str(path))
        try:
            if not capture.isOpened():
                raise FileNotFoundError(f"Video not found or unreadable: {path}")

            if frame_index is not None:
                capture.set(cv2.CAP_PROP_POS_FRAMES, int(frame_index))
            elif timestamp_ms is not None:
                capture.set(cv2.CAP_PROP_POS_MSEC, float(timestamp_ms))

            ok, frame_bgr = capture.read()
        finally:
            capture.release()

        if not ok or frame_bgr is None:
            position = f"frame {frame_index}" if frame_index is not None else f"{timestamp_ms} ms"
            raise InvalidBufferError(f"No frame at {position} in {path.name}")

        logger.debug(f"Captured frame {frame_bgr.shape[1]}x{frame_bgr.shape[0]} from {path.name}")
        return Image(pixels=self._to_rgba(frame_bgr), path=path, name=path.name)

    # ─── encoding ─────────────────────────────────────────────────────
    @staticmethod
    def save(image: Image) -> None:
        path = Path(image.path)
        pil_image = PILImage.fromarray(image.pixels)
        if path.suffix.lower() in _NO_ALPHA_SUFFIXES:
            pil_image = pil_image.convert("RGB")
        path.parent.mkdir(parents=True, exist_ok=True)
        pil_image.save(path)

    @staticmethod
    def encode_jpeg(pixels: np.ndarray, quality: int = 95) -> bytes:
        pil_image = PILImage.fromarray(pixels).convert("RGB")
        buffer = BytesIO()
        pil_image.save(buffer, format="JPEG", quality=quality)
        return buffer.getvalue()

    # ─── folders ──────────────────────────────────────────────────────
    def iter_dir(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[Image]:
        """
        Yield Image objects one at a time.  Nothing accumulates in memory.
        """
        folder = Path(folder)
        if not folder.is_dir():
            raise NotADirectoryError(folder)

        allowed = {e.lower() for e in (exts or self.VALID_EXTS)}
        pattern = "**/*" if recursive else "*"

        for p in sorted(folder.glob(pattern)):
            if p.suffix.lower() not in allowed or not p.is_file():
                logger.debug(f"Skipping {p}")
                continue
            try:
                yield self.load(p)
            except (FileNotFoundError, InvalidBufferError) as err:
                logger.warning(f"Skipping {p.name}: {err}")
