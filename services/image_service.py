from __future__ import annotations

from pathlib import Path
from typing import Iterable, Union, Iterator
import base64
import os

import numpy as np
from dotenv import load_dotenv

from models.image import Image
from repositories.image_repository import ImageRepository

# Load environment variables
load_dotenv()


class ImageService:
    """I/O helpers.  No enhancement logic here."""
    def __init__(self):
        self.JPEG_QUALITY = int(os.getenv("JPEG_QUALITY", "95"))
        self.EXPORT_PREFIX = os.getenv("EXPORT_PREFIX", "enhanced-")
        self.VIDEO_EXTS = {
            ext.strip().lower()
            for ext in os.getenv("VIDEO_EXTENSIONS", ".mp4,.mov,.avi,.mkv,.webm").split(",")
            if ext.strip()
        }
        self.image_repository = ImageRepository()

    def create_image(self, pixels: np.ndarray, path: Union[str, Path] = None, name: str = None) -> Image:
        return self.image_repository.create_image(pixels, path, name)

    def load(self, path: str | Path) -> Image:
        """Load a single image from disk into an Image object."""
        return self.image_repository.load(path)

    def load_bytes(self, data: bytes, name: str = None) -> Image:
        """Decode an uploaded image without touching the disk."""
        return self.image_repository.decode(data, name)

    def capture_frame(
        self,
        video_path: str | Path,
        *,
        frame_index: int = None,
        timestamp_ms: float = None,
        name: str = None,
    ) -> Image:
        """
        Grab one still from a video. *name* overrides the on-disk name
        (uploads are stored under a session-prefixed file name).
        """
        frame = self.image_repository.read_video_frame(
            video_path, frame_index=frame_index, timestamp_ms=timestamp_ms
        )
        if name:
            frame.name = name
        return frame

    def is_video(self, filename: str) -> bool:
        return Path(filename).suffix.lower() in self.VIDEO_EXTS

    def stream_gallery(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[Image]:
        """
        Yield images lazily instead of returning a gigantic list.
        """
        return self.image_repository.iter_dir(folder,
                                              recursive=recursive,
                                              exts=exts)

    def preserve_original_state(self, image: Image) -> None:
        """
        Keep the untouched pixels around for before/after comparison.
        """
        if image.original_pixels is None:
            image.original_pixels = image.pixels.copy()

    def save(self, image: Image) -> None:
        self.image_repository.save(image)

    # ─── Export ───────────────────────────────────────────────────────
    def export_name(self, original_name: str | None) -> str:
        """
        ``photo.png`` → ``enhanced-photo.jpg``. The payload is always JPEG,
        so the suffix follows the encoding, not the upload.
        """
        stem = Path(original_name).stem if original_name else "frame"
        return f"{self.EXPORT_PREFIX}{stem}.jpg"

    def encode_jpeg(self, img: Image) -> bytes:
        return self.image_repository.encode_jpeg(img.pixels, quality=self.JPEG_QUALITY)

    def to_base64(self, img: Image) -> str:
        """Data URL for JSON responses."""
        encoded = base64.b64encode(self.encode_jpeg(img)).decode("utf-8")
        return f"data:image/jpeg;base64,{encoded}"

    def export(
        self,
        img: Image,
        export_dir: str | Path,
        original_name: str | None = None,
    ) -> Path:
        """
        Write the JPEG export next to its siblings and return its path.
        """
        export_dir = Path(export_dir)
        export_dir.mkdir(parents=True, exist_ok=True)
        path = export_dir / self.export_name(original_name or img.name)
        path.write_bytes(self.encode_jpeg(img))
        return path
