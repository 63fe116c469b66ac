from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional, Any
import logging
import threading
import uuid

from models.image import Image
from models.enhancement_settings import EnhancementSettings
from pipeline.frame_enhancer import enhance_frame
from services.image_service import ImageService
from services.image_enhancement_service import ImageEnhancementService

logger = logging.getLogger(__name__)


class EnhancementSession:
    """
    Editing state of one user: the source frame, the slider values and the
    latest rendered frame.

    Every change bumps a generation counter. Renders run one at a time per
    session; a render whose generation was superseded by a newer change is
    dropped instead of published, so the displayed frame always matches the
    latest settings.
    """

    def __init__(
        self,
        session_id: str,
        *,
        enhancement_service: ImageEnhancementService = None,
        image_service: ImageService = None,
    ):
        self.session_id = session_id
        self.enhancement_service = enhancement_service or ImageEnhancementService()
        self.image_service = image_service or ImageService()

        self.source: Optional[Image] = None
        self.enhanced: Optional[Image] = None
        self.settings = EnhancementSettings()
        self.media_name: Optional[str] = None
        self.media_type: Optional[str] = None  # "image" | "video"
        self.media_path: Optional[Path] = None  # stored video for later captures

        self._state_lock = threading.Lock()
        self._render_lock = threading.Lock()
        self._generation = 0

    # ─── state changes ────────────────────────────────────────────────
    def set_source(
        self,
        img: Image,
        *,
        media_name: str = None,
        media_type: str = "image",
        media_path: Path = None,
    ) -> Optional[Image]:
        """New source frame (upload or captured video frame) → re-render."""
        with self._state_lock:
            self.source = img
            self.media_name = media_name or img.name or self.media_name
            self.media_type = media_type
            if media_path is not None:
                self.media_path = Path(media_path)
            self._generation += 1
        logger.info(
            f"Session {self.session_id}: new {media_type} source "
            f"{img.width}x{img.height} ({self.media_name})"
        )
        return self.render()

    def update_settings(self, **changes: Any) -> Optional[Image]:
        """
        Apply a validated settings change and re-render.
        Invalid values raise before anything changes.
        """
        with self._state_lock:
            self.settings = self.settings.with_updates(**changes)
            self._generation += 1
        return self.render()

    def reset_settings(self) -> Optional[Image]:
        with self._state_lock:
            self.settings = EnhancementSettings()
            self._generation += 1
        return self.render()

    # ─── rendering ────────────────────────────────────────────────────
    def render(self) -> Optional[Image]:
        """
        Render the current state. Returns the frame on display afterwards
        (which is the previous one when this render was superseded).
        """
        with self._render_lock:
            with self._state_lock:
                generation = self._generation
                source = self.source
                settings = self.settings

            if source is None:
                return None

            enhanced = enhance_frame(
                source,
                settings,
                enhancement_service=self.enhancement_service,
                image_service=self.image_service,
            )

            with self._state_lock:
                if generation != self._generation:
                    logger.debug(f"Session {self.session_id}: dropped stale render #{generation}")
                    return self.enhanced
                self.enhanced = enhanced
                return enhanced

    @property
    def generation(self) -> int:
        return self._generation

    def capture_frame(self, *, frame_index: int = None, timestamp_ms: float = None) -> Optional[Image]:
        """Grab another frame of the stored video and make it the source."""
        with self._render_lock:
            if self.media_type != "video" or self.media_path is None:
                raise FileNotFoundError(f"Session {self.session_id} has no stored video")
            frame = self.image_service.capture_frame(
                self.media_path,
                frame_index=frame_index,
                timestamp_ms=timestamp_ms,
                name=self.media_name,
            )
        return self.set_source(frame, media_name=self.media_name, media_type="video")

    def clear_media(self):
        """
        Drop the source and rendered frames and delete the stored video.
        Slider settings are kept for the next source.
        """
        # the render lock keeps a frame capture from reading a deleted video
        with self._render_lock, self._state_lock:
            if self.media_path is not None:
                self.media_path.unlink(missing_ok=True)
            self.source = None
            self.enhanced = None
            self.media_name = None
            self.media_type = None
            self.media_path = None
            self._generation += 1

    def clear(self):
        """Clear all images from memory, delete the stored video, reset settings."""
        self.clear_media()
        with self._state_lock:
            self.settings = EnhancementSettings()
            self._generation += 1


class SessionService:
    """
    Thread-safe registry of editing sessions.
    """

    def __init__(
        self,
        enhancement_service: ImageEnhancementService = None,
        image_service: ImageService = None,
    ):
        self.enhancement_service = enhancement_service or ImageEnhancementService()
        self.image_service = image_service or ImageService()
        self._sessions: Dict[str, EnhancementSession] = {}
        self._lock = threading.Lock()

    def get_or_create(self, session_id: str = None) -> EnhancementSession:
        """Get existing session or create new one."""
        if session_id is None:
            session_id = str(uuid.uuid4())

        with self._lock:
            if session_id not in self._sessions:
                self._sessions[session_id] = EnhancementSession(
                    session_id,
                    enhancement_service=self.enhancement_service,
                    image_service=self.image_service,
                )
                logger.info(f"Session {session_id} created")
            return self._sessions[session_id]

    def get(self, session_id: str) -> EnhancementSession:
        with self._lock:
            if session_id not in self._sessions:
                raise KeyError(session_id)
            return self._sessions[session_id]

    def remove(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.clear()
        logger.info(f"Session {session_id} cleared")
        return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
