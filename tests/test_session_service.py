"""
Tests for editing sessions: re-render on change, reset, stale renders.
"""
import threading
import time

import numpy as np
import pytest

from models.enhancement_settings import EnhancementSettings
from models.errors import InvalidSettingsError
from services.image_enhancement_service import ImageEnhancementService
from services.session_service import EnhancementSession, SessionService


@pytest.fixture
def session(service):
    return EnhancementSession("test-session", enhancement_service=service)


class TestRendering:

    def test_no_source_renders_nothing(self, session):
        assert session.render() is None
        assert session.update_settings(brightness=10) is None
        assert session.settings.brightness == 10

    def test_set_source_renders_immediately(self, session, sample_image):
        enhanced = session.set_source(sample_image)
        assert enhanced is session.enhanced
        np.testing.assert_array_equal(enhanced.pixels, sample_image.pixels)
        assert session.media_name == "sample.png"
        assert session.media_type == "image"

    def test_settings_change_rerenders(self, session, service, sample_image):
        session.set_source(sample_image)
        enhanced = session.update_settings(contrast=40, sharpness=20)
        expected = service.enhance_pixels(
            sample_image.pixels, EnhancementSettings(contrast=40, sharpness=20)
        )
        np.testing.assert_array_equal(enhanced.pixels, expected)
        assert session.enhanced is enhanced

    def test_updates_accumulate(self, session, sample_image):
        session.set_source(sample_image)
        session.update_settings(brightness=10)
        session.update_settings(gamma=1.2)
        assert session.settings == EnhancementSettings(brightness=10, gamma=1.2)

    def test_reset_restores_source(self, session, sample_image):
        session.set_source(sample_image)
        session.update_settings(brightness=-60, blur=3)
        enhanced = session.reset_settings()
        assert session.settings.is_identity()
        np.testing.assert_array_equal(enhanced.pixels, sample_image.pixels)

    def test_source_keeps_original_snapshot(self, session, sample_image):
        original = sample_image.pixels.copy()
        session.set_source(sample_image)
        session.update_settings(exposure=50)
        np.testing.assert_array_equal(sample_image.pixels, original)
        np.testing.assert_array_equal(sample_image.original_pixels, original)

    def test_invalid_settings_keep_previous_result(self, session, sample_image):
        session.set_source(sample_image)
        before = session.update_settings(saturation=30)
        with pytest.raises(InvalidSettingsError):
            session.update_settings(gamma=0)
        assert session.enhanced is before
        assert session.settings.gamma == 1.0

    def test_clear(self, session, sample_image, tmp_path):
        video = tmp_path / "stored.mp4"
        video.write_bytes(b"x")
        session.set_source(sample_image, media_type="video", media_path=video)
        session.update_settings(blur=1)
        session.clear()
        assert session.source is None
        assert session.enhanced is None
        assert session.settings.is_identity()
        assert not video.exists()

    def test_clear_media_keeps_settings(self, session, service, sample_image, tmp_path):
        video = tmp_path / "stored.mp4"
        video.write_bytes(b"x")
        session.set_source(sample_image, media_type="video", media_path=video)
        session.update_settings(brightness=40)
        session.clear_media()
        assert session.source is None
        assert session.media_path is None
        assert not video.exists()
        assert session.settings == EnhancementSettings(brightness=40)

        enhanced = session.set_source(sample_image)
        expected = service.enhance_pixels(sample_image.pixels, EnhancementSettings(brightness=40))
        np.testing.assert_array_equal(enhanced.pixels, expected)

    def test_capture_frame_needs_video(self, session, sample_image):
        session.set_source(sample_image)
        with pytest.raises(FileNotFoundError):
            session.capture_frame(frame_index=1)

    def test_capture_frame_uses_current_settings(self, session, video_file):
        session.set_source(
            session.image_service.capture_frame(video_file),
            media_name="clip.avi", media_type="video", media_path=video_file,
        )
        session.update_settings(exposure=-50)
        enhanced = session.capture_frame(frame_index=2)
        assert session.source.name == "clip.avi"
        # frame 2 is gray level 80, halved by exposure
        assert abs(int(enhanced.pixels[..., 0].mean()) - 40) <= 5


class _PausingService(ImageEnhancementService):
    """Blocks the first render until a newer change has been made."""

    def __init__(self):
        super().__init__(gray_reference="source")
        self.first_call = threading.Event()
        self.release = threading.Event()
        self.calls = 0

    def enhance(self, img, settings):
        self.calls += 1
        if self.calls == 1:
            self.first_call.set()
            self.release.wait(timeout=5)
        return super().enhance(img, settings)


class TestSuperseding:

    def test_stale_render_is_dropped(self, sample_image):
        pausing = _PausingService()
        session = EnhancementSession("s", enhancement_service=pausing)
        session.source = sample_image  # bypass set_source so the first render is ours

        results = {}
        slow = threading.Thread(target=lambda: results.setdefault("slow", session.update_settings(brightness=50)))
        slow.start()
        assert pausing.first_call.wait(timeout=5)

        fast = threading.Thread(target=lambda: results.setdefault("fast", session.update_settings(brightness=-50)))
        fast.start()
        # the newer change is recorded before the stale render finishes
        deadline = time.monotonic() + 5
        while session.generation < 2 and time.monotonic() < deadline:
            time.sleep(0.01)
        pausing.release.set()

        slow.join(timeout=5)
        fast.join(timeout=5)

        expected = pausing.enhance_pixels(sample_image.pixels, EnhancementSettings(brightness=-50))
        np.testing.assert_array_equal(session.enhanced.pixels, expected)
        assert session.settings.brightness == -50
        assert pausing.calls == 2
        assert results["slow"] is None


class TestSessionService:

    def test_get_or_create(self, service):
        registry = SessionService(enhancement_service=service)
        first = registry.get_or_create()
        assert registry.get_or_create(first.session_id) is first
        assert registry.get_or_create("named").session_id == "named"
        assert len(registry) == 2

    def test_get_unknown(self, service):
        with pytest.raises(KeyError):
            SessionService(enhancement_service=service).get("missing")

    def test_remove(self, service, sample_image):
        registry = SessionService(enhancement_service=service)
        session = registry.get_or_create("gone")
        session.set_source(sample_image)
        assert registry.remove("gone") is True
        assert registry.remove("gone") is False
        assert session.source is None
        assert len(registry) == 0

    def test_sessions_share_services(self, service):
        registry = SessionService(enhancement_service=service)
        assert registry.get_or_create("a").enhancement_service is service
        assert registry.get_or_create("b").enhancement_service is service
