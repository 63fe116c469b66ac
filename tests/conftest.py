"""
Pytest configuration and fixtures for the enhancement tests.
"""
import numpy as np
import pytest
from PIL import Image as PILImage

from models.image import Image
from services.image_enhancement_service import ImageEnhancementService


@pytest.fixture
def service():
    """Pipeline using the pristine-pixel gray reference."""
    return ImageEnhancementService(gray_reference="source")


@pytest.fixture
def legacy_service():
    """Pipeline reproducing the order-dependent gray of the old web tool."""
    return ImageEnhancementService(gray_reference="progressive")


@pytest.fixture
def random_rgba():
    """Deterministic 12x9 RGBA frame with varied alpha."""
    rng = np.random.default_rng(1234)
    return rng.integers(0, 256, size=(9, 12, 4), dtype=np.uint8)


@pytest.fixture
def flat_gray():
    """2x2 flat gray frame, fully opaque."""
    return np.full((2, 2, 4), [128, 128, 128, 255], dtype=np.uint8)


@pytest.fixture
def sample_image(random_rgba):
    return Image(pixels=random_rgba.copy(), name="sample.png")


@pytest.fixture
def png_file(tmp_path, random_rgba):
    """RGBA PNG on disk."""
    path = tmp_path / "photo.png"
    PILImage.fromarray(random_rgba).save(path)
    return path


@pytest.fixture
def png_bytes(png_file):
    return png_file.read_bytes()


@pytest.fixture
def video_file(tmp_path):
    """Short MJPG clip whose frames are solid gray levels 0, 40, 80, ..."""
    cv2 = pytest.importorskip("cv2")
    path = tmp_path / "clip.avi"
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), 10, (32, 24))
    if not writer.isOpened():
        pytest.skip("No MJPG encoder available in this OpenCV build")
    for level in range(0, 200, 40):
        writer.write(np.full((24, 32, 3), level, dtype=np.uint8))
    writer.release()
    return path
