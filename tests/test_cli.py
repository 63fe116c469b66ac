"""
Tests for the command-line tools.
"""
import numpy as np
import pytest
from PIL import Image as PILImage

from cli import enhance_batch, enhance_single
from models.enhancement_settings import EnhancementSettings
from services.image_enhancement_service import ImageEnhancementService


class TestEnhanceSingle:

    def test_default_output_beside_input(self, png_file):
        assert enhance_single.main([str(png_file), "--contrast", "20"]) == 0
        written = png_file.parent / "enhanced-photo.jpg"
        assert written.exists()
        with PILImage.open(written) as img:
            assert img.format == "JPEG"

    def test_explicit_png_output_is_exact(self, png_file, tmp_path, random_rgba):
        output = tmp_path / "out" / "result.png"
        code = enhance_single.main([
            str(png_file), "-o", str(output), "--brightness", "15", "--sharpness", "40",
            "--gray-reference", "progressive",
        ])
        assert code == 0
        expected = ImageEnhancementService(gray_reference="progressive").enhance_pixels(
            random_rgba, EnhancementSettings(brightness=15, sharpness=40)
        )
        np.testing.assert_array_equal(np.asarray(PILImage.open(output)), expected)

    def test_out_of_range_setting_exit_code(self, png_file):
        assert enhance_single.main([str(png_file), "--gamma", "0"]) == 2

    def test_missing_input_exit_code(self, tmp_path):
        assert enhance_single.main([str(tmp_path / "missing.png")]) == 1

    def test_video_frame(self, video_file):
        assert enhance_single.main([str(video_file), "--frame", "1", "--blur", "1.5"]) == 0
        assert (video_file.parent / "enhanced-clip.jpg").exists()

    def test_frame_and_timestamp_are_exclusive(self, png_file):
        with pytest.raises(SystemExit):
            enhance_single.main([str(png_file), "--frame", "1", "--timestamp-ms", "10"])


class TestEnhanceBatch:

    def test_folder(self, tmp_path, random_rgba):
        source = tmp_path / "in"
        source.mkdir()
        for name in ("a.png", "b.png"):
            PILImage.fromarray(random_rgba).save(source / name)
        (source / "readme.txt").write_text("skip me")
        output = tmp_path / "out"

        assert enhance_batch.main([str(source), "--output-dir", str(output), "--exposure", "10"]) == 0
        assert sorted(p.name for p in output.iterdir()) == ["enhanced-a.jpg", "enhanced-b.jpg"]

    def test_recursive(self, tmp_path, random_rgba):
        nested = tmp_path / "in" / "deeper"
        nested.mkdir(parents=True)
        PILImage.fromarray(random_rgba).save(nested / "c.png")
        output = tmp_path / "out"

        assert enhance_batch.main([str(tmp_path / "in"), "--output-dir", str(output)]) == 0
        assert not output.exists() or not list(output.iterdir())

        assert enhance_batch.main([str(tmp_path / "in"), "--output-dir", str(output), "--recursive"]) == 0
        assert [p.name for p in output.iterdir()] == ["enhanced-c.jpg"]

    def test_not_a_directory(self, tmp_path):
        assert enhance_batch.main([str(tmp_path / "missing")]) == 1
