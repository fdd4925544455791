"""
Tests for the Pillow image optimizer.
"""

import io
import logging

import pytest
from PIL import Image

from pdf_raster_backend.configuration import make_runtime_config
from pdf_raster_backend.optimizer import ImageOptimizer


def _png_bytes(width, height, color=(200, 30, 30)):
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def optimizer():
    return ImageOptimizer(make_runtime_config().compression)


class TestOptimize:
    def test_jpeg_is_resized_within_bounds(self, optimizer):
        raw = _png_bytes(2400, 2400)
        optimized = optimizer.optimize(raw, 1, 1, "jpeg")

        with Image.open(io.BytesIO(optimized)) as image:
            assert image.format == "JPEG"
            assert image.size == (1200, 1200)

    def test_small_images_are_not_upscaled(self, optimizer):
        raw = _png_bytes(300, 400)
        optimized = optimizer.optimize(raw, 1, 1, "jpeg")

        with Image.open(io.BytesIO(optimized)) as image:
            assert image.size == (300, 400)

    def test_png_uses_palette(self, optimizer):
        optimized = optimizer.optimize(_png_bytes(100, 100), 1, 1, "png")

        with Image.open(io.BytesIO(optimized)) as image:
            assert image.format == "PNG"
            assert image.mode == "P"

    def test_webp_output(self, optimizer):
        optimized = optimizer.optimize(_png_bytes(100, 100), 1, 1, "webp")
        assert optimized[:4] == b"RIFF"
        assert optimized[8:12] == b"WEBP"

    def test_resize_can_be_disabled(self):
        config = make_runtime_config({"compression": {"resize": {"enabled": False}}})
        optimized = ImageOptimizer(config.compression).optimize(_png_bytes(2000, 1000), 1, 1, "jpeg")

        with Image.open(io.BytesIO(optimized)) as image:
            assert image.size == (2000, 1000)

    def test_logs_compression_ratio(self, optimizer, caplog):
        with caplog.at_level(logging.INFO, logger="pdf_raster_backend.optimizer"):
            optimizer.optimize(_png_bytes(100, 100), 2, 5, "jpeg")
        assert "Page 2/5 - Compression ratio" in caplog.text


class TestGracefulDegradation:
    def test_malformed_input_is_returned_unchanged(self, optimizer):
        garbage = b"\x00\x01not an image at all"
        assert optimizer.optimize(garbage, 1, 1, "jpeg") is garbage

    def test_unknown_format_returns_original(self, optimizer):
        raw = _png_bytes(10, 10)
        assert optimizer.optimize(raw, 1, 1, "tiff") is raw
