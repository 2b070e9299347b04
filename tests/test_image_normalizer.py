"""
Tests for equation_ocr/image_normalizer.py
"""

import base64

import numpy as np
import pytest
from PIL import Image
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))
sys.path.insert(0, str(Path(__file__).parent.parent))

from equation_ocr.errors import ImageDecodeError
from equation_ocr.image_normalizer import (
    ImageNormalizer,
    decode_image,
    scanline_variance,
    to_grayscale,
)
from equation_ocr.types import ImageClass, ImageStats
from fakes import png_bytes, printed_page


def gridded_page() -> np.ndarray:
    """200x200 white page, gray-200 grid every 20px, black ink stroke"""
    page = np.full((200, 200, 3), 255, dtype=np.uint8)
    page[::20, :] = 200
    page[:, ::20] = 200
    page[85:95, 60:140] = 0
    return page


def ruled_pencil_page() -> np.ndarray:
    """Light-gray page, horizontal rules only, pencil-gray ink"""
    page = np.full((200, 200, 3), 240, dtype=np.uint8)
    page[::20, :] = 200
    page[90:100, 40:160] = 60
    return page


def tinted_page() -> np.ndarray:
    """Strong blue cast, as left by a camera filter"""
    page = np.zeros((100, 100, 3), dtype=np.uint8)
    page[..., 0] = 220
    page[..., 1] = 90
    page[..., 2] = 40
    return page


class TestDecodeImage:
    def test_png_bytes(self):
        bgr = decode_image(png_bytes(printed_page()))
        assert bgr.shape == (120, 240, 3)

    def test_data_uri(self):
        encoded = base64.b64encode(png_bytes(printed_page())).decode()
        bgr = decode_image(f"data:image/png;base64,{encoded}")
        assert bgr.shape == (120, 240, 3)

    def test_garbage_bytes(self):
        with pytest.raises(ImageDecodeError):
            decode_image(b"definitely not an image")

    def test_invalid_base64(self):
        with pytest.raises(ImageDecodeError):
            decode_image("data:image/png;base64,@@@not-base64@@@")

    def test_empty(self):
        with pytest.raises(ImageDecodeError):
            decode_image(b"")

    def test_oversized_image(self, monkeypatch):
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10)
        with pytest.raises(ImageDecodeError):
            ImageNormalizer().normalize(png_bytes(printed_page()))


class TestClassification:
    def test_printed_page(self):
        result = ImageNormalizer().normalize(printed_page())
        assert result.image_class == ImageClass.HIGH_CONTRAST_PRINT

    def test_gridded_page(self):
        normalizer = ImageNormalizer()
        stats = normalizer.measure(gridded_page())

        assert stats.grid_line_count >= 3
        assert normalizer.classify(stats) == ImageClass.GRIDDED_PAPER

    def test_tinted_page(self):
        result = ImageNormalizer().normalize(tinted_page())
        assert result.image_class == ImageClass.FILTERED_OR_NOISY

    def test_noise_takes_priority_over_grid(self):
        stats = ImageStats(average_brightness=240, channel_variance=60,
                           grid_line_count=10, grid_line_density=5.0)
        assert ImageNormalizer().classify(stats) == ImageClass.FILTERED_OR_NOISY

    def test_dark_page_is_not_gridded(self):
        stats = ImageStats(average_brightness=150, channel_variance=0,
                           grid_line_count=10, grid_line_density=5.0)
        assert ImageNormalizer().classify(stats) == ImageClass.HIGH_CONTRAST_PRINT


class TestPreprocessing:
    def test_grid_removal_reduces_scanline_variance(self):
        page = gridded_page()
        result = ImageNormalizer().normalize(png_bytes(page))

        assert result.image_class == ImageClass.GRIDDED_PAPER
        assert scanline_variance(result.pixels) < scanline_variance(to_grayscale(page))

    def test_grid_lines_whitened_ink_kept(self):
        result = ImageNormalizer().normalize(gridded_page())
        assert result.pixels[40, 5] == 255   # grid row
        assert result.pixels[90, 100] == 0   # ink

    def test_ruled_pencil_page(self):
        result = ImageNormalizer().normalize(ruled_pencil_page())

        assert result.image_class == ImageClass.GRIDDED_PAPER
        assert result.pixels[20, 5] == 255    # rule
        assert result.pixels[50, 5] == 255    # background
        assert result.pixels[95, 100] == 10   # ink darkened by 50
        # rows holding only a rule or background are now flat white
        assert scanline_variance(result.pixels[:80]) == 0.0

    def test_output_is_grayscale_png(self):
        result = ImageNormalizer().normalize(printed_page())
        assert result.pixels.ndim == 2
        assert result.png_bytes.startswith(b"\x89PNG")
        assert (result.width, result.height) == (240, 120)

    def test_filtered_stretch(self):
        gray = np.array([[50, 120, 160, 200]], dtype=np.uint8)
        out = ImageNormalizer()._stretch_filtered(gray)
        assert out.tolist() == [[0, 80, 200, 255]]
