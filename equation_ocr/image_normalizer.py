"""
Image normalization using OpenCV

Classifies a captured or uploaded photo and applies the matching contrast
strategy before it is handed to the recognition providers:

1. filteredOrNoisy   - strong colour cast / camera filter (high channel variance)
2. griddedPaper      - bright page with faint repeating horizontal lines
3. highContrastPrint - everything else (clean print or dark ink on plain paper)
"""

import base64
import binascii
import io
import logging
import re
from typing import Union

import cv2
import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from .errors import ImageDecodeError
from .types import ImageClass, ImageStats, NormalizedImage

logger = logging.getLogger(__name__)


NOISY_CHANNEL_VARIANCE = 30.0
BRIGHT_PAGE_THRESHOLD = 200.0
GRID_ERASE_CUTOFF = 180
GRID_MIN_CONTRAST = 8
GRID_ROW_COVERAGE = 0.5
GRID_MIN_LINES = 3
GRID_LINE_DENSITY = 1.0  # lines per 100 rows
MAX_SAMPLES_PER_AXIS = 200

DATA_URI_PREFIX = re.compile(r"^data:image/[\w.+-]+;base64,", re.IGNORECASE)


# -------------------------------------------------------------------------
# Decoding
# -------------------------------------------------------------------------

def decode_image(image: Union[bytes, bytearray, str]) -> np.ndarray:
    """
    Decode raw bytes or a base64 data URI into a BGR image

    EXIF orientation is applied so phone captures come out upright.

    Args:
        image: Encoded image bytes, a data URI, or a bare base64 string

    Returns:
        BGR image as numpy array (OpenCV convention)

    Raises:
        ImageDecodeError: If the payload is not a decodable raster image
    """
    if isinstance(image, str):
        payload = image.strip()
        prefix = DATA_URI_PREFIX.match(payload)
        if prefix:
            payload = payload[prefix.end():]
        payload = "".join(payload.split())
        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ImageDecodeError(f"Invalid base64 image payload: {e}") from e
    elif isinstance(image, (bytes, bytearray, memoryview)):
        data = bytes(image)
    else:
        raise ImageDecodeError(f"Unsupported image payload type: {type(image).__name__}")

    if not data:
        raise ImageDecodeError("Empty image payload")

    try:
        with Image.open(io.BytesIO(data)) as pil_image:
            upright = ImageOps.exif_transpose(pil_image)
            rgb = np.array(upright.convert("RGB"))
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise ImageDecodeError(f"Failed to decode image: {e}") from e

    if rgb.size == 0:
        raise ImageDecodeError("Decoded image has no pixels")

    return cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Convert BGR to grayscale (0.299 R + 0.587 G + 0.114 B)"""
    if len(image.shape) == 2:
        return image
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


def scanline_variance(gray: np.ndarray, step: int = 1) -> float:
    """Average luminance variance across horizontal scan lines"""
    rows = gray[::max(1, step)].astype(np.float64)
    return float(rows.var(axis=1).mean())


# -------------------------------------------------------------------------
# Normalizer
# -------------------------------------------------------------------------

class ImageNormalizer:
    """Classify and preprocess images for text recognition"""

    def __init__(self,
                 noisy_channel_variance: float = NOISY_CHANNEL_VARIANCE,
                 bright_page_threshold: float = BRIGHT_PAGE_THRESHOLD,
                 grid_line_density: float = GRID_LINE_DENSITY,
                 grid_min_lines: int = GRID_MIN_LINES):
        """
        Initialize image normalizer

        Args:
            noisy_channel_variance: Channel spread above which an image is treated as filtered
            bright_page_threshold: Average brightness a gridded page must exceed
            grid_line_density: Minimum faint lines per 100 rows for gridded paper
            grid_min_lines: Minimum number of faint lines for gridded paper
        """
        self.noisy_channel_variance = noisy_channel_variance
        self.bright_page_threshold = bright_page_threshold
        self.grid_line_density = grid_line_density
        self.grid_min_lines = grid_min_lines

    def normalize(self, image: Union[bytes, str, np.ndarray]) -> NormalizedImage:
        """
        Decode, classify and preprocess an image

        Args:
            image: Encoded bytes, data URI, or an already decoded BGR array

        Returns:
            NormalizedImage with processed grayscale pixels and PNG bytes

        Raises:
            ImageDecodeError: If the image cannot be decoded
        """
        if isinstance(image, np.ndarray):
            bgr = image if len(image.shape) == 3 else cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
        else:
            bgr = decode_image(image)

        stats = self.measure(bgr)
        image_class = self.classify(stats)
        gray = to_grayscale(bgr)

        if image_class == ImageClass.FILTERED_OR_NOISY:
            processed = self._stretch_filtered(gray)
        elif image_class == ImageClass.GRIDDED_PAPER:
            processed = self._erase_grid(gray)
        else:
            processed = self._stretch_print(gray)

        success, buffer = cv2.imencode(".png", processed)
        if not success:
            raise ImageDecodeError("Failed to encode processed image")

        logger.info(
            "[Normalizer] %s (brightness=%.1f, channel_variance=%.1f, grid_lines=%d)",
            image_class.value, stats.average_brightness, stats.channel_variance,
            stats.grid_line_count,
        )

        return NormalizedImage(
            image_class=image_class,
            pixels=processed,
            png_bytes=buffer.tobytes(),
            stats=stats,
        )

    def measure(self, bgr: np.ndarray) -> ImageStats:
        """
        Compute brightness, channel variance and grid-line statistics

        Brightness and channel variance are taken over a sample grid. Grid
        lines are searched on every row (lines are often one pixel thick)
        with sampled columns.

        Args:
            bgr: BGR image

        Returns:
            ImageStats
        """
        height, width = bgr.shape[:2]
        row_step = max(1, height // MAX_SAMPLES_PER_AXIS)
        col_step = max(1, width // MAX_SAMPLES_PER_AXIS)

        sample = bgr[::row_step, ::col_step].astype(np.int16)
        b, g, r = sample[..., 0], sample[..., 1], sample[..., 2]
        brightness = float(((r + g + b) / 3.0).mean())
        channel_variance = float((np.abs(r - g) + np.abs(g - b) + np.abs(b - r)).mean())

        gray = to_grayscale(bgr)[:, ::col_step]
        line_count = self._count_grid_lines(gray)
        density = line_count / (height / 100.0) if height else 0.0

        return ImageStats(
            average_brightness=brightness,
            channel_variance=channel_variance,
            grid_line_count=line_count,
            grid_line_density=density,
        )

    def classify(self, stats: ImageStats) -> ImageClass:
        """Pick the preprocessing strategy (priority: noisy, gridded, print)"""
        if stats.channel_variance > self.noisy_channel_variance:
            return ImageClass.FILTERED_OR_NOISY

        if (stats.average_brightness > self.bright_page_threshold
                and stats.grid_line_count >= self.grid_min_lines
                and stats.grid_line_density >= self.grid_line_density):
            return ImageClass.GRIDDED_PAPER

        return ImageClass.HIGH_CONTRAST_PRINT

    def _count_grid_lines(self, gray: np.ndarray) -> int:
        """
        Count faint horizontal line segments

        A row belongs to a line when most of its pixels sit in the faint band
        between the erase cutoff and just below the page background.
        Consecutive line rows count as one line.
        """
        if gray.size == 0:
            return 0

        background = float(np.median(gray))
        upper = background - GRID_MIN_CONTRAST
        if upper < GRID_ERASE_CUTOFF:
            return 0

        in_band = (gray >= GRID_ERASE_CUTOFF) & (gray <= upper)
        line_rows = in_band.mean(axis=1) >= GRID_ROW_COVERAGE

        starts = np.count_nonzero(np.diff(line_rows.astype(np.int8)) == 1)
        return int(starts + (1 if line_rows[0] else 0))

    def _stretch_filtered(self, gray: np.ndarray) -> np.ndarray:
        """Pull mid-tones symmetrically toward black and white"""
        g = gray.astype(np.int16)
        out = np.where(
            g < 100, 0,
            np.where(g > 180, 255,
                     np.where(g < 140, g - 40, g + 40)))
        return np.clip(out, 0, 255).astype(np.uint8)

    def _erase_grid(self, gray: np.ndarray) -> np.ndarray:
        """Whiten faint grid lines and darken ink below the cutoff"""
        g = gray.astype(np.int16)
        out = np.where(g < GRID_ERASE_CUTOFF, g - 50, 255)
        return np.clip(out, 0, 255).astype(np.uint8)

    def _stretch_print(self, gray: np.ndarray) -> np.ndarray:
        """Mild contrast stretch around mid-gray"""
        g = gray.astype(np.int16)
        out = np.where(g < 128, g - 20, g + 20)
        return np.clip(out, 0, 255).astype(np.uint8)
