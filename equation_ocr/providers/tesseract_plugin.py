"""
Tesseract provider

Local, free, no credentials. pytesseract shells out to the tesseract binary
and blocks, so the call runs in a worker thread to keep the event loop free.
"""

import asyncio
from typing import List, Tuple

import cv2
import numpy as np
import pytesseract

from ..types import NormalizedImage
from .interface import ProviderReading, ProviderType, RecognitionProvider


TESSERACT_CONFIG = "--psm 6"


def binarize(gray: np.ndarray) -> np.ndarray:
    """
    Otsu binarization with dark text on a light background

    Images whose background is dark (light chalk or marker on a board) are
    inverted first.
    """
    if float(gray.mean()) < 127:
        gray = cv2.bitwise_not(gray)
    _, binary = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
    return binary


def words_to_reading(data: dict) -> ProviderReading:
    """
    Assemble line text and mean word confidence from ``image_to_data`` output

    Args:
        data: pytesseract DICT output

    Returns:
        ProviderReading (confidence None when no word was confident)
    """
    lines: dict = {}
    confidences: List[float] = []

    for i, word in enumerate(data.get("text", [])):
        word = (word or "").strip()
        if not word:
            continue

        try:
            conf = float(data["conf"][i])
        except (KeyError, IndexError, TypeError, ValueError):
            conf = -1.0

        key: Tuple[int, int, int] = (
            data["block_num"][i], data["par_num"][i], data["line_num"][i]
        )
        lines.setdefault(key, []).append(word)
        if conf >= 0:
            confidences.append(conf)

    text = "\n".join(" ".join(words) for _, words in sorted(lines.items()))
    confidence = round(sum(confidences) / len(confidences), 1) if confidences else None
    return ProviderReading(text=text, confidence=confidence)


class TesseractProvider(RecognitionProvider):
    """
    Tesseract plugin (local, fast, medium accuracy)

    The blocking pytesseract call runs in a worker thread. A thread cannot be
    cancelled: when the dispatcher times out or cancels recognize(), the
    awaiting task ends but the worker keeps running until tesseract returns.
    Under sustained load with short timeouts those leftover threads can fill
    the default executor.
    """

    provider_id = ProviderType.TESSERACT.value
    default_confidence = 60.0

    def __init__(self, language: str = "eng", config: str = TESSERACT_CONFIG):
        self.language = language
        self.config = config

    def name(self) -> str:
        return "Tesseract OCR"

    def is_available(self) -> bool:
        try:
            pytesseract.get_tesseract_version()
        except (pytesseract.TesseractNotFoundError, OSError):
            return False
        return True

    async def recognize(self, image: NormalizedImage) -> ProviderReading:
        return await asyncio.to_thread(self._run, image.pixels)

    def _run(self, gray: np.ndarray) -> ProviderReading:
        data = pytesseract.image_to_data(
            binarize(gray),
            lang=self.language,
            config=self.config,
            output_type=pytesseract.Output.DICT,
        )
        return words_to_reading(data)
