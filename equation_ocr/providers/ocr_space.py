"""
OCR.space provider

General-purpose OCR API. Engine 2 handles mathematical symbols noticeably
better than engine 1, and ``scale`` upsamples small captures server-side.
"""

from typing import Any, Dict

import aiohttp

from ..errors import ProviderError
from ..types import NormalizedImage
from .interface import ProviderReading, ProviderType, RecognitionProvider


OCR_SPACE_URL = "https://api.ocr.space/parse/image"

OVERLAY_CONFIDENCE = 90.0
PLAIN_CONFIDENCE = 75.0


def parse_ocr_space_response(payload: Dict[str, Any]) -> ProviderReading:
    """
    Convert an OCR.space JSON response into a ProviderReading

    OCR.space reports no numeric confidence; a returned text overlay is
    treated as the stronger signal.

    Args:
        payload: Decoded JSON body

    Returns:
        ProviderReading

    Raises:
        ProviderError: If the response reports a processing error
    """
    provider_id = ProviderType.OCR_SPACE.value

    if payload.get("IsErroredOnProcessing"):
        message = payload.get("ErrorMessage") or "processing error"
        if isinstance(message, list):
            message = "; ".join(str(m) for m in message)
        raise ProviderError(provider_id, str(message))

    results = payload.get("ParsedResults") or []
    if not results:
        raise ProviderError(provider_id, "response contained no parsed results")

    first = results[0]
    if first.get("ErrorMessage"):
        raise ProviderError(provider_id, str(first["ErrorMessage"]))

    overlay = (first.get("TextOverlay") or {}).get("HasOverlay")
    return ProviderReading(
        text=first.get("ParsedText") or "",
        confidence=OVERLAY_CONFIDENCE if overlay else PLAIN_CONFIDENCE,
    )


class OcrSpaceProvider(RecognitionProvider):
    """OCR.space plugin (hosted, general purpose)"""

    provider_id = ProviderType.OCR_SPACE.value
    default_confidence = PLAIN_CONFIDENCE

    def __init__(self, api_key: str, language: str = "eng", url: str = OCR_SPACE_URL):
        self.api_key = api_key
        self.language = language
        self.url = url

    def name(self) -> str:
        return "OCR.space"

    def is_available(self) -> bool:
        return bool(self.api_key)

    async def recognize(self, image: NormalizedImage) -> ProviderReading:
        data = aiohttp.FormData()
        data.add_field("file", image.png_bytes, filename="processed-image.png",
                       content_type="image/png")
        data.add_field("apikey", self.api_key)
        data.add_field("language", self.language)
        data.add_field("isOverlayRequired", "false")
        data.add_field("OCREngine", "2")
        data.add_field("scale", "true")
        data.add_field("isTable", "false")
        data.add_field("detectOrientation", "false")

        async with aiohttp.ClientSession() as session:
            async with session.post(self.url, data=data) as resp:
                if resp.status != 200:
                    error_text = await resp.text()
                    raise ProviderError(self.provider_id,
                                        f"HTTP {resp.status} - {error_text[:200]}")
                payload = await resp.json(content_type=None)

        return parse_ocr_space_response(payload)
