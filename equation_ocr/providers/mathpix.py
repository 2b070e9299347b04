"""
Mathpix provider

Mathpix ``v3/text`` is specialised in mathematical notation. The image is
sent inline as a base64 data URI; no upload/poll cycle is needed for single
images.
"""

import base64
from typing import Any, Dict

import aiohttp

from ..errors import ProviderError
from ..types import NormalizedImage
from .interface import ProviderReading, ProviderType, RecognitionProvider


MATHPIX_TEXT_URL = "https://api.mathpix.com/v3/text"

DEFAULT_MATHPIX_CONFIDENCE = 85.0


def parse_mathpix_response(payload: Dict[str, Any]) -> ProviderReading:
    """
    Convert a Mathpix ``v3/text`` response into a ProviderReading

    Prefers the plain ``text`` rendering and falls back to ``latex_styled``.
    Mathpix reports confidence in 0-1; it is rescaled to 0-100.

    Raises:
        ProviderError: If the response carries an error
    """
    provider_id = ProviderType.MATHPIX.value

    if payload.get("error"):
        raise ProviderError(provider_id, str(payload["error"]))

    text = payload.get("text") or payload.get("latex_styled") or ""

    confidence = payload.get("confidence")
    if confidence is None:
        confidence = DEFAULT_MATHPIX_CONFIDENCE / 100.0

    return ProviderReading(
        text=text,
        confidence=round(max(0.0, min(1.0, float(confidence))) * 100, 1),
    )


class MathpixProvider(RecognitionProvider):
    """Mathpix plugin (hosted, math-specialised, paid)"""

    provider_id = ProviderType.MATHPIX.value
    default_confidence = DEFAULT_MATHPIX_CONFIDENCE

    def __init__(self, app_id: str, app_key: str, url: str = MATHPIX_TEXT_URL):
        self.app_id = app_id
        self.app_key = app_key
        self.url = url

        self.headers = {
            "app_id": self.app_id,
            "app_key": self.app_key,
            "Content-Type": "application/json",
        }

    def name(self) -> str:
        return "Mathpix"

    def is_available(self) -> bool:
        return bool(self.app_id and self.app_key)

    async def recognize(self, image: NormalizedImage) -> ProviderReading:
        encoded = base64.b64encode(image.png_bytes).decode("ascii")
        body = {
            "src": f"data:image/png;base64,{encoded}",
            "formats": ["text", "latex_styled"],
            "data_options": {
                "include_asciimath": True,
                "include_latex": True,
            },
        }

        async with aiohttp.ClientSession() as session:
            async with session.post(self.url, headers=self.headers, json=body) as resp:
                if resp.status != 200:
                    error_text = await resp.text()
                    raise ProviderError(self.provider_id,
                                        f"HTTP {resp.status} - {error_text[:200]}")
                payload = await resp.json(content_type=None)

        return parse_mathpix_response(payload)
