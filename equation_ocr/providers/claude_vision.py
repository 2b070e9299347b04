"""
Claude Vision provider

Asks a vision-capable language model to transcribe the expression. Unlike the
OCR backends it returns clean notation, but it can also "repair" what it sees,
so it is one provider among several rather than the answer.
"""

import base64

import anthropic

from ..config import DEFAULT_ANTHROPIC_MODEL
from ..errors import ProviderError
from ..language_model import clean_reply, response_text
from ..types import NormalizedImage
from .interface import ProviderReading, ProviderType, RecognitionProvider


VISION_PROMPT = """This image contains one handwritten or printed mathematical expression.

Transcribe it exactly as written, on a single line of plain text:
- use ∫ for integrals, ∑ for sums, √ for roots
- use ^ for powers, e.g. x^2, e^(tan(2x))
- keep the differential (dx, dy, ...) if present
- do not solve or simplify it

Reply with the expression only, without any explanation."""


class ClaudeVisionProvider(RecognitionProvider):
    """Claude Vision plugin (hosted, slow, high accuracy)"""

    provider_id = ProviderType.CLAUDE_VISION.value
    default_confidence = 95.0

    def __init__(self, api_key: str, model: str = DEFAULT_ANTHROPIC_MODEL,
                 max_tokens: int = 256):
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.client = anthropic.AsyncAnthropic(api_key=api_key)

    def name(self) -> str:
        return "Claude Vision"

    def is_available(self) -> bool:
        return bool(self.api_key)

    async def recognize(self, image: NormalizedImage) -> ProviderReading:
        image_b64 = base64.b64encode(image.png_bytes).decode("ascii")

        response = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=0,
            messages=[{
                "role": "user",
                "content": [
                    {
                        "type": "image",
                        "source": {
                            "type": "base64",
                            "media_type": "image/png",
                            "data": image_b64,
                        },
                    },
                    {
                        "type": "text",
                        "text": VISION_PROMPT,
                    },
                ],
            }],
        )

        expression = clean_reply(response_text(response))
        if expression is None:
            raise ProviderError(self.provider_id, "reply contained no expression")

        return ProviderReading(text=expression, confidence=self.default_confidence)
