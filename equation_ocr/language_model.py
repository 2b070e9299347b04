"""
Language-model boundary

The pipeline talks to language models only through ``LanguageModelClient``
so tests can substitute a fake and the disambiguator never imports a vendor
SDK directly.
"""

import re
from abc import ABC, abstractmethod
from typing import Any, Optional

import anthropic

from .config import DEFAULT_ANTHROPIC_MODEL


MAX_REPLY_LENGTH = 200

_FENCE = re.compile(r"```(?:[\w-]+)?\s*(.*?)```", re.DOTALL)
_ANSWER_PREFIX = re.compile(r"^(?:final\s+)?(?:answer|expression|result)\s*[:=-]\s*", re.IGNORECASE)
_WRAPPERS = "\"'`$ "


class LanguageModelClient(ABC):
    """Single-turn text completion"""

    @abstractmethod
    async def complete(self, system: str, user: str) -> str:
        """
        Send one system instruction and one user message

        Returns:
            The model's textual reply
        """


class AnthropicLanguageModel(LanguageModelClient):
    """LanguageModelClient backed by the Anthropic Messages API"""

    def __init__(self, api_key: str, model: str = DEFAULT_ANTHROPIC_MODEL,
                 max_tokens: int = 256):
        self.client = anthropic.AsyncAnthropic(api_key=api_key)
        self.model = model
        self.max_tokens = max_tokens

    async def complete(self, system: str, user: str) -> str:
        response = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=0,
            system=system,
            messages=[{"role": "user", "content": user}],
        )
        return response_text(response)


def response_text(response: Any) -> str:
    """Concatenate the text blocks of a Messages API response"""
    return "".join(
        getattr(block, "text", "")
        for block in response.content
        if getattr(block, "type", "text") == "text"
    ).strip()


def clean_reply(reply: Optional[str]) -> Optional[str]:
    """
    Reduce a model reply to a single expression line

    Strips code fences, an "Answer:" style prefix and wrapping quotes, and
    keeps the first non-empty line.

    Args:
        reply: Raw model reply

    Returns:
        The cleaned line, or None when nothing usable remains or the line is
        too long to be a single expression
    """
    if not reply:
        return None

    fenced = _FENCE.search(reply)
    if fenced:
        reply = fenced.group(1)

    lines = [line.strip() for line in reply.splitlines() if line.strip()]
    if not lines:
        return None

    line = _ANSWER_PREFIX.sub("", lines[0]).strip(_WRAPPERS)
    if not line or len(line) > MAX_REPLY_LENGTH:
        return None
    return line
