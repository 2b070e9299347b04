"""
Contextual disambiguator

Asks a language model to pick, or repair, the final expression given the raw
recognized text and the best candidates so far. The stage is optional: with
no language-model client it contributes nothing, and any failure other than
cancellation is logged and absorbed.
"""

import asyncio
import logging
import re
from string import ascii_uppercase
from typing import List, Optional, Sequence, Tuple

from .config import DEFAULT_DISAMBIGUATION_TIMEOUT
from .correction import is_plausible_expression
from .errors import DisambiguationError
from .language_model import LanguageModelClient, clean_reply
from .scoring import disambiguation_confidence, normalized_key
from .types import CandidateResult, SourceStage

logger = logging.getLogger(__name__)


MAX_PROMPT_CANDIDATES = 3

SYSTEM_PROMPT = (
    "You read mathematical expressions that an OCR system transcribed from a "
    "photo of handwritten or printed math. Reply with exactly one expression in "
    "plain text and nothing else: use ∫ for integrals, ^ for powers, "
    "parentheses around function arguments and a trailing differential such "
    "as dx. If one of the lettered candidates is right you may reply with its "
    "letter only."
)

_LETTER = re.compile(r"^\(?([A-Z])(?:[).:]\s*|\s*$)(.*)$")


def build_prompt(raw_text: str, candidates: Sequence[CandidateResult],
                 hint: Optional[str] = None) -> str:
    """
    User message for the language model

    Args:
        raw_text: Best raw provider text
        candidates: Top candidates, lettered A, B, C... in the given order
        hint: Expression the user had before asking to re-recognize
    """
    lines = [f'OCR read: "{raw_text}"']
    if hint:
        lines.append(f'The previous expression was: "{hint}"')

    if candidates:
        lines.append("")
        lines.append("Candidate expressions:")
        for letter, candidate in zip(ascii_uppercase, candidates):
            lines.append(f"{letter}) {candidate.text} (confidence {candidate.confidence:.0f}%)")
        lines.append("")
        lines.append("Which expression is in the image? Reply with the letter, "
                     "or with the corrected expression if none is right.")
    else:
        lines.append("")
        lines.append("Reply with the expression that is in the image.")

    return "\n".join(lines)


def parse_reply(reply: Optional[str],
                candidates: Sequence[CandidateResult]) -> Tuple[str, Optional[CandidateResult]]:
    """
    Turn a model reply into an expression

    Args:
        reply: Raw model reply
        candidates: The lettered candidates the prompt offered

    Returns:
        (expression, the candidate it matches exactly or None)

    Raises:
        DisambiguationError: Empty, over-long, out-of-range or implausible reply
    """
    line = clean_reply(reply)
    if line is None:
        raise DisambiguationError(f"unusable reply: {reply!r}")

    letter = _LETTER.match(line)
    if letter:
        index = ascii_uppercase.index(letter.group(1))
        rest = letter.group(2).strip()
        if rest:
            line = rest
        elif index < len(candidates):
            return candidates[index].text, candidates[index]
        else:
            raise DisambiguationError(f"reply selects unknown candidate {letter.group(1)}")

    if not is_plausible_expression(line):
        raise DisambiguationError(f"reply is not an expression: {line!r}")

    key = normalized_key(line)
    for candidate in candidates:
        if normalized_key(candidate.text) == key:
            return candidate.text, candidate
    return line, None


class ContextualDisambiguator:
    """Language-model tie breaker between the top candidates"""

    def __init__(self, client: Optional[LanguageModelClient] = None,
                 timeout: float = DEFAULT_DISAMBIGUATION_TIMEOUT,
                 max_candidates: int = MAX_PROMPT_CANDIDATES):
        """
        Args:
            client: Language model, or None to disable the stage
            timeout: Seconds to wait for the reply
            max_candidates: How many candidates are offered to the model
        """
        self.client = client
        self.timeout = timeout
        self.max_candidates = max_candidates

    @property
    def enabled(self) -> bool:
        return self.client is not None

    async def disambiguate(self, raw_text: str, candidates: Sequence[CandidateResult],
                           hint: Optional[str] = None) -> List[CandidateResult]:
        """
        Ask the language model for the final expression

        Args:
            raw_text: Best raw provider text
            candidates: Top candidates, most confident first
            hint: Optional prior expression

        Returns:
            Zero or one disambiguation candidate. Empty when the stage is
            disabled, times out, errors or gets an unusable reply.
        """
        if self.client is None:
            logger.info("[Disambiguator] no language model configured, skipped")
            return []

        offered = list(candidates)[:self.max_candidates]
        prompt = build_prompt(raw_text, offered, hint)

        try:
            reply = await asyncio.wait_for(self.client.complete(SYSTEM_PROMPT, prompt),
                                           timeout=self.timeout)
            text, matched = parse_reply(reply, offered)
        except asyncio.TimeoutError:
            error = DisambiguationError(f"no reply within {self.timeout:.0f}s")
            logger.warning("[Disambiguator] %s", error)
            return []
        except DisambiguationError as e:
            logger.warning("[Disambiguator] %s", e)
            return []
        except Exception as e:
            logger.warning("[Disambiguator] %s", DisambiguationError(f"language model call failed: {e}"))
            return []

        if matched is not None:
            confidence = disambiguation_confidence(matched.confidence)
            explanation = f"language model confirmed '{matched.text}'"
        else:
            confidence = disambiguation_confidence(None)
            explanation = "language model rewrite matching no candidate"

        logger.info("[Disambiguator] %s -> %s (%.0f)", raw_text, text, confidence)
        return [
            CandidateResult(
                source_stage=SourceStage.DISAMBIGUATION,
                text=text,
                confidence=confidence,
                explanation=explanation,
            )
        ]
