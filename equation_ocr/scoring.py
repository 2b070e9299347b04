"""
Confidence arithmetic

All scoring and bonus rules of the pipeline live here as pure functions so
they can be tested in isolation:

- Template scoring (weighted token / variant similarity)
- Per-stage confidence ceilings
- Disambiguation confidence
- Consensus group confidence (average + agreement bonus)
"""

import re
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

from .types import ExpressionTemplate


# =============================================================================
# Constants
# =============================================================================

REQUIRED_WEIGHT = 50.0
OPTIONAL_WEIGHT = 20.0
VARIANT_WEIGHT = 0.3
SCORE_CEILING = 100.0
ADMISSION_THRESHOLD = 25.0

RAW_CANDIDATE_CEILING = 50.0
CORRECTION_CANDIDATE_CEILING = 75.0

DISAMBIGUATION_BOOST = 10.0
DISAMBIGUATION_CEILING = 95.0
UNVERIFIED_REWRITE_CONFIDENCE = 85.0

AGREEMENT_BONUS_STEP = 5.0
AGREEMENT_BONUS_CAP = 20.0
CONSENSUS_CEILING = 98.0

_SUPERSCRIPTS = str.maketrans("⁰¹²³⁴⁵⁶⁷⁸⁹", "0123456789")
_NON_MATCHABLE = re.compile(r"[^\w\s()+\-/=.]")
_WORD = re.compile(r"[^\W_]+")
_WHITESPACE = re.compile(r"\s+")


# =============================================================================
# Text helpers
# =============================================================================

def clean_for_matching(text: str) -> str:
    """
    Canonicalize text before template comparison

    Lowercases, turns superscript digits into digits, drops carets (so
    ``x^4``, ``x⁴`` and ``x4`` compare equal) and replaces other symbols with
    spaces.
    """
    text = text.translate(_SUPERSCRIPTS).lower().replace("^", "")
    text = _NON_MATCHABLE.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()


def words(text: str) -> List[str]:
    """Alphanumeric runs of already-cleaned text"""
    return _WORD.findall(text)


def normalized_key(text: str) -> str:
    """Whitespace-insensitive, case-insensitive grouping key"""
    return _WHITESPACE.sub("", text).casefold()


# =============================================================================
# Template scoring
# =============================================================================

@dataclass(frozen=True)
class TemplateScore:
    """Breakdown of one template scored against one text"""
    template: ExpressionTemplate
    score: float
    required: Tuple[int, int]
    optional: Tuple[int, int]
    variant_overlap: float
    fired_signatures: Tuple[str, ...]

    @property
    def confidence(self) -> int:
        return template_confidence(self.template, self.score)

    @property
    def admitted(self) -> bool:
        return self.score > ADMISSION_THRESHOLD


def token_coverage(tokens: FrozenSet[str], cleaned: str) -> Tuple[int, int]:
    """
    Count tokens found as substrings of the cleaned text

    Returns:
        (matched, total)
    """
    matched = sum(1 for token in tokens if clean_for_matching(token) in cleaned)
    return matched, len(tokens)


def variant_overlap(variant: str, text_words: Set[str]) -> float:
    """Percentage of the variant's words present in the text (0-100)"""
    variant_words = words(clean_for_matching(variant))
    if not variant_words:
        return 0.0
    matched = sum(1 for w in variant_words if w in text_words)
    return matched / len(variant_words) * 100.0


def _coverage_points(matched: int, total: int, weight: float) -> float:
    if total == 0:
        return 0.0
    return matched / total * weight


def score_template(template: ExpressionTemplate, text: str) -> TemplateScore:
    """
    Score a text against one template

    score = required coverage * 50
          + optional coverage * 20
          + best known-variant overlap * 0.3
          + signature bonuses
    capped at 100. An empty token set contributes nothing.

    Args:
        template: Catalogue entry
        text: Raw recognized text

    Returns:
        TemplateScore
    """
    cleaned = clean_for_matching(text)
    text_words = set(words(cleaned))

    required = token_coverage(template.required_tokens, cleaned)
    optional = token_coverage(template.optional_tokens, cleaned)
    best_variant = max(
        (variant_overlap(v, text_words) for v in template.known_variants),
        default=0.0,
    )

    score = (
        _coverage_points(*required, REQUIRED_WEIGHT)
        + _coverage_points(*optional, OPTIONAL_WEIGHT)
        + best_variant * VARIANT_WEIGHT
    )

    fired = []
    for signature in template.signatures:
        if not re.search(signature.pattern, cleaned):
            continue
        if any(clean_for_matching(t) in cleaned for t in signature.absent_tokens):
            continue
        score += signature.bonus
        fired.append(signature.description)

    return TemplateScore(
        template=template,
        score=min(SCORE_CEILING, score),
        required=required,
        optional=optional,
        variant_overlap=best_variant,
        fired_signatures=tuple(fired),
    )


def template_confidence(template: ExpressionTemplate, score: float) -> int:
    """Final template confidence: min(base confidence, round(score)), never negative"""
    return max(0, min(template.base_confidence, int(round(score))))


# =============================================================================
# Stage ceilings
# =============================================================================

def raw_candidate_confidence(reported: float) -> float:
    """Unprocessed provider text is rarely valid syntax"""
    return min(RAW_CANDIDATE_CEILING, max(0.0, reported))


def correction_candidate_confidence(reported: float) -> float:
    return min(CORRECTION_CANDIDATE_CEILING, max(0.0, reported))


def disambiguation_confidence(matched_confidence: Optional[float]) -> float:
    """
    Confidence of a language-model answer

    Args:
        matched_confidence: Confidence of the supplied candidate the answer
            matches exactly, or None for a rewrite matching none of them
    """
    if matched_confidence is None:
        return UNVERIFIED_REWRITE_CONFIDENCE
    return min(DISAMBIGUATION_CEILING, matched_confidence + DISAMBIGUATION_BOOST)


# =============================================================================
# Consensus
# =============================================================================

def agreement_bonus(extra_members: int) -> float:
    """Bonus for ``extra_members`` candidates agreeing beyond the first"""
    if extra_members <= 0:
        return 0.0
    return min(AGREEMENT_BONUS_CAP, extra_members * AGREEMENT_BONUS_STEP)


def group_confidence(confidences: Sequence[float]) -> float:
    """
    Confidence of a group of agreeing candidates

    The group is scored as average + agreement bonus over its k most
    confident members, taking the best k. With equal member confidences this
    is exactly ``average + bonus(count - 1)``, and an additional agreeing
    member can never lower the result. Capped at 98.

    Raises:
        ValueError: For an empty group
    """
    if not confidences:
        raise ValueError("group_confidence needs at least one confidence")

    ordered = sorted(confidences, reverse=True)
    best = 0.0
    running = 0.0
    for k, confidence in enumerate(ordered, start=1):
        running += confidence
        best = max(best, running / k + agreement_bonus(k - 1))

    return round(min(CONSENSUS_CEILING, best), 2)


def distinct_origins(origins: Iterable[str]) -> int:
    return len(set(origins))
