"""
Core data types for the recognition pipeline

Every stage exchanges these values. Candidate-level values are frozen so that
a stage can hand them downstream without defensive copies.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, FrozenSet, Optional, Tuple, Union
import re

import numpy as np


# =============================================================================
# Enums
# =============================================================================

class ImageClass(Enum):
    """Preprocessing strategy chosen by the image normalizer"""
    HIGH_CONTRAST_PRINT = "highContrastPrint"
    GRIDDED_PAPER = "griddedPaper"
    FILTERED_OR_NOISY = "filteredOrNoisy"


class SourceStage(Enum):
    """Pipeline stage that produced a candidate"""
    RECOGNITION = "recognition"
    TEMPLATE = "template"
    CORRECTION = "correction"
    DISAMBIGUATION = "disambiguation"
    CONSENSUS = "consensus"


class ErrorKind(Enum):
    """Why a provider invocation did not yield usable text"""
    TIMEOUT = "timeout"
    PROVIDER_ERROR = "provider_error"
    EMPTY_TEXT = "empty_text"


# =============================================================================
# Request / provider results
# =============================================================================

@dataclass
class RecognitionRequest:
    """One capture or upload action from the UI"""
    image: Union[bytes, str]
    """Raw image bytes or a base64 data URI"""

    captured_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    hint: Optional[str] = None
    """Prior expression when the user asks to re-recognize"""


@dataclass(frozen=True)
class RawProviderResult:
    """Outcome of a single recognition provider invocation"""
    provider_id: str
    raw_text: str
    reported_confidence: float  # 0-100
    latency_ms: int
    succeeded: bool
    error_kind: Optional[ErrorKind] = None

    def to_dict(self) -> dict:
        return {
            "provider_id": self.provider_id,
            "raw_text": self.raw_text,
            "reported_confidence": self.reported_confidence,
            "latency_ms": self.latency_ms,
            "succeeded": self.succeeded,
            "error_kind": self.error_kind.value if self.error_kind else None,
        }


# =============================================================================
# Catalogue entries
# =============================================================================

Replacement = Union[str, Callable[[re.Match], str]]


@dataclass(frozen=True)
class CorrectionRule:
    """
    A single rewrite rule of the correction catalogue

    ``replacement`` is either a ``re.sub`` template or a callable receiving
    the match object.
    """
    id: str
    match_pattern: str
    replacement: Replacement
    rationale: str
    flags: int = 0

    def compiled(self) -> "re.Pattern[str]":
        return re.compile(self.match_pattern, self.flags)


@dataclass(frozen=True)
class TemplateSignature:
    """Template-specific bonus heuristic"""
    pattern: str
    bonus: int
    description: str
    absent_tokens: FrozenSet[str] = frozenset()
    """Tokens that must NOT appear for the bonus to apply"""


@dataclass(frozen=True)
class ExpressionTemplate:
    """Catalogued canonical expression with its known misreadings"""
    name: str
    canonical_form: str
    required_tokens: FrozenSet[str]
    optional_tokens: FrozenSet[str]
    known_variants: Tuple[str, ...]
    base_confidence: int
    signatures: Tuple[TemplateSignature, ...] = ()


# =============================================================================
# Candidates
# =============================================================================

@dataclass(frozen=True)
class CandidateResult:
    """A stage's proposed expression with its confidence (0-100)"""
    source_stage: SourceStage
    text: str
    confidence: float
    explanation: str
    provider_id: Optional[str] = None
    """Provider whose reading this candidate derives from, if any"""

    def __post_init__(self):
        if not 0 <= self.confidence <= 100:
            raise ValueError(f"Confidence must be between 0 and 100, got {self.confidence}")

    @property
    def origin(self) -> str:
        """Independent evidence source used to count agreement"""
        return self.provider_id or self.source_stage.value

    def to_dict(self) -> dict:
        return {
            "source_stage": self.source_stage.value,
            "text": self.text,
            "confidence": self.confidence,
            "explanation": self.explanation,
            "provider_id": self.provider_id,
        }


@dataclass(frozen=True)
class ConsensusResult:
    """Terminal artifact handed to the UI layer"""
    final_text: str
    final_confidence: float
    supporting_candidates: Tuple[CandidateResult, ...]
    agreement_count: int
    image_class: Optional[ImageClass] = None
    provider_results: Tuple[RawProviderResult, ...] = ()

    def to_dict(self) -> dict:
        return {
            "final_text": self.final_text,
            "final_confidence": self.final_confidence,
            "agreement_count": self.agreement_count,
            "supporting_candidates": [c.to_dict() for c in self.supporting_candidates],
            "image_class": self.image_class.value if self.image_class else None,
            "provider_results": [r.to_dict() for r in self.provider_results],
        }


# =============================================================================
# Normalized image
# =============================================================================

@dataclass(frozen=True)
class ImageStats:
    """Measurements the normalizer bases its classification on"""
    average_brightness: float
    channel_variance: float
    grid_line_count: int
    grid_line_density: float  # lines per 100 rows


@dataclass(frozen=True)
class NormalizedImage:
    """Preprocessed image ready for the recognition providers"""
    image_class: ImageClass
    pixels: np.ndarray
    """Processed grayscale image (uint8)"""

    png_bytes: bytes
    stats: ImageStats

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])
