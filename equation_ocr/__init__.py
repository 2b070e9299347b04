"""
Equation OCR

Recognizes a single mathematical expression in a photo or upload:

- Image normalization (print / gridded paper / filtered photo)
- Concurrent fan-out to recognition providers (OCR.space, Mathpix, Tesseract,
  Claude Vision)
- Template matching and rule-based text correction
- Optional language-model disambiguation
- Consensus ranking with a confidence score
"""

from .config import Settings
from .consensus import ConsensusAggregator
from .correction import CORRECTION_RULES, CorrectionEngine
from .disambiguator import ContextualDisambiguator
from .dispatcher import RecognitionDispatcher
from .errors import (
    AllProvidersFailedError,
    DisambiguationError,
    ImageDecodeError,
    NoCandidatesError,
    ProviderError,
    ProviderTimeout,
    RecognitionError,
)
from .image_normalizer import ImageNormalizer
from .pipeline import RecognitionPipeline
from .template_matcher import TemplateMatcher
from .templates import TEMPLATE_CATALOGUE
from .types import (
    CandidateResult,
    ConsensusResult,
    CorrectionRule,
    ExpressionTemplate,
    ImageClass,
    NormalizedImage,
    RawProviderResult,
    RecognitionRequest,
    SourceStage,
)

__version__ = "0.1.0"

__all__ = [
    "Settings",
    "ConsensusAggregator",
    "CORRECTION_RULES",
    "CorrectionEngine",
    "ContextualDisambiguator",
    "RecognitionDispatcher",
    "AllProvidersFailedError",
    "DisambiguationError",
    "ImageDecodeError",
    "NoCandidatesError",
    "ProviderError",
    "ProviderTimeout",
    "RecognitionError",
    "ImageNormalizer",
    "RecognitionPipeline",
    "TemplateMatcher",
    "TEMPLATE_CATALOGUE",
    "CandidateResult",
    "ConsensusResult",
    "CorrectionRule",
    "ExpressionTemplate",
    "ImageClass",
    "NormalizedImage",
    "RawProviderResult",
    "RecognitionRequest",
    "SourceStage",
]
