"""
Error taxonomy of the recognition pipeline

Only ImageDecodeError, AllProvidersFailedError and NoCandidatesError ever
reach a caller. The others are raised inside a stage and absorbed there.
"""

from typing import Sequence, Tuple

from .types import RawProviderResult


class RecognitionError(Exception):
    """Base class for pipeline errors"""

    user_message = "recognition failed"


class ImageDecodeError(RecognitionError):
    """The captured or uploaded image could not be decoded"""

    user_message = "could not read image"


class ProviderError(RecognitionError):
    """A recognition provider returned an error"""

    def __init__(self, provider_id: str, message: str):
        super().__init__(f"{provider_id}: {message}")
        self.provider_id = provider_id


class ProviderTimeout(ProviderError):
    """A recognition provider did not answer within its timeout"""


class AllProvidersFailedError(RecognitionError):
    """No provider returned usable text"""

    user_message = "recognition unavailable, try again or enter manually"

    def __init__(self, results: Sequence[RawProviderResult] = ()):
        self.results: Tuple[RawProviderResult, ...] = tuple(results)
        if self.results:
            detail = ", ".join(
                f"{r.provider_id}={r.error_kind.value if r.error_kind else 'unknown'}"
                for r in self.results
            )
        else:
            detail = "no providers configured"
        super().__init__(f"All recognition providers failed ({detail})")


class DisambiguationError(RecognitionError):
    """The language-model stage could not produce a candidate"""


class NoCandidatesError(RecognitionError):
    """No stage produced a usable candidate expression"""

    user_message = "could not recognize an expression"
