"""
Recognition provider interface

Every text-recognition backend implements this interface. The dispatcher only
knows about ``recognize(image) -> ProviderReading``; endpoints, credentials
and response formats stay inside each plugin.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..types import NormalizedImage


# =============================================================================
# Provider Types
# =============================================================================

class ProviderType(Enum):
    """
    Known recognition providers

    New backends only need a new member here and a plugin class.
    """
    OCR_SPACE = "ocr_space"
    MATHPIX = "mathpix"
    TESSERACT = "tesseract"
    CLAUDE_VISION = "claude_vision"
    CUSTOM = "custom"


# =============================================================================
# Provider Output
# =============================================================================

@dataclass(frozen=True)
class ProviderReading:
    """Text returned by a provider"""
    text: str
    """Recognized text (may span several lines)"""

    confidence: Optional[float] = None
    """Provider-reported confidence (0-100), None if the provider has none"""


# =============================================================================
# Provider Interface
# =============================================================================

class RecognitionProvider(ABC):
    """
    Abstract recognition provider

    ``recognize`` may raise any exception; the dispatcher records it as a
    failed invocation and carries on with the other providers.
    """

    provider_id: str = ProviderType.CUSTOM.value

    default_confidence: float = 70.0
    """Used when the provider does not report a confidence"""

    @abstractmethod
    def name(self) -> str:
        """Human-readable provider name"""

    @abstractmethod
    def is_available(self) -> bool:
        """
        Whether the provider can run (credentials present, binary installed)

        Returns:
            bool: True if usable
        """

    @abstractmethod
    async def recognize(self, image: NormalizedImage) -> ProviderReading:
        """
        Recognize text in a normalized image

        Args:
            image: Normalized image (PNG bytes + grayscale pixels)

        Returns:
            ProviderReading with the raw text

        Raises:
            ProviderError: On an error response from the backend
        """
