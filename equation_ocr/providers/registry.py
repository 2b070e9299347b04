"""
Recognition provider registry

Collects the providers a pipeline dispatches to. Registration order is the
provider priority; the dispatcher itself returns results in completion order.
"""

import logging
from typing import Dict, List, Optional

from ..config import Settings
from .claude_vision import ClaudeVisionProvider
from .interface import RecognitionProvider
from .mathpix import MathpixProvider
from .ocr_space import OcrSpaceProvider
from .tesseract_plugin import TesseractProvider

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """
    Provider registry

    One registry per pipeline; nothing is shared between instances.
    """

    def __init__(self):
        self._providers: Dict[str, RecognitionProvider] = {}

    def register(self, provider: RecognitionProvider):
        """
        Register a provider under its ``provider_id``

        Args:
            provider: Provider instance
        """
        self._providers[provider.provider_id] = provider
        logger.info("[Registry] provider registered: %s (%s)",
                    provider.provider_id, provider.name())

    def get(self, provider_id: str) -> Optional[RecognitionProvider]:
        return self._providers.get(provider_id)

    def is_available(self, provider_id: str) -> bool:
        provider = self.get(provider_id)
        return provider is not None and provider.is_available()

    def list_available(self) -> List[RecognitionProvider]:
        """
        All registered providers that can currently run

        Returns:
            Providers in registration (priority) order
        """
        return [p for p in self._providers.values() if p.is_available()]

    def __len__(self) -> int:
        return len(self._providers)


def build_registry(settings: Settings) -> ProviderRegistry:
    """
    Build the registry from configuration

    A provider whose credential is missing is simply not registered.

    Args:
        settings: Pipeline settings

    Returns:
        ProviderRegistry (possibly empty)
    """
    registry = ProviderRegistry()

    if settings.has_mathpix:
        registry.register(MathpixProvider(settings.mathpix_app_id, settings.mathpix_app_key))

    if settings.ocr_space_api_key:
        registry.register(OcrSpaceProvider(settings.ocr_space_api_key,
                                           language=settings.ocr_language))

    if settings.use_claude_vision and settings.anthropic_api_key:
        registry.register(ClaudeVisionProvider(settings.anthropic_api_key,
                                               model=settings.anthropic_model))

    if settings.use_tesseract:
        tesseract = TesseractProvider(language=settings.ocr_language)
        if tesseract.is_available():
            registry.register(tesseract)
        else:
            logger.warning("[Registry] tesseract binary not found, provider skipped")

    if not len(registry):
        logger.warning("[Registry] no recognition providers configured")

    return registry
