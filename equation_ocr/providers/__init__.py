"""
Recognition provider plugins

- Provider-independent interface (RecognitionProvider)
- Plugin architecture: a new backend needs a plugin class and a registry entry
- Standardised output (ProviderReading)
"""

from .interface import (
    ProviderReading,
    ProviderType,
    RecognitionProvider,
)

from .registry import ProviderRegistry, build_registry

__all__ = [
    "ProviderReading",
    "ProviderType",
    "RecognitionProvider",
    "ProviderRegistry",
    "build_registry",
]
