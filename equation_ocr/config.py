"""
Pipeline configuration

Credentials and timeouts come from the environment (a local .env file is
loaded first). A missing credential is never an error: it only removes the
corresponding provider, or the disambiguator, from the pipeline.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


DEFAULT_PROVIDER_TIMEOUT = 15.0
DEFAULT_DISAMBIGUATION_TIMEOUT = 20.0
DEFAULT_ANTHROPIC_MODEL = "claude-3-5-sonnet-latest"
DEFAULT_OCR_LANGUAGE = "eng"


def _env_str(name: str) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or None


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    """Runtime configuration of the recognition pipeline"""
    ocr_space_api_key: Optional[str] = None
    mathpix_app_id: Optional[str] = None
    mathpix_app_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    anthropic_model: str = DEFAULT_ANTHROPIC_MODEL
    use_tesseract: bool = True
    use_claude_vision: bool = False
    provider_timeout: float = DEFAULT_PROVIDER_TIMEOUT
    disambiguation_timeout: float = DEFAULT_DISAMBIGUATION_TIMEOUT
    ocr_language: str = DEFAULT_OCR_LANGUAGE

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            ocr_space_api_key=_env_str("OCR_SPACE_API_KEY"),
            mathpix_app_id=_env_str("MATHPIX_APP_ID"),
            mathpix_app_key=_env_str("MATHPIX_APP_KEY"),
            anthropic_api_key=_env_str("ANTHROPIC_API_KEY"),
            anthropic_model=_env_str("ANTHROPIC_MODEL") or DEFAULT_ANTHROPIC_MODEL,
            use_tesseract=_env_bool("USE_TESSERACT", True),
            use_claude_vision=_env_bool("USE_CLAUDE_VISION", False),
            provider_timeout=_env_float("PROVIDER_TIMEOUT_SECONDS", DEFAULT_PROVIDER_TIMEOUT),
            disambiguation_timeout=_env_float(
                "DISAMBIGUATION_TIMEOUT_SECONDS", DEFAULT_DISAMBIGUATION_TIMEOUT
            ),
            ocr_language=_env_str("OCR_LANGUAGE") or DEFAULT_OCR_LANGUAGE,
        )

    @property
    def has_mathpix(self) -> bool:
        return bool(self.mathpix_app_id and self.mathpix_app_key)

    @property
    def has_language_model(self) -> bool:
        return bool(self.anthropic_api_key)
