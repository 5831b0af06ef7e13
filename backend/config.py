"""Runtime configuration read from environment variables.

All tuneable knobs for the provider and image lookups live here so the rest
of the pipeline receives one ``Settings`` object instead of reading
``os.environ`` ad hoc.
"""

import logging
import os

from pydantic import BaseModel

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS: tuple[str, ...] = ("anthropic", "openai", "gemini", "custom")
DEFAULT_PROVIDER: str = "gemini"

# Model used when AI_MODEL is unset.
DEFAULT_MODELS: dict[str, str] = {
    "anthropic": "claude-sonnet-4-6",
    "openai": "gpt-4o-mini",
    "gemini": "gemini-pro",
    "custom": "gpt-4o-mini",
}

# Provider-specific credential variables, checked before AI_API_KEY.
_CREDENTIAL_ENV: dict[str, str] = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "custom": "AI_API_KEY",
}


class Settings(BaseModel):
    """Everything the pipeline needs from the deployment environment."""

    provider: str = DEFAULT_PROVIDER
    """Active metadata provider: anthropic | openai | gemini | custom."""

    model: str = DEFAULT_MODELS[DEFAULT_PROVIDER]
    api_key: str = ""
    """Credential for the active provider. Empty disables AI enrichment."""

    base_url: str | None = None
    """Alternate service base URL (required for the ``custom`` provider)."""

    language: str = "Spanish"
    """Language every natural-language field must be written in."""

    timeout_seconds: float = 60.0
    google_maps_api_key: str = ""
    image_lookup_concurrency: int = 4

    @classmethod
    def from_env(cls) -> "Settings":
        """Builds settings from the process environment.

        Unknown ``AI_PROVIDER`` values fall back to the default provider
        rather than failing the request.
        """
        provider = os.environ.get("AI_PROVIDER", DEFAULT_PROVIDER).strip().lower()
        if provider not in SUPPORTED_PROVIDERS:
            logger.warning(
                "Unsupported AI_PROVIDER %r; using %s", provider, DEFAULT_PROVIDER
            )
            provider = DEFAULT_PROVIDER

        api_key = os.environ.get(_CREDENTIAL_ENV[provider], "") or os.environ.get(
            "AI_API_KEY", ""
        )

        return cls(
            provider=provider,
            model=os.environ.get("AI_MODEL") or DEFAULT_MODELS[provider],
            api_key=api_key,
            base_url=os.environ.get("AI_BASE_URL") or None,
            language=os.environ.get("AI_LANGUAGE") or "Spanish",
            timeout_seconds=_env_number("AI_TIMEOUT_SECONDS", float, 60.0),
            google_maps_api_key=os.environ.get("GOOGLE_MAPS_API_KEY", ""),
            image_lookup_concurrency=_env_number("IMAGE_LOOKUP_CONCURRENCY", int, 4),
        )

    @property
    def ai_enabled(self) -> bool:
        """True when a credential is configured for the active provider."""
        return bool(self.api_key.strip())


def _env_number(name: str, kind: type, default: float):
    """Reads a numeric variable; unparsable or non-positive values use ``default``."""
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = kind(raw)
    except ValueError:
        logger.warning("Invalid %s %r; using %s", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Non-positive %s %r; using %s", name, raw, default)
        return default
    return value
