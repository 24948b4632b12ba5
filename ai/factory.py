import os
from typing import Dict, Optional, Tuple

from ai.service import AIService
from ai.openai_service import OpenAIService
from ai.gemini_service import GeminiService
from ai.claude_service import ClaudeService

# Credentials each provider reads from the environment.
_API_KEY_ENV: Dict[str, Tuple[str, ...]] = {
    "gemini": ("GEMINI_API_KEY", "GOOGLE_API_KEY"),
    "claude": ("ANTHROPIC_API_KEY",),
    "openai": ("OPENAI_API_KEY",),
}


class ServiceNotConfiguredError(RuntimeError):
    """Raised when the selected provider has no credentials in the environment."""


def _canonical(provider: str) -> str:
    provider = provider.lower().strip()
    if provider == "anthropic":
        return "claude"
    if provider == "google":
        return "gemini"
    return provider


def is_configured(provider: str) -> bool:
    """Return True when at least one credential env var for *provider* is set."""
    names = _API_KEY_ENV.get(_canonical(provider), ())
    return any(os.getenv(name) for name in names)


def _make_service(provider: str, timeout: Optional[float] = None) -> AIService:
    """Instantiate the appropriate AIService for a provider name."""
    provider = _canonical(provider)
    if provider not in _API_KEY_ENV:
        raise ValueError(f"Unknown AI provider: {provider!r}")
    if not is_configured(provider):
        raise ServiceNotConfiguredError(
            f"No API key configured for provider {provider!r} "
            f"(set one of: {', '.join(_API_KEY_ENV[provider])})"
        )
    if provider == "gemini":
        return GeminiService(model=os.getenv("GEMINI_MODEL") or None, timeout=timeout)
    if provider == "claude":
        return ClaudeService(model=os.getenv("ANTHROPIC_MODEL") or None, timeout=timeout)
    return OpenAIService(model=os.getenv("OPENAI_MODEL") or None, timeout=timeout)


def get_decision_for_media_service(timeout: Optional[float] = None) -> AIService:
    """
    Return an AIService for image + text decisions (page rasters).

    The provider is chosen via the AI_MEDIA_PROVIDER env var:
      - "openai"     → OpenAIService
      - "gemini"     → GeminiService  (default)
      - "claude"     → ClaudeService

    Raises ServiceNotConfiguredError when the provider has no API key.
    """
    provider = os.getenv("AI_MEDIA_PROVIDER", "gemini")
    return _make_service(provider, timeout=timeout)
