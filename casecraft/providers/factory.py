from __future__ import annotations

from casecraft.core.config import get_settings
from casecraft.providers.base import LLMProvider
from casecraft.providers.ollama_provider import OllamaProvider
from casecraft.providers.openai_provider import OpenAIProvider

SUPPORTED_PROVIDERS: tuple[str, ...] = ("openai", "ollama")


def resolve_provider_name(provider_name: str | None = None) -> str:
    """Normalize the requested provider name, falling back to the configured default."""
    settings = get_settings()
    name = (provider_name or settings.default_llm_provider).strip().lower()
    if name not in SUPPORTED_PROVIDERS:
        raise ValueError(
            f"Unsupported LLM provider: {provider_name or name!r}. "
            "Use 'openai' or 'ollama'."
        )
    return name


def get_provider(provider_name: str | None = None) -> LLMProvider:
    """Return the LLM provider for the given name."""
    name = resolve_provider_name(provider_name)
    if name == "ollama":
        return OllamaProvider()
    return OpenAIProvider()
