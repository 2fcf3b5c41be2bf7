"""Registry of inference backends."""

import httpx

from ..config import Config
from ..provider import ChatProvider
from .ollama import OllamaProvider
from .openrouter import OpenRouterProvider


def get_provider(
    name: str,
    config: Config,
    client: httpx.Client | None = None,
    api_key: str | None = None,
) -> ChatProvider:
    """Build the provider called ``name`` from configuration."""
    if name == OllamaProvider.name:
        return OllamaProvider(base_url=config.ollama_url, client=client)
    if name == OpenRouterProvider.name:
        return OpenRouterProvider(api_key=api_key or config.api_key or "", client=client)
    raise KeyError(f"Unknown provider: {name}")


__all__ = ["ChatProvider", "OllamaProvider", "OpenRouterProvider", "get_provider"]
