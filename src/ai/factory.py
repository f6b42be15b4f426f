"""
Provider registry and configuration-driven selection.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Type

import httpx

from config import AppConfig
from utils.errors import ConfigurationError

from .anthropic_provider import AnthropicProvider
from .base import BaseProvider
from .gemini_provider import GeminiProvider
from .heuristic import HeuristicProvider
from .ollama_provider import OllamaProvider
from .openai_provider import AzureOpenAIProvider, ExoProvider, GrokProvider, OpenAIProvider

DEFAULT_PROVIDER = "heuristic"

PROVIDERS: Dict[str, Type[BaseProvider]] = {
    provider.name: provider
    for provider in (
        HeuristicProvider,
        OpenAIProvider,
        AzureOpenAIProvider,
        AnthropicProvider,
        GeminiProvider,
        OllamaProvider,
        GrokProvider,
        ExoProvider,
    )
}


def register_provider(name: str, provider_cls: Type[BaseProvider]) -> None:
    PROVIDERS[name] = provider_cls


def available_providers() -> Dict[str, str]:
    """Provider name to display label."""
    return {name: cls.label for name, cls in PROVIDERS.items()}


def get_provider(
    name: str,
    settings: Optional[Dict[str, Any]] = None,
    client: Optional[httpx.Client] = None,
    logger: Optional[logging.Logger] = None,
) -> BaseProvider:
    provider_cls = PROVIDERS.get(name)
    if provider_cls is None:
        raise ConfigurationError(
            f"Unknown AI provider {name!r}; expected one of {', '.join(sorted(PROVIDERS))}"
        )
    return provider_cls(settings, client=client, logger=logger)


def create_provider(
    config: AppConfig,
    client: Optional[httpx.Client] = None,
    logger: Optional[logging.Logger] = None,
) -> BaseProvider:
    """Build the provider named by ``ai.provider`` with its vendor settings."""
    name = str(config.get("ai", "provider", default=DEFAULT_PROVIDER) or DEFAULT_PROVIDER)
    return get_provider(name, config.provider_settings(name), client=client, logger=logger)
