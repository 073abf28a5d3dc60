"""Name-based lookup of completion providers."""

from __future__ import annotations

import logging

import httpx

from ...config import LoggingConfig, ProviderConfig, get_api_key
from .anthropic import AnthropicProvider
from .base import CompletionProvider
from .gemini import GeminiProvider


ProviderBuilder = type[CompletionProvider]

_PROVIDER_REGISTRY: dict[str, ProviderBuilder] = {
    "anthropic": AnthropicProvider,
    "claude": AnthropicProvider,
    "gemini": GeminiProvider,
    "google": GeminiProvider,
}


def available_providers() -> list[str]:
    """Provider names accepted by ``provider.name``, aliases included."""
    return sorted(_PROVIDER_REGISTRY.keys())


def create_provider(
    provider_cfg: ProviderConfig,
    log_cfg: LoggingConfig,
    llm_logger: logging.Logger | None,
    transport: httpx.BaseTransport | None = None,
) -> CompletionProvider:
    """Instantiate the configured provider with its resolved API key."""
    name = provider_cfg.name.lower().strip()
    builder = _PROVIDER_REGISTRY.get(name)
    if builder is None:
        supported = ", ".join(available_providers())
        raise ValueError(f"Unsupported provider: {provider_cfg.name}. Supported: {supported}")
    api_key = get_api_key(provider_cfg)
    return builder(provider_cfg, api_key, log_cfg, llm_logger, transport=transport)
