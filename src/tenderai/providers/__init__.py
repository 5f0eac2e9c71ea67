"""Provider implementations."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tenderai.errors import ConfigurationError

from .base import Provider
from .mock import MockProvider
from .models import ProviderRequest, ProviderResponse
from .openai import OpenAIProvider

if TYPE_CHECKING:
    from tenderai.config import Config


def provider_for(config: Config) -> Provider:
    """Get the appropriate provider based on configuration."""
    if config.use_mock:
        return MockProvider()

    if not config.api_key:
        raise ConfigurationError(
            "api_key required for real API",
            hint="Set OPENAI_API_KEY or pass Config(api_key=...).",
        )
    return OpenAIProvider(
        config.api_key,
        timeout_s=config.timeout_s,
        max_retries=config.max_retries,
    )


__all__ = [
    "MockProvider",
    "OpenAIProvider",
    "Provider",
    "ProviderRequest",
    "ProviderResponse",
    "provider_for",
]
