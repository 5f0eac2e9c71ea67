"""tenderai: resilient LLM generation for tender proposal drafting.

Public API:
    - generate_with_fallback(): cascade across the configured model hierarchy
    - generate_creative_content() / generate_structured_response(): complexity presets
    - generate_with_custom_model(): single explicit model, no cascade
    - Config: immutable configuration (``Config.from_env()`` at startup)
    - AIError / ErrorKind: classified failures
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from tenderai.config import Config
from tenderai.diagnostics import ModelProbe, describe_config, probe_model
from tenderai.errors import AIError, ConfigurationError, ErrorKind, TenderAIError
from tenderai.hierarchy import build_candidates
from tenderai.models import (
    CandidateModel,
    GenerationResult,
    Message,
    ModelTier,
    TokenUsage,
    is_fine_tuned_model,
    model_display_name,
)
from tenderai.orchestrator import generate
from tenderai.providers import provider_for
from tenderai.telemetry import TelemetryContext

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from tenderai.providers.base import Provider
    from tenderai.telemetry import TelemetryContextProtocol

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("tenderai")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("tenderai").addHandler(logging.NullHandler())

logger = logging.getLogger(__name__)


async def generate_with_fallback(
    messages: Iterable[Message | Mapping[str, Any]],
    *,
    config: Config,
    is_complex: bool = False,
    model: str | None = None,
    provider: Provider | None = None,
    deadline_s: float | None = None,
    telemetry: TelemetryContextProtocol | None = None,
) -> GenerationResult:
    """Generate a completion, cascading across candidate models on failure.

    Args:
        messages: Ordered conversation turns, forwarded verbatim.
        config: Configuration built once at startup.
        is_complex: Favor the stronger primary model first.
        model: Explicit single-model override (disables the cascade).
        provider: Provider to use; built from *config* and closed afterwards
            when omitted.
        deadline_s: Optional bound on the whole cascade.
        telemetry: Optional telemetry context; defaults from *config* flags.

    Returns:
        GenerationResult with the text, the model that produced it, and
        attempt accounting.

    Raises:
        AIError: A non-retryable failure, or ``kind=unknown`` once every
            candidate failed (per-attempt errors are in ``cause``).

    Example:
        config = Config.from_env()
        result = await generate_with_fallback(
            [Message("system", "You write care tenders."), Message("user", "Draft a summary.")],
            config=config,
            is_complex=True,
        )
        print(result.text)
    """
    owned = provider is None
    active = provider_for(config) if provider is None else provider

    try:
        return await generate(
            messages,
            config=config,
            provider=active,
            is_complex=is_complex,
            model=model,
            deadline_s=deadline_s,
            telemetry=telemetry,
        )
    finally:
        aclose = getattr(active, "aclose", None) if owned else None
        if callable(aclose):
            try:
                await aclose()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                # Cleanup should never mask the primary failure.
                logger.warning("Provider cleanup failed: %s", exc)


async def generate_creative_content(
    messages: Iterable[Message | Mapping[str, Any]],
    *,
    config: Config,
    provider: Provider | None = None,
    deadline_s: float | None = None,
) -> GenerationResult:
    """Generate with the stronger primary model first (brainstorming, strategy)."""
    return await generate_with_fallback(
        messages,
        config=config,
        is_complex=True,
        provider=provider,
        deadline_s=deadline_s,
    )


async def generate_structured_response(
    messages: Iterable[Message | Mapping[str, Any]],
    *,
    config: Config,
    provider: Provider | None = None,
    deadline_s: float | None = None,
) -> GenerationResult:
    """Generate with the faster fallback model first (grammar, summaries)."""
    return await generate_with_fallback(
        messages,
        config=config,
        is_complex=False,
        provider=provider,
        deadline_s=deadline_s,
    )


async def generate_with_custom_model(
    messages: Iterable[Message | Mapping[str, Any]],
    model: str,
    *,
    config: Config,
    provider: Provider | None = None,
    deadline_s: float | None = None,
) -> GenerationResult:
    """Generate with exactly *model*; a failure is terminal."""
    return await generate_with_fallback(
        messages,
        config=config,
        model=model,
        provider=provider,
        deadline_s=deadline_s,
    )


# Re-export for convenience
__all__ = [
    "AIError",
    "CandidateModel",
    "Config",
    "ConfigurationError",
    "ErrorKind",
    "GenerationResult",
    "Message",
    "ModelProbe",
    "ModelTier",
    "TelemetryContext",
    "TenderAIError",
    "TokenUsage",
    "build_candidates",
    "describe_config",
    "generate_creative_content",
    "generate_structured_response",
    "generate_with_custom_model",
    "generate_with_fallback",
    "is_fine_tuned_model",
    "model_display_name",
    "probe_model",
]
