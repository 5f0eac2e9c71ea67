"""Admin diagnostics: configuration summary and single-model probes."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import time
from typing import TYPE_CHECKING, Any

from tenderai.errors import AIError
from tenderai.models import Message, is_fine_tuned_model, model_display_name

if TYPE_CHECKING:
    from tenderai.config import Config
    from tenderai.providers.base import Provider

logger = logging.getLogger(__name__)

PROBE_MESSAGES: tuple[Message, ...] = (
    Message(
        role="system",
        content=(
            "You are an expert UK care sector advisor. Provide professional, "
            "concise responses focused on care quality improvement."
        ),
    ),
    Message(
        role="user",
        content=(
            "Write a brief professional summary about improving care quality "
            "in UK residential homes."
        ),
    ),
)

_PREVIEW_CHARS = 200


@dataclass(frozen=True)
class ModelProbe:
    """Outcome of sending the fixed probe prompt to one model."""

    success: bool
    model: str
    display_name: str
    fine_tuned: bool
    latency_ms: int
    input_tokens: int = 0
    output_tokens: int = 0
    tokens_used: int = 0
    attempts: int = 0
    used_fallback: bool = False
    response_preview: str = ""
    error: str | None = None
    error_kind: str | None = None
    http_status: int = 200


def describe_config(config: Config) -> dict[str, Any]:
    """Summarize the configured model hierarchy for admin dashboards.

    The credential is never included.
    """
    names = config.display_names
    return {
        "available_models": {
            "primary": config.primary_model,
            "fallback": config.fallback_model,
            "backup_primary": config.backup_primary_model,
            "backup_fallback": config.backup_fallback_model,
        },
        "display_names": {
            "primary": model_display_name(config.primary_model, names),
            "fallback": model_display_name(config.fallback_model, names),
            "backup_primary": model_display_name(config.backup_primary_model, names),
            "backup_fallback": model_display_name(config.backup_fallback_model, names),
        },
        "fine_tuned_models": {
            "primary": is_fine_tuned_model(config.primary_model),
            "fallback": is_fine_tuned_model(config.fallback_model),
        },
        "debug_mode": config.debug_mode,
        "log_requests": config.log_requests,
    }


async def probe_model(
    model: str,
    *,
    config: Config,
    provider: Provider | None = None,
) -> ModelProbe:
    """Send the probe prompt to exactly *model* and report how it went.

    Failures are reported in the returned probe rather than raised.
    """
    from tenderai import generate_with_custom_model

    start = time.perf_counter()
    try:
        result = await generate_with_custom_model(
            PROBE_MESSAGES, model, config=config, provider=provider
        )
    except AIError as e:
        latency_ms = int((time.perf_counter() - start) * 1000)
        logger.warning("Model probe failed for %s: %s", model, e.message)
        failed_model = e.model or model
        return ModelProbe(
            success=False,
            model=failed_model,
            display_name=model_display_name(failed_model, config.display_names),
            fine_tuned=is_fine_tuned_model(failed_model),
            latency_ms=latency_ms,
            attempts=e.attempts,
            error=e.message,
            error_kind=e.kind.value,
            http_status=e.http_status,
        )

    latency_ms = int((time.perf_counter() - start) * 1000)
    tokens = result.tokens_used
    preview = result.text[:_PREVIEW_CHARS]
    if len(result.text) > _PREVIEW_CHARS:
        preview += "..."
    return ModelProbe(
        success=True,
        model=result.model,
        display_name=model_display_name(result.model, config.display_names),
        fine_tuned=result.is_fine_tuned,
        latency_ms=latency_ms,
        input_tokens=tokens.input if tokens else 0,
        output_tokens=tokens.output if tokens else 0,
        tokens_used=tokens.total if tokens else 0,
        attempts=result.attempts,
        used_fallback=result.used_fallback,
        response_preview=preview,
    )
