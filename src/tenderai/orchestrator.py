"""Generation orchestrator: cascade across candidate models.

Each call walks its candidate list in order, one provider call at a time.
After a failure the classified error alone decides the next step (see
``decide``); retryable failures sleep a linear backoff before moving on.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import StrEnum
import logging
from typing import TYPE_CHECKING, Any

from tenderai.errors import AIError, ErrorKind
from tenderai.hierarchy import build_candidates
from tenderai.models import (
    GenerationResult,
    TokenUsage,
    coerce_messages,
    model_display_name,
)
from tenderai.providers._errors import classify_provider_error
from tenderai.providers.models import ProviderRequest, ProviderResponse
from tenderai.telemetry import TelemetryContext

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from tenderai.config import Config
    from tenderai.models import CandidateModel, Message
    from tenderai.providers.base import Provider
    from tenderai.telemetry import TelemetryContextProtocol

logger = logging.getLogger(__name__)

# Fine-tuned models respond better to slightly looser sampling.
FINE_TUNED_TEMPERATURE = 0.8
FINE_TUNED_TOP_P = 0.95

_PREVIEW_CHARS = 100


class Decision(StrEnum):
    """Next step of the cascade after a failed attempt."""

    RETRY = "retry"
    ABORT = "abort"
    EXHAUSTED = "exhausted"


def decide(error: AIError, index: int, total: int) -> Decision:
    """Return the cascade step for a failure at candidate *index* of *total*."""
    if not error.retryable:
        return Decision.ABORT
    if index >= total - 1:
        return Decision.EXHAUSTED
    return Decision.RETRY


def backoff_delay(
    index: int, base_delay_s: float, retry_after_s: float | None = None
) -> float:
    """Linear backoff after the failure at *index*, stretched to honor Retry-After."""
    delay = base_delay_s * (index + 1)
    if retry_after_s is not None:
        delay = max(delay, retry_after_s)
    return delay


@dataclass
class _CascadeState:
    """Progress of one cascade, visible to the deadline handler."""

    attempts: int = 0
    model: str | None = None


def _build_request(
    config: Config, candidate: CandidateModel, messages: tuple[Message, ...]
) -> ProviderRequest:
    if candidate.is_fine_tuned:
        return ProviderRequest(
            model=candidate.id,
            messages=messages,
            temperature=FINE_TUNED_TEMPERATURE,
            max_tokens=config.max_tokens,
            top_p=FINE_TUNED_TOP_P,
        )
    return ProviderRequest(
        model=candidate.id,
        messages=messages,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
    )


def _require_text(response: ProviderResponse, model: str) -> str:
    if response.text:
        return response.text
    if response.finish_reason == "content_filter":
        raise AIError(
            "Provider content filter withheld the completion",
            ErrorKind.CONTENT_POLICY,
            model=model,
        )
    raise AIError("No content in provider response", ErrorKind.UNKNOWN, model=model)


def _usage_from(response: ProviderResponse, model: str) -> TokenUsage | None:
    usage = response.usage
    if not usage:
        return None
    tokens = TokenUsage.from_counts(
        int(usage.get("input_tokens", 0)), int(usage.get("output_tokens", 0))
    )
    reported = usage.get("total_tokens")
    if reported is not None and reported != tokens.total:
        logger.warning(
            "Provider reported total_tokens=%s for %s; using input+output=%s",
            reported,
            model,
            tokens.total,
        )
    return tokens


def _log_request(
    config: Config,
    candidate: CandidateModel,
    messages: tuple[Message, ...],
    *,
    is_retry: bool,
) -> None:
    if not (config.log_requests or config.debug_mode):
        return
    label = model_display_name(candidate.id, config.display_names)
    logger.info("%s [%s]", "AI retry" if is_retry else "AI request", label)
    if config.debug_mode:
        previews = [
            {
                "role": m.role,
                "content": m.content[:_PREVIEW_CHARS]
                + ("..." if len(m.content) > _PREVIEW_CHARS else ""),
            }
            for m in messages
        ]
        logger.info("Messages: %s", previews)


async def execute_cascade(
    candidates: Sequence[CandidateModel],
    messages: tuple[Message, ...],
    *,
    config: Config,
    provider: Provider,
    explicit_override: bool = False,
    telemetry: TelemetryContextProtocol | None = None,
    state: _CascadeState | None = None,
) -> GenerationResult:
    """Attempt *candidates* in order until one succeeds or the cascade stops."""
    state = state if state is not None else _CascadeState()
    tele = telemetry if telemetry is not None else TelemetryContext(config=config)
    total = len(candidates)
    if total == 0:
        raise AIError(
            "No candidate models to attempt",
            ErrorKind.VALIDATION,
            hint="build_candidates() always returns at least one model.",
        )

    failures: list[AIError] = []
    with tele("generate", candidates=total, override=explicit_override):
        for index, candidate in enumerate(candidates):
            state.attempts += 1
            state.model = candidate.id
            _log_request(config, candidate, messages, is_retry=index > 0)
            request = _build_request(config, candidate, messages)

            try:
                with tele(
                    "attempt",
                    model=candidate.id,
                    tier=candidate.tier.value,
                    attempt=state.attempts,
                ):
                    response = await provider.generate(request)
                text = _require_text(response, candidate.id)
            except Exception as exc:
                error = classify_provider_error(exc, model=candidate.id).evolve(
                    attempts=state.attempts
                )
                failures.append(error)
                tele.count("attempt.failure", model=candidate.id, kind=error.kind.value)
                logger.warning(
                    "Generation attempt %d/%d failed [%s]: %s",
                    state.attempts,
                    total,
                    model_display_name(candidate.id, config.display_names),
                    error.message,
                )

                decision = decide(error, index, total)
                if decision is Decision.ABORT:
                    raise error from exc
                if decision is Decision.EXHAUSTED:
                    raise AIError(
                        f"All candidates exhausted after {state.attempts} attempts",
                        ErrorKind.UNKNOWN,
                        cause=tuple(failures),
                        model=candidate.id,
                        attempts=state.attempts,
                        hint="Inspect AIError.cause for each attempt's failure.",
                    ) from error

                delay = backoff_delay(index, config.backoff_base_s, error.retry_after_s)
                if delay > 0:
                    await asyncio.sleep(delay)
                continue

            tele.count("attempt.success", model=candidate.id)
            tokens = _usage_from(response, candidate.id)
            if config.log_requests or config.debug_mode:
                logger.info(
                    "AI success [%s] - %d tokens",
                    model_display_name(candidate.id, config.display_names),
                    tokens.total if tokens else 0,
                )
            return GenerationResult(
                text=text,
                model=candidate.id,
                tokens_used=tokens,
                used_fallback=index > 0 and not explicit_override,
                is_fine_tuned=candidate.is_fine_tuned,
                attempts=state.attempts,
            )

    # The final index always aborts or exhausts.
    raise RuntimeError("cascade ended without a decision")  # pragma: no cover


async def generate(
    messages: Iterable[Message | Mapping[str, Any]],
    *,
    config: Config,
    provider: Provider,
    is_complex: bool = False,
    model: str | None = None,
    deadline_s: float | None = None,
    telemetry: TelemetryContextProtocol | None = None,
) -> GenerationResult:
    """Build the candidate list for this request and run the cascade.

    *deadline_s* bounds the whole cascade (the per-attempt timeout lives in
    the transport). When it expires the in-flight call is cancelled and a
    non-retryable ``network`` error is raised.
    """
    conversation = coerce_messages(messages)
    if not conversation:
        raise AIError(
            "At least one message is required",
            ErrorKind.VALIDATION,
            hint="Pass the system/user messages to send to the model.",
        )
    if deadline_s is not None and deadline_s <= 0:
        raise AIError(
            f"deadline_s must be > 0, got {deadline_s}",
            ErrorKind.VALIDATION,
        )

    candidates = build_candidates(config, is_complex=is_complex, model=model)
    state = _CascadeState()
    cascade = execute_cascade(
        candidates,
        conversation,
        config=config,
        provider=provider,
        explicit_override=model is not None,
        telemetry=telemetry,
        state=state,
    )
    if deadline_s is None:
        return await cascade

    try:
        async with asyncio.timeout(deadline_s):
            return await cascade
    except TimeoutError as e:
        raise AIError(
            f"Generation deadline of {deadline_s}s exceeded",
            ErrorKind.NETWORK,
            cause=e,
            model=state.model,
            attempts=state.attempts,
            cancelled=True,
            hint="Raise deadline_s or reduce the candidate list.",
        ) from e
