"""Provider failure classification.

This is the single place that inspects raw provider exception shapes. Every
other module works with the closed ``ErrorKind`` taxonomy carried by
``AIError``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

import httpx

from tenderai.errors import AIError, ErrorKind, _walk_exception_chain

_NETWORK_ERROR_CODES: frozenset[str] = frozenset({"ECONNRESET", "ETIMEDOUT"})
_CONTENT_POLICY_CODES: frozenset[str] = frozenset(
    {"content_policy_violation", "content_filter"}
)
_CONTENT_POLICY_PHRASES: tuple[str, ...] = (
    "content policy",
    "content_policy",
    "content filter",
    "content management policy",
    "safety system",
)
_MODEL_ERROR_CODES: frozenset[str] = frozenset({"model_not_found"})
_REQUEST_SHAPE_CODES: frozenset[str] = frozenset(
    {"context_length_exceeded", "string_above_max_length"}
)
_FINE_TUNE_PHRASES: tuple[str, ...] = ("fine-tune", "fine_tune", "fine tune")
_UNAVAILABLE_PHRASES: tuple[str, ...] = (
    "does not exist",
    "not found",
    "not available",
    "unavailable",
    "do not have access",
    "deprecated",
)

_HINTS: dict[ErrorKind, str] = {
    ErrorKind.AUTHENTICATION: "Check credentials/permissions (try setting OPENAI_API_KEY).",
    ErrorKind.RATE_LIMIT: "Wait for retry_after_s before sending more requests.",
    ErrorKind.CONTENT_POLICY: "Rephrase the request; the provider's content filter rejected it.",
    ErrorKind.MODEL_ERROR: "Check the configured model ids and fine-tune availability.",
}


def extract_status_code(exc: BaseException) -> int | None:
    """Walk the exception chain to find an HTTP status code."""
    for e in _walk_exception_chain(exc):
        for attr in ("status_code", "status"):
            value = getattr(e, attr, None)
            if isinstance(value, int) and 100 <= value <= 599:
                return value
        response = getattr(e, "response", None)
        value = getattr(response, "status_code", None)
        if isinstance(value, int) and 100 <= value <= 599:
            return value
    return None


def extract_error_code(exc: BaseException) -> str | None:
    """Walk the exception chain to find a provider or OS error code string."""
    for e in _walk_exception_chain(exc):
        value = getattr(e, "code", None)
        if isinstance(value, str) and value:
            return value
        body: Any = getattr(e, "body", None)
        if isinstance(body, Mapping):
            value = body.get("code")
            if isinstance(value, str) and value:
                return value
    return None


def extract_error_message(exc: BaseException) -> str:
    """Return the most specific human-readable message available."""
    body: Any = getattr(exc, "body", None)
    if isinstance(body, Mapping):
        value = body.get("message")
        if isinstance(value, str) and value:
            return value
    value = getattr(exc, "message", None)
    if isinstance(value, str) and value:
        return value
    return str(exc)


def _parse_seconds(raw: Any, *, scale: float = 1.0) -> float | None:
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        seconds = float(raw) / scale
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def extract_retry_after_s(exc: BaseException) -> float | None:
    """Walk the exception chain to find a retry-after delay in seconds."""
    for e in _walk_exception_chain(exc):
        value = getattr(e, "retry_after", None)
        if isinstance(value, (int, float)) and value >= 0:
            return float(value)

        response = getattr(e, "response", None)
        headers: Any = getattr(response, "headers", None)
        if headers is None:
            headers = getattr(e, "headers", None)
        if not isinstance(headers, Mapping):
            continue
        seconds = _parse_seconds(
            headers.get("retry-after-ms") or headers.get("Retry-After-Ms"), scale=1000
        )
        if seconds is None:
            seconds = _parse_seconds(
                headers.get("Retry-After") or headers.get("retry-after")
            )
        if seconds is not None:
            return seconds
    return None


def _is_network_failure(exc: BaseException, code: str | None) -> bool:
    if code is not None and code.upper() in _NETWORK_ERROR_CODES:
        return True
    for e in _walk_exception_chain(exc):
        if isinstance(e, (httpx.TimeoutException, httpx.RequestError)):
            return True
        if isinstance(e, (TimeoutError, ConnectionError)):
            return True
    return False


def _mentions(text: str, phrases: tuple[str, ...]) -> bool:
    lowered = text.lower()
    return any(p in lowered for p in phrases)


def _names_unusable_model(text: str) -> bool:
    if _mentions(text, _FINE_TUNE_PHRASES):
        return True
    return "model" in text.lower() and _mentions(text, _UNAVAILABLE_PHRASES)


def _kind_for(
    exc: BaseException, status: int | None, code: str | None, detail: str
) -> tuple[ErrorKind, str]:
    if (code is not None and code in _CONTENT_POLICY_CODES) or _mentions(
        detail, _CONTENT_POLICY_PHRASES
    ):
        return ErrorKind.CONTENT_POLICY, "Provider content policy rejected the request"
    if status in (401, 403):
        return ErrorKind.AUTHENTICATION, "Provider authentication failed"
    if status == 429:
        return ErrorKind.RATE_LIMIT, "Provider rate limit exceeded"
    if status in (400, 404):
        if code is not None and code in _REQUEST_SHAPE_CODES:
            return ErrorKind.VALIDATION, "Provider validation error"
        if (code is not None and code in _MODEL_ERROR_CODES) or _names_unusable_model(
            detail
        ):
            return ErrorKind.MODEL_ERROR, "Model error"
        if status == 400:
            return ErrorKind.VALIDATION, "Provider validation error"
    if status is not None and (status == 408 or status >= 500):
        return ErrorKind.NETWORK, "Provider server error"
    if _is_network_failure(exc, code):
        return ErrorKind.NETWORK, "Network error connecting to provider"
    return ErrorKind.UNKNOWN, "Unknown provider error"


def classify_provider_error(exc: BaseException, *, model: str | None = None) -> AIError:
    """Map a raw provider failure onto the ``ErrorKind`` taxonomy.

    Cancellation is never classified: ``asyncio.CancelledError`` is re-raised.
    An ``AIError`` is returned as-is, attributed to *model* when it has none.
    """
    if isinstance(exc, asyncio.CancelledError):
        raise exc

    if isinstance(exc, AIError):
        if exc.model is None and model is not None:
            return exc.evolve(model=model)
        return exc

    status = extract_status_code(exc)
    code = extract_error_code(exc)
    detail = extract_error_message(exc)
    kind, summary = _kind_for(exc, status, code, detail)

    status_note = f" (status={status})" if isinstance(status, int) else ""
    message = f"{summary}{status_note}: {detail}" if detail else f"{summary}{status_note}"
    retry_after_s = extract_retry_after_s(exc) if kind is ErrorKind.RATE_LIMIT else None

    return AIError(
        message,
        kind,
        cause=exc,
        retry_after_s=retry_after_s,
        model=model,
        hint=_HINTS.get(kind),
    )
