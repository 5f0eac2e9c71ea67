"""Exception hierarchy and error taxonomy for tenderai."""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator


class TenderAIError(Exception):
    """Base exception for all tenderai errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(TenderAIError):
    """Configuration validation or resolution failed."""


class ErrorKind(StrEnum):
    """Closed taxonomy of generation failures."""

    AUTHENTICATION = "authentication"
    VALIDATION = "validation"
    CONTENT_POLICY = "content_policy"
    RATE_LIMIT = "rate_limit"
    MODEL_ERROR = "model_error"
    NETWORK = "network"
    UNKNOWN = "unknown"


# Kinds specific to one model/provider instance; a different candidate may succeed.
RETRYABLE_KINDS: frozenset[ErrorKind] = frozenset(
    {ErrorKind.RATE_LIMIT, ErrorKind.MODEL_ERROR, ErrorKind.NETWORK}
)

_HTTP_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.AUTHENTICATION: 401,
    ErrorKind.RATE_LIMIT: 429,
    ErrorKind.VALIDATION: 400,
}


class AIError(TenderAIError):
    """A classified generation failure.

    Instances are immutable once constructed. ``cause`` holds the original
    provider exception for single attempts, or a tuple of per-attempt
    ``AIError`` values when the whole cascade was exhausted.
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind | str,
        *,
        cause: Any = None,
        retry_after_s: float | None = None,
        model: str | None = None,
        attempts: int = 0,
        hint: str | None = None,
        cancelled: bool = False,
    ) -> None:
        super().__init__(message, hint=hint)
        fields = self.__dict__
        fields["_kind"] = ErrorKind(kind)
        fields["_message"] = message
        fields["_cause"] = cause
        fields["_retry_after_s"] = retry_after_s
        fields["_model"] = model
        fields["_attempts"] = attempts
        fields["_cancelled"] = cancelled
        fields["_frozen"] = True

    def __setattr__(self, name: str, value: Any) -> None:
        # Python itself sets the traceback/chaining slots while raising.
        if name.startswith("__") or not self.__dict__.get("_frozen"):
            super().__setattr__(name, value)
            return
        raise AttributeError(f"AIError is immutable; cannot set {name!r}")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"AIError is immutable; cannot delete {name!r}")

    @property
    def kind(self) -> ErrorKind:
        return self._kind

    @property
    def message(self) -> str:
        return self._message

    @property
    def cause(self) -> Any:
        return self._cause

    @property
    def retry_after_s(self) -> float | None:
        return self._retry_after_s

    @property
    def model(self) -> str | None:
        return self._model

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def cancelled(self) -> bool:
        """True when a caller deadline or cancellation ended the cascade."""
        return self._cancelled

    @property
    def retryable(self) -> bool:
        """Whether trying the next candidate model could succeed."""
        return self._kind in RETRYABLE_KINDS and not self._cancelled

    @property
    def http_status(self) -> int:
        """Suggested HTTP status for route handlers surfacing this error."""
        return _HTTP_STATUS_BY_KIND.get(self._kind, 500)

    def evolve(self, **changes: Any) -> AIError:
        """Return a copy with *changes* applied; the original is untouched."""
        fields = self._state()
        message = changes.pop("message", self._message)
        kind = changes.pop("kind", self._kind)
        fields.update(changes)
        return AIError(message, kind, **fields)

    def __repr__(self) -> str:
        return (
            f"AIError(kind={self._kind.value!r}, message={self._message!r}, "
            f"model={self._model!r}, attempts={self._attempts})"
        )

    def __reduce__(self) -> tuple[Any, ...]:
        return (_rebuild_ai_error, (self._message, self._kind.value, self._state()))

    def _state(self) -> dict[str, Any]:
        return {
            "cause": self._cause,
            "retry_after_s": self._retry_after_s,
            "model": self._model,
            "attempts": self._attempts,
            "hint": self.hint,
            "cancelled": self._cancelled,
        }


def _rebuild_ai_error(message: str, kind: str, state: dict[str, Any]) -> AIError:
    return AIError(message, kind, **state)


def _walk_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc* and its ``__cause__``/``__context__`` chain, with cycle protection."""
    seen: set[int] = set()
    stack: list[BaseException] = [exc]
    while stack:
        cur = stack.pop()
        if id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur

        cause = cur.__cause__
        if isinstance(cause, BaseException):
            stack.append(cause)
        context = cur.__context__
        if isinstance(context, BaseException):
            stack.append(context)
