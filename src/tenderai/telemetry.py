"""Telemetry context and reporter interfaces.

Provides ultra-low overhead no-op behavior when disabled and per-attempt
timings and counters when enabled. Telemetry is observational only: reporter
failures are logged and never change the outcome of a generation call.
"""

from collections import deque
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
import logging
import os
import time
from types import TracebackType
from typing import TYPE_CHECKING, Any, Final, Protocol, Self, TypeAlias, TypedDict, runtime_checkable

if TYPE_CHECKING:
    from tenderai.config import Config

log = logging.getLogger(__name__)

# Context-aware state for thread/async safety
_scope_stack_var: ContextVar[tuple[str, ...]] = ContextVar(
    "scope_stack",
    default=(),
)

# Evaluated once at import time
_TELEMETRY_ENABLED = os.getenv("TENDERAI_TELEMETRY") == "1"

# Built-in metadata keys
DEPTH: Final[str] = "depth"
PARENT_SCOPE: Final[str] = "parent_scope"
METRIC_TYPE: Final[str] = "metric_type"
START_MONOTONIC_S: Final[str] = "start_monotonic_s"
END_MONOTONIC_S: Final[str] = "end_monotonic_s"


class _TelemetryMetadata(TypedDict, total=False):
    depth: int
    parent_scope: str | None
    start_monotonic_s: float
    end_monotonic_s: float


@runtime_checkable
class TelemetryReporter(Protocol):
    """Duck-typed protocol for telemetry reporters."""

    def record_timing(self, scope: str, duration: float, **metadata: Any) -> None: ...  # noqa: D102
    def record_metric(self, scope: str, value: Any, **metadata: Any) -> None: ...  # noqa: D102


@dataclass(frozen=True, slots=True)
class _NoOpTelemetryContext:
    """An immutable and stateless no-op context."""

    def __call__(self, name: str, **metadata: Any) -> Self:  # noqa: ARG002
        return self

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        _: type[BaseException] | None,
        __: BaseException | None,
        ___: TracebackType | None,
    ) -> bool | None:
        return None

    @property
    def is_enabled(self) -> bool:
        return False

    def metric(self, name: str, value: Any, **metadata: Any) -> None:
        pass

    def count(self, name: str, increment: int = 1, **metadata: Any) -> None:
        pass


class _EnabledTelemetryContext:
    """Full-featured telemetry context when enabled."""

    __slots__ = ("reporters",)

    def __init__(self, *reporters: TelemetryReporter):
        self.reporters = reporters

    def __call__(
        self, name: str, **metadata: Any
    ) -> AbstractContextManager["_EnabledTelemetryContext"]:
        return self._create_scope(name, **metadata)

    @contextmanager
    def _create_scope(
        self, name: str, **metadata: Any
    ) -> Iterator["_EnabledTelemetryContext"]:
        if not name or not isinstance(name, str):
            raise ValueError("Scope name must be a non-empty string")

        scope_stack = _scope_stack_var.get()
        scope_path = ".".join((*scope_stack, name))
        start_monotonic_s = time.perf_counter()
        scope_token = _scope_stack_var.set((*scope_stack, name))

        try:
            yield self
        finally:
            end_monotonic_s = time.perf_counter()
            duration = end_monotonic_s - start_monotonic_s
            _scope_stack_var.reset(scope_token)

            final_stack = _scope_stack_var.get()
            built: _TelemetryMetadata = {
                "depth": len(final_stack),
                "parent_scope": ".".join(final_stack) if final_stack else None,
                "start_monotonic_s": start_monotonic_s,
                "end_monotonic_s": end_monotonic_s,
            }
            enhanced_metadata: dict[str, Any] = {**built, **metadata}

            for reporter in self.reporters:
                try:
                    reporter.record_timing(scope_path, duration, **enhanced_metadata)
                except Exception as e:
                    log.error(
                        "Telemetry reporter '%s' failed: %s",
                        type(reporter).__name__,
                        e,
                        exc_info=True,
                    )

    def metric(self, name: str, value: Any, **metadata: Any) -> None:
        """Record a metric within current scope context."""
        scope_stack = _scope_stack_var.get()
        scope_path = ".".join((*scope_stack, name))
        built: _TelemetryMetadata = {
            "depth": len(scope_stack),
            "parent_scope": ".".join(scope_stack) if scope_stack else None,
        }
        enhanced_metadata: dict[str, Any] = {**built, **metadata}
        for reporter in self.reporters:
            try:
                reporter.record_metric(scope_path, value, **enhanced_metadata)
            except Exception as e:
                log.error(
                    "Telemetry reporter '%s' failed: %s",
                    type(reporter).__name__,
                    e,
                    exc_info=True,
                )

    def count(self, name: str, increment: int = 1, **metadata: Any) -> None:
        """Record a counter metric."""
        self.metric(name, increment, metric_type="counter", **metadata)

    @property
    def is_enabled(self) -> bool:
        return True


_NO_OP_SINGLETON = _NoOpTelemetryContext()

TelemetryContextProtocol: TypeAlias = _EnabledTelemetryContext | _NoOpTelemetryContext


def TelemetryContext(  # noqa: N802
    *reporters: TelemetryReporter, config: "Config | None" = None
) -> TelemetryContextProtocol:
    """Return a telemetry context.

    Behavior:
    - Explicit reporters always produce an enabled context.
    - Otherwise ``config.debug_mode``/``config.log_requests`` or
      ``TENDERAI_TELEMETRY=1`` enable a context with a ``LoggingReporter``.
    - When nothing enables telemetry, return a shared no-op instance.
    """
    if reporters:
        return _EnabledTelemetryContext(*reporters)
    flagged = config is not None and (config.debug_mode or config.log_requests)
    if flagged or _TELEMETRY_ENABLED:
        return _EnabledTelemetryContext(LoggingReporter())
    return _NO_OP_SINGLETON


class LoggingReporter:
    """Reporter that writes each timing and metric to the telemetry logger."""

    def __init__(self, logger: logging.Logger | None = None, level: int = logging.INFO):
        self.logger = logger or log
        self.level = level

    def record_timing(self, scope: str, duration: float, **metadata: Any) -> None:
        self.logger.log(
            self.level,
            "%s took %.1fms %s",
            scope,
            duration * 1000,
            _public_fields(metadata),
        )

    def record_metric(self, scope: str, value: Any, **metadata: Any) -> None:
        self.logger.log(self.level, "%s=%s %s", scope, value, _public_fields(metadata))


def _public_fields(metadata: dict[str, Any]) -> dict[str, Any]:
    hidden = {DEPTH, PARENT_SCOPE, START_MONOTONIC_S, END_MONOTONIC_S}
    return {k: v for k, v in metadata.items() if k not in hidden}


class SimpleReporter:
    """In-memory reporter for development and tests.

    Call ``as_dict()`` to inspect collected data.
    """

    def __init__(self, max_entries_per_scope: int = 1000):
        self.max_entries = max_entries_per_scope
        self.timings: dict[str, deque[tuple[float, dict[str, Any]]]] = {}
        self.metrics: dict[str, deque[tuple[Any, dict[str, Any]]]] = {}

    def record_timing(self, scope: str, duration: float, **metadata: Any) -> None:
        if scope not in self.timings:
            self.timings[scope] = deque(maxlen=self.max_entries)
        self.timings[scope].append((duration, metadata))

    def record_metric(self, scope: str, value: Any, **metadata: Any) -> None:
        if scope not in self.metrics:
            self.metrics[scope] = deque(maxlen=self.max_entries)
        self.metrics[scope].append((value, metadata))

    def reset(self) -> None:
        """Clear all collected telemetry (testing convenience)."""
        self.timings.clear()
        self.metrics.clear()

    def as_dict(self) -> dict[str, Any]:
        """Return a snapshot of collected data."""
        return {
            "timings": {key: list(values) for key, values in self.timings.items()},
            "metrics": {key: list(values) for key, values in self.metrics.items()},
        }

