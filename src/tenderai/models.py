"""Domain models shared by the hierarchy builder, orchestrator, and callers."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Literal, get_args

from tenderai.errors import AIError, ErrorKind

Role = Literal["system", "user", "assistant"]

_ROLES: frozenset[str] = frozenset(get_args(Role))

# OpenAI fine-tune ids look like "ft:gpt-4.1-mini:org::abc123"; job ids carry "ftjob-".
_FINE_TUNE_PREFIX = "ft:"
_FINE_TUNE_JOB_MARKER = "ftjob-"


class ModelTier(StrEnum):
    """Slot a candidate model occupies in the configured hierarchy."""

    PRIMARY = "primary"
    FALLBACK = "fallback"
    BACKUP = "backup"


def is_fine_tuned_model(model_id: str) -> bool:
    """Return True when *model_id* follows the fine-tune naming convention."""
    return model_id.startswith(_FINE_TUNE_PREFIX) or _FINE_TUNE_JOB_MARKER in model_id


def model_display_name(
    model_id: str, display_names: Mapping[str, str] | None = None
) -> str:
    """Return a human-friendly label for *model_id*.

    Configured labels match on any id fragment (e.g. a fine-tune job id).
    Unlabelled fine-tunes are shortened to their trailing id segment.
    """
    for fragment, label in (display_names or {}).items():
        if fragment and fragment in model_id:
            return label
    if is_fine_tuned_model(model_id):
        suffix = model_id.split(":")[-1][:12]
        return f"Fine-tuned: {suffix or 'Unknown'}"
    return model_id


@dataclass(frozen=True)
class Message:
    """A single conversation turn forwarded verbatim to the provider."""

    role: Role
    content: str

    def __post_init__(self) -> None:
        if self.role not in _ROLES:
            raise AIError(
                f"Invalid message role: {self.role!r}",
                ErrorKind.VALIDATION,
                hint="Use one of: system, user, assistant.",
            )
        if not isinstance(self.content, str):
            raise AIError(
                f"Message content must be a string, got {type(self.content).__name__}",
                ErrorKind.VALIDATION,
            )

    def as_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


def coerce_messages(
    messages: Iterable[Message | Mapping[str, Any]],
) -> tuple[Message, ...]:
    """Normalize caller messages into an ordered tuple of ``Message``.

    Accepts ``Message`` instances or mappings with ``role``/``content`` keys.
    Order is preserved exactly.
    """
    normalized: list[Message] = []
    for item in messages:
        if isinstance(item, Message):
            normalized.append(item)
            continue
        if isinstance(item, Mapping):
            normalized.append(Message(role=item.get("role"), content=item.get("content")))  # type: ignore[arg-type]
            continue
        raise AIError(
            f"Unsupported message type: {type(item).__name__}",
            ErrorKind.VALIDATION,
            hint="Pass Message(...) or {'role': ..., 'content': ...}.",
        )
    return tuple(normalized)


@dataclass(frozen=True)
class CandidateModel:
    """One model eligible to be tried within a cascade."""

    id: str
    tier: ModelTier
    is_fine_tuned: bool

    @classmethod
    def from_id(cls, model_id: str, tier: ModelTier) -> CandidateModel:
        return cls(id=model_id, tier=tier, is_fine_tuned=is_fine_tuned_model(model_id))


@dataclass(frozen=True)
class TokenUsage:
    """Token accounting reported by the provider for one completion."""

    input: int
    output: int
    total: int

    @classmethod
    def from_counts(cls, input_tokens: int, output_tokens: int) -> TokenUsage:
        return cls(
            input=input_tokens, output=output_tokens, total=input_tokens + output_tokens
        )


@dataclass(frozen=True)
class GenerationResult:
    """Normalized outcome of a successful generation call."""

    text: str
    model: str
    tokens_used: TokenUsage | None
    used_fallback: bool
    is_fine_tuned: bool
    attempts: int

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError("GenerationResult.attempts must be >= 1")
