"""Domain models for the provider transport layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tenderai.models import Message


@dataclass(frozen=True)
class ProviderRequest:
    """A chat-completion request for exactly one candidate model."""

    model: str
    messages: tuple[Message, ...]
    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None


@dataclass
class ProviderResponse:
    """A standardized response from a provider generation call."""

    text: str = ""
    #: ``input_tokens``/``output_tokens``/``total_tokens`` when reported.
    usage: dict[str, int] = field(default_factory=dict)
    finish_reason: str | None = None
