"""Provider protocol: minimal interface for chat-completion providers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from tenderai.providers.models import ProviderRequest, ProviderResponse


@runtime_checkable
class Provider(Protocol):
    """Minimal provider protocol: one chat completion per call.

    Failures propagate as the provider's own exceptions; classification
    happens in ``tenderai.providers._errors``. Providers may also expose an
    async ``aclose()`` which the package calls after providers it created.
    """

    async def generate(self, request: ProviderRequest) -> ProviderResponse:
        """Generate a completion for ``request.model``."""
        ...
