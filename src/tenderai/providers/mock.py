"""Mock provider for testing."""

from __future__ import annotations

from tenderai.providers.models import ProviderRequest, ProviderResponse


class MockProvider:
    """Mock provider for running without API calls.

    Returns a deterministic echo of the last user message.
    """

    async def generate(self, request: ProviderRequest) -> ProviderResponse:
        """Return a deterministic mock response."""
        text = next(
            (m.content for m in reversed(request.messages) if m.role == "user"),
            "",
        )
        return ProviderResponse(
            text=f"echo: {text[:100]}",
            usage={"input_tokens": 10, "output_tokens": 10, "total_tokens": 20},
            finish_reason="stop",
        )
