"""OpenAI chat-completions provider implementation."""

from __future__ import annotations

from typing import Any

from tenderai.errors import ConfigurationError
from tenderai.providers.models import ProviderRequest, ProviderResponse


class OpenAIProvider:
    """OpenAI Chat Completions provider.

    SDK exceptions propagate unwrapped; the orchestrator hands them to
    ``classify_provider_error`` together with the attempted model.
    """

    def __init__(
        self,
        api_key: str,
        *,
        timeout_s: float = 45.0,
        max_retries: int = 3,
        base_url: str | None = None,
    ) -> None:
        """Initialize with an API key and per-call transport settings."""
        self.api_key = api_key
        self.timeout_s = timeout_s
        self.max_retries = max_retries
        self.base_url = base_url
        self._client: Any = None

    def _get_client(self) -> Any:
        """Lazily initialize and return the OpenAI client."""
        if self._client is None:
            try:
                from openai import AsyncOpenAI
            except ImportError as e:
                raise ConfigurationError(
                    "openai package not installed",
                    hint="pip install openai",
                ) from e
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout_s,
                max_retries=self.max_retries,
            )
        return self._client

    async def generate(self, request: ProviderRequest) -> ProviderResponse:
        """Generate a completion via ``chat.completions.create``."""
        client = self._get_client()

        create_kwargs: dict[str, Any] = {
            "model": request.model,
            "messages": [m.as_dict() for m in request.messages],
        }
        if request.temperature is not None:
            create_kwargs["temperature"] = request.temperature
        if request.max_tokens is not None:
            create_kwargs["max_tokens"] = request.max_tokens
        if request.top_p is not None:
            create_kwargs["top_p"] = request.top_p

        response = await client.chat.completions.create(**create_kwargs)

        text = ""
        finish_reason: str | None = None
        choices = getattr(response, "choices", None) or []
        if choices:
            first = choices[0]
            message = getattr(first, "message", None)
            text = getattr(message, "content", None) or ""
            reason = getattr(first, "finish_reason", None)
            finish_reason = reason if isinstance(reason, str) else None

        usage_raw = getattr(response, "usage", None)
        usage: dict[str, int] = {}
        if usage_raw is not None:
            usage = {
                "input_tokens": int(getattr(usage_raw, "prompt_tokens", 0) or 0),
                "output_tokens": int(getattr(usage_raw, "completion_tokens", 0) or 0),
                "total_tokens": int(getattr(usage_raw, "total_tokens", 0) or 0),
            }

        return ProviderResponse(text=text, usage=usage, finish_reason=finish_reason)

    async def aclose(self) -> None:
        """Close underlying async client resources."""
        client = self._client
        if client is None:
            return
        self._client = None
        await client.close()
