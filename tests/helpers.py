"""Test helpers (small, reusable doubles).

Keep this file tiny and purpose-built: fake provider failures are shaped like
the OpenAI SDK's exceptions (``status_code``, ``code``, ``body``,
``response.headers``) without importing it.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from tenderai.providers.models import ProviderRequest, ProviderResponse
from tests.conftest import FakeProvider


class FakeResponse:
    def __init__(self, status_code: int, headers: dict[str, str] | None = None) -> None:
        self.status_code = status_code
        self.headers = headers or {}


class FakeStatusError(Exception):
    """Mimics ``openai.APIStatusError``."""

    def __init__(
        self,
        status_code: int,
        message: str = "",
        *,
        code: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(f"Error code: {status_code} - {message}")
        self.status_code = status_code
        self.message = f"Error code: {status_code} - {message}"
        self.code = code
        self.body = {"message": message, "code": code}
        self.response = FakeResponse(status_code, headers)


def status_error(status_code: int, message: str = "", **kwargs: Any) -> FakeStatusError:
    return FakeStatusError(status_code, message, **kwargs)


def rate_limited(retry_after: str | None = None) -> FakeStatusError:
    headers = {"retry-after": retry_after} if retry_after is not None else None
    return FakeStatusError(429, "Rate limit reached", code="rate_limit_exceeded", headers=headers)


def server_error() -> FakeStatusError:
    return FakeStatusError(503, "The server is overloaded")


def auth_error() -> FakeStatusError:
    return FakeStatusError(401, "Incorrect API key provided", code="invalid_api_key")


@dataclass
class ScriptedProvider(FakeProvider):
    """FakeProvider that returns a scripted sequence of results/exceptions.

    Each call pops the next item; an exhausted script answers ``ok:<model>``.
    """

    script: list[dict[str, Any] | ProviderResponse | BaseException] = field(
        default_factory=list
    )

    async def generate(self, request: ProviderRequest) -> ProviderResponse:
        self.requests.append(request)
        if not self.script:
            return ProviderResponse(
                text=f"ok:{request.model}",
                usage={"input_tokens": 5, "output_tokens": 7, "total_tokens": 12},
            )
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, ProviderResponse):
            return item
        return ProviderResponse(**item)


@dataclass
class HangingProvider(FakeProvider):
    """FakeProvider whose calls never finish until cancelled."""

    cancelled: int = 0

    async def generate(self, request: ProviderRequest) -> ProviderResponse:
        self.requests.append(request)
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        raise AssertionError("unreachable")
