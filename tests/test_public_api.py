"""Public entry points: presets, override, provider ownership."""

from __future__ import annotations

import dataclasses
import logging

import pytest

import tenderai
from tenderai import (
    AIError,
    Config,
    ErrorKind,
    GenerationResult,
    Message,
    generate_creative_content,
    generate_structured_response,
    generate_with_custom_model,
    generate_with_fallback,
)
from tenderai.providers import ProviderRequest, ProviderResponse
from tests.conftest import FALLBACK_MODEL, PRIMARY_MODEL, FakeProvider
from tests.helpers import ScriptedProvider, auth_error

pytestmark = pytest.mark.unit

MESSAGES = [
    Message("system", "You are an expert UK care sector bid writer."),
    Message("user", "Outline our quality assurance framework."),
]


class _ClosableProvider(FakeProvider):
    def __init__(self, *, fail_close: bool = False) -> None:
        super().__init__()
        self.closed = 0
        self.fail_close = fail_close

    async def aclose(self) -> None:
        self.closed += 1
        if self.fail_close:
            raise RuntimeError("close failed")


def test_public_exports() -> None:
    for name in tenderai.__all__:
        assert hasattr(tenderai, name), name


@pytest.mark.asyncio
async def test_creative_preset_starts_with_primary(
    config: Config, fake_provider: FakeProvider
) -> None:
    result = await generate_creative_content(MESSAGES, config=config, provider=fake_provider)

    assert isinstance(result, GenerationResult)
    assert result.model == PRIMARY_MODEL


@pytest.mark.asyncio
async def test_structured_preset_starts_with_fallback(
    config: Config, fake_provider: FakeProvider
) -> None:
    result = await generate_structured_response(
        MESSAGES, config=config, provider=fake_provider
    )

    assert result.model == FALLBACK_MODEL


@pytest.mark.asyncio
async def test_custom_model_uses_exactly_that_model(
    config: Config, fake_provider: FakeProvider
) -> None:
    result = await generate_with_custom_model(
        MESSAGES, "gpt-4o", config=config, provider=fake_provider
    )

    assert result.model == "gpt-4o"
    assert result.used_fallback is False
    assert fake_provider.models_called == ["gpt-4o"]


@pytest.mark.asyncio
async def test_mock_mode_runs_without_network(config: Config) -> None:
    mock_config = dataclasses.replace(config, use_mock=True)

    result = await generate_with_fallback(MESSAGES, config=mock_config)

    assert result.text == "echo: Outline our quality assurance framework."
    assert result.tokens_used is not None
    assert result.tokens_used.total == 20


@pytest.mark.asyncio
async def test_caller_supplied_provider_is_not_closed(config: Config) -> None:
    provider = _ClosableProvider()

    await generate_with_fallback(MESSAGES, config=config, provider=provider)

    assert provider.closed == 0


@pytest.mark.asyncio
async def test_owned_provider_is_closed_after_failure(
    config: Config, monkeypatch: pytest.MonkeyPatch
) -> None:
    provider = _ClosableProvider()

    async def failing_generate(request: ProviderRequest) -> ProviderResponse:
        raise auth_error()

    monkeypatch.setattr(provider, "generate", failing_generate)
    monkeypatch.setattr("tenderai.provider_for", lambda _cfg: provider)

    with pytest.raises(AIError) as exc:
        await generate_with_fallback(MESSAGES, config=config)

    assert exc.value.kind is ErrorKind.AUTHENTICATION
    assert provider.closed == 1


@pytest.mark.asyncio
async def test_cleanup_failure_does_not_mask_result(
    config: Config, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    provider = _ClosableProvider(fail_close=True)
    monkeypatch.setattr("tenderai.provider_for", lambda _cfg: provider)

    with caplog.at_level(logging.WARNING, logger="tenderai"):
        result = await generate_with_fallback(MESSAGES, config=config)

    assert result.attempts == 1
    assert provider.closed == 1
    assert any("cleanup failed" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_failed_attempts_are_logged(
    config: Config, caplog: pytest.LogCaptureFixture
) -> None:
    provider = ScriptedProvider(script=[auth_error()])

    with caplog.at_level(logging.WARNING, logger="tenderai.orchestrator"):
        with pytest.raises(AIError):
            await generate_with_fallback(MESSAGES, config=config, provider=provider)

    assert any("attempt 1/4 failed" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_request_logging_is_flag_gated(
    config: Config, fake_provider: FakeProvider, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.INFO, logger="tenderai.orchestrator"):
        await generate_with_fallback(MESSAGES, config=config, provider=fake_provider)
    assert not any("AI request" in r.getMessage() for r in caplog.records)

    caplog.clear()
    debug = dataclasses.replace(config, debug_mode=True)
    with caplog.at_level(logging.INFO, logger="tenderai.orchestrator"):
        await generate_with_fallback(MESSAGES, config=debug, provider=fake_provider)

    messages = [r.getMessage() for r in caplog.records]
    assert any("AI request [Fine-tuned: fallbk2]" in m for m in messages)
    assert any(m.startswith("Messages:") for m in messages)
    assert any("AI success" in m for m in messages)
