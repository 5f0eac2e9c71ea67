"""Pytest configuration and fixtures.

Provides environment isolation, logging configuration, and automatic API test
skipping. All fixtures here are autouse unless noted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import os

import pytest

from tenderai.config import Config
from tenderai.providers.models import ProviderRequest, ProviderResponse

PRIMARY_MODEL = "ft:gpt-4.1-mini-2025-04-14:caredraft::primary1"
FALLBACK_MODEL = "ft:gpt-4.1-nano-2025-04-14:caredraft::fallbk2"
BACKUP_PRIMARY_MODEL = "gpt-4o-mini"
BACKUP_FALLBACK_MODEL = "gpt-3.5-turbo"

_ENV_PREFIXES = ("OPENAI_", "AI_", "TENDERAI_")
_ENV_KEYS = (
    "PRIMARY_OPENAI_MODEL",
    "FALLBACK_OPENAI_MODEL",
    "BACKUP_PRIMARY_MODEL",
    "BACKUP_FALLBACK_MODEL",
    "MODEL_DISPLAY_MAPPINGS",
)

# =============================================================================
# Test Doubles
# =============================================================================


@dataclass
class FakeProvider:
    """Provider test double that records every request it receives."""

    requests: list[ProviderRequest] = field(default_factory=list)

    @property
    def models_called(self) -> list[str]:
        return [r.model for r in self.requests]

    async def generate(self, request: ProviderRequest) -> ProviderResponse:
        self.requests.append(request)
        return ProviderResponse(
            text=f"ok:{request.model}",
            usage={"input_tokens": 12, "output_tokens": 30, "total_tokens": 42},
            finish_reason="stop",
        )


# =============================================================================
# Environment Isolation (Autouse)
# =============================================================================


@pytest.fixture(autouse=True)
def block_dotenv(request, monkeypatch):
    """Prevent python-dotenv from loading project .env files during tests.

    Opt-out: @pytest.mark.allow_dotenv
    """
    if request.node.get_closest_marker("allow_dotenv"):
        return
    monkeypatch.setattr("tenderai.config.load_dotenv", lambda *_a, **_k: False)


@pytest.fixture(autouse=True)
def isolate_provider_env(request, monkeypatch):
    """Ensure a clean provider environment for each test.

    Opt-out: @pytest.mark.allow_env_pollution or @pytest.mark.api
    """
    if request.node.get_closest_marker("allow_env_pollution") or (
        "api" in request.node.keywords
    ):
        return

    for key in list(os.environ.keys()):
        if key.startswith(_ENV_PREFIXES) or key in _ENV_KEYS:
            monkeypatch.delenv(key, raising=False)


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Suppress noisy third-party loggers."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


# =============================================================================
# Shared Fixtures (opt-in)
# =============================================================================


@pytest.fixture
def config() -> Config:
    """A fully populated config with zero backoff so cascades run instantly."""
    return Config(
        api_key="sk-test",
        primary_model=PRIMARY_MODEL,
        fallback_model=FALLBACK_MODEL,
        backup_primary_model=BACKUP_PRIMARY_MODEL,
        backup_fallback_model=BACKUP_FALLBACK_MODEL,
        backoff_base_s=0.0,
    )


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


# =============================================================================
# Pytest Hooks
# =============================================================================

API_TESTS_REASON = "API tests require ENABLE_API_TESTS=1"


def _api_tests_enabled() -> bool:
    return bool(os.getenv("ENABLE_API_TESTS"))


def pytest_collection_modifyitems(items):
    """Automatically skip API tests when not explicitly enabled."""
    if _api_tests_enabled():
        return
    skip_api = pytest.mark.skip(reason=API_TESTS_REASON)
    for item in items:
        if "api" in item.keywords:
            item.add_marker(skip_api)


@pytest.fixture
def openai_api_key():
    """Return OPENAI_API_KEY or skip the test if unavailable."""
    key = os.getenv("OPENAI_API_KEY")
    if not key:
        pytest.skip("OPENAI_API_KEY not set")
    return key
