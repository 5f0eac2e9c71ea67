"""Configuration: frozen Config built once at startup.

``Config.from_env()`` reads the process environment (after loading a local
``.env`` file) through a pydantic schema so malformed values fail fast with a
hint naming the offending variable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import os
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from tenderai.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping

API_KEY_ENV_VAR = "OPENAI_API_KEY"

DEFAULT_BACKUP_PRIMARY_MODEL = "gpt-4o-mini"
DEFAULT_BACKUP_FALLBACK_MODEL = "gpt-3.5-turbo"

_TRUE_VALUES = frozenset({"true", "1"})


class _EnvSchema(BaseModel):
    """Raw environment variables, validated before Config is built."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    OPENAI_API_KEY: str = Field(min_length=1)
    PRIMARY_OPENAI_MODEL: str = Field(min_length=1)
    FALLBACK_OPENAI_MODEL: str = Field(min_length=1)
    BACKUP_PRIMARY_MODEL: str = Field(default=DEFAULT_BACKUP_PRIMARY_MODEL, min_length=1)
    BACKUP_FALLBACK_MODEL: str = Field(
        default=DEFAULT_BACKUP_FALLBACK_MODEL, min_length=1
    )
    AI_DEBUG_MODE: bool = False
    AI_LOG_REQUESTS: bool = False
    AI_MAX_RETRIES: int = Field(default=3, ge=0)
    AI_TIMEOUT_MS: int = Field(default=45_000, gt=0)
    AI_BACKOFF_BASE_MS: int = Field(default=1_000, ge=0)
    MODEL_DISPLAY_MAPPINGS: dict[str, str] = Field(default_factory=dict)

    @field_validator(
        "OPENAI_API_KEY",
        "PRIMARY_OPENAI_MODEL",
        "FALLBACK_OPENAI_MODEL",
        "BACKUP_PRIMARY_MODEL",
        "BACKUP_FALLBACK_MODEL",
        mode="before",
    )
    @classmethod
    def _strip(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("AI_DEBUG_MODE", "AI_LOG_REQUESTS", mode="before")
    @classmethod
    def _parse_flag(cls, v: Any) -> Any:
        # Only an explicit "true" enables a flag; anything else reads as off.
        if isinstance(v, str):
            return v.strip().lower() in _TRUE_VALUES
        return v

    @field_validator("MODEL_DISPLAY_MAPPINGS", mode="before")
    @classmethod
    def _parse_mappings(cls, v: Any) -> Any:
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError as e:
                raise ValueError(f"not valid JSON: {e.msg}") from e
        return v


@dataclass(frozen=True)
class Config:
    """Immutable configuration for the generation client.

    The credential is auto-resolved from ``OPENAI_API_KEY`` when not passed.

    Example:
        config = Config(primary_model="ft:gpt-4.1-mini:acme::x1", fallback_model="gpt-4.1-nano")
    """

    primary_model: str
    fallback_model: str
    backup_primary_model: str = DEFAULT_BACKUP_PRIMARY_MODEL
    backup_fallback_model: str = DEFAULT_BACKUP_FALLBACK_MODEL
    #: Auto-resolved from ``OPENAI_API_KEY`` when *None*.
    api_key: str | None = None
    #: Transport-level retries performed by the provider SDK per attempt.
    max_retries: int = 3
    #: Per-attempt timeout; callers needing a cascade deadline pass ``deadline_s``.
    timeout_ms: int = 45_000
    backoff_base_s: float = 1.0
    temperature: float = 0.7
    max_tokens: int = 2000
    debug_mode: bool = False
    log_requests: bool = False
    #: Read-only after construction; excluded from the hash.
    display_names: Mapping[str, str] = field(default_factory=dict, hash=False)
    use_mock: bool = False

    def __post_init__(self) -> None:
        """Auto-resolve the API key and validate invariants."""
        for name in (
            "primary_model",
            "fallback_model",
            "backup_primary_model",
            "backup_fallback_model",
        ):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise ConfigurationError(
                    f"{name} must be a non-empty model id, got {value!r}",
                    hint="Model ids come from PRIMARY_OPENAI_MODEL, FALLBACK_OPENAI_MODEL, "
                    "BACKUP_PRIMARY_MODEL and BACKUP_FALLBACK_MODEL.",
                )
            object.__setattr__(self, name, value.strip())

        if self.timeout_ms <= 0:
            raise ConfigurationError(
                f"timeout_ms must be > 0, got {self.timeout_ms}",
                hint="Set AI_TIMEOUT_MS to a positive number of milliseconds.",
            )
        if self.max_retries < 0:
            raise ConfigurationError(
                f"max_retries must be ≥ 0, got {self.max_retries}",
                hint="Set AI_MAX_RETRIES to 0 or more.",
            )
        if self.backoff_base_s < 0:
            raise ConfigurationError(
                f"backoff_base_s must be ≥ 0, got {self.backoff_base_s}",
                hint="This is the linear delay unit between cascade attempts.",
            )
        if self.max_tokens < 1:
            raise ConfigurationError(f"max_tokens must be ≥ 1, got {self.max_tokens}")

        object.__setattr__(
            self, "display_names", MappingProxyType(dict(self.display_names))
        )

        if self.api_key is None and not self.use_mock:
            object.__setattr__(self, "api_key", os.environ.get(API_KEY_ENV_VAR) or None)

        if not self.use_mock and not self.api_key:
            raise ConfigurationError(
                "API key required for the generation client",
                hint=f"Set {API_KEY_ENV_VAR} environment variable or pass api_key=...",
            )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Config:
        """Build a Config from environment variables.

        When *environ* is omitted, a local ``.env`` file is loaded first and
        ``os.environ`` is read. Blank values count as unset.
        """
        if environ is None:
            load_dotenv()
            environ = os.environ

        raw = {
            key: value
            for key, value in environ.items()
            if key in _EnvSchema.model_fields and value.strip()
        }
        try:
            env = _EnvSchema.model_validate(raw)
        except ValidationError as e:
            first = e.errors()[0]
            var = str(first["loc"][0]) if first.get("loc") else "environment"
            raise ConfigurationError(
                f"Invalid configuration for {var}: {first['msg']}",
                hint=f"Check the {var} environment variable.",
            ) from e

        return cls(
            api_key=env.OPENAI_API_KEY,
            primary_model=env.PRIMARY_OPENAI_MODEL,
            fallback_model=env.FALLBACK_OPENAI_MODEL,
            backup_primary_model=env.BACKUP_PRIMARY_MODEL,
            backup_fallback_model=env.BACKUP_FALLBACK_MODEL,
            max_retries=env.AI_MAX_RETRIES,
            timeout_ms=env.AI_TIMEOUT_MS,
            backoff_base_s=env.AI_BACKOFF_BASE_MS / 1000,
            debug_mode=env.AI_DEBUG_MODE,
            log_requests=env.AI_LOG_REQUESTS,
            display_names=env.MODEL_DISPLAY_MAPPINGS,
        )

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000

    def __str__(self) -> str:
        """Return a redacted, developer-friendly representation."""
        return (
            f"Config(primary_model={self.primary_model!r}, "
            f"fallback_model={self.fallback_model!r}, "
            f"backup_primary_model={self.backup_primary_model!r}, "
            f"backup_fallback_model={self.backup_fallback_model!r}, "
            f"api_key={'[REDACTED]' if self.api_key else None}, "
            f"use_mock={self.use_mock})"
        )

    __repr__ = __str__
