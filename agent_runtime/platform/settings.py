"""Process-wide runtime settings.

This module provides Pydantic settings classes loaded from environment
variables with support for nested configuration, e.g.
``TOKEN_LIMITS__LIMITS='{"anthropic:claude-sonnet-4-5": 200000}'`` or
``RETRY__MAX_ATTEMPTS=5``. Per-agent values in ``RuntimeConfig`` take
precedence over these defaults.
"""

import logging
from functools import lru_cache

import pydantic_settings
from pydantic import BaseModel, Field, field_validator


class LoggingSettings(BaseModel):
    level: str = Field("INFO")
    json_output: bool = Field(False, description="True=JSON lines, False=console")

    @field_validator("level")
    @classmethod
    def _validate_log_level(cls, v):
        v_upper = v.upper()
        if v_upper not in logging._nameToLevel:
            raise ValueError(f'invalid value "{v}"')
        return v_upper


class RetrySettings(BaseModel):
    """Provider retry defaults.

    Attributes:
        max_attempts: Total attempts per provider exchange, including the first
        base_delay: Backoff base in seconds; attempt n waits base * 2^(n-1) plus jitter
    """

    max_attempts: int = Field(3, ge=1)
    base_delay: float = Field(0.1, ge=0)


class StreamingSettings(BaseModel):
    timeout_seconds: float = Field(30.0, gt=0)
    buffer_size: int = Field(1, ge=1)


class TokenLimitSettings(BaseModel):
    """Per-client context token limits.

    Attributes:
        limits: Token limit keyed by client identifier
        warning_threshold: Fraction of the limit at which a warning is emitted
    """

    limits: dict[str, int] = Field(default_factory=dict)
    warning_threshold: float = Field(0.8)

    @field_validator("warning_threshold")
    @classmethod
    def _validate_threshold(cls, v):
        if not 0 < v <= 1:
            raise ValueError(f"warning threshold must be in (0, 1], got {v}")
        return v


class LitellmSettings(BaseModel):
    api_base: str | None = None
    api_key: str | None = None


class ProviderSettings(BaseModel):
    """Provider overrides keyed by provider name.

    Each value is a dotted import path to a provider class, e.g.
    ``PROVIDERS__OVERRIDES='{"litellm": "my_pkg.providers.Custom"}'``.
    """

    overrides: dict[str, str] = Field(default_factory=dict)


class Settings(pydantic_settings.BaseSettings):
    model_config = pydantic_settings.SettingsConfigDict(env_nested_delimiter="__")

    logging: LoggingSettings = LoggingSettings()
    retry: RetrySettings = RetrySettings()
    streaming: StreamingSettings = StreamingSettings()
    token_limits: TokenLimitSettings = TokenLimitSettings()
    litellm: LitellmSettings = LitellmSettings()
    providers: ProviderSettings = ProviderSettings()


@lru_cache
def get_settings() -> Settings:
    """Settings loaded once from the environment."""
    return Settings()
