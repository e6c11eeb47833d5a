"""Backend API configuration model."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from labsync.shared.constants import HTTPConfig


class APISettings(BaseModel):
    """Backend API configuration.

    All requests share one timeout, applied uniformly by the Transport
    Client.
    """

    base_url: str = Field(
        default=HTTPConfig.DEFAULT_BASE_URL,
        description="Base URL of the JSON backend, without trailing slash",
    )
    timeout: float = Field(
        default=HTTPConfig.DEFAULT_TIMEOUT,
        gt=0,
        description="Request timeout in seconds",
    )
    login_path: str = Field(
        default=HTTPConfig.DEFAULT_LOGIN_PATH,
        description="Location of the login entry point (never redirected to itself)",
    )
    user_agent: str = Field(
        default=HTTPConfig.USER_AGENT,
        description="User-Agent header sent with every request",
    )
    max_concurrent_requests: int = Field(
        default=HTTPConfig.MAX_CONCURRENT_REQUESTS,
        ge=1,
        description="Maximum number of requests in flight at once",
    )
    rate_limit: float = Field(
        default=HTTPConfig.RATE_LIMIT,
        gt=0,
        description="Requests allowed per rate_limit_period",
    )
    rate_limit_period: float = Field(
        default=HTTPConfig.RATE_LIMIT_PERIOD,
        gt=0,
        description="Rate limiting window in seconds",
    )

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


__all__ = ["APISettings"]
