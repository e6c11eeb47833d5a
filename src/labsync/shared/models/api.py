"""Backend envelope and account models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class Envelope(BaseModel):
    """Every backend response: ``{success, data, message?, error?}``."""

    model_config = ConfigDict(extra="ignore")

    success: bool = True
    data: Any = None
    message: str | None = None
    # Usually a string; some endpoints send a field -> message mapping
    error: Any = None


@dataclass(frozen=True)
class ApiResponse:
    """Normalized success value of a Transport Client call.

    Attributes:
        status: HTTP status code
        data: The envelope's ``data`` (validated when a model was given)
        message: The envelope's optional ``message``
    """

    status: int
    data: Any
    message: str | None = None


class UserSummary(BaseModel):
    """Minimal user summary persisted next to the credential."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    username: str
    role: str | None = None
    display_name: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def normalize_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class LoginResult(BaseModel):
    """Payload of a successful ``POST /login``."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    token: str = Field(validation_alias=AliasChoices("token", "access_token"))
    user: UserSummary
