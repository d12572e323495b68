from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SuccessResponse(BaseModel):
    success: bool = True


class LoginResponse(SuccessResponse):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")


class ConfigResponse(BaseModel):
    config: dict[str, str]


class LoginRequest(BaseModel):
    username: str
    password: str


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    code: str
    details: Any | None = None


def fail(*, code: str, message: str, details: Any | None = None) -> dict[str, Any]:
    return ErrorResponse(error=message, code=code, details=details).model_dump(
        mode="json", exclude_none=True
    )
