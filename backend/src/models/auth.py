"""Authentication models."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CredentialsRequest(BaseModel):
    """Username/password pair posted to the register and login routes."""

    username: Optional[str] = Field(None, description="Account name")
    password: Optional[str] = Field(None, description="Plain-text password")


class LoginResponse(BaseModel):
    """Token issued by a successful login."""

    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(..., description="JWT access token")
    user_id: str = Field(..., alias="userId", description="Opaque owner identifier")
    username: str = Field(..., description="Account name")


class MessageResponse(BaseModel):
    """Plain acknowledgement body."""

    message: str


class JWTPayload(BaseModel):
    """JWT claims payload."""

    sub: str = Field(..., description="Subject (user_id)")
    username: Optional[str] = Field(None, description="Account name at issuance")
    iat: int = Field(..., description="Issued at timestamp")
    exp: int = Field(..., description="Expiration timestamp")


__all__ = [
    "CredentialsRequest",
    "LoginResponse",
    "MessageResponse",
    "JWTPayload",
]
