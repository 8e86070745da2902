"""User account models."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class User(BaseModel):
    """Registered account (password hash never leaves the service layer)."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "userId": "5f1c0a9e2b8d4c7e9a3f6b1d2e4c8a07",
                "username": "alice",
                "created": "2025-01-15T10:30:00Z",
            }
        },
    )

    user_id: str = Field(..., alias="userId", min_length=1, max_length=64)
    username: str = Field(..., min_length=1, max_length=128)
    created: Optional[datetime] = Field(None, description="Account creation timestamp")


__all__ = ["User"]
