"""Pydantic models for data validation and serialization."""

from .auth import (
    CredentialsRequest,
    JWTPayload,
    LoginResponse,
    MessageResponse,
)
from .graph import GraphData, GraphLink, GraphNode, GraphSaveRequest, GraphSaveResponse
from .user import User

__all__ = [
    "User",
    "CredentialsRequest",
    "LoginResponse",
    "MessageResponse",
    "JWTPayload",
    "GraphNode",
    "GraphLink",
    "GraphData",
    "GraphSaveRequest",
    "GraphSaveResponse",
]
