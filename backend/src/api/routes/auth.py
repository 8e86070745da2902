"""Account routes: registration, password login and the current account."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from ...models.auth import CredentialsRequest, LoginResponse, MessageResponse
from ...models.user import User
from ...services.auth import AuthService
from ...services.users import UserService, get_user_service
from ..middleware import AuthContext, get_auth_context, get_auth_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/api/register", response_model=MessageResponse)
async def register(
    request: CredentialsRequest,
    users: Annotated[UserService, Depends(get_user_service)],
) -> MessageResponse:
    """Create an account. 400 when a field is missing or the username is taken."""
    users.register(request.username, request.password)
    return MessageResponse(message="Registration complete")


@router.post("/api/login", response_model=LoginResponse)
async def login(
    request: CredentialsRequest,
    users: Annotated[UserService, Depends(get_user_service)],
    tokens: Annotated[AuthService, Depends(get_auth_service)],
) -> LoginResponse:
    """Exchange credentials for a bearer token. 400 on bad credentials."""
    user = users.authenticate(request.username, request.password)
    token = tokens.create_jwt(user.user_id, user.username)
    logger.info("Login succeeded", extra={"user_id": user.user_id})
    return LoginResponse(token=token, user_id=user.user_id, username=user.username)


@router.get("/api/me", response_model=User)
async def get_current_user(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    users: Annotated[UserService, Depends(get_user_service)],
) -> User:
    """Return the account behind the bearer token."""
    user = users.get_user(auth.user_id)
    if user is not None:
        return user
    # Static local-dev tokens have no account row
    if auth.username:
        return User(user_id=auth.user_id, username=auth.username)
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")


__all__ = ["router"]
