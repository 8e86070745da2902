"""Account registration and credential checks."""

from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Optional

import bcrypt
from fastapi import status

from ..models.user import User
from .auth import AuthError
from .config import get_config
from .database import DatabaseService

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72

INVALID_CREDENTIALS = "Invalid username or password"


def _bad_request(error: str, message: str) -> AuthError:
    return AuthError(error, message, status_code=status.HTTP_400_BAD_REQUEST)


def _row_to_user(row: sqlite3.Row) -> User:
    return User(
        user_id=row["user_id"],
        username=row["username"],
        created=datetime.fromisoformat(row["created_at"]),
    )


class UserService:
    """Create accounts and verify passwords against stored bcrypt hashes."""

    def __init__(
        self,
        db_service: DatabaseService | None = None,
        *,
        bcrypt_rounds: int | None = None,
    ) -> None:
        self._db = db_service or DatabaseService()
        self._rounds = bcrypt_rounds or get_config().bcrypt_rounds

    def register(self, username: Optional[str], password: Optional[str]) -> User:
        """Create a new account; raises AuthError (400) on invalid input or a taken name."""
        username = (username or "").strip()
        if not username or not password:
            raise _bad_request("missing_fields", "Username and password are required")
        encoded = password.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise _bad_request(
                "password_too_long",
                f"Password must be at most {MAX_PASSWORD_BYTES} bytes",
            )

        password_hash = bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self._rounds))
        user_id = uuid.uuid4().hex
        created = datetime.now(timezone.utc)

        conn = self._db.connect()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO users (user_id, username, password_hash, created_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (user_id, username, password_hash.decode("utf-8"), created.isoformat()),
                )
        except sqlite3.IntegrityError as exc:
            raise _bad_request("username_taken", "Username is already taken") from exc
        finally:
            conn.close()

        logger.info("Registered user", extra={"user_id": user_id, "username": username})
        return User(user_id=user_id, username=username, created=created)

    def authenticate(self, username: Optional[str], password: Optional[str]) -> User:
        """Return the account for valid credentials; raises AuthError (400) otherwise."""
        if not username or not password:
            raise _bad_request("invalid_credentials", INVALID_CREDENTIALS)

        conn = self._db.connect()
        try:
            row = conn.execute(
                "SELECT user_id, username, password_hash, created_at FROM users WHERE username = ?",
                (username.strip(),),
            ).fetchone()
        finally:
            conn.close()

        if row is None:
            raise _bad_request("invalid_credentials", INVALID_CREDENTIALS)

        encoded = password.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES or not bcrypt.checkpw(
            encoded, row["password_hash"].encode("utf-8")
        ):
            logger.warning("Rejected login", extra={"username": row["username"]})
            raise _bad_request("invalid_credentials", INVALID_CREDENTIALS)

        return _row_to_user(row)

    def get_user(self, user_id: str) -> Optional[User]:
        """Look up an account by its opaque id."""
        conn = self._db.connect()
        try:
            row = conn.execute(
                "SELECT user_id, username, created_at FROM users WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        finally:
            conn.close()
        return _row_to_user(row) if row else None


_user_service: Optional[UserService] = None


def get_user_service() -> UserService:
    """Get or create the user service singleton."""
    global _user_service
    if _user_service is None:
        _user_service = UserService()
    return _user_service


__all__ = ["UserService", "get_user_service", "MAX_PASSWORD_BYTES"]
