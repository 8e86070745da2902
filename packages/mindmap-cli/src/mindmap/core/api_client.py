"""
Mind Map API Client - async httpx wrapper around the REST endpoints.

Errors come back as an ApiError hierarchy so callers can tell a bad password
(AuthFailed) from an expired token (Unauthorized), a superseded save
(StaleGraph) and a dead network (ApiError with status_code None).
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional

import httpx
from pydantic import ValidationError

from .models import GraphSnapshot, Link, Node
from .session import Session

logger = logging.getLogger(__name__)

NETWORK_ERROR = "network error"
INVALID_RESPONSE = "invalid response from server"


class ApiError(Exception):
    """Non-successful API call."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        error: Optional[str] = None,
        detail: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error = error
        self.detail = detail or {}

    @property
    def is_retryable(self) -> bool:
        """Transport failures and server errors may succeed on a later attempt."""
        return self.status_code is None or self.status_code >= 500


class AuthFailed(ApiError):
    """Login or registration refused (bad credentials, taken name, missing field)."""


class Unauthorized(ApiError):
    """Bearer token missing, invalid or expired."""


class StaleGraph(ApiError):
    """The store already holds a newer graph version than the one sent."""

    @property
    def current_version(self) -> Optional[int]:
        return self.detail.get("current")


def _error_from_response(response: httpx.Response, *, auth_route: bool = False) -> ApiError:
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    message = body.get("message") or response.text[:200] or f"HTTP {response.status_code}"
    kwargs = {
        "status_code": response.status_code,
        "error": body.get("error"),
        "detail": body.get("detail") if isinstance(body.get("detail"), dict) else None,
    }
    if response.status_code == 401:
        return Unauthorized(message, **kwargs)
    if response.status_code == 409:
        return StaleGraph(message, **kwargs)
    if auth_route and response.status_code == 400:
        return AuthFailed(message, **kwargs)
    return ApiError(message, **kwargs)


class MindmapClient:
    """Client for the mind map backend."""

    def __init__(
        self,
        server_url: str = "http://localhost:4000",
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        """
        Initialize the client.

        Args:
            server_url: Backend root URL (the /api prefix is added per call)
            http_client: Pre-built client (e.g. with an ASGI transport); not closed by us
            timeout: Per-request timeout for the client we build ourselves
        """
        self.server_url = server_url.rstrip("/")
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(base_url=self.server_url, timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self) -> "MindmapClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        session: Optional[Session] = None,
        json: Optional[Dict[str, Any]] = None,
        auth_route: bool = False,
    ) -> Dict[str, Any]:
        headers = session.auth_header() if session else {}
        try:
            response = await self._http.request(method, path, json=json, headers=headers)
        except httpx.TransportError as e:
            logger.debug(f"{method} {path} failed: {e}")
            raise ApiError(NETWORK_ERROR) from e

        if not response.is_success:
            raise _error_from_response(response, auth_route=auth_route)
        try:
            data = response.json()
        except ValueError as e:
            logger.debug(f"{method} {path} returned a non-JSON body")
            raise ApiError(INVALID_RESPONSE, status_code=response.status_code) from e
        if not isinstance(data, dict):
            raise ApiError(INVALID_RESPONSE, status_code=response.status_code)
        return data

    async def register(self, username: str, password: str) -> str:
        """Create an account. Returns the server's acknowledgement message."""
        data = await self._request(
            "POST",
            "/api/register",
            json={"username": username, "password": password},
            auth_route=True,
        )
        return data.get("message", "")

    async def login(self, username: str, password: str) -> Session:
        """Exchange credentials for a Session. Raises AuthFailed on bad credentials."""
        data = await self._request(
            "POST",
            "/api/login",
            json={"username": username, "password": password},
            auth_route=True,
        )
        if not data.get("token"):
            raise AuthFailed(data.get("message") or "Login failed")
        return Session(token=data["token"], user_id=data["userId"], username=data["username"])

    async def me(self, session: Session) -> Dict[str, Any]:
        return await self._request("GET", "/api/me", session=session)

    async def fetch_graph(self, session: Session) -> GraphSnapshot:
        """Load the owner's stored graph."""
        data = await self._request("GET", "/api/graph", session=session)
        try:
            return GraphSnapshot(
                nodes=[Node.model_validate(n) for n in data.get("nodes") or []],
                links=[Link.model_validate(l) for l in data.get("links") or []],
                version=data.get("version", 0),
            )
        except (ValidationError, TypeError) as e:
            logger.debug(f"Malformed graph body: {e}")
            raise ApiError(INVALID_RESPONSE) from e

    async def save_graph(
        self,
        session: Session,
        nodes: Iterable[Node],
        links: Iterable[Link],
        version: Optional[int] = None,
    ) -> int:
        """Overwrite the owner's stored graph. Returns the stored version."""
        payload = GraphSnapshot(nodes=list(nodes), links=list(links)).to_payload(session.user_id)
        if version is not None:
            payload["version"] = version
        data = await self._request("POST", "/api/graph", session=session, json=payload)
        return data.get("version", version or 0)


__all__ = [
    "MindmapClient",
    "ApiError",
    "AuthFailed",
    "Unauthorized",
    "StaleGraph",
    "NETWORK_ERROR",
    "INVALID_RESPONSE",
]
