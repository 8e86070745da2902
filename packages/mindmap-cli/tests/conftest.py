from pathlib import Path
from typing import List, Optional

import httpx
import pytest
import pytest_asyncio

from backend.src.api.main import app
from backend.src.api.middleware import get_auth_service
from backend.src.services.auth import AuthService
from backend.src.services.config import AppConfig
from backend.src.services.database import DatabaseService
from backend.src.services.graph_service import GraphService, get_graph_service
from backend.src.services.users import UserService, get_user_service

from mindmap.core.api_client import NETWORK_ERROR, ApiError, MindmapClient, StaleGraph
from mindmap.core.models import GraphSnapshot, Link, Node
from mindmap.core.session import Session


class FakeServer:
    """
    In-memory stand-in for MindmapClient used by SyncBridge tests.

    Mirrors the server's version rule (only strictly newer versions are
    stored) and records every save attempt.
    """

    def __init__(self, nodes=(), links=(), version: int = 0):
        self.nodes: List[Node] = list(nodes)
        self.links: List[Link] = list(links)
        self.version = version
        self.calls: List[dict] = []
        self.failures: List[ApiError] = []
        self.gates: List[Optional[object]] = []
        self.lose_responses = 0
        self.fetch_error: Optional[ApiError] = None
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch_graph(self, session: Session) -> GraphSnapshot:
        if self.fetch_error is not None:
            raise self.fetch_error
        return GraphSnapshot(nodes=self.nodes, links=self.links, version=self.version)

    async def save_graph(self, session, nodes, links, version=None) -> int:
        nodes, links = list(nodes), list(links)
        self.calls.append(
            {"version": version, "nodes": [n.id for n in nodes], "links": [(l.source, l.target) for l in links]}
        )
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            gate = self.gates.pop(0) if self.gates else None
            if gate is not None:
                await gate.wait()
            if self.failures:
                raise self.failures.pop(0)
            if version is not None and version <= self.version:
                raise StaleGraph(
                    "Graph version is stale",
                    status_code=409,
                    error="stale_version",
                    detail={"attempted": version, "current": self.version},
                )
            self.nodes, self.links = nodes, links
            self.version = version if version is not None else self.version + 1
            if self.lose_responses:
                self.lose_responses -= 1
                raise ApiError(NETWORK_ERROR)
            return self.version
        finally:
            self.in_flight -= 1

    @property
    def node_ids(self) -> List[str]:
        return [n.id for n in self.nodes]


@pytest.fixture
def session() -> Session:
    return Session(token="test-token", user_id="user-1", username="alice")


@pytest.fixture
def fake_server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def backend_db(tmp_path: Path) -> DatabaseService:
    service = DatabaseService(tmp_path / "mindmap.db")
    service.initialize()
    return service


@pytest.fixture
def backend_app(backend_db: DatabaseService, tmp_path: Path):
    """The real FastAPI app over a throwaway database."""
    config = AppConfig(
        jwt_secret_key="client-tests-secret-value",
        database_path=tmp_path / "mindmap.db",
    )
    users = UserService(db_service=backend_db, bcrypt_rounds=4)
    graphs = GraphService(db_service=backend_db)
    tokens = AuthService(config=config)

    app.dependency_overrides[get_user_service] = lambda: users
    app.dependency_overrides[get_graph_service] = lambda: graphs
    app.dependency_overrides[get_auth_service] = lambda: tokens
    try:
        yield app
    finally:
        app.dependency_overrides = {}


@pytest_asyncio.fixture
async def api(backend_app):
    """MindmapClient talking to the backend app in-process."""
    transport = httpx.ASGITransport(app=backend_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield MindmapClient("http://testserver", http_client=http)
