from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from backend.src.api.main import app
from backend.src.api.middleware import get_auth_service
from backend.src.services.auth import AuthService
from backend.src.services.config import AppConfig
from backend.src.services.database import DatabaseService
from backend.src.services.graph_service import GraphService, get_graph_service
from backend.src.services.users import UserService, get_user_service


@pytest.fixture()
def db_service(tmp_path: Path) -> DatabaseService:
    service = DatabaseService(tmp_path / "mindmap.db")
    service.initialize()
    return service


@pytest.fixture()
def auth_service(tmp_path: Path) -> AuthService:
    config = AppConfig(
        jwt_secret_key="a-secure-secret-value-123",
        enable_local_mode=True,
        local_dev_token="local-test-token",
        database_path=tmp_path / "mindmap.db",
    )
    return AuthService(config=config)


@pytest.fixture()
def client(db_service: DatabaseService, auth_service: AuthService):
    """TestClient wired to a throwaway database and a fixed JWT secret."""
    users = UserService(db_service=db_service, bcrypt_rounds=4)
    graphs = GraphService(db_service=db_service)

    app.dependency_overrides[get_user_service] = lambda: users
    app.dependency_overrides[get_graph_service] = lambda: graphs
    app.dependency_overrides[get_auth_service] = lambda: auth_service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides = {}
