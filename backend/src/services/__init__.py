"""Service layer for business logic and persistence."""

from .auth import AuthError, AuthService
from .config import AppConfig, get_config, reload_config
from .database import DatabaseService, init_database
from .graph_service import GraphService, StaleVersionError, get_graph_service
from .users import UserService, get_user_service

__all__ = [
    "AppConfig",
    "get_config",
    "reload_config",
    "DatabaseService",
    "init_database",
    "AuthService",
    "AuthError",
    "UserService",
    "get_user_service",
    "GraphService",
    "StaleVersionError",
    "get_graph_service",
]
