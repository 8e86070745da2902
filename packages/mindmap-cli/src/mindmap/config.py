"""
mindmap-cli Configuration

This module manages client configuration via environment variables and the
~/.mindmap/.env file.

Configuration is loaded from:
1. Environment variables (prefixed with MINDMAP_)
2. ~/.mindmap/.env file

Key settings:
- MINDMAP_SERVER_URL: Backend server URL (default: http://localhost:4000)
- MINDMAP_SESSION_PATH: Where the login session is kept between commands
- MINDMAP_SAVE_MAX_RETRIES / MINDMAP_SAVE_BACKOFF_SECONDS: background save retry policy
"""

import logging
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".mindmap"


class Settings(BaseSettings):
    """mindmap-cli configuration settings."""

    app_name: str = "Mind Map"

    # Server
    server_url: str = "http://localhost:4000"
    request_timeout_seconds: float = 10.0

    # Session persistence
    session_path: Path = CONFIG_DIR / "session.json"

    # Graph editing
    id_prefix: str = "note"

    # Background saves
    save_max_retries: int = Field(default=3, ge=0)
    save_backoff_seconds: float = Field(default=0.5, ge=0.0)

    # Canvas and layout
    canvas_width: float = Field(default=1200.0, gt=0)
    canvas_height: float = Field(default=800.0, gt=0)
    layout_iterations: int = Field(default=300, ge=1)
    confirmation_seconds: float = 1.5

    model_config = SettingsConfigDict(
        env_prefix="MINDMAP_",
        env_file=CONFIG_DIR / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
