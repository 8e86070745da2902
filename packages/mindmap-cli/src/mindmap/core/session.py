"""Login session value object and its on-disk persistence."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    """Credential and identity produced by a successful login."""

    token: str
    user_id: str
    username: str

    def auth_header(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


class SessionStore:
    """Keeps the current session in a JSON file between CLI invocations."""

    def __init__(self, path: Path):
        self.path = Path(path).expanduser()

    def save(self, session: Session) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(asdict(session), f)
        # The file holds a bearer token
        os.chmod(self.path, 0o600)

    def load(self) -> Optional[Session]:
        if not self.path.exists():
            return None
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
            return Session(
                token=data["token"],
                user_id=data["user_id"],
                username=data["username"],
            )
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring unreadable session file {self.path}: {e}")
            return None

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()


__all__ = ["Session", "SessionStore"]
