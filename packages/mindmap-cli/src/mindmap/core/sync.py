"""Graph Sync Bridge - mirrors the GraphStore to the backend.

After the initial load, every store change schedules a whole-graph save.
Saves go through one worker task: at most one request is in flight, and
changes made meanwhile coalesce into a single follow-up that snapshots the
store when it is sent. Each save carries a version one above the last one
the server acknowledged, and the server only accepts strictly newer
versions, so an older snapshot can never land after a newer one.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .api_client import ApiError, MindmapClient, StaleGraph, Unauthorized
from .graph_store import GraphStore
from .models import GraphSnapshot
from .session import Session

logger = logging.getLogger(__name__)


class SyncBridge:
    """Keeps the remote snapshot in step with a GraphStore."""

    def __init__(
        self,
        store: GraphStore,
        api: MindmapClient,
        *,
        max_retries: int = 3,
        backoff_seconds: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self.api = api
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep

        self.session: Optional[Session] = None
        self.loaded = False
        self.remote_version = 0
        self.saved_version = 0
        self.last_error: Optional[ApiError] = None
        self._dirty_version = 0
        self._worker: Optional[asyncio.Task] = None

        store.subscribe(self._on_change)

    @property
    def pending(self) -> bool:
        """True while some store change has not been saved yet."""
        return self.loaded and self.saved_version < self._dirty_version

    async def start(self, session: Session) -> bool:
        """
        Load the owner's graph into the store.

        Returns False (store left empty, saving disabled) when the fetch fails.
        """
        self.loaded = False
        self.session = session
        self.last_error = None
        # A save still running for the previous session finishes on its own
        self._worker = None
        self.store.clear()

        try:
            snapshot = await self.api.fetch_graph(session)
        except ApiError as e:
            logger.warning(f"Initial graph load failed for {session.username}: {e.message}")
            self.last_error = e
            return False

        self.store.replace(snapshot.nodes, snapshot.links)
        self.remote_version = snapshot.version
        self.saved_version = self._dirty_version = self.store.version
        self.loaded = True
        logger.info(
            f"Loaded graph v{snapshot.version} for {session.username} "
            f"({len(snapshot.nodes)} nodes, {len(snapshot.links)} links)"
        )
        return True

    def stop(self, clear: bool = True) -> None:
        """
        End the session locally (logout). Nothing is deleted remotely; an
        in-flight save may still complete but no further save is sent.
        """
        self.loaded = False
        if clear:
            self.store.clear()
        self.session = None

    async def flush(self) -> None:
        """Wait until every change so far has been saved or given up on."""
        if self.pending and (self._worker is None or self._worker.done()):
            self._worker = asyncio.get_running_loop().create_task(self._drain())
        if self._worker is not None:
            await self._worker

    def _on_change(self, version: int) -> None:
        if not self.loaded:
            return
        self._dirty_version = version
        if self._worker is not None and not self._worker.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet: flush() will pick the change up
            return
        self._worker = loop.create_task(self._drain())

    async def _drain(self) -> None:
        session = self.session
        while self.loaded and session is self.session and self.saved_version < self._dirty_version:
            snapshot = self.store.snapshot()
            if not await self._push(session, snapshot):
                break

    async def _push(self, session: Session, snapshot: GraphSnapshot) -> bool:
        version = self.remote_version + 1
        for attempt in range(self.max_retries + 1):
            try:
                stored = await self.api.save_graph(
                    session, snapshot.nodes, snapshot.links, version=version
                )
            except StaleGraph as e:
                if session is not self.session:
                    return False
                if attempt > 0 and e.current_version == version:
                    # An earlier attempt landed but its response was lost
                    stored = version
                else:
                    logger.warning(
                        f"Save v{version} superseded by stored v{e.current_version}; "
                        "stopping sync until the graph is reloaded"
                    )
                    self.last_error = e
                    self.loaded = False
                    return False
            except Unauthorized as e:
                if session is not self.session:
                    return False
                logger.error(f"Save rejected, session no longer valid: {e.message}")
                self.last_error = e
                self.loaded = False
                return False
            except ApiError as e:
                if session is not self.session:
                    return False
                self.last_error = e
                if e.is_retryable and attempt < self.max_retries and self.loaded:
                    delay = self.backoff_seconds * (2 ** attempt)
                    logger.warning(
                        f"Save v{version} failed ({e.message}); retry {attempt + 1}/{self.max_retries} in {delay:.2f}s"
                    )
                    await self._sleep(delay)
                    if session is not self.session:
                        return False
                    continue
                logger.error(f"Giving up on save v{version}: {e.message}")
                return False

            if session is not self.session:
                # Logged out or restarted while the save was in flight
                return False
            self.remote_version = stored
            self.saved_version = max(self.saved_version, snapshot.version)
            self.last_error = None
            logger.debug(
                f"Saved v{stored} ({len(snapshot.nodes)} nodes, {len(snapshot.links)} links)"
            )
            return True
        return False


__all__ = ["SyncBridge"]
