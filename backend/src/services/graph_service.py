"""Graph Service - whole-graph load and overwrite per owner."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from ..models.graph import GraphData, GraphLink, GraphNode
from .database import DatabaseService

logger = logging.getLogger(__name__)


class StaleVersionError(Exception):
    """Raised when a save carries a version not newer than the stored one."""

    def __init__(self, attempted: int, current: int) -> None:
        super().__init__(
            f"Graph version {attempted} is not newer than stored version {current}"
        )
        self.attempted = attempted
        self.current = current


class GraphService:
    """Load and replace an owner's nodes and links."""

    def __init__(self, db_service: DatabaseService | None = None):
        """Initialize with database service."""
        self._db = db_service or DatabaseService()

    def load(self, user_id: str) -> GraphData:
        """Return the owner's graph in stored order (empty graph if none saved)."""
        conn = self._db.connect()
        try:
            node_rows = conn.execute(
                """
                SELECT node_id, content, tags, color, x, y
                FROM graph_nodes WHERE user_id = ?
                ORDER BY position
                """,
                (user_id,),
            ).fetchall()
            link_rows = conn.execute(
                """
                SELECT source, target FROM graph_links
                WHERE user_id = ? ORDER BY position
                """,
                (user_id,),
            ).fetchall()
            version = self._current_version(conn, user_id)
        finally:
            conn.close()

        nodes = [
            GraphNode(
                id=row["node_id"],
                content=row["content"],
                tags=json.loads(row["tags"]),
                color=row["color"],
                x=row["x"],
                y=row["y"],
                user_id=user_id,
            )
            for row in node_rows
        ]
        links = [
            GraphLink(source=row["source"], target=row["target"], user_id=user_id)
            for row in link_rows
        ]
        return GraphData(nodes=nodes, links=links, version=version)

    def save(
        self,
        user_id: str,
        nodes: Sequence[GraphNode],
        links: Sequence[GraphLink],
        version: Optional[int] = None,
    ) -> int:
        """
        Replace the owner's stored graph in one transaction.

        An explicit version must be strictly greater than the stored one
        (StaleVersionError otherwise). Without a version the save is
        unconditional and lands at stored + 1. Returns the new version.
        """
        conn = self._db.connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            current = self._current_version(conn, user_id)
            if version is not None and version <= current:
                conn.rollback()
                raise StaleVersionError(version, current)
            new_version = version if version is not None else current + 1

            conn.execute("DELETE FROM graph_nodes WHERE user_id = ?", (user_id,))
            conn.execute("DELETE FROM graph_links WHERE user_id = ?", (user_id,))

            seen: set[str] = set()
            node_params: List[tuple] = []
            for position, node in enumerate(nodes):
                if node.id in seen:
                    continue
                seen.add(node.id)
                node_params.append(
                    (
                        user_id,
                        node.id,
                        position,
                        node.content,
                        json.dumps(node.tags),
                        node.color,
                        node.x,
                        node.y,
                    )
                )
            conn.executemany(
                """
                INSERT INTO graph_nodes (user_id, node_id, position, content, tags, color, x, y)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                node_params,
            )
            conn.executemany(
                """
                INSERT INTO graph_links (user_id, position, source, target)
                VALUES (?, ?, ?, ?)
                """,
                [
                    (user_id, position, link.source, link.target)
                    for position, link in enumerate(links)
                ],
            )
            conn.execute(
                """
                INSERT INTO graph_versions (user_id, version, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    version = excluded.version, updated_at = excluded.updated_at
                """,
                (user_id, new_version, datetime.now(timezone.utc).isoformat()),
            )
            conn.commit()
        except StaleVersionError:
            raise
        except Exception as e:
            conn.rollback()
            logger.error(f"Failed to save graph for user {user_id}: {e}")
            raise
        finally:
            conn.close()

        logger.info(
            f"Saved graph v{new_version} for user {user_id} "
            f"({len(node_params)} nodes, {len(links)} links)"
        )
        return new_version

    @staticmethod
    def _current_version(conn, user_id: str) -> int:
        row = conn.execute(
            "SELECT version FROM graph_versions WHERE user_id = ?", (user_id,)
        ).fetchone()
        return row["version"] if row else 0


_graph_service: Optional[GraphService] = None


def get_graph_service() -> GraphService:
    """Get or create the graph service singleton."""
    global _graph_service
    if _graph_service is None:
        _graph_service = GraphService()
    return _graph_service


__all__ = ["GraphService", "StaleVersionError", "get_graph_service"]
