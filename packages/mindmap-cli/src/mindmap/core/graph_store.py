"""In-memory graph state: the single source of truth during a session.

Every successful mutation bumps ``version`` and notifies subscribers with the
new value. Link endpoints are always held as plain node ids; object-shaped
endpoints are collapsed on the way in.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, List, Optional

from .models import PALETTE, GraphSnapshot, Link, Node, endpoint_id, strip_tag_marker

logger = logging.getLogger(__name__)

Listener = Callable[[int], None]


class LinkRejected(ValueError):
    """A link mutation that would break a graph invariant. Nothing was changed."""

    SELF_LINK = "self_link"
    DUPLICATE = "duplicate"
    UNKNOWN_NODE = "unknown_node"

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message


def _clean_tags(tags: Iterable[Any]) -> Optional[List[str]]:
    cleaned: List[str] = []
    for tag in tags:
        if not isinstance(tag, str):
            return None
        tag = strip_tag_marker(tag)
        if tag and tag not in cleaned:
            cleaned.append(tag)
    return cleaned


def _clean_endpoint(value: Any) -> Any:
    value = endpoint_id(value)
    return value.strip() if isinstance(value, str) else value


class GraphStore:
    """Nodes and links for one owner, with validated mutations."""

    def __init__(self, id_prefix: str = "note") -> None:
        self.id_prefix = id_prefix
        self._nodes: List[Node] = []
        self._links: List[Link] = []
        self._version = 0
        self._listeners: List[Listener] = []

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    @property
    def version(self) -> int:
        return self._version

    def subscribe(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _changed(self) -> None:
        self._version += 1
        for listener in list(self._listeners):
            listener(self._version)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def nodes(self) -> List[Node]:
        return list(self._nodes)

    @property
    def links(self) -> List[Link]:
        return list(self._links)

    def get_node(self, node_id: str) -> Optional[Node]:
        for node in self._nodes:
            if node.id == node_id:
                return node
        return None

    def has_node(self, node_id: str) -> bool:
        return self.get_node(node_id) is not None

    def find_link(self, a_id: str, b_id: str) -> Optional[Link]:
        pair = frozenset((a_id, b_id))
        for link in self._links:
            if link.pair == pair:
                return link
        return None

    def incident_links(self, node_id: str) -> List[Link]:
        return [link for link in self._links if link.touches(node_id)]

    def neighbors(self, node_id: str) -> List[str]:
        return [link.other(node_id) for link in self.incident_links(node_id)]

    def degree(self, node_id: str) -> int:
        """Number of links touching node_id. Only used to size the node on screen."""
        return len(self.incident_links(node_id))

    def search(self, term: Optional[str]) -> List[Node]:
        """
        Nodes whose tags or content contain ``term``, case-insensitively.

        A leading tag marker is ignored, and a blank term matches every node.
        """
        needle = strip_tag_marker(term or "").lower()
        if not needle:
            return list(self._nodes)
        return [
            node
            for node in self._nodes
            if needle in node.content.lower()
            or any(needle in tag.lower() for tag in node.tags)
        ]

    def suggest_id(self) -> str:
        """Smallest ``<prefix><n>`` (n >= 1) not already taken."""
        taken = {node.id for node in self._nodes}
        n = 1
        while f"{self.id_prefix}{n}" in taken:
            n += 1
        return f"{self.id_prefix}{n}"

    def snapshot(self) -> GraphSnapshot:
        return GraphSnapshot(
            nodes=[node.model_copy(deep=True) for node in self._nodes],
            links=list(self._links),
            version=self._version,
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_node(
        self,
        content: Any = "",
        tags: Optional[Iterable[Any]] = None,
        color: Optional[str] = None,
        node_id: Optional[str] = None,
        x: Optional[float] = None,
        y: Optional[float] = None,
    ) -> Optional[Node]:
        """
        Create a node; returns None without changing anything when the input
        is structurally invalid (non-text content or tags, color outside the
        palette, blank or taken id).
        """
        if content is None:
            content = ""
        if not isinstance(content, str):
            return None
        cleaned_tags = _clean_tags(tags or [])
        if cleaned_tags is None:
            return None
        if color is not None and color not in PALETTE:
            return None

        if node_id is None:
            node_id = self.suggest_id()
        elif not isinstance(node_id, str) or not node_id.strip() or self.has_node(node_id.strip()):
            return None
        else:
            node_id = node_id.strip()

        node = Node(id=node_id, content=content, tags=cleaned_tags, color=color, x=x, y=y)
        self._nodes.append(node)
        self._changed()
        return node

    def remove_node(self, node_id: str) -> bool:
        """Delete a node and every link touching it. Absent ids are ignored."""
        node = self.get_node(node_id)
        if node is None:
            return False
        self._nodes.remove(node)
        self._links = [link for link in self._links if not link.touches(node_id)]
        self._changed()
        return True

    def add_link(self, source_id: str, target_id: str) -> Link:
        """Connect two existing nodes; raises LinkRejected instead of mutating on bad input."""
        source_id = _clean_endpoint(source_id)
        target_id = _clean_endpoint(target_id)
        if not target_id or not self.has_node(target_id):
            raise LinkRejected(LinkRejected.UNKNOWN_NODE, f"No node named '{target_id}'")
        if not source_id or not self.has_node(source_id):
            raise LinkRejected(LinkRejected.UNKNOWN_NODE, f"No node named '{source_id}'")
        if source_id == target_id:
            raise LinkRejected(LinkRejected.SELF_LINK, "A node cannot link to itself")
        if self.find_link(source_id, target_id) is not None:
            raise LinkRejected(
                LinkRejected.DUPLICATE, f"'{source_id}' and '{target_id}' are already linked"
            )

        link = Link(source=source_id, target=target_id)
        self._links.append(link)
        self._changed()
        return link

    def remove_link(self, a_id: str, b_id: str) -> bool:
        """Remove the link joining a and b in either direction."""
        link = self.find_link(a_id, b_id)
        if link is None:
            return False
        self._links.remove(link)
        self._changed()
        return True

    def edit_node_content(self, node_id: str, content: str) -> bool:
        node = self.get_node(node_id)
        if node is None or not isinstance(content, str):
            return False
        if node.content == content:
            return True
        node.content = content
        self._changed()
        return True

    def set_position(self, node_id: str, x: float, y: float) -> None:
        """Record a layout hint. Positions are volatile and do not count as a change."""
        node = self.get_node(node_id)
        if node is not None:
            node.x = x
            node.y = y

    def replace(self, nodes: Iterable[Any], links: Iterable[Any]) -> None:
        """Bulk-load a graph, dropping links that would violate the invariants."""
        loaded: List[Node] = []
        seen_ids: set[str] = set()
        for raw in nodes:
            node = raw.model_copy(deep=True) if isinstance(raw, Node) else Node.model_validate(raw)
            if node.id in seen_ids:
                logger.warning(f"Dropping duplicate node '{node.id}' from loaded graph")
                continue
            seen_ids.add(node.id)
            loaded.append(node)

        kept: List[Link] = []
        pairs: set[frozenset] = set()
        for raw in links:
            link = raw if isinstance(raw, Link) else Link.model_validate(raw)
            if link.source == link.target:
                logger.warning(f"Dropping self-link on '{link.source}'")
                continue
            if link.source not in seen_ids or link.target not in seen_ids:
                logger.warning(f"Dropping dangling link {link.source} -> {link.target}")
                continue
            if link.pair in pairs:
                continue
            pairs.add(link.pair)
            kept.append(Link(source=link.source, target=link.target))

        self._nodes = loaded
        self._links = kept
        self._changed()

    def clear(self) -> None:
        self._nodes = []
        self._links = []
        self._changed()


__all__ = ["GraphStore", "LinkRejected"]
