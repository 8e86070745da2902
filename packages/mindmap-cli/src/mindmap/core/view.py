"""
Headless view controller for the mind map canvas.

Holds the UI state that sits on top of the GraphStore (search filter,
selection, inline edit buffers, the creation panel, drag gestures) and turns
the visible subgraph into a RenderFrame via ForceLayout. Validation failures
come back as short strings on the controller; nothing here raises into the
caller for bad user input.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from .graph_store import GraphStore, LinkRejected
from .layout import ForceLayout
from .models import DEFAULT_COLOR, PALETTE, Link, Node, strip_tag_marker

logger = logging.getLogger(__name__)

TAG_COMMIT_KEYS = ("Enter", ",")

BASE_RADIUS = 18.0
RADIUS_PER_LINK = 3.0
MAX_RADIUS_LINKS = 10


@dataclass
class NodeDetail:
    """Popup contents for the selected node."""

    id: str
    content: str
    tags: List[str]
    color: Optional[str]
    links: List[str]


@dataclass(frozen=True)
class RenderedNode:
    id: str
    x: float
    y: float
    radius: float
    color: str
    selected: bool = False


@dataclass(frozen=True)
class RenderedLink:
    source: str
    target: str
    x1: float
    y1: float
    x2: float
    y2: float


@dataclass
class RenderFrame:
    nodes: List[RenderedNode] = field(default_factory=list)
    links: List[RenderedLink] = field(default_factory=list)

    def node(self, node_id: str) -> Optional[RenderedNode]:
        for rendered in self.nodes:
            if rendered.id == node_id:
                return rendered
        return None


class CreationPanel:
    """Form state for creating a node: content, tag chips and a palette color."""

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.content = ""
        self.tags: List[str] = []
        self.color = DEFAULT_COLOR
        self.tag_input = ""

    def add_tag(self, text: str) -> bool:
        tag = strip_tag_marker(text)
        if not tag or tag in self.tags:
            return False
        self.tags.append(tag)
        return True

    def key_tag(self, key: str) -> bool:
        """
        Feed one key press to the tag input.

        Enter or a comma commits the buffer as a tag and empties it; any other
        single character is appended. Returns True when a tag was added.
        """
        if key in TAG_COMMIT_KEYS:
            added = self.add_tag(self.tag_input)
            self.tag_input = ""
            return added
        if len(key) == 1:
            self.tag_input += key
        return False

    def remove_tag(self, tag: str) -> bool:
        if tag in self.tags:
            self.tags.remove(tag)
            return True
        return False

    def choose_color(self, color: str) -> bool:
        if color not in PALETTE:
            return False
        self.color = color
        return True


class ViewController:
    """UI state machine over a GraphStore."""

    def __init__(
        self,
        store: GraphStore,
        *,
        width: float = 1200.0,
        height: float = 800.0,
        confirmation_seconds: float = 1.5,
        layout_iterations: int = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.width = width
        self.height = height
        self.confirmation_seconds = confirmation_seconds
        self.layout_iterations = layout_iterations
        self._clock = clock
        self.layout = ForceLayout(width, height)

        self.search_term = ""
        self.selected_id: Optional[str] = None
        self.editing = False
        self.draft = ""
        self.link_draft = ""
        self.link_error: Optional[str] = None
        self.panel = CreationPanel()
        self._confirmation: Optional[Tuple[str, float]] = None

    # ------------------------------------------------------------------
    # Search and visibility
    # ------------------------------------------------------------------

    def set_search(self, term: Optional[str]) -> None:
        self.search_term = term or ""

    def visible_nodes(self) -> List[Node]:
        return self.store.search(self.search_term)

    def visible_links(self) -> List[Link]:
        visible = {node.id for node in self.visible_nodes()}
        return [
            link for link in self.store.links
            if link.source in visible and link.target in visible
        ]

    # ------------------------------------------------------------------
    # Selection and detail popup
    # ------------------------------------------------------------------

    @property
    def selected(self) -> Optional[Node]:
        if self.selected_id is None:
            return None
        return self.store.get_node(self.selected_id)

    def _reset_inline_state(self) -> None:
        self.editing = False
        self.draft = ""
        self.link_draft = ""
        self.link_error = None

    def click_canvas(self) -> None:
        self.selected_id = None
        self._reset_inline_state()

    def click_node(self, node_id: str) -> bool:
        if not self.store.has_node(node_id):
            return False
        if node_id != self.selected_id:
            self._reset_inline_state()
        self.selected_id = node_id
        return True

    def detail(self) -> Optional[NodeDetail]:
        node = self.selected
        if node is None:
            return None
        return NodeDetail(
            id=node.id,
            content=node.content,
            tags=list(node.tags),
            color=node.color,
            links=self.store.neighbors(node.id),
        )

    def remove_incident_link(self, other_id: str) -> bool:
        if self.selected_id is None:
            return False
        return self.store.remove_link(self.selected_id, other_id)

    # ------------------------------------------------------------------
    # Link editing
    # ------------------------------------------------------------------

    def set_link_draft(self, text: str) -> None:
        self.link_draft = text
        self.link_error = None

    def commit_link(self) -> bool:
        """Link the selected node to the id in the link draft."""
        if self.selected_id is None:
            return False
        target = self.link_draft.strip()
        if not target:
            self.link_error = "Enter a node id to link to"
            return False
        try:
            self.store.add_link(self.selected_id, target)
        except LinkRejected as e:
            self.link_error = e.message
            return False
        self.link_draft = ""
        self.link_error = None
        return True

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    @property
    def confirmation(self) -> Optional[str]:
        if self._confirmation is None:
            return None
        text, shown_at = self._confirmation
        if self._clock() - shown_at >= self.confirmation_seconds:
            self._confirmation = None
            return None
        return text

    def commit_create(self, node_id: Optional[str] = None) -> Optional[Node]:
        """
        Create a node from the panel, spawned at the canvas centre.

        A fresh id is generated unless node_id is given; returns None (panel
        kept as is) when the store refuses the node.
        """
        if self.panel.tag_input.strip():
            self.panel.add_tag(self.panel.tag_input)
            self.panel.tag_input = ""
        node = self.store.add_node(
            content=self.panel.content,
            tags=self.panel.tags,
            color=self.panel.color,
            node_id=node_id,
            x=self.width / 2,
            y=self.height / 2,
        )
        if node is None:
            return None
        self.panel.reset()
        self._confirmation = (f"{node.id} created", self._clock())
        logger.debug(f"Created node {node.id}")
        return node

    # ------------------------------------------------------------------
    # Content editing
    # ------------------------------------------------------------------

    def begin_edit(self) -> bool:
        node = self.selected
        if node is None:
            return False
        self.editing = True
        self.draft = node.content
        return True

    def update_draft(self, text: str) -> None:
        if self.editing:
            self.draft = text

    def save_edit(self) -> bool:
        if not self.editing or self.selected_id is None:
            return False
        saved = self.store.edit_node_content(self.selected_id, self.draft)
        self.editing = False
        self.draft = ""
        return saved

    def cancel_edit(self) -> None:
        self.editing = False
        self.draft = ""

    def delete_selected(self) -> bool:
        if self.selected_id is None:
            return False
        removed = self.store.remove_node(self.selected_id)
        self.click_canvas()
        return removed

    # ------------------------------------------------------------------
    # Dragging
    # ------------------------------------------------------------------

    def _sync_layout(self) -> None:
        hints = {
            node.id: (node.x, node.y)
            for node in self.visible_nodes()
            if node.x is not None and node.y is not None
        }
        self.layout.set_graph(
            [node.id for node in self.visible_nodes()],
            [(link.source, link.target) for link in self.visible_links()],
            hints,
        )

    def _clamp(self, x: float, y: float) -> Tuple[float, float]:
        margin = self.layout.margin
        return (
            min(max(x, margin), max(margin, self.width - margin)),
            min(max(y, margin), max(margin, self.height - margin)),
        )

    def drag_start(self, node_id: str) -> bool:
        if not self.store.has_node(node_id):
            return False
        self._sync_layout()
        self.layout.pin(node_id)
        # Nodes hidden by the search are not in the layout
        return self.layout.is_pinned(node_id)

    def drag_move(self, node_id: str, x: float, y: float) -> None:
        if not self.layout.is_pinned(node_id):
            return
        x, y = self._clamp(x, y)
        self.layout.pin(node_id, x, y)
        self.store.set_position(node_id, x, y)

    def drag_end(self, node_id: str) -> None:
        self.layout.unpin(node_id)
        self.layout.reheat(0.3)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def radius_for(self, node_id: str) -> float:
        return BASE_RADIUS + RADIUS_PER_LINK * min(self.store.degree(node_id), MAX_RADIUS_LINKS)

    def render(self, iterations: Optional[int] = None) -> RenderFrame:
        """Lay out the visible subgraph and return what to draw."""
        self._sync_layout()
        positions: Dict[str, Tuple[float, float]] = self.layout.run(
            self.layout_iterations if iterations is None else iterations
        )
        for node_id, (x, y) in positions.items():
            self.store.set_position(node_id, x, y)

        frame = RenderFrame()
        for node in self.visible_nodes():
            x, y = positions[node.id]
            frame.nodes.append(
                RenderedNode(
                    id=node.id,
                    x=x,
                    y=y,
                    radius=self.radius_for(node.id),
                    color=node.color or DEFAULT_COLOR,
                    selected=node.id == self.selected_id,
                )
            )
        for link in self.visible_links():
            x1, y1 = positions[link.source]
            x2, y2 = positions[link.target]
            frame.links.append(
                RenderedLink(source=link.source, target=link.target, x1=x1, y1=y1, x2=x2, y2=y2)
            )
        return frame


__all__ = [
    "ViewController",
    "CreationPanel",
    "NodeDetail",
    "RenderFrame",
    "RenderedNode",
    "RenderedLink",
]
