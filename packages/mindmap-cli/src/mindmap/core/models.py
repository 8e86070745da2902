"""Client-side graph records and the fixed editing vocabulary."""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Seven creation colors; the first one is the default
PALETTE: tuple[str, ...] = (
    "#4f8cff",
    "#ff6b6b",
    "#ffd93d",
    "#6bcb77",
    "#b983ff",
    "#ff9f43",
    "#4dd4d4",
)
DEFAULT_COLOR = PALETTE[0]

TAG_MARKER = "#"


def strip_tag_marker(value: str) -> str:
    """Trim whitespace and a single leading tag marker."""
    value = value.strip()
    if value.startswith(TAG_MARKER):
        value = value[len(TAG_MARKER):].strip()
    return value


def endpoint_id(value: Any) -> Any:
    """Collapse a node object (or node-shaped dict) used as a link endpoint into its id."""
    if isinstance(value, dict):
        return value.get("id")
    if isinstance(value, Node):
        return value.id
    return value


class Node(BaseModel):
    """A note on the canvas."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1)
    content: str = ""
    tags: List[str] = Field(default_factory=list)
    color: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None
    user_id: Optional[str] = Field(default=None, alias="userId")

    @field_validator("content", mode="before")
    @classmethod
    def _none_content(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("tags", mode="before")
    @classmethod
    def _none_tags(cls, value: Any) -> Any:
        return [] if value is None else value


class Link(BaseModel):
    """Undirected edge between two node ids, kept as an ordered pair."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    source: str = Field(..., min_length=1)
    target: str = Field(..., min_length=1)
    user_id: Optional[str] = Field(default=None, alias="userId")

    @field_validator("source", "target", mode="before")
    @classmethod
    def _normalize_endpoint(cls, value: Any) -> Any:
        return endpoint_id(value)

    @property
    def pair(self) -> frozenset:
        """Unordered endpoint pair used for duplicate detection."""
        return frozenset((self.source, self.target))

    def touches(self, node_id: str) -> bool:
        return node_id in (self.source, self.target)

    def other(self, node_id: str) -> str:
        """Endpoint opposite to node_id."""
        return self.target if self.source == node_id else self.source


class GraphSnapshot(BaseModel):
    """Detached copy of a graph plus the store version it was loaded at."""

    nodes: List[Node] = Field(default_factory=list)
    links: List[Link] = Field(default_factory=list)
    version: int = 0

    def to_payload(self, owner_id: Optional[str] = None) -> dict:
        """Wire body for a whole-graph save, every record tagged with the owner."""
        nodes = [
            node.model_copy(update={"user_id": owner_id}).model_dump(by_alias=True)
            for node in self.nodes
        ]
        links = [
            {"source": link.source, "target": link.target, "userId": owner_id}
            for link in self.links
        ]
        return {"nodes": nodes, "links": links}


__all__ = [
    "PALETTE",
    "DEFAULT_COLOR",
    "TAG_MARKER",
    "strip_tag_marker",
    "endpoint_id",
    "Node",
    "Link",
    "GraphSnapshot",
]
