"""Graph data models."""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _endpoint_id(value: Any) -> Any:
    """Collapse a rendering-engine node object into its id."""
    if isinstance(value, dict):
        return value.get("id")
    return value


class GraphNode(BaseModel):
    """A single note in the mind map."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1, description="Unique identifier, doubles as label")
    content: str = Field(default="", description="Free text body")
    tags: List[str] = Field(default_factory=list, description="Ordered tag list")
    color: Optional[str] = Field(default=None, description="Palette color")
    x: Optional[float] = Field(default=None, description="Last simulated x position")
    y: Optional[float] = Field(default=None, description="Last simulated y position")
    user_id: Optional[str] = Field(default=None, alias="userId", description="Owner")

    @field_validator("content", mode="before")
    @classmethod
    def _none_content(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("tags", mode="before")
    @classmethod
    def _none_tags(cls, value: Any) -> Any:
        return [] if value is None else value


class GraphLink(BaseModel):
    """An undirected connection between two notes, stored as an ordered pair."""

    model_config = ConfigDict(populate_by_name=True)

    source: str = Field(..., min_length=1, description="ID of the source note")
    target: str = Field(..., min_length=1, description="ID of the target note")
    user_id: Optional[str] = Field(default=None, alias="userId", description="Owner")

    @field_validator("source", "target", mode="before")
    @classmethod
    def _normalize_endpoint(cls, value: Any) -> Any:
        return _endpoint_id(value)


class GraphData(BaseModel):
    """The owner's stored graph."""

    nodes: List[GraphNode]
    links: List[GraphLink]
    version: int = Field(default=0, description="Version stamp of the stored snapshot")


class GraphSaveRequest(BaseModel):
    """Whole-graph overwrite posted by the client."""

    nodes: List[GraphNode] = Field(default_factory=list)
    links: List[GraphLink] = Field(default_factory=list)
    version: Optional[int] = Field(
        default=None, ge=1, description="Client version stamp; must exceed the stored one"
    )


class GraphSaveResponse(BaseModel):
    """Acknowledgement of a stored snapshot."""

    message: str
    version: int
