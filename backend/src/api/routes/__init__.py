"""API route modules."""

from . import auth, graph

__all__ = ["auth", "graph"]
