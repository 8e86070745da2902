"""Force-directed layout for the mind map canvas.

Pure math, no drawing: nodes repel each other, links pull their endpoints
toward a rest length, the whole cloud is re-centred on the canvas and kept
inside its margins. Motion cools off over time (alpha) so repeated steps
converge.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

LINK_DISTANCE = 180.0
CHARGE_STRENGTH = -400.0

_GOLDEN_ANGLE = math.pi * (3 - math.sqrt(5))


@dataclass
class _Body:
    x: float
    y: float
    vx: float = 0.0
    vy: float = 0.0
    fx: Optional[float] = None
    fy: Optional[float] = None

    @property
    def pinned(self) -> bool:
        return self.fx is not None


class ForceLayout:
    """Incremental force simulation over a set of node ids and links."""

    def __init__(
        self,
        width: float = 1200.0,
        height: float = 800.0,
        *,
        link_distance: float = LINK_DISTANCE,
        charge_strength: float = CHARGE_STRENGTH,
        margin: float = 30.0,
        velocity_decay: float = 0.4,
        alpha_min: float = 0.001,
        cooling_steps: int = 300,
    ):
        self.width = width
        self.height = height
        self.link_distance = link_distance
        self.charge_strength = charge_strength
        self.margin = margin
        self.velocity_decay = velocity_decay
        self.alpha_min = alpha_min
        self.alpha_decay = 1 - alpha_min ** (1 / cooling_steps)
        self.alpha = 1.0

        self._bodies: Dict[str, _Body] = {}
        self._links: List[Tuple[str, str]] = []

    @property
    def center(self) -> Tuple[float, float]:
        return self.width / 2, self.height / 2

    def set_graph(
        self,
        node_ids: Iterable[str],
        links: Iterable[Tuple[str, str]],
        hints: Optional[Dict[str, Tuple[float, float]]] = None,
    ) -> None:
        """
        Replace the simulated graph.

        Nodes already simulated keep their state; new nodes start at their
        position hint when one is given, otherwise on a spiral around the
        centre. Links to unknown ids are ignored.
        """
        hints = hints or {}
        bodies: Dict[str, _Body] = {}
        for index, node_id in enumerate(node_ids):
            body = self._bodies.get(node_id)
            if body is None:
                hint = hints.get(node_id)
                x, y = hint if hint is not None else self._seed_position(index)
                body = _Body(x=x, y=y)
            bodies[node_id] = body
        self._bodies = bodies
        self._links = [(s, t) for s, t in links if s in bodies and t in bodies and s != t]
        self.reheat()

    def _seed_position(self, index: int) -> Tuple[float, float]:
        cx, cy = self.center
        radius = 10 * math.sqrt(0.5 + index)
        angle = index * _GOLDEN_ANGLE
        return cx + radius * math.cos(angle), cy + radius * math.sin(angle)

    def reheat(self, alpha: float = 1.0) -> None:
        self.alpha = alpha

    def pin(self, node_id: str, x: Optional[float] = None, y: Optional[float] = None) -> None:
        """Fix a node in place (at x/y when given, else where it is)."""
        body = self._bodies.get(node_id)
        if body is None:
            return
        body.fx = body.x if x is None else x
        body.fy = body.y if y is None else y
        body.x, body.y = body.fx, body.fy
        body.vx = body.vy = 0.0

    def unpin(self, node_id: str) -> None:
        body = self._bodies.get(node_id)
        if body is not None:
            body.fx = body.fy = None

    def is_pinned(self, node_id: str) -> bool:
        body = self._bodies.get(node_id)
        return body is not None and body.pinned

    def step(self) -> None:
        """Advance the simulation by one tick."""
        if not self._bodies:
            return
        self.alpha += (0.0 - self.alpha) * self.alpha_decay
        self._apply_links()
        self._apply_charge()

        for body in self._bodies.values():
            if body.pinned:
                body.x, body.y = body.fx, body.fy
                body.vx = body.vy = 0.0
                continue
            body.vx *= 1 - self.velocity_decay
            body.vy *= 1 - self.velocity_decay
            body.x += body.vx
            body.y += body.vy

        self._apply_center()
        self._apply_bounds()

    def run(self, iterations: int = 300) -> Dict[str, Tuple[float, float]]:
        for _ in range(iterations):
            self.step()
        return self.positions()

    def positions(self) -> Dict[str, Tuple[float, float]]:
        return {node_id: (body.x, body.y) for node_id, body in self._bodies.items()}

    # ------------------------------------------------------------------
    # Forces
    # ------------------------------------------------------------------

    def _apply_links(self) -> None:
        degree: Dict[str, int] = {}
        for s, t in self._links:
            degree[s] = degree.get(s, 0) + 1
            degree[t] = degree.get(t, 0) + 1

        for s, t in self._links:
            source = self._bodies[s]
            target = self._bodies[t]
            dx = (target.x + target.vx) - (source.x + source.vx)
            dy = (target.y + target.vy) - (source.y + source.vy)
            dist = math.sqrt(dx * dx + dy * dy) or 1e-6
            strength = 1 / min(degree[s], degree[t])
            pull = (dist - self.link_distance) / dist * self.alpha * strength
            dx *= pull
            dy *= pull
            # Lighter (less connected) endpoint moves more
            bias = degree[s] / (degree[s] + degree[t])
            target.vx -= dx * bias
            target.vy -= dy * bias
            source.vx += dx * (1 - bias)
            source.vy += dy * (1 - bias)

    def _apply_charge(self) -> None:
        bodies = list(self._bodies.values())
        n = len(bodies)
        for i in range(n):
            bi = bodies[i]
            for j in range(i + 1, n):
                bj = bodies[j]
                dx = bj.x - bi.x
                dy = bj.y - bi.y
                dist_sq = dx * dx + dy * dy
                if dist_sq < 1e-12:
                    # Coincident nodes: separate along a fixed diagonal
                    dx, dy = (j - i) * 1e-3, (j - i) * 1e-3
                    dist_sq = dx * dx + dy * dy
                dist_sq = max(dist_sq, 1.0)
                w = self.charge_strength * self.alpha / dist_sq
                bi.vx += dx * w
                bi.vy += dy * w
                bj.vx -= dx * w
                bj.vy -= dy * w

    def _apply_center(self) -> None:
        free = [b for b in self._bodies.values() if not b.pinned]
        if not free:
            return
        cx, cy = self.center
        mean_x = sum(b.x for b in free) / len(free)
        mean_y = sum(b.y for b in free) / len(free)
        shift_x, shift_y = cx - mean_x, cy - mean_y
        for body in free:
            body.x += shift_x
            body.y += shift_y

    def _apply_bounds(self) -> None:
        low_x, high_x = self.margin, max(self.margin, self.width - self.margin)
        low_y, high_y = self.margin, max(self.margin, self.height - self.margin)
        for body in self._bodies.values():
            if body.pinned:
                continue
            clamped_x = min(max(body.x, low_x), high_x)
            clamped_y = min(max(body.y, low_y), high_y)
            if clamped_x != body.x:
                body.x, body.vx = clamped_x, 0.0
            if clamped_y != body.y:
                body.y, body.vy = clamped_y, 0.0


__all__ = ["ForceLayout", "LINK_DISTANCE", "CHARGE_STRENGTH"]
