"""
Force-directed layout for the peer graph.

A small velocity-Verlet simulation in the style of classic d3 force layouts:

- link springs pull each pair of endpoints toward a target distance,
- every pair of peers repels with ``charge / r^2``,
- weak gravity keeps the swarm centred on the surface,
- friction damps the motion and a cooling parameter ``alpha`` decays every
  tick until the layout settles and stops.

Charges, distances and strengths are evaluated once per ``start()`` so the
widget can make them depend on focus and swarm size. ``resume()`` reheats
without re-evaluating anything, so positions carry over (used on resize).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
from scipy.spatial.distance import pdist, squareform

from .model import Link, PeerNode

logger = logging.getLogger(__name__)

NodeParam = Union[float, Callable[[PeerNode], float]]
LinkParam = Union[float, Callable[[Link], float]]


@dataclass
class LayoutParams:
    friction: float = 0.9
    gravity: float = 0.1
    alpha_start: float = 0.1
    alpha_decay: float = 0.99
    alpha_min: float = 0.005
    max_speed: float = 40.0  # px per tick
    jitter: float = 10.0  # spread of peers placed next to a neighbour
    eps: float = 1e-6


class ForceLayout:
    def __init__(self, size: Tuple[float, float], params: Optional[LayoutParams] = None,
                 seed: Optional[int] = None) -> None:
        self.size = size
        self.params = params or LayoutParams()
        self.rng = np.random.default_rng(seed)
        self.nodes: List[PeerNode] = []
        self.links: List[Link] = []
        self.alpha: float = 0.0
        self._charge: NodeParam = -200.0
        self._link_distance: LinkParam = 100.0
        self._link_strength: LinkParam = 1.0
        self._charges: Dict[PeerNode, float] = {}
        self._springs: Dict[Link, Tuple[float, float]] = {}

    def bind(self, nodes: List[PeerNode], links: List[Link]) -> None:
        # live lists: the model mutates them in place or replaces them
        self.nodes = nodes
        self.links = links

    def configure(self, charge: Optional[NodeParam] = None,
                  link_distance: Optional[LinkParam] = None,
                  link_strength: Optional[LinkParam] = None) -> None:
        if charge is not None:
            self._charge = charge
        if link_distance is not None:
            self._link_distance = link_distance
        if link_strength is not None:
            self._link_strength = link_strength

    @property
    def running(self) -> bool:
        return self.alpha > 0.0

    # ---- lifecycle ---- #
    def start(self) -> None:
        self._charges = {node: _evaluate(self._charge, node) for node in self.nodes}
        self._springs = {
            link: (_evaluate(self._link_distance, link), _evaluate(self._link_strength, link))
            for link in self.links
        }
        self._place_missing()
        self.alpha = self.params.alpha_start

    def resume(self) -> None:
        self._place_missing()
        self.alpha = max(self.alpha, self.params.alpha_start)

    def stop(self) -> None:
        self.alpha = 0.0

    def settle(self, max_ticks: int = 1000) -> int:
        """Tick until the layout cools down. Returns the number of ticks run."""
        ticks = 0
        while ticks < max_ticks and self.tick():
            ticks += 1
        return ticks

    # ---- placement ---- #
    def _place_missing(self) -> None:
        w, h = self.size
        placed = {node.id: node for node in self.nodes if node.x is not None}
        for node in self.nodes:
            if node.x is not None and node.y is not None:
                continue
            anchor = self._placed_neighbour(node, placed)
            if anchor is not None:
                dx, dy = self.params.jitter * self.rng.standard_normal(2)
                node.x, node.y = anchor.x + dx, anchor.y + dy
            else:
                node.x = float(self.rng.uniform(0.0, w))
                node.y = float(self.rng.uniform(0.0, h))
            node.vx = node.vy = 0.0
            placed[node.id] = node

    def _placed_neighbour(self, node: PeerNode, placed: Dict[str, PeerNode]) -> Optional[PeerNode]:
        for link in self.links:
            if link.source == node.id and link.target in placed:
                return placed[link.target]
            if link.target == node.id and link.source in placed:
                return placed[link.source]
        return None

    # ---- simulation ---- #
    def tick(self) -> bool:
        if self.alpha <= 0.0:
            return False
        params = self.params
        nodes = self.nodes
        n = len(nodes)
        if n:
            self._place_missing()
            self._step(nodes, n)

        self.alpha *= params.alpha_decay
        if self.alpha < params.alpha_min:
            self.alpha = 0.0
            logger.debug("layout settled")
            return False
        return True

    def _step(self, nodes: Sequence[PeerNode], n: int) -> None:
        params = self.params
        alpha = self.alpha
        eps = params.eps
        w, h = self.size

        X = np.array([[node.x, node.y] for node in nodes], dtype=float)
        V = np.array([[node.vx, node.vy] for node in nodes], dtype=float)
        fixed = np.array([node.fixed for node in nodes], dtype=bool)
        X_start = X.copy()
        index = {node.id: i for i, node in enumerate(nodes)}

        # link springs, split between endpoints by degree
        springs = [
            (index[link.source], index[link.target]) + (self._springs.get(link) or self._spring_for(link))
            for link in self.links
            if link.source in index and link.target in index
        ]
        if springs:
            arr = np.array(springs, dtype=float)
            src = arr[:, 0].astype(int)
            tgt = arr[:, 1].astype(int)
            distance = arr[:, 2]
            strength = arr[:, 3]
            deg = np.zeros(n, dtype=float)
            np.add.at(deg, src, 1.0)
            np.add.at(deg, tgt, 1.0)
            Dij = X[tgt] - X[src]
            length = np.linalg.norm(Dij, axis=1) + eps
            mag = alpha * strength * (length - distance) / length
            shift = (Dij.T * mag).T
            k = deg[src] / (deg[src] + deg[tgt])
            np.add.at(X, tgt, -(shift.T * k).T)
            np.add.at(X, src, (shift.T * (1.0 - k)).T)

        # gravity toward the centre of the surface
        if params.gravity > 0.0:
            center = np.array([w / 2.0, h / 2.0])
            X += (center - X) * (alpha * params.gravity)

        # velocity picks up this tick's displacement, then charge
        V += X - X_start
        if n > 1:
            charges = np.array([
                self._charges[node] if node in self._charges else _evaluate(self._charge, node)
                for node in nodes
            ])
            D = X[:, None, :] - X[None, :, :]
            dist2 = squareform(pdist(X, "sqeuclidean")) + eps
            np.fill_diagonal(dist2, np.inf)
            k_rep = -charges[None, :] * alpha / dist2
            V += np.sum(D * k_rep[:, :, None], axis=1)

        V *= params.friction
        speed = np.linalg.norm(V, axis=1, keepdims=True) + 1e-12
        V = V * np.minimum(1.0, params.max_speed / speed)
        X = X + V

        # dragged peers stay under the pointer
        if np.any(fixed):
            X[fixed] = X_start[fixed]
            V[fixed] = 0.0

        for i, node in enumerate(nodes):
            node.x, node.y = float(X[i, 0]), float(X[i, 1])
            node.vx, node.vy = float(V[i, 0]), float(V[i, 1])

    def _spring_for(self, link: Link) -> Tuple[float, float]:
        return _evaluate(self._link_distance, link), _evaluate(self._link_strength, link)


def _evaluate(value, item) -> float:
    return float(value(item)) if callable(value) else float(value)
