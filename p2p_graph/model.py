"""
In-memory model of a peer swarm: peers, directed rated links, and focus.

The model holds no rendering state besides the layout coordinates the
simulation writes onto each node. Every operation validates all of its
inputs before touching the collections, so a failed call leaves the model
exactly as it was.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from numbers import Real
from typing import Dict, List, Mapping, Optional, Union

from .errors import GraphError
from .style import LinkStyle, rate_to_width

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class PeerNode:
    id: str
    me: bool = False
    name: str = ""
    seeder: bool = False
    active: bool = False  # set while another node is focused
    children: List[str] = field(default_factory=list)
    parents: List[str] = field(default_factory=list)
    # layout state, owned by ForceLayout
    x: Optional[float] = None
    y: Optional[float] = None
    vx: float = 0.0
    vy: float = 0.0
    fixed: bool = False

    @property
    def label(self) -> str:
        return self.name or self.id

    @staticmethod
    def from_dict(data: Mapping) -> "PeerNode":
        if "id" not in data:
            raise GraphError("add: node needs an id")
        return PeerNode(
            id=data["id"],
            me=bool(data.get("me", False)),
            name=data.get("name", "") or "",
            seeder=bool(data.get("seeder", False)),
        )


@dataclass(eq=False)
class Link:
    source: str
    target: str
    rate: Optional[float] = None  # last reported bytes/sec
    width: float = LinkStyle.width


NodeLike = Union[PeerNode, Mapping]


class GraphModel:
    def __init__(self, link_style: Optional[LinkStyle] = None) -> None:
        self.link_style = link_style or LinkStyle()
        self.nodes: List[PeerNode] = []
        self.links: List[Link] = []
        self.focused: Optional[PeerNode] = None

    # ---- lookups (linear scans, the swarm is small) ---- #
    def get_node(self, node_id: str) -> Optional[PeerNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def node_index(self, node_id: str) -> int:
        for i, node in enumerate(self.nodes):
            if node.id == node_id:
                return i
        return -1

    def link_index(self, source_id: str, target_id: str) -> int:
        for i, link in enumerate(self.links):
            if link.source == source_id and link.target == target_id:
                return i
        return -1

    def _require_pair(self, op: str, source_id: str, target_id: str) -> None:
        if self.get_node(source_id) is None:
            raise GraphError(f"{op}: invalid source id")
        if self.get_node(target_id) is None:
            raise GraphError(f"{op}: invalid target id")

    # ---- mutations ---- #
    def add(self, node: NodeLike) -> PeerNode:
        if not isinstance(node, PeerNode):
            node = PeerNode.from_dict(node)
        if self.get_node(node.id) is not None:
            raise GraphError("add: cannot add duplicate node")
        self.nodes.append(node)
        return node

    def remove(self, node_id: str) -> bool:
        """Remove a peer and its links. Returns True if it was the focused peer."""
        index = self.node_index(node_id)
        if index == -1:
            raise GraphError("remove: node does not exist")
        was_focused = self.focused is not None and self.focused.id == node_id
        if was_focused:
            self.clear_focus()
        del self.nodes[index]
        self.links[:] = [l for l in self.links if l.source != node_id and l.target != node_id]
        return was_focused

    def connect(self, source_id: str, target_id: str) -> Link:
        self._require_pair("connect", source_id, target_id)
        if self.link_index(source_id, target_id) != -1:
            raise GraphError("connect: cannot make duplicate connection")
        link = Link(source_id, target_id, width=self.link_style.width)
        self.links.append(link)
        return link

    def disconnect(self, source_id: str, target_id: str) -> None:
        self._require_pair("disconnect", source_id, target_id)
        index = self.link_index(source_id, target_id)
        if index == -1:
            raise GraphError("disconnect: connection does not exist")
        del self.links[index]

    def rate(self, source_id: str, target_id: str, bytes_per_sec: float) -> Link:
        if (isinstance(bytes_per_sec, bool) or not isinstance(bytes_per_sec, Real)
                or bytes_per_sec != bytes_per_sec or bytes_per_sec < 0):
            raise GraphError("rate: 3rd param must be a non-negative number")
        self._require_pair("rate", source_id, target_id)
        index = self.link_index(source_id, target_id)
        if index == -1:
            raise GraphError("rate: connection does not exist")
        link = self.links[index]
        try:
            link.rate = float(bytes_per_sec)
        except OverflowError:
            link.rate = math.inf
        link.width = rate_to_width(bytes_per_sec, self.link_style)
        return link

    def seed(self, node_id: str, is_seeding: bool) -> None:
        if not isinstance(is_seeding, bool):
            raise GraphError("seed: 2nd param must be a boolean")
        node = self.get_node(node_id)
        if node is None:
            raise GraphError("seed: node does not exist")
        node.seeder = is_seeding

    # ---- queries ---- #
    def has_peer(self, *ids: str) -> bool:
        return all(self.get_node(node_id) is not None for node_id in ids)

    def get_link(self, source_id: str, target_id: str) -> Optional[Link]:
        self._require_pair("get_link", source_id, target_id)
        index = self.link_index(source_id, target_id)
        return self.links[index] if index != -1 else None

    def has_link(self, source_id: str, target_id: str) -> bool:
        self._require_pair("has_link", source_id, target_id)
        return self.link_index(source_id, target_id) != -1

    def are_connected(self, source_id: str, target_id: str) -> bool:
        self._require_pair("are_connected", source_id, target_id)
        return (self.link_index(source_id, target_id) != -1
                or self.link_index(target_id, source_id) != -1)

    # ---- adjacency / focus ---- #
    def refresh_adjacency(self) -> None:
        by_id: Dict[str, PeerNode] = {node.id: node for node in self.nodes}
        for node in self.nodes:
            node.children = []
            node.parents = []
        for link in self.links:
            source = by_id.get(link.source)
            target = by_id.get(link.target)
            if source is None or target is None:
                logger.warning("dangling link %s -> %s", link.source, link.target)
                continue
            source.children.append(link.target)
            target.parents.append(link.source)

    @staticmethod
    def connected(d: PeerNode, o: PeerNode) -> bool:
        return (o.id == d.id
                or o.id in d.children
                or d.id in o.children
                or d.id in o.parents
                or o.id in d.parents)

    def focus(self, node: PeerNode) -> None:
        self.focused = node
        for other in self.nodes:
            other.active = self.connected(node, other)

    def clear_focus(self) -> None:
        self.focused = None
        for node in self.nodes:
            node.active = False
