"""
Visual configuration for the peer graph.

All sizes are in surface pixels. Colours are either matplotlib colour specs
or HSL triples ``(hue_degrees, saturation, lightness)``.
"""
from __future__ import annotations

import colorsys
from dataclasses import asdict, dataclass, field, fields
from typing import Dict, Tuple

from matplotlib.colors import to_hex

from .errors import GraphError

HSL = Tuple[float, float, float]


@dataclass
class LinkStyle:
    width: float = 0.7  # default link thickness
    max_width: float = 5.0
    max_bytes: float = 2097152  # link max thickness at 2 MiB/s
    color: str = "#C8C8C8"
    opacity: float = 0.5
    focus_opacity: float = 1.0
    dim_opacity: float = 0.02


@dataclass
class NodeStyle:
    radius: float = 10.0
    me_radius: float = 15.0
    font_size: float = 12.0
    me_font_size: float = 16.0
    label_offset: float = 15.0
    me_label_offset: float = 22.0
    me_color: HSL = (210.0, 0.7, 0.725)  # blue
    seeder_color: HSL = (120.0, 0.7, 0.725)  # green
    peer_color: HSL = (55.0, 0.7, 0.725)  # yellow
    hover: str = "#A9A9A9"
    dep: str = "#252929"
    dim_opacity: float = 0.2
    text_color: str = "#C8C8C8"


@dataclass
class GraphStyle:
    links: LinkStyle = field(default_factory=LinkStyle)
    nodes: NodeStyle = field(default_factory=NodeStyle)
    # forces, multiplied by the density scale
    charge: float = -200.0
    link_distance: float = 100.0
    link_strength: float = 1.0
    focus_charge: float = -100.0
    unfocused_charge: float = -5.0
    focus_distance: float = 100.0
    unfocused_distance: float = 60.0
    # surface
    tall_height: int = 400
    short_height: int = 250
    breakpoint: int = 900
    background: str = "white"
    # timers (ms)
    resize_debounce_ms: int = 500
    tick_interval_ms: int = 20

    def height_for(self, viewport_width: float) -> int:
        return self.tall_height if viewport_width >= self.breakpoint else self.short_height

    # ---- serialization ---- #
    def to_dict(self) -> Dict:
        return asdict(self)

    @staticmethod
    def from_dict(data: Dict) -> "GraphStyle":
        data = dict(data)
        links = _build(LinkStyle, data.pop("links", {}), "links")
        nodes = _build(NodeStyle, data.pop("nodes", {}), "nodes")
        style = _build(GraphStyle, data, "style")
        style.links = links
        style.nodes = nodes
        return style


def _build(cls, data: Dict, where: str):
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise GraphError(f"{where}: unknown style keys {', '.join(unknown)}")
    values = {}
    for key, value in data.items():
        # JSON has no tuples
        values[key] = tuple(value) if isinstance(value, list) else value
    return cls(**values)


def rate_to_width(bytes_per_sec: float, links: LinkStyle) -> float:
    """Map a byte rate onto ``[links.width, links.max_width]``, saturating at ``max_bytes``."""
    # compare before converting, huge ints do not fit in a float
    if bytes_per_sec >= links.max_bytes:
        clamped = float(links.max_bytes)
    else:
        clamped = max(float(bytes_per_sec), 0.0)
    return links.width + (links.max_width - links.width) * clamped / links.max_bytes


def density_scale(n_nodes: int) -> float:
    # shrink sizes and distances as the swarm grows, never below 20%
    if n_nodes < 10:
        return 1.0
    return max(0.2, 1.0 - (n_nodes - 10) / 100.0)


def hsl_to_hex(hsl: HSL) -> str:
    h, s, l = hsl
    return to_hex(colorsys.hls_to_rgb((h % 360.0) / 360.0, l, s))


def as_color(value) -> str:
    if isinstance(value, tuple) and len(value) == 3:
        return hsl_to_hex(value)
    return to_hex(value)


def node_color(node, nodes: NodeStyle) -> str:
    if node.me:
        return as_color(nodes.me_color)
    if node.seeder:
        return as_color(nodes.seeder_color)
    return as_color(nodes.peer_color)
