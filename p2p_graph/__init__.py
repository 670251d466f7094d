"""Animated peer-to-peer swarm graph for matplotlib."""
from .errors import GraphError
from .layout import ForceLayout, LayoutParams
from .model import GraphModel, Link, PeerNode
from .style import GraphStyle, LinkStyle, NodeStyle, density_scale, rate_to_width
from .widget import P2PGraph

__all__ = [
    "ForceLayout",
    "GraphError",
    "GraphModel",
    "GraphStyle",
    "LayoutParams",
    "Link",
    "LinkStyle",
    "NodeStyle",
    "P2PGraph",
    "PeerNode",
    "density_scale",
    "rate_to_width",
]

__version__ = "0.1.0"
