"""
Live peer-to-peer swarm graph drawn with matplotlib.

Peers are circles with a label, links are lines whose width follows the
transfer rate. A force-directed layout animates on a canvas timer.

Interaction:
- Hover a peer to highlight the peers it links to (children) and the
  peers linking to it (parents).
- Click a peer to focus it: unrelated peers and links fade out and the
  layout pulls the neighbourhood together. Click it again to release.
- Drag a peer to pin it under the pointer while the layout reacts.

Subscribers receive ``select`` callbacks with the focused peer id, or
``None`` when the focus is released.
"""
from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Tuple, Union

import numpy as np
import matplotlib.pyplot as plt
from matplotlib import cbook
from matplotlib.axes import Axes
from matplotlib.collections import LineCollection
from matplotlib.colors import to_rgba
from matplotlib.figure import Figure
from matplotlib.patches import Circle
from matplotlib.text import Text

from .errors import GraphError
from .layout import ForceLayout, LayoutParams
from .model import GraphModel, Link, NodeLike, PeerNode
from .style import GraphStyle, as_color, density_scale, node_color

logger = logging.getLogger(__name__)

Root = Union[Figure, Axes, str, None]


def _reraise(exc: Exception) -> None:
    # subscriber errors reach the caller of the triggering operation
    raise exc


class P2PGraph:
    pick_radius_px = 6  # minimum hit radius for tiny peers

    def __init__(self, root: Root = None, style: Optional[GraphStyle] = None,
                 layout_params: Optional[LayoutParams] = None, seed: Optional[int] = None) -> None:
        self.style = style or GraphStyle()
        self._model = GraphModel(self.style.links)
        self._destroyed = False
        self._fig, self._ax, self._owns_axes = self._mount(root)
        self._ax.set_axis_off()
        self._ax.set_facecolor(self.style.background)
        self._ax.set_aspect("equal", adjustable="box", anchor="N")

        # artists
        self._node_artists: Dict[str, Tuple[Circle, Text]] = {}
        self._link_collection = LineCollection([], zorder=1)
        self._ax.add_collection(self._link_collection)

        # interaction state
        self._scale = 1.0
        self._hovered: Optional[PeerNode] = None
        self._drag: Optional[PeerNode] = None
        self._dragged = False
        self._resize_pending = False
        self._callbacks = cbook.CallbackRegistry(exception_handler=_reraise, signals=["select"])

        self._layout: Optional[ForceLayout] = None
        self._resize()
        self._layout = ForceLayout((self._width, self._height), params=layout_params, seed=seed)
        self._layout.bind(self._model.nodes, self._model.links)

        canvas = self._fig.canvas
        self._timer = canvas.new_timer(interval=self.style.tick_interval_ms)
        self._timer.add_callback(self._on_timer)
        self._timer.start()
        self._resize_timer = canvas.new_timer(interval=self.style.resize_debounce_ms)
        self._resize_timer.single_shot = True
        self._resize_timer.add_callback(self._on_resize_settled)

        self._cids = [
            canvas.mpl_connect("button_press_event", self._on_press),
            canvas.mpl_connect("button_release_event", self._on_release),
            canvas.mpl_connect("motion_notify_event", self._on_motion),
            canvas.mpl_connect("resize_event", self._on_resize),
        ]

        logger.info("p2p graph mounted, surface %dx%d", self._width, self._height)
        self._update()

    @staticmethod
    def _mount(root: Root) -> Tuple[Figure, Axes, bool]:
        if isinstance(root, Axes):
            return root.figure, root, False
        if root is None:
            fig = plt.figure()
        elif isinstance(root, str):
            # a label works like a selector: reuse the figure or create it
            fig = plt.figure(num=root)
        elif isinstance(root, Figure):
            fig = root
        else:
            raise GraphError("P2PGraph: root must be a Figure, an Axes, a figure label or None")
        return fig, fig.add_axes([0.0, 0.0, 1.0, 1.0]), True

    # ---------------- Properties ---------------- #
    @property
    def model(self) -> GraphModel:
        return self._model

    @property
    def figure(self) -> Figure:
        return self._fig

    @property
    def axes(self) -> Axes:
        return self._ax

    @property
    def width(self) -> float:
        return self._width

    @property
    def height(self) -> float:
        return self._height

    @property
    def layout(self) -> ForceLayout:
        return self._layout

    @property
    def focused(self) -> Optional[str]:
        node = self._model.focused
        return node.id if node is not None else None

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    # ---------------- Events ---------------- #
    def on(self, event: str, callback: Callable) -> int:
        """Subscribe to ``select``. Returns an id for :meth:`off`."""
        try:
            return self._callbacks.connect(event, callback)
        except ValueError:
            raise GraphError(f"on: unknown event {event!r}") from None

    def off(self, cid: int) -> None:
        self._callbacks.disconnect(cid)

    def _emit_select(self, node_id: Optional[str]) -> None:
        logger.debug("select %s", node_id)
        self._callbacks.process("select", node_id)

    # ---------------- Public API ---------------- #
    def list(self) -> List[PeerNode]:
        self._check_alive("list")
        logger.debug("list")
        return self._model.nodes

    def add(self, node: NodeLike) -> None:
        self._check_alive("add")
        node = self._model.add(node)
        logger.debug("add %s %r", node.id, node)
        self._update()

    def remove(self, node_id: str) -> None:
        self._check_alive("remove")
        logger.debug("remove %s", node_id)
        node = self._model.get_node(node_id)
        if node is not None and node is self._model.focused:
            # subscribers still see the peer
            self._model.clear_focus()
            self._emit_select(None)
        self._model.remove(node_id)
        self._update()

    def connect(self, source_id: str, target_id: str) -> None:
        self._check_alive("connect")
        logger.debug("connect %s %s", source_id, target_id)
        self._model.connect(source_id, target_id)
        self._update()

    def disconnect(self, source_id: str, target_id: str) -> None:
        self._check_alive("disconnect")
        logger.debug("disconnect %s %s", source_id, target_id)
        self._model.disconnect(source_id, target_id)
        self._update()

    def rate(self, source_id: str, target_id: str, bytes_per_sec: float) -> None:
        self._check_alive("rate")
        logger.debug("rate update: %s<->%s at %s", source_id, target_id, bytes_per_sec)
        link = self._model.rate(source_id, target_id, bytes_per_sec)
        logger.debug("rate: %s", link.width)
        self._update()

    def seed(self, node_id: str, is_seeding: bool) -> None:
        self._check_alive("seed")
        logger.debug("%s isSeeding: %s", node_id, is_seeding)
        self._model.seed(node_id, is_seeding)
        self._update()

    def choke(self, source_id: str, target_id: str) -> None:
        # TODO: lower the link opacity once chokes are tracked per link
        logger.debug("choke %s %s", source_id, target_id)

    def unchoke(self, source_id: str, target_id: str) -> None:
        # TODO: restore the link opacity lowered by choke
        logger.debug("unchoke %s %s", source_id, target_id)

    def has_peer(self, *ids: str) -> bool:
        self._check_alive("has_peer")
        logger.debug("checking for peers: %s", ids)
        return self._model.has_peer(*ids)

    def has_link(self, source_id: str, target_id: str) -> bool:
        self._check_alive("has_link")
        return self._model.has_link(source_id, target_id)

    def are_connected(self, source_id: str, target_id: str) -> bool:
        self._check_alive("are_connected")
        return self._model.are_connected(source_id, target_id)

    def get_link(self, source_id: str, target_id: str) -> Optional[Link]:
        self._check_alive("get_link")
        return self._model.get_link(source_id, target_id)

    # names of the original browser API
    hasPeer = has_peer
    hasLink = has_link
    areConnected = are_connected
    getLink = get_link

    def destroy(self) -> None:
        if self._destroyed:
            return
        logger.info("destroy")
        self._timer.stop()
        self._resize_timer.stop()
        for cid in self._cids:
            self._fig.canvas.mpl_disconnect(cid)
        self._cids = []
        self._layout.stop()
        if self._owns_axes:
            self._ax.remove()
        else:
            for circle, text in self._node_artists.values():
                circle.remove()
                text.remove()
            self._link_collection.remove()
        self._node_artists.clear()
        self._hovered = self._drag = None
        self._destroyed = True
        self._fig.canvas.draw_idle()

    def show(self) -> None:
        plt.show()

    def _check_alive(self, op: str) -> None:
        if self._destroyed:
            raise GraphError(f"{op}: graph is destroyed")

    # ---------------- Canvas events ---------------- #
    def _on_press(self, event) -> None:
        if event.button != 1 or event.x is None:
            return
        node = self._node_at_display(event.x, event.y)
        if node is None:
            return
        self._drag = node
        self._dragged = False
        node.fixed = True

    def _on_motion(self, event) -> None:
        if event.x is None:
            return
        if self._drag is not None:
            x, y = self._ax.transData.inverted().transform((event.x, event.y))
            self._drag.x, self._drag.y = float(x), float(y)
            self._drag.vx = self._drag.vy = 0.0
            self._dragged = True
            self._layout.resume()
            self._paint()
            return
        node = self._node_at_display(event.x, event.y)
        if node is not self._hovered:
            self._hovered = node
            self._paint()

    def _on_release(self, event) -> None:
        if event.button != 1 or self._drag is None:
            return
        node = self._drag
        node.fixed = False
        self._drag = None
        if not self._dragged:
            self._toggle_focus(node)

    def _on_resize(self, event) -> None:
        # restart the quiet period; only the last resize in a burst applies
        self._resize_pending = True
        self._resize_timer.stop()
        self._resize_timer.start()

    def _on_resize_settled(self) -> None:
        if self._destroyed or not self._resize_pending:
            return
        self._resize_pending = False
        self._resize()
        self._paint()

    def _on_timer(self) -> None:
        if self._destroyed or not self._layout.running:
            return
        self._layout.tick()
        self._paint()

    # ---------------- Focus ---------------- #
    def _toggle_focus(self, node: PeerNode) -> None:
        model = self._model
        if model.focused is node:
            model.clear_focus()
            selected = None
        else:
            model.focus(node)
            selected = node.id
        self._apply_forces()
        self._layout.start()
        self._paint()
        self._emit_select(selected)

    def _apply_forces(self) -> None:
        s = self.style
        scale = self._scale
        focused = self._model.focused
        if focused is None:
            self._layout.configure(
                charge=s.charge * scale,
                link_distance=s.link_distance * scale,
                link_strength=s.link_strength,
            )
            return
        by_id = {node.id: node for node in self._model.nodes}

        def both_active(link: Link) -> bool:
            source = by_id.get(link.source)
            target = by_id.get(link.target)
            return bool(source and target and source.active and target.active)

        self._layout.configure(
            charge=lambda node: (s.focus_charge if node.active else s.unfocused_charge) * scale,
            link_distance=lambda link: (s.focus_distance if both_active(link) else s.unfocused_distance) * scale,
            link_strength=lambda link: (s.link_strength if focused.id in (link.source, link.target) else 0.0) * scale,
        )

    # ---------------- Reconcile / draw ---------------- #
    def _update(self) -> None:
        model = self._model
        model.refresh_adjacency()
        if model.focused is not None:
            model.focus(model.focused)
        if self._hovered is not None and self._hovered not in model.nodes:
            self._hovered = None
        if self._drag is not None and self._drag not in model.nodes:
            self._drag = None
        self._scale = density_scale(len(model.nodes))
        self._reconcile_nodes()
        self._apply_forces()
        self._layout.start()
        self._paint()

    def _reconcile_nodes(self) -> None:
        ns = self.style.nodes
        scale = self._scale
        current = {node.id for node in self._model.nodes}
        for stale in [node_id for node_id in self._node_artists if node_id not in current]:
            circle, text = self._node_artists.pop(stale)
            circle.remove()
            text.remove()
        for node in self._model.nodes:
            artists = self._node_artists.get(node.id)
            if artists is None:
                circle = Circle((0.0, 0.0), ns.radius, zorder=3)
                self._ax.add_patch(circle)
                text = self._ax.text(0.0, 0.0, "", ha="center", va="baseline",
                                     color=as_color(ns.text_color), zorder=4)
                artists = (circle, text)
                self._node_artists[node.id] = artists
            circle, text = artists
            circle.set_radius(self._radius(node))
            text.set_text(node.label)
            text.set_fontsize((ns.me_font_size if node.me else ns.font_size) * scale)

    def _radius(self, node: PeerNode) -> float:
        ns = self.style.nodes
        return (ns.me_radius if node.me else ns.radius) * self._scale

    def _node_appearance(self, node: PeerNode) -> Tuple[str, str, float, float]:
        """Fill, outline, outline width and opacity of a peer."""
        ns = self.style.nodes
        own = node_color(node, ns)
        fill, edge, lw = own, "none", 0.0
        hovered = self._hovered
        if hovered is not None:
            if node is hovered:
                fill = as_color(ns.hover)
            elif node.id in hovered.children:
                fill, edge, lw = as_color(ns.hover), own, 2.0
            elif node.id in hovered.parents:
                fill, edge, lw = as_color(ns.dep), own, 2.0
        alpha = 1.0
        if self._model.focused is not None and not node.active:
            alpha = ns.dim_opacity
        return fill, edge, lw, alpha

    def _link_opacity(self, link: Link, by_id: Dict[str, PeerNode]) -> float:
        ls = self.style.links
        if self._model.focused is None:
            return ls.opacity
        source = by_id.get(link.source)
        target = by_id.get(link.target)
        if source is not None and target is not None and source.active and target.active:
            return ls.focus_opacity
        return ls.dim_opacity

    def _paint(self) -> None:
        if self._destroyed:
            return
        ns = self.style.nodes
        by_id = {node.id: node for node in self._model.nodes}
        for node in self._model.nodes:
            if node.x is None:
                continue
            circle, text = self._node_artists[node.id]
            fill, edge, lw, alpha = self._node_appearance(node)
            circle.center = (node.x, node.y)
            circle.set_facecolor(fill)
            circle.set_edgecolor(edge)
            circle.set_linewidth(lw)
            circle.set_alpha(alpha)
            offset = (ns.me_label_offset if node.me else ns.label_offset) * self._scale
            text.set_position((node.x, node.y - offset))
            text.set_alpha(alpha)

        segments, widths, colors = [], [], []
        for link in self._model.links:
            source = by_id.get(link.source)
            target = by_id.get(link.target)
            if source is None or target is None or source.x is None or target.x is None:
                continue
            segments.append([(source.x, source.y), (target.x, target.y)])
            widths.append(max(link.width, self.style.links.width))
            colors.append(to_rgba(self.style.links.color, self._link_opacity(link, by_id)))
        self._link_collection.set_segments(segments)
        self._link_collection.set_linewidths(widths or [self.style.links.width])
        self._link_collection.set_colors(colors or [to_rgba(self.style.links.color)])
        self._fig.canvas.draw_idle()

    def _resize(self) -> None:
        self._width = max(1.0, float(self._fig.bbox.width))
        viewport_width = self._fig.canvas.get_width_height()[0]
        self._height = self.style.height_for(viewport_width)
        self._ax.set_xlim(0.0, self._width)
        self._ax.set_ylim(self._height, 0.0)  # y grows downward like a page
        if self._layout is not None:
            self._layout.size = (self._width, self._height)
            self._layout.resume()
        logger.debug("resize %dx%d", self._width, self._height)

    def _node_at_display(self, x_pix: float, y_pix: float) -> Optional[PeerNode]:
        nodes = [node for node in self._model.nodes if node.x is not None]
        if not nodes:
            return None
        xy = np.array([[node.x, node.y] for node in nodes], dtype=float)
        xy_disp = self._ax.transData.transform(xy)
        d2 = (xy_disp[:, 0] - x_pix) ** 2 + (xy_disp[:, 1] - y_pix) ** 2
        # data units -> display pixels along x
        unit = abs(float(self._ax.transData.transform((1.0, 0.0))[0] - self._ax.transData.transform((0.0, 0.0))[0]))
        radii = np.array([self._radius(node) for node in nodes]) * unit
        radii = np.maximum(radii, self.pick_radius_px)
        idx = int(np.argmin(d2))
        if d2[idx] <= radii[idx] ** 2:
            return nodes[idx]
        return None
