"""
Scripted demo: a local peer talks to two others while the transfer rate
ramps up and down, then one peer leaves and the other starts seeding.

Run with ``python -m p2p_graph.demo``.
"""
from __future__ import annotations

import logging
from functools import partial
from typing import Callable, List, Tuple

from .widget import P2PGraph

logger = logging.getLogger(__name__)

Step = Tuple[int, str, Callable[[], None]]


def _add_peers(graph: P2PGraph) -> None:
    graph.add({"id": "You", "me": True, "name": "You"})
    graph.add({"id": "Thing1", "me": False, "name": "192.168.1.20"})
    graph.add({"id": "Thing2", "me": False, "name": "192.168.1.44"})


def build_script(graph: P2PGraph) -> List[Step]:
    """(delay before the step in ms, label, action) for every demo step."""
    steps: List[Step] = [(0, "add peers", partial(_add_peers, graph))]
    steps.append((2000, "connect", partial(graph.connect, "You", "Thing1")))
    for kbps in (150, 500, 2500, 5000, 2500, 1000):
        steps.append((1000, f"rate {kbps} KB/s", partial(graph.rate, "You", "Thing1", kbps * 1000)))
    steps += [
        (2000, "choke", partial(graph.choke, "You", "Thing1")),
        (2000, "unchoke", partial(graph.unchoke, "You", "Thing1")),
        (2000, "disconnect", partial(graph.disconnect, "You", "Thing1")),
        (2000, "remove Thing1", partial(graph.remove, "Thing1")),
        (2000, "Thing2 seeding", partial(graph.seed, "Thing2", True)),
        (2000, "Thing2 leeching", partial(graph.seed, "Thing2", False)),
    ]
    return steps


def play(graph: P2PGraph, steps: List[Step]) -> None:
    """Run the steps one after another on single-shot canvas timers."""
    remaining = list(steps)
    timers = []  # keep references alive until they fire

    def next_step() -> None:
        if not remaining:
            logger.info("demo finished")
            return
        delay, label, action = remaining.pop(0)
        timer = graph.figure.canvas.new_timer(interval=max(1, delay))
        timer.single_shot = True

        def fire() -> None:
            if graph.destroyed:
                return
            logger.debug("step: %s", label)
            action()
            next_step()

        timer.add_callback(fire)
        timer.start()
        timers.append(timer)

    next_step()


def main() -> None:
    logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    logging.getLogger("matplotlib").setLevel(logging.WARNING)
    logger.info("start p2p graph demo")
    graph = P2PGraph("p2p-graph demo")
    graph.on("select", lambda node_id: logger.info("selected: %s", node_id))
    play(graph, build_script(graph))
    graph.show()


if __name__ == "__main__":
    main()
