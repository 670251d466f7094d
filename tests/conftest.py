import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import pytest  # noqa: E402

from p2p_graph import GraphModel, P2PGraph  # noqa: E402


@pytest.fixture(autouse=True)
def _close_figures():
    yield
    plt.close("all")


@pytest.fixture
def model():
    return GraphModel()


@pytest.fixture
def fig():
    """A 1000x500 px figure, wide enough for the tall surface tier."""
    return plt.figure(figsize=(10, 5), dpi=100)


@pytest.fixture
def graph(fig):
    g = P2PGraph(fig, seed=0)
    yield g
    g.destroy()


@pytest.fixture
def swarm(graph):
    """You (me) -> Thing1, plus an unconnected Thing2."""
    graph.add({"id": "You", "me": True, "name": "You"})
    graph.add({"id": "Thing1", "name": "192.168.1.20"})
    graph.add({"id": "Thing2", "name": "192.168.1.44"})
    graph.connect("You", "Thing1")
    return graph
