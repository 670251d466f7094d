"""Tests for the in-memory swarm model."""

import math

import pytest

from p2p_graph import GraphError, GraphModel, LinkStyle, PeerNode


def _peers(model, *ids):
    for node_id in ids:
        model.add({"id": node_id, "name": node_id})


def test_add_counts_unique_peers(model):
    _peers(model, "a", "b", "c")
    assert [n.id for n in model.nodes] == ["a", "b", "c"]


def test_add_duplicate_fails_and_keeps_list(model):
    _peers(model, "a", "b")
    with pytest.raises(GraphError, match="add: cannot add duplicate node"):
        model.add({"id": "a"})
    assert len(model.nodes) == 2


def test_add_accepts_peer_node_and_mapping(model):
    node = model.add(PeerNode("You", me=True, name="You"))
    other = model.add({"id": "x", "seeder": True})
    assert node.me and node.label == "You"
    assert other.seeder and other.label == "x"


def test_add_mapping_without_id(model):
    with pytest.raises(GraphError, match="needs an id"):
        model.add({"name": "anonymous"})
    assert model.nodes == []


def test_connect_then_has_link(model):
    _peers(model, "a", "b")
    model.connect("a", "b")
    assert model.has_link("a", "b")
    assert not model.has_link("b", "a")
    assert model.are_connected("a", "b")
    assert model.are_connected("b", "a")


def test_connect_rejects_unknown_ids(model):
    _peers(model, "a")
    with pytest.raises(GraphError, match="connect: invalid source id"):
        model.connect("zz", "a")
    with pytest.raises(GraphError, match="connect: invalid target id"):
        model.connect("a", "zz")
    assert model.links == []


def test_connect_rejects_duplicate(model):
    _peers(model, "a", "b")
    model.connect("a", "b")
    with pytest.raises(GraphError, match="duplicate connection"):
        model.connect("a", "b")
    # the reverse direction is a different link
    model.connect("b", "a")
    assert len(model.links) == 2


def test_disconnect(model):
    _peers(model, "a", "b")
    model.connect("a", "b")
    model.disconnect("a", "b")
    assert not model.has_link("a", "b")


def test_disconnect_missing_link_keeps_links(model):
    _peers(model, "a", "b", "c")
    model.connect("a", "b")
    with pytest.raises(GraphError, match="disconnect: connection does not exist"):
        model.disconnect("b", "a")
    with pytest.raises(GraphError, match="disconnect: invalid target id"):
        model.disconnect("a", "nope")
    assert len(model.links) == 1


def test_rate_stores_scaled_width(model):
    _peers(model, "a", "b")
    model.connect("a", "b")
    link = model.rate("a", "b", 150000)
    assert link.rate == 150000
    assert 0.7 < link.width < 5.0


def test_rate_saturates(model):
    _peers(model, "a", "b")
    model.connect("a", "b")
    at_threshold = model.rate("a", "b", 2097152).width
    above = model.rate("a", "b", 5000000).width
    assert above == at_threshold == 5.0
    huge = model.rate("a", "b", 10 ** 400)
    assert huge.width == 5.0
    assert huge.rate == math.inf


@pytest.mark.parametrize("bad", [-1, -0.5, "fast", None, True, math.nan])
def test_rate_rejects_invalid_values(model, bad):
    _peers(model, "a", "b")
    model.connect("a", "b")
    with pytest.raises(GraphError, match="rate: 3rd param"):
        model.rate("a", "b", bad)
    assert model.links[0].rate is None
    assert model.links[0].width == 0.7


def test_rate_negative_fails_for_every_pair(model):
    _peers(model, "a", "b", "c")
    for a in ("a", "b", "c"):
        for b in ("a", "b", "c"):
            with pytest.raises(GraphError):
                model.rate(a, b, -1)


def test_rate_requires_link(model):
    _peers(model, "a", "b")
    with pytest.raises(GraphError, match="rate: connection does not exist"):
        model.rate("a", "b", 10)
    with pytest.raises(GraphError, match="rate: invalid source id"):
        model.rate("x", "b", 10)


def test_rate_uses_configured_style():
    model = GraphModel(LinkStyle(width=1.0, max_width=3.0, max_bytes=1000))
    _peers(model, "a", "b")
    model.connect("a", "b")
    assert model.rate("a", "b", 500).width == pytest.approx(2.0)


def test_seed(model):
    _peers(model, "a")
    model.seed("a", True)
    assert model.get_node("a").seeder
    model.seed("a", False)
    assert not model.get_node("a").seeder


def test_seed_validation(model):
    _peers(model, "a")
    with pytest.raises(GraphError, match="seed: 2nd param must be a boolean"):
        model.seed("a", 1)
    with pytest.raises(GraphError, match="seed: node does not exist"):
        model.seed("b", True)
    assert not model.get_node("a").seeder


def test_has_peer(model):
    _peers(model, "a", "b")
    assert model.has_peer("a")
    assert model.has_peer("a", "b")
    assert not model.has_peer("a", "c")
    assert model.has_peer()


def test_query_unknown_ids(model):
    _peers(model, "a")
    with pytest.raises(GraphError, match="has_link: invalid target id"):
        model.has_link("a", "b")
    with pytest.raises(GraphError, match="are_connected: invalid source id"):
        model.are_connected("b", "a")


def test_remove_drops_links(model):
    _peers(model, "a", "b", "c")
    model.connect("a", "b")
    model.connect("b", "c")
    model.connect("c", "a")
    assert model.remove("b") is False
    assert not model.has_peer("b")
    assert [(l.source, l.target) for l in model.links] == [("c", "a")]


def test_remove_unknown(model):
    with pytest.raises(GraphError, match="remove: node does not exist"):
        model.remove("ghost")


def test_links_survive_removal_of_earlier_peer(model):
    _peers(model, "a", "b", "c")
    model.connect("b", "c")
    model.remove("a")
    assert model.has_link("b", "c")
    model.disconnect("b", "c")
    model.connect("c", "b")
    assert model.has_link("c", "b")
    assert not model.has_link("b", "c")


def test_remove_focused_clears_focus(model):
    _peers(model, "a", "b")
    model.focus(model.get_node("a"))
    assert model.remove("a") is True
    assert model.focused is None
    assert not model.get_node("b").active


def test_adjacency_and_connected(model):
    _peers(model, "a", "b", "c", "d")
    model.connect("a", "b")
    model.connect("c", "a")
    model.refresh_adjacency()
    a, b, c, d = model.nodes
    assert a.children == ["b"]
    assert a.parents == ["c"]
    assert b.parents == ["a"]
    assert GraphModel.connected(a, a)
    assert GraphModel.connected(a, b)
    assert GraphModel.connected(b, a)
    assert GraphModel.connected(a, c)
    assert not GraphModel.connected(b, c)
    assert not GraphModel.connected(a, d)


def test_focus_marks_neighbourhood_active(model):
    _peers(model, "a", "b", "c")
    model.connect("a", "b")
    model.refresh_adjacency()
    model.focus(model.get_node("b"))
    assert [n.active for n in model.nodes] == [True, True, False]
    model.clear_focus()
    assert not any(n.active for n in model.nodes)
