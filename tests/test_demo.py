"""Tests for the scripted demo."""

from p2p_graph.demo import build_script, play


def test_script_runs_to_completion(graph):
    steps = build_script(graph)
    assert len(steps) == 14
    assert [label for _, label, _ in steps][:3] == ["add peers", "connect", "rate 150 KB/s"]
    for _, _, action in steps:
        action()
    assert [n.id for n in graph.list()] == ["You", "Thing2"]
    assert not graph.model.get_node("Thing2").seeder
    assert graph.model.links == []


def test_rate_ramp_saturates(graph):
    widths = []
    for _, label, action in build_script(graph):
        action()
        if label.startswith("rate"):
            widths.append(graph.get_link("You", "Thing1").width)
    assert widths[2] == widths[3] == 5.0
    assert widths[0] < widths[1] < widths[2]


def test_play_schedules_first_step(graph):
    # timers never fire on the Agg canvas
    play(graph, build_script(graph))
    assert graph.list() == []
