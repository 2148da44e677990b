# tests/test_travel_graph.py
import itertools
import math

import pytest

from potionroute.cauldrons.types import Edge
from potionroute.network.travel_graph import TravelGraph


@pytest.fixture
def graph():
    return TravelGraph.from_edges(
        [
            Edge("M", "A", 10),
            Edge("M", "A", 12),   # slower parallel edge
            Edge("M", "B", 20),
            Edge("A", "B", 5),
            Edge("C", "D", 1),    # separate component
            Edge("A", "A", 3),    # self-loop
        ]
    )


def test_shortest_path_goes_through_intermediate_node(graph):
    res = graph.shortest_path("M", "B")
    assert res.reachable
    assert res.distance == 15
    assert res.path == ["M", "A", "B"]


def test_parallel_edges_keep_the_faster_one(graph):
    assert graph.neighbors("M")["A"] == 10


def test_self_loops_are_ignored(graph):
    assert "A" not in graph.neighbors("A")
    assert graph.edge_count == 4


def test_travel_time_is_symmetric(graph):
    for a, b in itertools.permutations(["M", "A", "B"], 2):
        assert graph.travel_time(a, b) == graph.travel_time(b, a)


def test_triangle_inequality(graph):
    nodes = ["M", "A", "B"]
    for x, y, z in itertools.product(nodes, repeat=3):
        assert graph.travel_time(x, z) <= graph.travel_time(x, y) + graph.travel_time(y, z)


def test_same_node_is_zero_even_when_unknown(graph):
    res = graph.shortest_path("Z", "Z")
    assert res.distance == 0
    assert res.path == ["Z"]


def test_unreachable_pair(graph):
    res = graph.shortest_path("M", "C")
    assert not res.reachable
    assert math.isinf(res.distance)
    assert res.path is None
    assert "C" not in graph.reachable_from("M")


def test_distances_from_unknown_node():
    g = TravelGraph.from_edges([Edge("M", "A", 1)])
    assert g.distances_from("Q") == {"Q": 0.0}


def test_distances_from_market(graph):
    assert graph.distances_from("M") == {"M": 0.0, "A": 10.0, "B": 15.0}


@pytest.mark.parametrize("bad", [-1, float("nan"), "abc", None])
def test_invalid_weights_are_rejected(bad):
    with pytest.raises(ValueError):
        TravelGraph.from_edges([Edge("M", "A", bad)])


def test_zero_weight_edges_are_allowed():
    g = TravelGraph.from_edges([Edge("M", "A", 0)])
    assert g.travel_time("M", "A") == 0


def test_parallel_edge_order_does_not_matter():
    g = TravelGraph.from_edges([Edge("M", "A", 12), Edge("A", "M", 10), Edge("M", "A", 11)])
    assert g.edge_count == 1
    assert g.travel_time("M", "A") == 10
    assert g.shortest_path("A", "M").path == ["A", "M"]
