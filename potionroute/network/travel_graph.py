# potionroute/network/travel_graph.py
"""
Undirected travel-time graph over the market and cauldron nodes.

The networkx graph is built once per planning run and shared read-only by
every component that needs travel times. Single-source queries run
networkx's heap-based Dijkstra and are cached per source node.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Set, Tuple

import networkx as nx

from potionroute.cauldrons.types import Edge


@dataclass(frozen=True)
class PathResult:
    distance: float
    path: List[str] | None

    @property
    def reachable(self) -> bool:
        return self.path is not None and math.isfinite(self.distance)


UNREACHABLE = PathResult(distance=math.inf, path=None)


class TravelGraph:
    def __init__(self, graph: nx.Graph):
        self._g = graph
        # source -> (distances, paths)
        self._cache: Dict[str, Tuple[Dict[str, float], Dict[str, List[str]]]] = {}

    @classmethod
    def from_edges(cls, edges: Iterable[Edge]) -> "TravelGraph":
        g = nx.Graph()
        for e in edges:
            try:
                w = float(e.travel_time_minutes)
            except (TypeError, ValueError):
                raise ValueError(
                    f"edge {e.from_node}->{e.to_node} has non-numeric travel time "
                    f"{e.travel_time_minutes!r}"
                )
            if math.isnan(w) or w < 0:
                raise ValueError(f"edge {e.from_node}->{e.to_node} has invalid travel time {w}")

            a, b = str(e.from_node), str(e.to_node)
            g.add_node(a)
            g.add_node(b)
            if a == b:
                continue
            # parallel edges: keep the faster connection
            if not g.has_edge(a, b) or w < g[a][b]["weight"]:
                g.add_edge(a, b, weight=w)
        return cls(g)

    # ----------------------------
    # Introspection
    # ----------------------------
    def has_node(self, node: str) -> bool:
        return self._g.has_node(node)

    def nodes(self) -> List[str]:
        return list(self._g.nodes)

    def neighbors(self, node: str) -> Dict[str, float]:
        if not self._g.has_node(node):
            return {}
        return {nbr: float(attrs["weight"]) for nbr, attrs in self._g[node].items()}

    @property
    def edge_count(self) -> int:
        return self._g.number_of_edges()

    # ----------------------------
    # Queries
    # ----------------------------
    def _dijkstra(self, source: str) -> Tuple[Dict[str, float], Dict[str, List[str]]]:
        cached = self._cache.get(source)
        if cached is None:
            dist, paths = nx.single_source_dijkstra(self._g, source, weight="weight")
            cached = ({n: float(d) for n, d in dist.items()}, paths)
            self._cache[source] = cached
        return cached

    def distances_from(self, source: str) -> Dict[str, float]:
        """All finite shortest distances from `source` (source itself included)."""
        if not self._g.has_node(source):
            return {source: 0.0}
        dist, _ = self._dijkstra(source)
        return dict(dist)

    def shortest_path(self, a: str, b: str) -> PathResult:
        if a == b:
            return PathResult(distance=0.0, path=[a])
        if not self._g.has_node(a) or not self._g.has_node(b):
            return UNREACHABLE

        dist, paths = self._dijkstra(a)
        if b not in dist:
            return UNREACHABLE
        return PathResult(distance=dist[b], path=list(paths[b]))

    def travel_time(self, a: str, b: str) -> float:
        return self.shortest_path(a, b).distance

    def reachable_from(self, source: str) -> Set[str]:
        return set(self.distances_from(source).keys())
