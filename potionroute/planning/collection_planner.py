# potionroute/planning/collection_planner.py
"""
One planning run, end to end:

  readings ──> drain-rate estimates ─┐
  edges ─────> travel graph ─────────┼─> fleet scheduler ─> cycle time
  cauldrons / couriers ──────────────┘                   └> daily schedule ─> verifier

Typical usage:
  plan = plan_collection_schedule(
      cauldrons=data.cauldrons,
      readings=data.readings,
      edges=data.edges,
      market_id=data.market_id,
      couriers=data.couriers,
  )

Configuration problems (market not in the graph, no couriers, nothing
reachable) raise ConfigurationError before any scheduling. Everything else
(unreachable cauldrons, stalls, overflows) is reported on the returned plan.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List

from potionroute.cauldrons.drain_rates import (
    DEFAULT_DRAIN_CONFIG,
    DrainDetectionConfig,
    DrainEstimate,
    estimate_all_drain_rates,
)
from potionroute.cauldrons.types import Cauldron, Edge, Reading
from potionroute.couriers.day_schedule import build_daily_schedule, max_cycle_time
from potionroute.couriers.fleet_scheduler import UncoveredCauldron, schedule_fleet
from potionroute.couriers.policy import DEFAULT_POLICY, RoutingPolicy
from potionroute.couriers.pool import CauldronState
from potionroute.couriers.types import Courier, CourierRoute, ScheduleEntry
from potionroute.couriers.verifier import VerificationResult, verify_schedule
from potionroute.network.travel_graph import TravelGraph

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    pass


@dataclass
class CollectionPlan:
    routes: List[CourierRoute]
    daily_schedule: List[ScheduleEntry]
    verification: VerificationResult
    stats: Dict[str, Any]
    cycle_time: float
    uncovered: List[UncoveredCauldron] = field(default_factory=list)
    drain_estimates: Dict[str, DrainEstimate] = field(default_factory=dict)
    low_confidence: List[str] = field(default_factory=list)
    slow_drain: List[str] = field(default_factory=list)
    stop_reason: str = ""

    @property
    def fleet_size(self) -> int:
        return len(self.routes)

    @property
    def total_trips(self) -> int:
        return sum(len(r.trips) for r in self.routes)

    @property
    def uncovered_ids(self) -> List[str]:
        return [u.cauldron_id for u in self.uncovered]


def _validate(
    graph: TravelGraph,
    market_id: str,
    couriers: List[Courier],
) -> None:
    if not graph.has_node(market_id):
        raise ConfigurationError(f"market {market_id!r} is not a node of the travel graph")
    if not couriers:
        raise ConfigurationError("courier roster is empty")
    bad = [c.id for c in couriers if not (c.capacity > 0)]
    if bad:
        raise ConfigurationError(f"couriers with non-positive capacity: {bad}")


def _stats(
    routes: List[CourierRoute],
    covered: int,
    reachable: int,
    uncovered: int,
    cycle_time: float,
) -> Dict[str, Any]:
    trips = [t for r in routes for t in r.trips]
    total_volume = float(sum(t.total_volume for t in trips))
    total_capacity = float(sum(r.capacity * len(r.trips) for r in routes))
    return {
        "fleet_size": len(routes),
        "total_trips": len(trips),
        "total_volume": total_volume,
        "total_stops": sum(len(t.cauldron_stops) for t in trips),
        "avg_trips_per_courier": (len(trips) / len(routes)) if routes else 0.0,
        "avg_capacity_utilization": (100.0 * total_volume / total_capacity) if total_capacity > 0 else 0.0,
        "longest_trip_minutes": max((t.total_time for t in trips), default=0.0),
        "cycle_time_minutes": cycle_time,
        "cycle_time_hours": cycle_time / 60.0 if math.isfinite(cycle_time) else math.inf,
        "cauldrons_covered": covered,
        "cauldrons_reachable": reachable,
        "uncovered_count": uncovered,
    }


def plan_collection_schedule(
    *,
    cauldrons: List[Cauldron],
    readings: Iterable[Reading],
    edges: Iterable[Edge],
    market_id: str,
    couriers: List[Courier],
    policy: RoutingPolicy | None = None,
    drain_config: DrainDetectionConfig = DEFAULT_DRAIN_CONFIG,
    graph: TravelGraph | None = None,
    progress: bool = False,
) -> CollectionPlan:
    policy = (policy or DEFAULT_POLICY)
    try:
        policy.validate()
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    if graph is None:
        graph = TravelGraph.from_edges(edges)
    _validate(graph, market_id, couriers)

    estimates = estimate_all_drain_rates(cauldrons, readings, drain_config, progress=progress)

    reach = graph.distances_from(market_id)
    unreachable: List[UncoveredCauldron] = []
    states: List[CauldronState] = []
    for c in cauldrons:
        if c.node_id not in reach:
            logger.warning("cauldron %s (node %s) is unreachable from %s", c.id, c.node_id, market_id)
            unreachable.append(UncoveredCauldron(cauldron_id=c.id, reason="unreachable"))
            continue
        states.append(CauldronState.from_cauldron(c, estimates[c.id].drain_rate))

    if not states:
        raise ConfigurationError(f"no cauldron is reachable from market {market_id!r}")

    # most urgent first, so ties in the trip builder favour them
    states.sort(key=lambda s: s.time_until_overflow(0.0))

    fleet = schedule_fleet(market_id, states, graph, couriers, policy)
    cycle = max_cycle_time(states, policy)
    daily = build_daily_schedule(fleet.routes)

    reachable_ids = {s.id for s in states}
    verification = verify_schedule(
        [c for c in cauldrons if c.id in reachable_ids],
        daily,
        cycle,
        policy,
    )

    uncovered = unreachable + fleet.uncovered
    stats = _stats(
        fleet.routes,
        covered=len(fleet.covered),
        reachable=len(states),
        uncovered=len(uncovered),
        cycle_time=cycle,
    )

    low_conf = [cid for cid, est in estimates.items() if est.low_confidence]

    logger.info(
        "plan: %d couriers, %d trips, %.1f L, cycle %.1f min, overflow-free=%s",
        stats["fleet_size"], stats["total_trips"], stats["total_volume"], cycle, verification.no_overflow,
    )

    return CollectionPlan(
        routes=fleet.routes,
        daily_schedule=daily,
        verification=verification,
        stats=stats,
        cycle_time=cycle,
        uncovered=uncovered,
        drain_estimates=estimates,
        low_confidence=low_conf,
        slow_drain=fleet.slow_drain,
        stop_reason=fleet.stop_reason,
    )
