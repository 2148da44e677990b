# potionroute/couriers/trip_builder.py
"""
Greedy single-trip builder: market -> cauldrons -> market.

At each step every still-candidate cauldron reachable from the current node
is scored as

    w_urgency   / max(1, minutes until it overflows)
  + w_proximity / max(1, travel minutes)
  + w_efficiency * volume / max(1, travel + drain minutes)
  + capacity_bonus   (if the load stays under the comfortable share)

and the best feasible one becomes the next stop. The first stop skips the
lateness check so a trip is never empty while any cauldron can be reached.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from potionroute.couriers.policy import DEFAULT_POLICY, RoutingPolicy
from potionroute.couriers.pool import CauldronState, ServicePool
from potionroute.couriers.types import Stop, Trip
from potionroute.network.travel_graph import TravelGraph

logger = logging.getLogger(__name__)


@dataclass
class TripResult:
    trip: Trip
    fully_serviced: List[str] = field(default_factory=list)
    slow_drain: List[str] = field(default_factory=list)
    end_reason: str = ""


@dataclass
class _Candidate:
    state: CauldronState
    travel: float
    arrival: float
    volume: float
    service: float
    slow_drain: bool
    score: float


def collection_volume(
    state: CauldronState,
    level: float,
    remaining_capacity: float,
    policy: RoutingPolicy = DEFAULT_POLICY,
    available: float | None = None,
) -> Optional[float]:
    """
    Volume to drain: toward target_fraction of max, at least
    min_collect_volume, never more than the courier can still carry or the
    cauldron holds. `available` further caps it when later pickups by other
    couriers are already booked. None when no worthwhile pickup fits.
    """
    limit = level if available is None else min(level, available)
    want = level - policy.target_fraction * state.max_volume
    volume = min(max(policy.min_collect_volume, want), remaining_capacity, limit)
    if volume <= 0 or volume < policy.min_collect_volume:
        return None
    return float(volume)


def service_duration(
    state: CauldronState,
    volume: float,
    policy: RoutingPolicy = DEFAULT_POLICY,
) -> Tuple[float, bool]:
    """Drain minutes for `volume`, and whether the cauldron fills faster than it drains."""
    effective = state.drain_rate - state.fill_rate
    if effective <= 0:
        return float(policy.fallback_service_minutes), True
    minutes = volume / effective
    return float(max(policy.min_service_minutes, min(minutes, policy.max_service_minutes))), False


def _score(
    *,
    time_left: float,
    travel: float,
    volume: float,
    service: float,
    load: float,
    capacity: float,
    policy: RoutingPolicy,
) -> float:
    urgency = 0.0 if math.isinf(time_left) else policy.w_urgency / max(1.0, time_left)
    proximity = policy.w_proximity / max(1.0, travel)
    efficiency = volume / max(1.0, travel + service)
    bonus = policy.capacity_bonus if load + volume <= policy.comfortable_fill_fraction * capacity else 0.0
    return urgency + proximity + policy.w_efficiency * efficiency + bonus


def build_trip(
    market_id: str,
    pool: ServicePool,
    graph: TravelGraph,
    capacity: float,
    start_time: float = 0.0,
    policy: RoutingPolicy = DEFAULT_POLICY,
) -> TripResult:
    """
    Build one trip for a courier leaving the market at `start_time` (minutes
    into the day). Stop times on the returned Trip are relative to the start.

    Pickups are written to the pool as they are committed. Cauldrons brought
    below serviced_fraction are returned in `fully_serviced`; the caller
    decides when to drop them from the pool.
    """
    usable = float(capacity) * policy.capacity_utilization
    trip = Trip()
    result = TripResult(trip=trip)

    candidates = [s.id for s in pool.active_states()]
    cur_node = market_id
    last_cid: str | None = None
    t = 0.0
    load = 0.0

    while True:
        if not candidates:
            result.end_reason = "no_candidates"
            break
        if len(trip.stops) >= policy.max_stops_per_trip:
            result.end_reason = "stop_limit"
            break

        dist = graph.distances_from(cur_node)
        reachable = [
            pool.state(cid) for cid in candidates
            if cid != last_cid and pool.state(cid).node_id in dist
        ]
        if not reachable:
            result.end_reason = "no_reachable"
            break

        first_stop = not trip.stops
        remaining = usable - load
        best: _Candidate | None = None

        for st in reachable:
            travel = float(dist[st.node_id])
            arrival = t + travel
            level = st.level_at(start_time + arrival)
            available = st.available_at(start_time + arrival)

            volume = collection_volume(st, level, remaining, policy, available)
            if volume is None or load + volume > usable:
                continue

            time_left = st.time_until_overflow(start_time + t)
            if not first_stop and time_left - travel < -policy.late_tolerance_minutes:
                continue

            service, slow = service_duration(st, volume, policy)
            score = _score(
                time_left=time_left,
                travel=travel,
                volume=volume,
                service=service,
                load=load,
                capacity=capacity,
                policy=policy,
            )
            if best is None or score > best.score:
                best = _Candidate(st, travel, arrival, volume, service, slow, score)

        if best is None:
            result.end_reason = "no_feasible"
            break

        st = best.state
        path = graph.shortest_path(cur_node, st.node_id).path
        trip.stops.append(
            Stop(
                node_id=st.node_id,
                arrival_time=best.arrival,
                travel_time=best.travel,
                service_duration=best.service,
                volume_collected=best.volume,
                cauldron_id=st.id,
                name=st.name,
                path=path,
                slow_drain=best.slow_drain,
            )
        )
        if best.slow_drain and st.id not in result.slow_drain:
            logger.warning("cauldron %s fills faster than it can be drained", st.id)
            result.slow_drain.append(st.id)

        level_after = pool.record_collection(st.id, start_time + best.arrival, best.volume)
        if level_after < policy.serviced_fraction * st.max_volume:
            result.fully_serviced.append(st.id)
            candidates.remove(st.id)
            logger.debug("cauldron %s down to %.1f / %.1f, serviced", st.id, level_after, st.max_volume)

        load += best.volume
        t = best.arrival + best.service
        trip.total_distance += best.travel
        cur_node = st.node_id
        last_cid = st.id

        if usable - load < max(policy.min_collect_volume, 1e-9):
            result.end_reason = "capacity"
            break
        if t >= policy.max_trip_minutes:
            result.end_reason = "time_limit"
            break

    if trip.stops:
        back = graph.shortest_path(cur_node, market_id)
        ret = back.distance if back.reachable else 0.0
        trip.stops.append(
            Stop(
                node_id=market_id,
                arrival_time=t + ret,
                travel_time=ret,
                service_duration=policy.market_unload_minutes,
                volume_collected=0.0,
                is_depot=True,
                name="Market",
                path=back.path,
            )
        )
        trip.total_time = t + ret + policy.market_unload_minutes
        trip.total_volume = load
        trip.total_distance += ret

    logger.debug(
        "trip from t=%.1f: %d stops, %.1f L, %.1f min (%s)",
        start_time, len(trip.cauldron_stops), trip.total_volume, trip.total_time, result.end_reason,
    )
    return result
