# potionroute/couriers/fleet_scheduler.py
"""
Multi-trip / multi-courier scheduler.

Design:
- One ServicePool of cauldrons still needing service, shared by every trip.
- Each trip goes to the active courier who is free earliest; the trip starts
  at that courier's clock and pushes the clock forward by its duration.
- After each trip: fully serviced cauldrons leave the pool, and so does any
  cauldron visited `managed_visit_count` times (circuit breaker against
  cauldrons that only ever get partial pickups).
- Every `courier_check_interval` trips, another courier from the roster joins
  if any of these holds:
    * the filling cauldrons in the pool did not shrink since the last check
    * a filling cauldron, in the pool or not, overflows before the earliest
      free courier could reach it
    * every active courier's day is already full

Stops when the pool is empty, when a trip comes back with no stops
(`below_minimum` if nothing reachable holds min_collect_volume, `stalled`
otherwise), or at `max_total_trips`. Whatever is left in the pool is reported, never
dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List

from potionroute.couriers.policy import DEFAULT_POLICY, RoutingPolicy
from potionroute.couriers.pool import CauldronState, ServicePool
from potionroute.couriers.trip_builder import build_trip
from potionroute.couriers.types import Courier, CourierRoute
from potionroute.network.travel_graph import TravelGraph

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UncoveredCauldron:
    cauldron_id: str
    reason: str   # "unreachable" | "below_minimum" | "stalled" | "trip_limit"


@dataclass
class FleetResult:
    routes: List[CourierRoute]
    total_trips: int
    covered: List[str]
    uncovered: List[UncoveredCauldron]
    fully_serviced: List[str] = field(default_factory=list)
    managed: List[str] = field(default_factory=list)
    visit_counts: Dict[str, int] = field(default_factory=dict)
    slow_drain: List[str] = field(default_factory=list)
    stop_reason: str = ""

    @property
    def fleet_size(self) -> int:
        return len(self.routes)


@dataclass
class _CourierClock:
    courier: Courier
    route: CourierRoute
    clock: float = 0.0


def _filling_in_pool(pool: ServicePool) -> int:
    return sum(1 for st in pool.active_states() if st.fill_rate > 0)


def _fleet_falling_behind(
    pool: ServicePool,
    earliest: float,
    market_reach: Dict[str, float],
    policy: RoutingPolicy,
) -> bool:
    if earliest >= policy.day_minutes:
        return True

    # retired cauldrons keep filling too
    for st in pool.all_states():
        if st.fill_rate <= 0:
            continue
        travel = market_reach.get(st.node_id)
        if travel is None:
            continue
        if st.time_until_overflow(earliest) < travel:
            return True
    return False


def schedule_fleet(
    market_id: str,
    states: List[CauldronState],
    graph: TravelGraph,
    couriers: List[Courier],
    policy: RoutingPolicy = DEFAULT_POLICY,
) -> FleetResult:
    """
    Drive build_trip until every cauldron in `states` is serviced or managed,
    or no further progress is possible.

    `states` should already be filtered to cauldrons reachable from the
    market; anything that turns out unreachable is still reported.
    """
    if not couriers:
        raise ValueError("schedule_fleet requires at least one courier")

    pool = ServicePool(states)
    market_reach = graph.distances_from(market_id)

    roster = list(couriers)
    clocks: List[_CourierClock] = []

    def add_courier() -> bool:
        if len(clocks) >= len(roster):
            return False
        c = roster[len(clocks)]
        clocks.append(
            _CourierClock(
                courier=c,
                route=CourierRoute(courier_id=c.id, courier_name=c.name, capacity=c.capacity),
            )
        )
        return True

    add_courier()

    visit_counts: Dict[str, int] = {st.id: 0 for st in states}
    fully_serviced: List[str] = []
    managed: List[str] = []
    slow_drain: List[str] = []
    total_trips = 0
    stop_reason = ""
    roster_exhausted_logged = False
    filling_at_check = _filling_in_pool(pool)

    while pool:
        if total_trips >= policy.max_total_trips:
            stop_reason = "trip_limit"
            break

        slot = min(clocks, key=lambda c: c.clock)
        res = build_trip(
            market_id,
            pool,
            graph,
            slot.courier.capacity,
            start_time=slot.clock,
            policy=policy,
        )
        trip = res.trip

        if trip.is_empty:
            logger.warning(
                "trip %d for %s made no stops; %d cauldrons left in the pool",
                total_trips + 1, slot.courier.id, len(pool),
            )
            # everything reachable holds less than a worthwhile pickup
            stop_reason = "below_minimum" if res.end_reason == "no_feasible" else "stalled"
            break

        slot.route.trips.append(trip)
        slot.clock += trip.total_time
        total_trips += 1

        for cid in res.slow_drain:
            if cid not in slow_drain:
                slow_drain.append(cid)

        for stop in trip.cauldron_stops:
            visit_counts[stop.cauldron_id] = visit_counts.get(stop.cauldron_id, 0) + 1

        for cid in res.fully_serviced:
            if pool.mark_serviced(cid):
                fully_serviced.append(cid)

        for cid in pool.active_ids():
            if visit_counts.get(cid, 0) >= policy.managed_visit_count:
                pool.retire(cid)
                managed.append(cid)
                logger.debug("cauldron %s visited %d times, considered managed", cid, visit_counts[cid])

        if pool and total_trips % policy.courier_check_interval == 0:
            filling = _filling_in_pool(pool)
            not_shrinking = filling > 0 and filling >= filling_at_check
            filling_at_check = filling
            earliest = min(c.clock for c in clocks)
            if not_shrinking or _fleet_falling_behind(pool, earliest, market_reach, policy):
                if add_courier():
                    logger.info(
                        "after %d trips, %d cauldrons remain: adding courier %s",
                        total_trips, len(pool), clocks[-1].courier.id,
                    )
                elif not roster_exhausted_logged:
                    logger.warning("courier roster exhausted at %d couriers", len(clocks))
                    roster_exhausted_logged = True

    if not stop_reason:
        stop_reason = "complete"

    uncovered: List[UncoveredCauldron] = []
    if pool:
        reachable = graph.reachable_from(market_id)
        reason = stop_reason if stop_reason in ("stalled", "below_minimum") else "trip_limit"
        for st in pool.active_states():
            uncovered.append(
                UncoveredCauldron(
                    cauldron_id=st.id,
                    reason=reason if st.node_id in reachable else "unreachable",
                )
            )
        logger.warning("%d cauldrons not covered (%s)", len(uncovered), stop_reason)

    uncovered_ids = {u.cauldron_id for u in uncovered}
    covered = [st.id for st in states if st.id not in uncovered_ids]
    routes = [c.route for c in clocks if c.route.trips]

    logger.info(
        "scheduled %d trips over %d couriers, %d/%d cauldrons covered",
        total_trips, len(routes), len(covered), len(states),
    )

    return FleetResult(
        routes=routes,
        total_trips=total_trips,
        covered=covered,
        uncovered=uncovered,
        fully_serviced=fully_serviced,
        managed=managed,
        visit_counts=visit_counts,
        slow_drain=slow_drain,
        stop_reason=stop_reason,
    )
