# potionroute/couriers/day_schedule.py
from __future__ import annotations

import math
from typing import Iterable, List

from potionroute.couriers.policy import DEFAULT_POLICY, RoutingPolicy
from potionroute.couriers.pool import CauldronState
from potionroute.couriers.types import CourierRoute, ScheduleEntry


def max_cycle_time(
    states: Iterable[CauldronState],
    policy: RoutingPolicy = DEFAULT_POLICY,
) -> float:
    """
    Longest interval the whole schedule can repeat at: the fastest refill from
    post_service_fraction to near_full_fraction of max, times the safety
    margin. Advisory only. inf when nothing fills.
    """
    band = policy.near_full_fraction - policy.post_service_fraction
    min_time = math.inf
    for st in states:
        if st.fill_rate > 0:
            min_time = min(min_time, st.max_volume * band / st.fill_rate)
    if math.isinf(min_time):
        return math.inf
    return float(min_time * policy.cycle_safety_margin)


def clock_label(t_min: float) -> str:
    """HH:MM within a nominal day; later days get a +Nd suffix."""
    total = int(round(t_min))
    days, rem = divmod(total, 1440)
    label = f"{rem // 60:02d}:{rem % 60:02d}"
    return f"{label} +{days}d" if days else label


def build_daily_schedule(routes: List[CourierRoute]) -> List[ScheduleEntry]:
    """Lay each courier's trips back-to-back from 00:00 and merge by start time."""
    entries: List[ScheduleEntry] = []
    order = {}

    for idx, route in enumerate(routes):
        order[route.courier_id] = idx
        t = 0.0
        for n, trip in enumerate(route.trips, 1):
            end = t + trip.total_time
            entries.append(
                ScheduleEntry(
                    courier_id=route.courier_id,
                    courier_name=route.courier_name,
                    trip_number=n,
                    total_trips=len(route.trips),
                    start_minute=t,
                    end_minute=end,
                    start_clock=clock_label(t),
                    end_clock=clock_label(end),
                    trip=trip,
                )
            )
            t = end

    entries.sort(key=lambda e: (e.start_minute, order[e.courier_id], e.trip_number))
    return entries


def schedule_makespan(entries: List[ScheduleEntry]) -> float:
    return max((e.end_minute for e in entries), default=0.0)
