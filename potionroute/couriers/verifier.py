# potionroute/couriers/verifier.py
"""
Event-based replay of a daily schedule against cauldron physics.

Between visits a cauldron rises at its fill rate. At each visit the pre-visit
level is checked unclamped: above max_volume is an overflow, above
warning_fraction of max is a near-full warning. A pickup larger than the
level at the visit is reported as a short pickup. Then the pickup is applied.

After the last visit of the day we project forward and compare the time
until overflow with the time until the same trip comes round again
(first visit + repeat period). Overflowing strictly earlier marks the
cauldron's schedule unsustainable.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

import numpy as np
import pandas as pd

from potionroute.cauldrons.types import Cauldron
from potionroute.couriers.day_schedule import schedule_makespan
from potionroute.couriers.policy import DEFAULT_POLICY, RoutingPolicy
from potionroute.couriers.types import ScheduleEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OverflowEvent:
    cauldron_id: str
    time: float          # minute the overflow is detected (visit or end of day)
    amount: float        # litres above max_volume at that time
    overflow_at: float   # minute the level crossed max_volume


@dataclass(frozen=True)
class NearFullWarning:
    cauldron_id: str
    time: float
    level: float
    percentage: float


@dataclass(frozen=True)
class ShortPickup:
    cauldron_id: str
    time: float
    level: float     # litres in the cauldron when the courier arrives
    volume: float    # litres the schedule says were collected


@dataclass(frozen=True)
class UnsustainableFlag:
    cauldron_id: str
    last_visit: float | None
    overflow_after: float    # minutes after the last visit (or day start)
    next_visit: float | None
    reason: str              # "refill_before_next_cycle" | "never_visited"


@dataclass
class VerificationResult:
    no_overflow: bool
    overflow_events: List[OverflowEvent] = field(default_factory=list)
    warnings: List[NearFullWarning] = field(default_factory=list)
    unsustainable: List[UnsustainableFlag] = field(default_factory=list)
    short_pickups: List[ShortPickup] = field(default_factory=list)
    repeat_minutes: float = 0.0
    horizon_minutes: float = 0.0

    @property
    def sustainable(self) -> bool:
        return self.no_overflow and not self.unsustainable and not self.short_pickups


def visits_by_cauldron(entries: List[ScheduleEntry]) -> Dict[str, List[Tuple[float, float]]]:
    """cauldron_id -> [(absolute minute, volume)] sorted by time."""
    out: Dict[str, List[Tuple[float, float]]] = {}
    for e in entries:
        for s in e.trip.cauldron_stops:
            out.setdefault(s.cauldron_id, []).append(
                (e.start_minute + s.arrival_time, float(s.volume_collected))
            )
    for v in out.values():
        v.sort()
    return out


def repeat_period(entries: List[ScheduleEntry], cycle_time: float, policy: RoutingPolicy = DEFAULT_POLICY) -> float:
    makespan = schedule_makespan(entries)
    period = makespan if math.isinf(cycle_time) else max(makespan, cycle_time)
    return float(period) if period > 0 else float(policy.day_minutes)


def _time_to_full(level: float, max_volume: float, fill_rate: float) -> float:
    if fill_rate <= 0:
        return math.inf
    return max(0.0, (max_volume - level) / fill_rate)


def verify_schedule(
    cauldrons: List[Cauldron],
    entries: List[ScheduleEntry],
    cycle_time: float,
    policy: RoutingPolicy = DEFAULT_POLICY,
) -> VerificationResult:
    visits = visits_by_cauldron(entries)
    horizon = schedule_makespan(entries)
    repeat = repeat_period(entries, cycle_time, policy)

    result = VerificationResult(no_overflow=True, repeat_minutes=repeat, horizon_minutes=horizon)

    for c in cauldrons:
        max_v = float(c.max_volume)
        fill = max(0.0, float(c.fill_rate))
        level = max(0.0, min(max_v, float(c.current_volume)))
        last = 0.0

        for tv, vol in visits.get(c.id, []):
            pre = level + fill * (tv - last)
            if pre > max_v:
                result.overflow_events.append(
                    OverflowEvent(
                        cauldron_id=c.id,
                        time=tv,
                        amount=pre - max_v,
                        overflow_at=last + _time_to_full(level, max_v, fill),
                    )
                )
                pre = max_v
            elif pre > policy.warning_fraction * max_v:
                result.warnings.append(
                    NearFullWarning(cauldron_id=c.id, time=tv, level=pre, percentage=100.0 * pre / max_v)
                )
            if vol > pre + 1e-6:
                result.short_pickups.append(ShortPickup(cauldron_id=c.id, time=tv, level=pre, volume=vol))
            level = max(0.0, pre - vol)
            last = tv

        # rest of the simulated day
        ttf = _time_to_full(level, max_v, fill)
        if last + ttf < horizon:
            result.overflow_events.append(
                OverflowEvent(
                    cauldron_id=c.id,
                    time=horizon,
                    amount=level + fill * (horizon - last) - max_v,
                    overflow_at=last + ttf,
                )
            )

        own = visits.get(c.id)
        if own:
            next_visit = own[0][0] + repeat
            if ttf < next_visit - last:
                result.unsustainable.append(
                    UnsustainableFlag(
                        cauldron_id=c.id,
                        last_visit=last,
                        overflow_after=ttf,
                        next_visit=next_visit,
                        reason="refill_before_next_cycle",
                    )
                )
        elif ttf < repeat:
            result.unsustainable.append(
                UnsustainableFlag(
                    cauldron_id=c.id,
                    last_visit=None,
                    overflow_after=ttf,
                    next_visit=None,
                    reason="never_visited",
                )
            )

    result.overflow_events.sort(key=lambda ev: (ev.overflow_at, ev.cauldron_id))
    result.no_overflow = not result.overflow_events

    if result.overflow_events:
        logger.warning("verification: %d overflow events", len(result.overflow_events))
    if result.short_pickups:
        logger.warning("verification: %d pickups exceed the cauldron level", len(result.short_pickups))
    if result.unsustainable:
        logger.info("verification: %d cauldrons cannot hold the repeat cycle", len(result.unsustainable))
    return result


# ----------------------------
# Level forecast
# ----------------------------
def _status(level: float, max_volume: float) -> str:
    if level >= max_volume:
        return "overflow"
    if level >= 0.9 * max_volume:
        return "critical"
    if level >= 0.7 * max_volume:
        return "warning"
    return "ok"


def predict_levels(
    cauldrons: List[Cauldron],
    entries: List[ScheduleEntry],
    repeat_minutes: float,
    *,
    hours: float = 48,
    step_minutes: int = 10,
) -> pd.DataFrame:
    """
    Level of every cauldron every `step_minutes` for `hours`, with the daily
    schedule repeating every `repeat_minutes`.

    Columns: t_min, cauldron_id, level, percentage, status
    """
    step_minutes = int(step_minutes)
    if step_minutes <= 0:
        raise ValueError("step_minutes must be > 0")
    if repeat_minutes <= 0:
        raise ValueError("repeat_minutes must be > 0")

    horizon = float(hours) * 60.0
    times = np.arange(0.0, horizon + 1e-9, step_minutes)
    visits = visits_by_cauldron(entries)

    rows = []
    for c in cauldrons:
        max_v = float(c.max_volume)
        fill = max(0.0, float(c.fill_rate))

        # unroll the repeating schedule over the horizon
        pickups: List[Tuple[float, float]] = []
        base = visits.get(c.id, [])
        if base:
            k = 0
            while k * repeat_minutes <= horizon:
                pickups.extend((tv + k * repeat_minutes, vol) for tv, vol in base)
                k += 1
            pickups.sort()

        level = max(0.0, min(max_v, float(c.current_volume)))
        last = 0.0
        i = 0
        for t in times:
            while i < len(pickups) and pickups[i][0] <= t:
                tv, vol = pickups[i]
                level = min(max_v, level + fill * (tv - last))
                level = max(0.0, level - vol)
                last = tv
                i += 1
            cur = min(max_v, level + fill * (t - last))
            rows.append(
                {
                    "t_min": int(t),
                    "cauldron_id": c.id,
                    "level": cur,
                    "percentage": 100.0 * cur / max_v if max_v > 0 else 0.0,
                    "status": _status(cur, max_v),
                }
            )

    return pd.DataFrame(rows, columns=["t_min", "cauldron_id", "level", "percentage", "status"])
