# potionroute/cauldrons/drain_rates.py
"""
Drain-rate estimation from historical cauldron readings.

A drain event is a maximal run of consecutive readings where the volume
strictly decreased. Potion keeps flowing in while a witch drains, so the
net rate seen in the readings is

    observed_rate = fill_rate - drain_rate

and the drain rate of the event is fill_rate - observed_rate.

Per-cauldron drain rate = mean of the plausible per-event rates. With no
plausible event the configured default is used and the estimate is flagged
low-confidence.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List

import numpy as np
from tqdm import tqdm

from potionroute.cauldrons.types import Cauldron, DrainEvent, Reading

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DrainDetectionConfig:
    default_drain_rate: float = 50.0       # L/min
    max_reading_gap_minutes: float = 60.0  # longer gaps are missing data, not drains
    min_event_drop: float = 20.0           # L, smaller runs are sensor noise
    min_plausible_rate: float = 0.0        # exclusive
    max_plausible_rate: float = 500.0      # inclusive

    def is_plausible(self, rate: float) -> bool:
        return bool(np.isfinite(rate)) and self.min_plausible_rate < rate <= self.max_plausible_rate


DEFAULT_DRAIN_CONFIG = DrainDetectionConfig()


@dataclass
class DrainEstimate:
    cauldron_id: str
    drain_rate: float
    events: List[DrainEvent] = field(default_factory=list)
    low_confidence: bool = False
    accepted_rates: List[float] = field(default_factory=list)


def _minutes(a: datetime, b: datetime) -> float:
    return (b - a).total_seconds() / 60.0


def _close_event(
    start: datetime,
    end: datetime,
    drop: float,
    fill_rate: float,
    config: DrainDetectionConfig,
) -> DrainEvent | None:
    if drop < config.min_event_drop:
        return None
    duration = _minutes(start, end)
    if duration <= 0:
        return None
    observed_rate = -drop / duration
    drain_rate = fill_rate - observed_rate
    return DrainEvent(
        start_ts=start,
        end_ts=end,
        observed_drop=float(drop),
        observed_rate=float(observed_rate),
        drain_rate=float(drain_rate),
        accepted=config.is_plausible(drain_rate),
    )


def detect_drain_events(
    readings: Iterable[Reading],
    fill_rate: float,
    config: DrainDetectionConfig = DEFAULT_DRAIN_CONFIG,
) -> List[DrainEvent]:
    """
    Walk consecutive reading pairs and group strictly decreasing pairs into
    events. A non-decrease or a data gap closes the open event.
    """
    ordered = sorted(readings, key=lambda r: r.timestamp)
    events: List[DrainEvent] = []

    start: datetime | None = None
    end: datetime | None = None
    drop = 0.0

    def flush():
        nonlocal start, end, drop
        if start is not None and end is not None:
            ev = _close_event(start, end, drop, fill_rate, config)
            if ev is not None:
                events.append(ev)
        start, end, drop = None, None, 0.0

    for prev, cur in zip(ordered, ordered[1:]):
        dt = _minutes(prev.timestamp, cur.timestamp)
        if dt <= 0 or dt > config.max_reading_gap_minutes:
            flush()
            continue

        delta = float(cur.volume) - float(prev.volume)
        if delta < 0:
            if start is None:
                start = prev.timestamp
            end = cur.timestamp
            drop += -delta
        else:
            flush()

    flush()
    return events


def estimate_drain_rate(
    cauldron_id: str,
    readings: Iterable[Reading],
    fill_rate: float,
    config: DrainDetectionConfig = DEFAULT_DRAIN_CONFIG,
) -> DrainEstimate:
    events = detect_drain_events(readings, fill_rate, config)
    accepted = [ev.drain_rate for ev in events if ev.accepted]

    if not accepted:
        logger.debug(
            "cauldron %s: no plausible drain event in %d detected, using default %.1f L/min",
            cauldron_id, len(events), config.default_drain_rate,
        )
        return DrainEstimate(
            cauldron_id=cauldron_id,
            drain_rate=float(config.default_drain_rate),
            events=events,
            low_confidence=True,
            accepted_rates=[],
        )

    return DrainEstimate(
        cauldron_id=cauldron_id,
        drain_rate=float(np.mean(accepted)),
        events=events,
        low_confidence=False,
        accepted_rates=accepted,
    )


def estimate_fill_rate(
    readings: Iterable[Reading],
    config: DrainDetectionConfig = DEFAULT_DRAIN_CONFIG,
    percentile: float = 25.0,
) -> float:
    """
    Fill rate (L/min) from rising stretches of the readings. Takes a low
    percentile of the per-pair rates so short spikes do not inflate it.
    0.0 when there is no rising pair.
    """
    ordered = sorted(readings, key=lambda r: r.timestamp)
    rates = []
    for prev, cur in zip(ordered, ordered[1:]):
        dt = _minutes(prev.timestamp, cur.timestamp)
        if dt <= 0 or dt > config.max_reading_gap_minutes:
            continue
        delta = float(cur.volume) - float(prev.volume)
        if delta > 0:
            rates.append(delta / dt)
    if not rates:
        return 0.0
    return float(np.percentile(rates, percentile))


def group_readings(readings: Iterable[Reading]) -> Dict[str, List[Reading]]:
    by_cauldron: Dict[str, List[Reading]] = {}
    for r in readings:
        by_cauldron.setdefault(str(r.cauldron_id), []).append(r)
    for rows in by_cauldron.values():
        rows.sort(key=lambda r: r.timestamp)
    return by_cauldron


def estimate_all_drain_rates(
    cauldrons: List[Cauldron],
    readings: Iterable[Reading],
    config: DrainDetectionConfig = DEFAULT_DRAIN_CONFIG,
    *,
    progress: bool = False,
) -> Dict[str, DrainEstimate]:
    """
    Estimate every cauldron's drain rate. Cauldrons without readings fall back
    to an explicitly supplied `Cauldron.drain_rate` if there is one, otherwise
    to the default (low-confidence either way unless supplied).
    """
    by_cauldron = group_readings(readings)
    out: Dict[str, DrainEstimate] = {}

    for c in tqdm(cauldrons, desc="Estimating drain rates", disable=not progress):
        rows = by_cauldron.get(c.id, [])
        if not rows and c.drain_rate is not None and config.is_plausible(float(c.drain_rate)):
            out[c.id] = DrainEstimate(cauldron_id=c.id, drain_rate=float(c.drain_rate))
            continue
        out[c.id] = estimate_drain_rate(c.id, rows, c.fill_rate, config)

    low = [cid for cid, est in out.items() if est.low_confidence]
    if low:
        logger.info("%d of %d cauldrons use the default drain rate", len(low), len(out))
    return out
