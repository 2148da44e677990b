# potionroute/cauldrons/types.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Cauldron:
    id: str
    name: str
    max_volume: float
    fill_rate: float          # L/min, constant for a planning run
    current_volume: float
    node_id: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    drain_rate: float | None = None   # L/min while emptied, estimated

    def __post_init__(self):
        if self.node_id is None:
            self.node_id = self.id


@dataclass(frozen=True)
class Reading:
    cauldron_id: str
    timestamp: datetime
    volume: float


@dataclass(frozen=True)
class DrainEvent:
    start_ts: datetime
    end_ts: datetime
    observed_drop: float
    # net rate seen in the readings (negative), and the implied drain rate
    observed_rate: float
    drain_rate: float
    accepted: bool

    @property
    def duration_minutes(self) -> float:
        return (self.end_ts - self.start_ts).total_seconds() / 60.0


@dataclass(frozen=True)
class Edge:
    from_node: str
    to_node: str
    travel_time_minutes: float
