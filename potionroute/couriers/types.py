# potionroute/couriers/types.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True)
class Courier:
    id: str
    name: str
    capacity: float


@dataclass
class Stop:
    node_id: str
    arrival_time: float          # minutes since trip start
    travel_time: float           # minutes from the previous stop
    service_duration: float      # drain time, or unload time at the market
    volume_collected: float
    is_depot: bool = False
    cauldron_id: str | None = None
    name: str | None = None
    path: List[str] | None = None
    slow_drain: bool = False

    @property
    def departure_time(self) -> float:
        return self.arrival_time + self.service_duration


@dataclass
class Trip:
    stops: List[Stop] = field(default_factory=list)
    total_time: float = 0.0
    total_volume: float = 0.0
    total_distance: float = 0.0

    @property
    def cauldron_stops(self) -> List[Stop]:
        return [s for s in self.stops if not s.is_depot]

    @property
    def is_empty(self) -> bool:
        return not self.cauldron_stops


@dataclass
class CourierRoute:
    courier_id: str
    courier_name: str
    capacity: float
    trips: List[Trip] = field(default_factory=list)

    @property
    def busy_minutes(self) -> float:
        return float(sum(t.total_time for t in self.trips))


@dataclass
class ScheduleEntry:
    courier_id: str
    courier_name: str
    trip_number: int
    total_trips: int
    start_minute: float
    end_minute: float
    start_clock: str
    end_clock: str
    trip: Trip
