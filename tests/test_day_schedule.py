# tests/test_day_schedule.py
import math

import pytest

from potionroute.couriers.day_schedule import (
    build_daily_schedule,
    clock_label,
    max_cycle_time,
    schedule_makespan,
)
from potionroute.couriers.types import CourierRoute, Trip


def test_cycle_time_uses_fastest_refill(make_state):
    states = [
        make_state("A", max_volume=1000, fill_rate=2),
        make_state("B", max_volume=800, fill_rate=1),
    ]
    # 1000 * (0.9 - 0.2) / 2 * 0.7
    assert max_cycle_time(states) == pytest.approx(245)


def test_cycle_time_without_filling_cauldrons(make_state):
    assert math.isinf(max_cycle_time([make_state("A", fill_rate=0)]))
    assert math.isinf(max_cycle_time([]))


@pytest.mark.parametrize(
    "minutes,label",
    [
        (0, "00:00"),
        (75, "01:15"),
        (59.6, "01:00"),
        (1439, "23:59"),
        (1470, "00:30 +1d"),
        (2 * 1440 + 61, "01:01 +2d"),
    ],
)
def test_clock_label(minutes, label):
    assert clock_label(minutes) == label


def test_daily_schedule_lays_trips_back_to_back():
    routes = [
        CourierRoute("c1", "Morgana", 100, [Trip(total_time=45), Trip(total_time=30)]),
        CourierRoute("c2", "Hazel", 100, [Trip(total_time=50)]),
    ]
    entries = build_daily_schedule(routes)

    assert [(e.courier_id, e.trip_number) for e in entries] == [("c1", 1), ("c2", 1), ("c1", 2)]
    second = entries[2]
    assert second.start_minute == 45
    assert second.end_minute == 75
    assert second.start_clock == "00:45"
    assert second.end_clock == "01:15"
    assert second.total_trips == 2
    assert entries[1].total_trips == 1
    assert schedule_makespan(entries) == 75


def test_makespan_of_empty_schedule():
    assert build_daily_schedule([]) == []
    assert schedule_makespan([]) == 0.0
