# tests/test_verifier.py
import math

import pytest

from potionroute.couriers.day_schedule import build_daily_schedule
from potionroute.couriers.policy import DEFAULT_POLICY
from potionroute.couriers.types import CourierRoute, Stop, Trip
from potionroute.couriers.verifier import (
    predict_levels,
    repeat_period,
    verify_schedule,
    visits_by_cauldron,
)


def _schedule(visits, total_time=60):
    """One courier, one trip; visits = [(cauldron_id, arrival minute, volume)]."""
    stops = [
        Stop(
            node_id=cid,
            arrival_time=t,
            travel_time=t,
            service_duration=10,
            volume_collected=v,
            cauldron_id=cid,
        )
        for cid, t, v in visits
    ]
    trip = Trip(stops=stops, total_time=total_time, total_volume=sum(v for _, _, v in visits))
    return build_daily_schedule([CourierRoute("c1", "Morgana", 1000, [trip])])


def test_overflow_before_the_visit(make_cauldron):
    c = make_cauldron("A", max_volume=100, fill_rate=1, current_volume=90)
    res = verify_schedule([c], _schedule([("A", 30, 50)]), cycle_time=300)

    assert not res.no_overflow
    ev = res.overflow_events[0]
    assert ev.cauldron_id == "A"
    assert ev.time == 30
    assert ev.amount == pytest.approx(20)
    assert ev.overflow_at == pytest.approx(10)


def test_near_full_warning(make_cauldron):
    c = make_cauldron("A", max_volume=100, fill_rate=1, current_volume=50)
    res = verify_schedule([c], _schedule([("A", 45, 50)]), cycle_time=300)

    assert res.no_overflow
    assert len(res.warnings) == 1
    assert res.warnings[0].percentage == pytest.approx(95)


def test_sustainable_schedule(make_cauldron):
    c = make_cauldron("A", max_volume=1000, fill_rate=1, current_volume=500)
    res = verify_schedule([c], _schedule([("A", 30, 200)]), cycle_time=300)

    assert res.no_overflow
    assert res.warnings == []
    assert res.unsustainable == []
    assert res.sustainable
    assert res.repeat_minutes == 300
    assert res.horizon_minutes == 60


def test_refill_before_next_cycle(make_cauldron):
    c = make_cauldron("A", max_volume=1000, fill_rate=5, current_volume=500)
    res = verify_schedule([c], _schedule([("A", 30, 200)]), cycle_time=300)

    assert res.no_overflow
    assert not res.sustainable
    flag = res.unsustainable[0]
    assert flag.reason == "refill_before_next_cycle"
    assert flag.last_visit == 30
    assert flag.overflow_after == pytest.approx(110)
    assert flag.next_visit == 330


def test_overflow_later_in_the_day(make_cauldron):
    c = make_cauldron("A", max_volume=100, fill_rate=1, current_volume=60)
    res = verify_schedule([c], _schedule([("A", 10, 20)], total_time=120), cycle_time=300)

    # 70 at the visit, 50 after, full 50 minutes later at minute 60
    ev = res.overflow_events[0]
    assert ev.time == 120
    assert ev.overflow_at == pytest.approx(60)
    assert ev.amount == pytest.approx(60)


def test_never_visited_cauldrons(make_cauldron):
    filling = make_cauldron("A", fill_rate=1, current_volume=990)
    idle = make_cauldron("B", fill_rate=0)
    res = verify_schedule([filling, idle], _schedule([]), cycle_time=math.inf)

    assert [f.cauldron_id for f in res.unsustainable] == ["A"]
    assert res.unsustainable[0].reason == "never_visited"
    assert res.unsustainable[0].last_visit is None


def test_visits_use_absolute_minutes():
    routes = [
        CourierRoute(
            "c1",
            "Morgana",
            100,
            [
                Trip(stops=[Stop("A", 10, 10, 10, 40, cauldron_id="A")], total_time=45),
                Trip(stops=[Stop("A", 10, 10, 10, 30, cauldron_id="A")], total_time=45),
            ],
        )
    ]
    visits = visits_by_cauldron(build_daily_schedule(routes))
    assert visits == {"A": [(10.0, 40.0), (55.0, 30.0)]}


def test_repeat_period():
    entries = _schedule([("A", 10, 20)], total_time=90)
    assert repeat_period(entries, 300) == 300
    assert repeat_period(entries, 30) == 90
    assert repeat_period(entries, math.inf) == 90
    assert repeat_period([], math.inf) == DEFAULT_POLICY.day_minutes


def test_predict_levels_without_visits(make_cauldron):
    c = make_cauldron("A", max_volume=100, fill_rate=1, current_volume=80)
    df = predict_levels([c], [], 60, hours=0.5, step_minutes=10)

    assert list(df.columns) == ["t_min", "cauldron_id", "level", "percentage", "status"]
    assert list(df["t_min"]) == [0, 10, 20, 30]
    assert list(df["level"]) == pytest.approx([80, 90, 100, 100])
    assert list(df["status"]) == ["warning", "critical", "overflow", "overflow"]


def test_predict_levels_repeats_the_schedule(make_cauldron):
    c = make_cauldron("A", max_volume=100, fill_rate=1, current_volume=0)
    df = predict_levels([c], _schedule([("A", 30, 50)]), 60, hours=1.5, step_minutes=30)

    assert list(df["level"]) == pytest.approx([0, 0, 30, 10])


def test_predict_levels_rejects_bad_step(make_cauldron):
    with pytest.raises(ValueError):
        predict_levels([make_cauldron("A")], [], 60, step_minutes=0)


def test_pickup_larger_than_the_level(make_cauldron):
    c = make_cauldron("A", max_volume=100, fill_rate=0, current_volume=100)
    res = verify_schedule([c], _schedule([("A", 10, 60), ("A", 20, 60)]), cycle_time=300)

    assert res.no_overflow
    assert len(res.short_pickups) == 1
    short = res.short_pickups[0]
    assert short.time == 20
    assert short.level == pytest.approx(40)
    assert short.volume == 60
    assert not res.sustainable
