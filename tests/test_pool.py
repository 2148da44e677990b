# tests/test_pool.py
import math

import pytest

from potionroute.couriers.policy import RoutingPolicy
from potionroute.couriers.pool import ServicePool


def test_level_replays_collections(make_state):
    st = make_state("A", max_volume=100, fill_rate=1, current_volume=50)
    pool = ServicePool([st])

    assert pool.record_collection("A", 20, 30) == pytest.approx(40)
    assert st.level_at(10) == pytest.approx(60)    # before the pickup
    assert st.level_at(30) == pytest.approx(50)
    assert st.level_at(500) == 100                 # clamped
    assert st.time_until_overflow(20) == pytest.approx(60)
    assert st.visits == 1


def test_collections_recorded_out_of_order(make_state):
    st = make_state("A", max_volume=100, fill_rate=0, current_volume=90)
    pool = ServicePool([st])
    pool.record_collection("A", 50, 20)
    pool.record_collection("A", 10, 30)

    assert st.level_at(20) == pytest.approx(60)
    assert st.level_at(60) == pytest.approx(40)


def test_non_filling_cauldron_never_overflows(make_state):
    assert math.isinf(make_state("A", fill_rate=0).time_until_overflow(0))


def test_serviced_and_retired_leave_the_pool(make_state):
    pool = ServicePool([make_state("A"), make_state("B"), make_state("C")])

    assert pool.mark_serviced("A")
    assert pool.retire("B")
    assert not pool.retire("B")
    assert pool.active_ids() == ["C"]
    assert "A" not in pool
    assert len(pool) == 1
    assert len(pool.all_states()) == 3


def test_policy_validation():
    assert RoutingPolicy().validate() == RoutingPolicy()
    with pytest.raises(ValueError):
        RoutingPolicy(post_service_fraction=0.95).validate()
    with pytest.raises(ValueError):
        RoutingPolicy(min_service_minutes=90).validate()


def test_available_leaves_room_for_later_pickups(make_state):
    st = make_state("A", max_volume=100, fill_rate=0, current_volume=100)
    pool = ServicePool([st])
    pool.record_collection("A", 10, 60)
    pool.record_collection("A", 55, 40)

    assert st.level_at(10) == pytest.approx(40)
    assert st.available_at(10) == 0
    assert st.available_at(0) == 0
    assert st.available_at(60) == 0


def test_available_with_refill_between_pickups(make_state):
    st = make_state("A", max_volume=1000, fill_rate=1, current_volume=100)
    pool = ServicePool([st])
    pool.record_collection("A", 50, 100)

    # 140 in it at t=40, but only 50 can go without starving the pickup at 50
    assert st.level_at(40) == pytest.approx(140)
    assert st.available_at(40) == pytest.approx(50)
    assert st.available_at(60) == pytest.approx(60)
