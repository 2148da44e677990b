# tests/conftest.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from potionroute.cauldrons.types import Cauldron, Edge, Reading
from potionroute.couriers.pool import CauldronState
from potionroute.couriers.types import Courier
from potionroute.network.travel_graph import TravelGraph

T0 = datetime(2025, 10, 30, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_cauldron():
    def _make(cid, *, max_volume=1000.0, fill_rate=1.0, current_volume=500.0, **kw):
        return Cauldron(
            id=cid,
            name=cid.title(),
            max_volume=max_volume,
            fill_rate=fill_rate,
            current_volume=current_volume,
            **kw,
        )
    return _make


@pytest.fixture
def make_state(make_cauldron):
    def _make(cid, *, drain_rate=50.0, **kw):
        return CauldronState.from_cauldron(make_cauldron(cid, **kw), drain_rate)
    return _make


@pytest.fixture
def make_readings():
    def _make(cid, volumes, *, step_minutes=1, start=T0):
        return [
            Reading(cauldron_id=cid, timestamp=start + timedelta(minutes=i * step_minutes), volume=float(v))
            for i, v in enumerate(volumes)
        ]
    return _make


@pytest.fixture
def triangle_edges():
    # M-A 10, M-B 20, A-B 15
    return [
        Edge("M", "A", 10),
        Edge("M", "B", 20),
        Edge("A", "B", 15),
    ]


@pytest.fixture
def triangle_graph(triangle_edges):
    return TravelGraph.from_edges(triangle_edges)


@pytest.fixture
def couriers():
    return [
        Courier(id="w1", name="Morgana", capacity=100),
        Courier(id="w2", name="Hazel", capacity=100),
        Courier(id="w3", name="Rowan", capacity=100),
    ]
