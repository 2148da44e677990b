# potionroute/util/cauldrons.py
"""
Boundary loaders: turn the upstream JSON / CSV shapes into the engine's
Cauldron / Edge / Courier / Reading records, once.

Upstream records are not consistent about key names (id vs cauldron_id vs
cauldronId, max_volume vs maxVolume, ...). All of that is resolved here so
the engine only ever sees canonical records.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence

import pandas as pd

from potionroute.cauldrons.drain_rates import estimate_fill_rate, group_readings
from potionroute.cauldrons.types import Cauldron, Edge, Reading
from potionroute.couriers.types import Courier

_LIB_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_NETWORK_FILE = _LIB_ROOT / "sample_network.json"

DEFAULT_MARKET_ID = "market_001"
DEFAULT_COURIER_CAPACITY = 100.0


class DataFormatError(ValueError):
    pass


@dataclass
class NetworkData:
    cauldrons: List[Cauldron]
    edges: List[Edge]
    couriers: List[Courier]
    market_id: str
    readings: List[Reading] = field(default_factory=list)


def _first(rec: Dict[str, Any], keys: Sequence[str], default: Any = None) -> Any:
    for k in keys:
        v = rec.get(k)
        if v is not None:
            return v
    return default


def _records(data: Any, key: str) -> List[Dict[str, Any]]:
    if data is None:
        return []
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and key in data:
        return _records(data[key], key)
    if isinstance(data, dict):
        return [data]
    raise DataFormatError(f"expected a list or object for {key!r}, got {type(data).__name__}")


def parse_cost_minutes(cost: Any) -> float:
    """'HH:MM:SS' or a plain number of minutes."""
    if isinstance(cost, (int, float)):
        return float(cost)
    s = str(cost).strip()
    parts = s.split(":")
    try:
        if len(parts) == 3:
            h, m, sec = (float(p) for p in parts)
            return h * 60 + m + sec / 60
        if len(parts) == 2:
            m, sec = (float(p) for p in parts)
            return m + sec / 60
        return float(s)
    except ValueError:
        raise DataFormatError(f"cannot parse travel time {cost!r}")


# -----------------------------
# Records
# -----------------------------
def parse_cauldrons(data: Any, readings: Iterable[Reading] = ()) -> List[Cauldron]:
    """
    A fill rate or current volume the record leaves out is taken from the
    cauldron's readings (fill rate from rising stretches, current volume from
    the latest sample), and is 0 when there are none. Values the record does
    give, zero included, are kept.
    """
    by_cauldron = group_readings(readings)
    out: List[Cauldron] = []
    for rec in _records(data, "cauldrons"):
        cid = _first(rec, ("id", "cauldron_id", "cauldronId"))
        max_volume = _first(rec, ("max_volume", "maxVolume"))
        if cid is None or max_volume is None:
            raise DataFormatError(f"cauldron record missing id or max_volume: {rec}")

        cid = str(cid)
        max_volume = float(max_volume)
        current = _first(rec, ("current_volume", "currentVolume", "level", "volume"))
        fill = _first(rec, ("fill_rate", "fillRate"))
        drain = _first(rec, ("drain_rate", "drainRate"))

        rows = by_cauldron.get(cid)
        if fill is None:
            fill = estimate_fill_rate(rows) if rows else 0.0
        if current is None:
            current = rows[-1].volume if rows else 0.0
        current = float(current)

        out.append(
            Cauldron(
                id=cid,
                name=str(_first(rec, ("name",), cid)),
                max_volume=max_volume,
                fill_rate=float(fill),
                current_volume=max(0.0, min(max_volume, current)),
                node_id=str(_first(rec, ("node_id", "nodeId"), cid)),
                latitude=_first(rec, ("latitude", "lat")),
                longitude=_first(rec, ("longitude", "lon", "long")),
                drain_rate=None if drain is None else float(drain),
            )
        )
    return out


def parse_edges(data: Any) -> List[Edge]:
    out: List[Edge] = []
    for rec in _records(data, "edges"):
        a = _first(rec, ("from", "from_node", "source"))
        b = _first(rec, ("to", "to_node", "target"))
        cost = _first(rec, ("travel_time_minutes", "travelTimeMinutes", "cost"))
        if a is None or b is None or cost is None:
            raise DataFormatError(f"edge record missing from/to/travel time: {rec}")
        out.append(Edge(from_node=str(a), to_node=str(b), travel_time_minutes=parse_cost_minutes(cost)))
    return out


def parse_couriers(data: Any, default_capacity: float = DEFAULT_COURIER_CAPACITY) -> List[Courier]:
    out: List[Courier] = []
    for i, rec in enumerate(_records(data, "couriers"), 1):
        cid = str(_first(rec, ("courier_id", "id", "courierId"), f"courier_{i:02d}"))
        cap = float(_first(rec, ("max_carrying_capacity", "capacity", "maxCarryingCapacity"), default_capacity))
        out.append(Courier(id=cid, name=str(_first(rec, ("name",), cid)), capacity=cap))
    return out


def parse_level_records(data: Any) -> List[Reading]:
    """
    Upstream level data: [{timestamp, cauldron_levels: {cauldron_id: volume}}].
    Flattened with pandas, melted to one Reading per (cauldron, timestamp).
    """
    records = _records(data, "data")
    if not records:
        return []

    df = pd.json_normalize(records)
    if "timestamp" not in df.columns:
        raise DataFormatError("level records need a timestamp")

    level_cols = [c for c in df.columns if c.startswith("cauldron_levels.")]
    long = df.melt(id_vars=["timestamp"], value_vars=level_cols, var_name="cauldron_id", value_name="volume")
    long["cauldron_id"] = long["cauldron_id"].str.replace("cauldron_levels.", "", regex=False)
    return _frame_to_readings(long)


def _frame_to_readings(df: pd.DataFrame) -> List[Reading]:
    df = df.dropna(subset=["volume"]).copy()
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
    df = df.sort_values(["cauldron_id", "timestamp"])
    return [
        Reading(cauldron_id=str(cid), timestamp=ts.to_pydatetime(), volume=float(v))
        for cid, ts, v in zip(df["cauldron_id"], df["timestamp"], df["volume"])
    ]


def load_readings_csv(path: str | Path) -> List[Reading]:
    """Long-format CSV: cauldron_id,timestamp,volume"""
    df = pd.read_csv(Path(path))
    missing = {"cauldron_id", "timestamp", "volume"} - set(df.columns)
    if missing:
        raise DataFormatError(f"readings CSV missing columns {sorted(missing)}: {path}")
    return _frame_to_readings(df)


def load_network_json(path: str | Path = DEFAULT_NETWORK_FILE) -> NetworkData:
    """
    One JSON document with keys: cauldrons, network (or edges), couriers,
    market, and optionally levels.
    """
    with open(path) as f:
        raw = json.load(f)

    readings = parse_level_records(raw.get("levels"))
    cauldrons = parse_cauldrons(raw.get("cauldrons"), readings)
    edges = parse_edges(raw.get("network", raw.get("edges")))
    couriers = parse_couriers(raw.get("couriers"))
    market = raw.get("market") or {}
    market_id = str(_first(market, ("id", "market_id", "marketId"), DEFAULT_MARKET_ID))

    return NetworkData(
        cauldrons=cauldrons,
        edges=edges,
        couriers=couriers,
        market_id=market_id,
        readings=readings,
    )
