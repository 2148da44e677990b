# potionroute/scenarios/base.py
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from potionroute.planning.collection_planner import CollectionPlan


@dataclass
class Scenario:
    name: str
    plan: CollectionPlan
    forecast_csv: Path | None = None
    step_minutes: int = 10
    meta: dict = field(default_factory=dict)
