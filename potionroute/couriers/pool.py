# potionroute/couriers/pool.py
"""
The pool of cauldrons still waiting for service during one planning run.

The pool is the only mutable state shared between successive trips. Three
operations change it and nothing else does:

  record_collection(cid, t_min, volume)   a courier drained `volume` at t_min
  mark_serviced(cid)                      brought below the safe level
  retire(cid)                             visited often enough to count as managed

Levels are replayed from the starting level and the list of recorded
collections, so a courier whose day starts earlier than another courier's
already-planned pickups still sees a consistent level at its own clock.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

from potionroute.cauldrons.types import Cauldron


@dataclass
class CauldronState:
    id: str
    name: str
    node_id: str
    max_volume: float
    fill_rate: float
    drain_rate: float
    initial_level: float
    collections: List[Tuple[float, float]] = field(default_factory=list)  # (t_min, volume)
    visits: int = 0

    @classmethod
    def from_cauldron(cls, c: Cauldron, drain_rate: float) -> "CauldronState":
        return cls(
            id=c.id,
            name=c.name,
            node_id=str(c.node_id),
            max_volume=float(c.max_volume),
            fill_rate=max(0.0, float(c.fill_rate)),
            drain_rate=float(drain_rate),
            initial_level=float(max(0.0, min(c.max_volume, c.current_volume))),
        )

    def _replay(self, t_min: float) -> float:
        """Unclamped level at t_min (may exceed max_volume)."""
        level = self.initial_level
        last = 0.0
        for tc, vol in sorted(self.collections):
            if tc > t_min:
                break
            level = min(self.max_volume, level + self.fill_rate * max(0.0, tc - last))
            level = max(0.0, level - vol)
            last = tc
        return level + self.fill_rate * max(0.0, t_min - last)

    def level_at(self, t_min: float) -> float:
        return min(self.max_volume, self._replay(t_min))

    def available_at(self, t_min: float) -> float:
        """
        Most that can be drained at t_min without starving a pickup already
        recorded for t_min or later: the level now, and the level left right
        after each of those pickups.
        """
        available = self.level_at(t_min)
        for tc, _ in self.collections:
            if tc >= t_min:
                available = min(available, self.level_at(tc))
        return max(0.0, available)

    def time_until_overflow(self, t_min: float) -> float:
        if self.fill_rate <= 0:
            return math.inf
        return max(0.0, (self.max_volume - self._replay(t_min)) / self.fill_rate)


class ServicePool:
    def __init__(self, states: Iterable[CauldronState]):
        self._states: Dict[str, CauldronState] = {}
        self._active: List[str] = []
        for s in states:
            self._states[s.id] = s
            self._active.append(s.id)

    def __len__(self) -> int:
        return len(self._active)

    def __bool__(self) -> bool:
        return bool(self._active)

    def __contains__(self, cid: str) -> bool:
        return cid in self._active

    def state(self, cid: str) -> CauldronState:
        return self._states[cid]

    def all_states(self) -> List[CauldronState]:
        return list(self._states.values())

    def active_ids(self) -> List[str]:
        return list(self._active)

    def active_states(self) -> List[CauldronState]:
        return [self._states[cid] for cid in self._active]

    def record_collection(self, cid: str, t_min: float, volume: float) -> float:
        """Apply a pickup and return the cauldron level right after it."""
        st = self._states[cid]
        st.collections.append((float(t_min), float(volume)))
        st.visits += 1
        return st.level_at(t_min)

    def mark_serviced(self, cid: str) -> bool:
        return self._drop(cid)

    def retire(self, cid: str) -> bool:
        return self._drop(cid)

    def _drop(self, cid: str) -> bool:
        if cid in self._active:
            self._active.remove(cid)
            return True
        return False
