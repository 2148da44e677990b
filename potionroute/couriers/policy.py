# potionroute/couriers/policy.py
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RoutingPolicy:
    """
    Knobs shared by the trip builder, fleet scheduler and verifier.

    Fractions are shares of a cauldron's max volume unless noted.
    """

    # ---- collection targets ----
    target_fraction: float = 0.30        # drain toward this level
    serviced_fraction: float = 0.50      # below this after a visit = fully serviced
    min_collect_volume: float = 20.0     # smallest pickup worth a stop

    # ---- courier load ----
    capacity_utilization: float = 1.0    # share of courier capacity usable per trip
    comfortable_fill_fraction: float = 1.00  # share of capacity (not max volume)

    # ---- trip bounds ----
    late_tolerance_minutes: float = 60.0
    max_trip_minutes: float = 120.0
    max_stops_per_trip: int = 10
    market_unload_minutes: float = 15.0

    # ---- service (drain) duration ----
    fallback_service_minutes: float = 30.0
    min_service_minutes: float = 10.0
    max_service_minutes: float = 60.0

    # ---- scoring weights ----
    w_urgency: float = 10000.0
    w_proximity: float = 1000.0
    w_efficiency: float = 0.5
    capacity_bonus: float = 2000.0

    # ---- fleet scheduler ----
    max_total_trips: int = 200
    managed_visit_count: int = 10
    courier_check_interval: int = 5
    day_minutes: float = 1440.0

    # ---- cycle time ----
    post_service_fraction: float = 0.20
    near_full_fraction: float = 0.90
    cycle_safety_margin: float = 0.70

    # ---- verifier ----
    warning_fraction: float = 0.90

    def validate(self) -> "RoutingPolicy":
        for name in (
            "target_fraction",
            "serviced_fraction",
            "comfortable_fill_fraction",
            "post_service_fraction",
            "near_full_fraction",
            "warning_fraction",
        ):
            v = getattr(self, name)
            if not 0.0 <= v <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {v}")

        if not 0.0 < self.capacity_utilization <= 1.0:
            raise ValueError("capacity_utilization must be within (0, 1]")
        if not 0.0 < self.cycle_safety_margin < 1.0:
            raise ValueError("cycle_safety_margin must be within (0, 1)")
        if self.post_service_fraction >= self.near_full_fraction:
            raise ValueError("post_service_fraction must be below near_full_fraction")
        if self.min_collect_volume < 0:
            raise ValueError("min_collect_volume must be >= 0")
        if self.min_service_minutes > self.max_service_minutes:
            raise ValueError("min_service_minutes must not exceed max_service_minutes")
        if self.max_stops_per_trip <= 0 or self.max_total_trips <= 0:
            raise ValueError("stop and trip ceilings must be > 0")
        if self.managed_visit_count <= 0 or self.courier_check_interval <= 0:
            raise ValueError("managed_visit_count and courier_check_interval must be > 0")
        if self.day_minutes <= 0:
            raise ValueError("day_minutes must be > 0")
        return self


DEFAULT_POLICY = RoutingPolicy()
