# potionroute/scenarios/collection.py
from __future__ import annotations

from pathlib import Path

from colorama import Fore, Style

from potionroute.couriers.policy import RoutingPolicy
from potionroute.couriers.verifier import predict_levels
from potionroute.planning.collection_planner import plan_collection_schedule
from potionroute.util.cauldrons import DEFAULT_NETWORK_FILE, NetworkData, load_network_json

from .base import Scenario


def collection_scenario(
    network: NetworkData | str | Path = DEFAULT_NETWORK_FILE,
    *,
    name: str = "Potion collection",
    policy: RoutingPolicy | None = None,
    hours: float = 48,
    step_minutes: int = 10,
    out_csv: str | None = "cauldron_levels.csv",
    progress: bool = True,
) -> Scenario:
    """
    Plan a collection day for one network and forecast cauldron levels with
    the day's schedule repeating.

    Args:
      network: loaded NetworkData, or a path to the network JSON
      policy: routing knobs (defaults when None)
      hours: length of the level forecast
      step_minutes: forecast resolution
      out_csv: where to write the forecast; None to skip writing
    """
    if not isinstance(network, NetworkData):
        print(f"{Fore.CYAN}Loading network {network}…{Style.RESET_ALL}")
        network = load_network_json(network)

    print(
        f"{Fore.CYAN}Planning {len(network.cauldrons)} cauldrons, "
        f"{len(network.couriers)} couriers on the roster…{Style.RESET_ALL}"
    )
    plan = plan_collection_schedule(
        cauldrons=network.cauldrons,
        readings=network.readings,
        edges=network.edges,
        market_id=network.market_id,
        couriers=network.couriers,
        policy=policy,
        progress=progress,
    )

    covered = {c.id for c in network.cauldrons} - set(plan.uncovered_ids)
    levels = predict_levels(
        [c for c in network.cauldrons if c.id in covered],
        plan.daily_schedule,
        plan.verification.repeat_minutes,
        hours=hours,
        step_minutes=step_minutes,
    )

    out_path = None
    if out_csv:
        out_path = Path(out_csv)
        print(f"{Fore.CYAN}Writing {out_path}…{Style.RESET_ALL}")
        levels.to_csv(out_path, index=False)

    if plan.verification.no_overflow:
        print(f"{Fore.GREEN}Schedule verified: no overflow.{Style.RESET_ALL}")
    else:
        print(
            f"{Fore.RED}{len(plan.verification.overflow_events)} overflow events "
            f"in the verified day{Style.RESET_ALL}"
        )

    return Scenario(
        name=name,
        plan=plan,
        forecast_csv=out_path,
        step_minutes=step_minutes,
        meta={
            "type": "collection",
            "market_id": network.market_id,
            "levels": levels,
            "peak_percentage": float(levels["percentage"].max()) if len(levels) else 0.0,
        },
    )
