# main.py
import logging
import math
import os

from colorama import Fore, Style, init as colorama_init

from potionroute.scenarios.collection import collection_scenario
from potionroute.util.cauldrons import DEFAULT_NETWORK_FILE


NETWORK_JSON = os.environ.get("NETWORK_JSON", str(DEFAULT_NETWORK_FILE))
OUT_CSV = os.environ.get("OUT_CSV", "cauldron_levels.csv")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


def _fmt_minutes(m: float) -> str:
    return "never" if math.isinf(m) else f"{m:.1f} min"


def main():
    colorama_init()
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    scenario = collection_scenario(NETWORK_JSON, out_csv=OUT_CSV)
    plan = scenario.plan
    stats = plan.stats

    # ---- summary ----
    print(f"\n{Fore.MAGENTA}{scenario.name}{Style.RESET_ALL}")
    print(
        f"  couriers: {stats['fleet_size']} | trips: {stats['total_trips']} | "
        f"collected: {stats['total_volume']:.1f} L | "
        f"utilization: {stats['avg_capacity_utilization']:.1f}%"
    )
    print(f"  cycle time: {_fmt_minutes(plan.cycle_time)} | stop: {plan.stop_reason}")

    # ---- daily schedule ----
    print(f"\n{Fore.CYAN}Daily schedule:{Style.RESET_ALL}\n")
    for e in plan.daily_schedule:
        route = " → ".join(s.cauldron_id for s in e.trip.cauldron_stops)
        print(
            f"{e.start_clock}-{e.end_clock} | "
            f"{e.courier_name} trip {e.trip_number}/{e.total_trips} | "
            f"{route} ({e.trip.total_volume:.0f} L)"
        )

    # ---- problems ----
    for u in plan.uncovered:
        print(f"{Fore.RED}uncovered: {u.cauldron_id} ({u.reason}){Style.RESET_ALL}")
    for cid in plan.low_confidence:
        print(f"{Fore.YELLOW}default drain rate used for {cid}{Style.RESET_ALL}")
    for cid in plan.slow_drain:
        print(f"{Fore.YELLOW}{cid} fills faster than it drains{Style.RESET_ALL}")
    for ev in plan.verification.overflow_events:
        print(f"{Fore.RED}overflow: {ev.cauldron_id} at {ev.overflow_at:.0f} min (+{ev.amount:.1f} L){Style.RESET_ALL}")
    for w in plan.verification.warnings:
        print(f"{Fore.YELLOW}near full: {w.cauldron_id} at {w.time:.0f} min ({w.percentage:.0f}%){Style.RESET_ALL}")
    for f in plan.verification.unsustainable:
        print(f"{Fore.YELLOW}unsustainable: {f.cauldron_id} ({f.reason}){Style.RESET_ALL}")

    if scenario.forecast_csv:
        print(f"\n{Fore.GREEN}Level forecast written to {scenario.forecast_csv}{Style.RESET_ALL}")


if __name__ == "__main__":
    main()
