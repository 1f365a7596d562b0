from __future__ import annotations

import argparse
from collections import Counter
from pathlib import Path

from schedule_mastery.engine.time_windows import format_hhmm
from schedule_mastery.preprocessing.loaders import load_instance
from schedule_mastery.preprocessing.validate_instance import (
    validate_fleet,
    validate_routes,
    validate_rules,
    validate_turn_times,
)


DEFAULT_INSTANCE_DIR = Path("data/instances/default")


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--instance-dir",
        type=Path,
        default=DEFAULT_INSTANCE_DIR,
        help="Path to instance folder (default: data/instances/default)",
    )
    args = parser.parse_args()

    inst = load_instance(args.instance_dir)

    validate_fleet(inst.fleet)
    validate_turn_times(inst.turn_times)
    validate_routes(inst.routes, inst.rules)
    validate_rules(inst.rules, inst.fleet)

    print(f"Instance: {inst.name}")
    print("Fleet:", {a.aircraft_id: a.aircraft_type for a in inst.fleet})
    print("Routes by type:", dict(Counter(r.route_type for r in inst.routes)))
    print(f"Trips requested: {sum(r.requested for r in inst.routes)}")
    print(
        f"Operating day: {format_hhmm(inst.rules.day_start)}-{format_hhmm(inst.rules.curfew_end)}, "
        f"aircraft duty cap {inst.rules.aircraft_duty_cap} min"
    )

    print("\nRound-trip spans (min)")
    types = sorted({a.aircraft_type for a in inst.fleet})
    for r in inst.routes:
        spans = ", ".join(f"{t}={r.trip_span(t)}" for t in types)
        print(f"  {r.route_id} ({r.origin}-{r.destination}, block {format_hhmm(r.block_minutes)}): {spans}")

    print(f"\nActions: {len(inst.actions)}", dict(Counter(a['type'] for a in inst.actions)))


if __name__ == "__main__":
    main()
