from __future__ import annotations

import argparse
import json
from pathlib import Path

from schedule_mastery.engine.time_windows import format_hhmm
from schedule_mastery.model.par_model import solve_par
from schedule_mastery.preprocessing.loaders import load_instance


DEFAULT_INSTANCE_DIR = Path("data/instances/default")


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--instance-dir", type=Path, default=DEFAULT_INSTANCE_DIR)
    parser.add_argument("--time-limit", type=float, default=10.0)
    args = parser.parse_args()

    inst = load_instance(args.instance_dir)
    inventory = {r.route_id: r.requested for r in inst.routes}

    res = solve_par(inst.fleet, inst.routes, inventory, inst.rules, time_limit=args.time_limit)

    print("Status:", res.status)
    if res.points is None:
        print("No par schedule found.")
        return

    print(f"Par score: {res.points}")
    print("\nTrips:")
    for t in res.trips:
        print(f"  {t['aircraft_id']}: {t['route_id']} {format_hhmm(t['start'])}-{format_hhmm(t['end'])} ({t['points']} pts)")

    out_dir = Path("outputs/par")
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / f"par_{inst.name}.json"

    payload = {
        "instance_dir": str(args.instance_dir),
        "status": res.status,
        "par_points": res.points,
        "trips": res.trips,
    }
    out_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    print(f"\nSaved: {out_path}")


if __name__ == "__main__":
    main()
