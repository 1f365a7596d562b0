from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from schedule_mastery.solver.replay_instance import replay_instance


DEFAULT_INSTANCE_DIR = Path("data/instances/default")


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--instance-dir", type=Path, default=DEFAULT_INSTANCE_DIR)
    parser.add_argument("--out-root", type=Path, default=Path("outputs"))
    parser.add_argument("--tag", type=str, default=None)
    parser.add_argument("--seed", type=int, default=None, help="Seed for random disruptions")
    parser.add_argument("--disruptions", action="store_true", help="Fire random disruptions on timer steps")
    parser.add_argument("--no-report", action="store_true")
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    result = replay_instance(
        args.instance_dir,
        seed=args.seed,
        disruptions=args.disruptions,
        save_report=not args.no_report,
        out_root=args.out_root,
        tag=args.tag,
    )

    session_path = Path(result["session_json"])
    payload = json.loads(session_path.read_text(encoding="utf-8"))

    print(f"Actions: {result['n_actions']} ({result['n_rejected']} rejected)")
    for o in payload["outcomes"]:
        a = o["action"]
        if not o["ok"]:
            print(f"  REJECTED {a['type']} {a.get('aircraft_id', '')} {a.get('route_id', '')}: {o.get('message')}")

    print("\nScore")
    for a_id, s in payload["summary"]["aircraft"].items():
        crews = ", ".join(f"crew {c['crew_index']}: {c['sectors']} sectors" for c in s["crews"])
        print(f"  {a_id}: {s['points']} pts | {s['trips']} trips | flight {s['flight_minutes']} min | {crews}")
    print(f"  total: {result['total_score']}")

    print("\nOutputs")
    print(f"  session_json: {session_path}")
    if "report_dir" in result:
        print(f"  report_dir: {result['report_dir']}")


if __name__ == "__main__":
    main()
