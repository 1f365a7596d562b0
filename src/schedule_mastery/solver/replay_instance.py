from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from schedule_mastery.domain.rules import DisruptionSpec
from schedule_mastery.engine.controller import ScheduleController
from schedule_mastery.engine.disruptions import DisruptionScheduler
from schedule_mastery.engine.errors import ScheduleError
from schedule_mastery.engine.session import GameSession
from schedule_mastery.preprocessing.loaders import load_instance
from schedule_mastery.preprocessing.validate_instance import (
    validate_fleet,
    validate_routes,
    validate_rules,
    validate_turn_times,
)
from schedule_mastery.visualization.report import build_report_frames, save_plots, save_tables

logger = logging.getLogger(__name__)


def apply_action(session: GameSession, action: Dict[str, Any]) -> Dict[str, Any]:
    """
    Run one player intent (or timer step) against the session.

    Returns an outcome record; rejected actions are recorded with their error
    code and leave the schedule untouched.
    """
    ctrl = session.controller
    a_type = action["type"]
    a_id = action.get("aircraft_id")
    outcome: Dict[str, Any] = {"action": dict(action), "ok": True}

    try:
        if a_type == "add":
            placed = ctrl.add_trip(a_id, action["route_id"], action.get("start"))
            outcome.update(
                trip_id=placed.trip_id,
                start=placed.start,
                end=placed.end,
                crew_index=placed.crew_index,
                crew_change=placed.crew_change,
            )

        elif a_type == "preview":
            preview = ctrl.preview_trip(a_id, action["route_id"], action.get("start"))
            outcome.update(
                ok=preview.ok,
                error=preview.error_code,
                message=preview.message,
                segments=[[s.kind.value, s.start, s.end] for s in preview.segments],
            )

        elif a_type == "delete":
            if "segment_id" in action:
                removed = ctrl.delete_segment(a_id, action["segment_id"])
            else:
                removed = ctrl.delete_trip(a_id, action["trip_id"])
            outcome["removed"] = [s.segment_id for s in removed]

        elif a_type == "reschedule":
            moved = ctrl.reschedule_trip_start(a_id, action["trip_id"], int(action["start"]))
            outcome["start"] = min(s.start for s in moved)

        elif a_type == "arm_crew_change":
            ctrl.arm_crew_change(a_id, action.get("crew_index"))

        elif a_type == "disarm_crew_change":
            ctrl.disarm_crew_change(a_id)

        elif a_type == "advance":
            fired = session.advance(float(action["seconds"]))
            outcome["fired"] = [{"kind": t.kind.value, "target": t.target} for t in fired]

        elif a_type == "disruption":
            if session.scheduler is None:
                raise ValueError("Disruption actions need a scheduler")
            token = session.scheduler.fire(
                DisruptionSpec(kind=action["kind"], target=action["target"], message=action.get("message", ""))
            )
            outcome["token_id"] = token.token_id

        else:
            raise ValueError(f"Unknown action type: {a_type}")

    except ScheduleError as exc:
        outcome.update(ok=False, error=exc.code, message=exc.message)

    return outcome


def timeline_payload(ctrl: ScheduleController) -> Dict[str, List[Dict[str, Any]]]:
    return {
        a_id: [
            {
                "segment_id": s.segment_id,
                "trip_id": s.trip_id,
                "kind": s.kind.value,
                "start": s.start,
                "end": s.end,
                "origin": s.origin,
                "destination": s.destination,
                "route_id": s.route_id,
                "crew_index": s.crew_index,
                "charter": s.charter,
            }
            for s in ctrl.timeline(a_id)
        ]
        for a_id in ctrl.aircraft_ids
    }


def replay_instance(
    instance_dir: Path,
    *,
    seed: Optional[int] = None,
    disruptions: bool = False,
    save_session: bool = True,
    save_report: bool = True,
    out_root: Path = Path("outputs"),
    tag: str | None = None,
) -> Dict[str, Any]:
    """
    Replay one instance's actions and return the day summary + output paths.

    If tag is provided, outputs go to:
      outputs/sessions/<tag>/<instance_name>/
    otherwise:
      outputs/session/ and outputs/report/
    """
    instance_dir = instance_dir.resolve()
    inst = load_instance(instance_dir)

    validate_fleet(inst.fleet)
    validate_turn_times(inst.turn_times)
    validate_routes(inst.routes, inst.rules)
    validate_rules(inst.rules, inst.fleet)

    ctrl = ScheduleController(inst.fleet, inst.routes, inst.rules)
    scheduler = DisruptionScheduler(ctrl, seed=seed, table=None if disruptions else [])
    session = GameSession(ctrl, scheduler)

    outcomes = [apply_action(session, a) for a in inst.actions]
    rejected = sum(1 for o in outcomes if not o["ok"])
    logger.info("Replayed %d actions on %s (%d rejected)", len(outcomes), inst.name, rejected)

    # Output directories
    if tag:
        base_out = out_root / "sessions" / tag / inst.name
    else:
        base_out = out_root

    ses_dir = base_out / "session"
    rep_dir = base_out / "report"

    summary = session.summary()
    result: Dict[str, Any] = {
        "instance_dir": str(instance_dir),
        "instance_name": inst.name,
        "n_actions": len(outcomes),
        "n_rejected": rejected,
        "total_score": summary["total_score"],
    }

    if save_session:
        ses_dir.mkdir(parents=True, exist_ok=True)
        out_path = ses_dir / "session.json"
        payload = {
            "instance_dir": str(instance_dir),
            "summary": summary,
            "outcomes": outcomes,
            "timelines": timeline_payload(ctrl),
        }
        out_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        result["session_json"] = str(out_path)

    if save_report:
        frames = build_report_frames(ctrl)
        save_tables(frames, rep_dir)
        save_plots(frames, rep_dir)
        result["report_dir"] = str(rep_dir)

    return result
