from __future__ import annotations

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, List

from schedule_mastery.domain.route import Aircraft, Route
from schedule_mastery.domain.rules import DisruptionSpec, Rules
from schedule_mastery.engine.time_windows import parse_block


@dataclass(frozen=True)
class Instance:
    name: str
    fleet: List[Aircraft]
    routes: List[Route]
    turn_times: Dict[str, Dict[str, int]]
    rules: Rules
    actions: List[Dict[str, Any]]


def _read_json(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Missing file: {path}")
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def load_fleet(path: Path) -> List[Aircraft]:
    obj = _read_json(path)
    return [
        Aircraft(aircraft_id=a["aircraft_id"], aircraft_type=a["aircraft_type"])
        for a in obj.get("aircraft", [])
    ]


def load_turn_times(path: Path) -> Dict[str, Dict[str, int]]:
    obj = _read_json(path)
    return {
        airport: {ac_type: int(m) for ac_type, m in by_type.items()}
        for airport, by_type in obj.get("turn_times", {}).items()
    }


def _block_minutes(r: Dict[str, Any]) -> int:
    if "block_minutes" in r:
        return int(r["block_minutes"])
    return parse_block(str(r["block"]))


def load_routes(path: Path, turn_times: Dict[str, Dict[str, int]] | None = None) -> List[Route]:
    """
    Routes with their destination turn times attached. A route may carry its
    own ``turn_times`` which take precedence over the airport table.
    """
    obj = _read_json(path)
    turn_times = turn_times or {}
    routes = []
    for r in obj.get("routes", []):
        turns = dict(turn_times.get(r["destination"], {}))
        turns.update({k: int(v) for k, v in r.get("turn_times", {}).items()})
        routes.append(
            Route(
                route_id=r["route_id"],
                origin=r["origin"],
                destination=r["destination"],
                block_minutes=_block_minutes(r),
                route_type=r.get("route_type", ""),
                requested=int(r.get("requested", 1)),
                turn_times=turns,
            )
        )
    return routes


def load_rules(path: Path) -> Rules:
    """
    Rules overrides; a missing file means the default rules.
    """
    if not path.exists():
        return Rules()  # rules are optional

    obj = _read_json(path)
    known = {f.name for f in fields(Rules)}
    unknown = set(obj) - known
    if unknown:
        raise ValueError(f"Unknown rule keys in {path.name}: {sorted(unknown)}")

    overrides: Dict[str, Any] = {}
    for key, value in obj.items():
        if key == "disruptions":
            overrides[key] = [
                DisruptionSpec(
                    kind=d["kind"],
                    target=d["target"],
                    weight=int(d.get("weight", 1)),
                    message=d.get("message", ""),
                )
                for d in value
            ]
        elif key == "route_type_bonus":
            overrides[key] = {k: int(v) for k, v in value.items()}
        else:
            overrides[key] = int(value)
    return Rules(**overrides)


def load_actions(path: Path) -> List[Dict[str, Any]]:
    if not path.exists():
        return []  # actions are optional

    obj = _read_json(path)
    return list(obj.get("actions", []))


def load_instance(instance_dir: Path) -> Instance:
    turn_times = load_turn_times(instance_dir / "turn_times.json")
    return Instance(
        name=instance_dir.name,
        fleet=load_fleet(instance_dir / "fleet.json"),
        routes=load_routes(instance_dir / "routes.json", turn_times),
        turn_times=turn_times,
        rules=load_rules(instance_dir / "rules.json"),
        actions=load_actions(instance_dir / "actions.json"),
    )
