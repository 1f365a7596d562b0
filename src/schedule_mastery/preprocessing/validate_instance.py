from __future__ import annotations

from typing import Dict, Sequence

from schedule_mastery.domain.disruption import DisruptionKind
from schedule_mastery.domain.route import Aircraft, Route
from schedule_mastery.domain.rules import Rules


ALLOWED_TYPES = {"A320", "A321"}
ALLOWED_ROUTE_TYPES = {"Domestic", "Holidays", "Leisure"}


def validate_fleet(fleet: Sequence[Aircraft]) -> None:
    ids = [a.aircraft_id for a in fleet]
    if len(set(ids)) != len(ids):
        raise ValueError("Duplicate aircraft_id found in fleet.json")

    for a in fleet:
        if a.aircraft_type not in ALLOWED_TYPES:
            raise ValueError(f"Invalid type for aircraft {a.aircraft_id}: {a.aircraft_type}")


def validate_routes(routes: Sequence[Route], rules: Rules) -> None:
    ids = [r.route_id for r in routes]
    if len(set(ids)) != len(ids):
        raise ValueError("Duplicate route_id found in routes.json")

    day = rules.curfew_end - rules.day_start
    for r in routes:
        if r.origin == r.destination:
            raise ValueError(f"Route {r.route_id} starts and ends at {r.origin}")
        if r.block_minutes <= 0:
            raise ValueError(f"Route {r.route_id} block must be > 0")
        if r.block_minutes % rules.grid_minutes:
            raise ValueError(f"Route {r.route_id} block is off the {rules.grid_minutes}-minute grid")
        if r.requested < 0:
            raise ValueError(f"Route {r.route_id} has negative requested count")
        if r.route_type not in ALLOWED_ROUTE_TYPES:
            raise ValueError(f"Route {r.route_id} has unknown type: {r.route_type}")
        for ac_type in ALLOWED_TYPES:
            if r.trip_span(ac_type) > day:
                raise ValueError(f"Route {r.route_id} round trip does not fit in the operating day")


def validate_turn_times(turn_times: Dict[str, Dict[str, int]]) -> None:
    for airport, by_type in turn_times.items():
        for ac_type, minutes in by_type.items():
            if ac_type not in ALLOWED_TYPES:
                raise ValueError(f"Turn time at {airport} for unknown type: {ac_type}")
            if minutes <= 0:
                raise ValueError(f"Turn time at {airport} for {ac_type} must be > 0")


def validate_rules(rules: Rules, fleet: Sequence[Aircraft]) -> None:
    if not (0 <= rules.curfew_open <= rules.day_start < rules.curfew_end <= 24 * 60):
        raise ValueError("Rules need curfew_open <= day_start < curfew_end within the day")
    if rules.max_crews < 1 or rules.max_sectors < 2:
        raise ValueError("Rules need at least one crew and two sectors per crew")

    aircraft_ids = {a.aircraft_id for a in fleet}
    for d in rules.disruptions:
        kind = DisruptionKind(d.kind)
        if kind is not DisruptionKind.DELAY and d.target not in aircraft_ids:
            raise ValueError(f"Disruption {d.kind} targets unknown aircraft: {d.target}")
        if d.weight < 0:
            raise ValueError(f"Disruption {d.kind} has negative weight")
