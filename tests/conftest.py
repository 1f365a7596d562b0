from __future__ import annotations

from dataclasses import replace
from typing import Dict, List, Optional

import pytest

from schedule_mastery.domain.route import Aircraft, Route
from schedule_mastery.domain.segment import Segment
from schedule_mastery.engine.controller import ScheduleController
from schedule_mastery.engine.trip_planner import build_trip


def make_route(
    route_id: str = "NAPCTA",
    destination: str = "CTA",
    block: int = 65,
    route_type: str = "Domestic",
    requested: int = 6,
    turns: Optional[Dict[str, int]] = None,
) -> Route:
    return Route(
        route_id=route_id,
        origin="NAP",
        destination=destination,
        block_minutes=block,
        route_type=route_type,
        requested=requested,
        turn_times=turns or {"A320": 35, "A321": 45},
    )


CTA = make_route()                                                      # A320 span 165
IBZ = make_route("NAPIBZ", "IBZ", 125, "Leisure", 4)                    # A320 span 285
PMO = make_route("NAPPMO", "PMO", 55, "Domestic", 4, {"A320": 35, "A321": 40})
LGW = make_route("NAPLGW", "LGW", 175, "Leisure", 2)                    # A320 span 385
MLA = make_route("NAPMLA", "MLA", 75, "Leisure", 2, {"A320": 40, "A321": 50})

ROUTES = [CTA, IBZ, PMO, LGW, MLA]
FLEET = [Aircraft("A1", "A320"), Aircraft("A2", "A321"), Aircraft("A3", "A321")]


def make_trip(
    route: Route,
    start: int,
    trip_id: str,
    crew: Optional[int] = 1,
    aircraft_type: str = "A320",
) -> List[Segment]:
    trip = build_trip(route, aircraft_type, start, trip_id)
    return [replace(s, crew_index=crew) for s in trip.segments]


def assert_trips_contiguous(timeline) -> None:
    by_trip: Dict[str, List[Segment]] = {}
    for s in timeline:
        if not s.is_gap:
            by_trip.setdefault(s.trip_id, []).append(s)

    for trip_id, segs in by_trip.items():
        assert len(segs) == 3, trip_id
        out, turn, inb = sorted(segs, key=lambda s: s.start)
        assert out.end == turn.start
        assert turn.end == inb.start


def assert_sector_cap(timeline, max_sectors: int = 4) -> None:
    run, crew = 0, None
    for s in timeline:
        if s.is_gap:
            run, crew = 0, None
            continue
        if not s.is_leg:
            continue
        if s.crew_index != crew:
            run, crew = 0, s.crew_index
        run += 1
        assert run <= max_sectors


@pytest.fixture
def ctrl() -> ScheduleController:
    return ScheduleController(FLEET, ROUTES)
