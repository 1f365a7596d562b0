from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Sequence

from schedule_mastery.domain.rules import Rules
from schedule_mastery.domain.segment import Segment
from schedule_mastery.engine.crew_duty import CrewKpi, crew_kpis


@dataclass(frozen=True)
class AircraftScore:
    """
    Score and KPIs of one aircraft timeline.

    Attributes
    ----------
    points : int
        Total points after bonuses and penalties.
    flight_minutes : int
        Block minutes of all legs.
    duty_minutes : int
        Minutes of all segments (legs, turnarounds and gaps), the quantity
        held against the aircraft duty cap.
    trips : int
        Round trips on the timeline.
    idle_minutes : int
        Unused minutes between consecutive flying/turnaround segments.
    crews : List[CrewKpi]
        Per-crew sectors and duty window.
    breakdown : Dict[str, int]
        Contribution of each scoring term.
    """
    points: int = 0
    flight_minutes: int = 0
    duty_minutes: int = 0
    trips: int = 0
    idle_minutes: int = 0
    crews: List[CrewKpi] = field(default_factory=list)
    breakdown: Dict[str, int] = field(default_factory=dict)


def points_for_block(block_minutes: int, route_type: str, rules: Rules | None = None) -> int:
    """Duration points clamped to [2, 8], plus the route-type bonus."""
    rules = rules or Rules()
    base = block_minutes // rules.leg_points_step
    base = max(rules.min_leg_points, min(rules.max_leg_points, base))
    return base + int(rules.route_type_bonus.get(route_type, 0))


def leg_points(segment: Segment, rules: Rules | None = None) -> int:
    return points_for_block(segment.duration_min, segment.route_type, rules)


def idle_minutes(timeline: Iterable[Segment]) -> int:
    busy = sorted((s for s in timeline if not s.is_gap), key=lambda s: s.start)
    idle = 0
    for prev, nxt in zip(busy, busy[1:]):
        idle += max(0, nxt.start - prev.end)
    return idle


def score_timeline(timeline: Sequence[Segment], rules: Rules | None = None) -> AircraftScore:
    rules = rules or Rules()

    legs = [s for s in timeline if s.is_leg]
    if not legs:
        return AircraftScore()

    non_gap = [s for s in timeline if not s.is_gap]
    flight_minutes = sum(s.duration_min for s in legs)
    idle = idle_minutes(timeline)

    terms: Dict[str, int] = {
        "legs": sum(leg_points(s, rules) for s in legs),
        "utilization": rules.utilization_bonus if flight_minutes >= rules.utilization_threshold else 0,
        "late_duty": -rules.late_penalty if max(s.end for s in legs) > rules.late_arrival else 0,
        "curfew": 0,
        "idle": -(idle // rules.idle_step),
        "charter": rules.charter_bonus * len({s.trip_id for s in legs if s.charter}),
    }

    # [curfew_open, curfew_end); an inbound may end exactly on the boundary
    if any(
        s.start < rules.curfew_open or s.start >= rules.curfew_end or s.end > rules.curfew_end
        for s in non_gap
    ):
        terms["curfew"] = -rules.curfew_penalty

    return AircraftScore(
        points=int(sum(terms.values())),
        flight_minutes=flight_minutes,
        duty_minutes=sum(s.duration_min for s in timeline),
        trips=len({s.trip_id for s in legs}),
        idle_minutes=idle,
        crews=crew_kpis(timeline, rules),
        breakdown=terms,
    )


def total_score(scores: Mapping[str, AircraftScore]) -> int:
    return sum(s.points for s in scores.values())
