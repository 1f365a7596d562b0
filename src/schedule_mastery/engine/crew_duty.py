from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from schedule_mastery.domain.route import Route
from schedule_mastery.domain.rules import Rules
from schedule_mastery.domain.segment import Segment, make_gap
from schedule_mastery.engine.errors import CrewLimitReached, Infeasible
from schedule_mastery.engine.trip_planner import PlannedTrip, plan_trip

logger = logging.getLogger(__name__)

AUTOMATIC = "automatic"
MANUAL = "manual"


@dataclass(frozen=True)
class CrewDutyState:
    """
    Crew situation of one aircraft, derived from its committed timeline.

    Attributes
    ----------
    crew_index : int
        Highest crew index flying on the aircraft (1 when nothing is scheduled).
    sectors : int
        Flight legs flown by that crew.
    duty_start : int or None
        Start of the crew's first leg.
    last_end : int or None
        End of the crew's last leg.
    pending_change : bool
        A manual crew change is armed for the next placement.
    pending_crew_index : int or None
        Crew requested by the armed change.
    """
    crew_index: int = 1
    sectors: int = 0
    duty_start: Optional[int] = None
    last_end: Optional[int] = None
    pending_change: bool = False
    pending_crew_index: Optional[int] = None


@dataclass(frozen=True)
class CrewCheck:
    mandatory: bool
    reason: str          # "", "sectors" or "duty"
    sectors_after: int
    duty_minutes: int
    limit_minutes: int


@dataclass(frozen=True)
class CrewPlan:
    """Outcome of crew evaluation for one placement."""
    trip: PlannedTrip
    crew_index: int
    gap: Optional[Segment] = None
    change: Optional[str] = None     # AUTOMATIC, MANUAL or None

    @property
    def segments(self) -> List[Segment]:
        segs = list(self.trip.segments)
        if self.gap is not None:
            segs.insert(0, self.gap)
        return segs


@dataclass(frozen=True)
class CrewKpi:
    crew_index: int
    sectors: int
    duty_start: int
    duty_end: int
    limit_minutes: int
    max_sectors: int

    @property
    def duty_minutes(self) -> int:
        return self.duty_end - self.duty_start

    @property
    def within_limits(self) -> bool:
        return self.sectors <= self.max_sectors and self.duty_minutes <= self.limit_minutes


def duty_limit(duty_start: int, rules: Rules | None = None) -> int:
    rules = rules or Rules()
    if duty_start < rules.early_start_threshold:
        return rules.early_duty_limit
    return rules.duty_limit


def _legs_by_crew(timeline: Iterable[Segment]) -> Dict[int, List[Segment]]:
    groups: Dict[int, List[Segment]] = defaultdict(list)
    for s in timeline:
        if s.is_leg and s.crew_index is not None:
            groups[s.crew_index].append(s)
    return groups


def recompute_crew_state(
        timeline: Sequence[Segment],
        pending_change: bool = False,
        pending_crew_index: Optional[int] = None,
) -> CrewDutyState:
    """
    Derive the crew state from scratch: the highest crew index present is the
    current crew, its legs give the sector count and duty window.
    """
    groups = _legs_by_crew(timeline)
    if not groups:
        return CrewDutyState(pending_change=pending_change, pending_crew_index=pending_crew_index)

    current = max(groups)
    legs = groups[current]
    return CrewDutyState(
        crew_index=current,
        sectors=len(legs),
        duty_start=min(s.start for s in legs),
        last_end=max(s.end for s in legs),
        pending_change=pending_change,
        pending_crew_index=pending_crew_index,
    )


def evaluate_trip(state: CrewDutyState, trip: PlannedTrip, rules: Rules | None = None) -> CrewCheck:
    """
    Decide whether the current crew can fly `trip`.

    A change is mandatory when the crew would exceed its sector cap or when
    its duty window, extended by the trip, would exceed the duty limit.
    """
    rules = rules or Rules()
    sectors_after = state.sectors + 2

    duty_start = trip.start if state.duty_start is None else min(state.duty_start, trip.start)
    duty_end = trip.end if state.last_end is None else max(state.last_end, trip.end)
    limit = duty_limit(duty_start, rules)
    duty_minutes = duty_end - duty_start

    reason = ""
    if sectors_after > rules.max_sectors:
        reason = "sectors"
    elif duty_minutes > limit:
        reason = "duty"

    return CrewCheck(
        mandatory=bool(reason),
        reason=reason,
        sectors_after=sectors_after,
        duty_minutes=duty_minutes,
        limit_minutes=limit,
    )


def plan_with_crew(
        existing: Sequence[Segment],
        route: Route,
        aircraft_type: str,
        desired_start: int,
        state: CrewDutyState,
        trip_id: str,
        gap_id: str,
        rules: Rules | None = None,
) -> CrewPlan:
    """
    Plan a trip and settle which crew flies it.

    If the current crew cannot take it (or a manual change is armed), the trip
    is re-planned after a crew-change gap and handed to the next crew. At most
    one change happens per placement. The re-plan reserves the gap's minutes
    as free time, so the new gap never coincides with an existing one.

    The incoming crew is checked against its own legs already on the
    timeline, so a manual change back to an earlier crew cannot push that
    crew past its sector or duty limit.

    Raises
    ------
    Infeasible
        No window holds the trip (or the trip plus its gap).
    CrewLimitReached
        The change would need a crew beyond ``rules.max_crews``, or the
        incoming crew cannot take the trip.
    """
    rules = rules or Rules()

    trip = plan_trip(existing, route, aircraft_type, desired_start, trip_id, rules=rules)
    if trip is None:
        raise Infeasible(f"No space for {route.route_id} before curfew")

    check = evaluate_trip(state, trip, rules)

    if check.mandatory:
        if state.crew_index >= rules.max_crews:
            raise CrewLimitReached(
                f"Crew limits reached: crew {state.crew_index} exceeds {check.reason} limit"
            )
        target = state.crew_index + 1
        change = AUTOMATIC
        logger.debug("Crew change required (%s): crew %d -> %d", check.reason, state.crew_index, target)
    elif state.pending_change:
        requested = state.pending_crew_index or state.crew_index + 1
        target = min(max(requested, 1), rules.max_crews)
        change = MANUAL
        logger.debug("Manual crew change armed: crew %d -> %d", state.crew_index, target)
    else:
        return CrewPlan(trip=trip.with_crew(state.crew_index), crew_index=state.crew_index)

    gap_len = rules.crew_change_gap
    shifted = plan_trip(
        existing, route, aircraft_type, desired_start + gap_len, trip_id,
        lead_in=gap_len, rules=rules,
    )
    if shifted is None:
        raise Infeasible(f"No space for {route.route_id} after a crew change")

    # a crew that already flew today keeps its sectors and duty window
    incoming = recompute_crew_state([s for s in existing if s.crew_index == target])
    fresh = evaluate_trip(incoming, shifted, rules)
    if fresh.mandatory:
        raise CrewLimitReached(
            f"Crew limits reached: {route.route_id} exceeds crew {target}'s {fresh.reason} limit"
        )

    gap = make_gap(gap_id, shifted.start - gap_len, shifted.start)
    return CrewPlan(trip=shifted.with_crew(target), crew_index=target, gap=gap, change=change)


def crew_kpis(timeline: Iterable[Segment], rules: Rules | None = None) -> List[CrewKpi]:
    rules = rules or Rules()
    kpis: List[CrewKpi] = []
    for crew_index, legs in sorted(_legs_by_crew(timeline).items()):
        start = min(s.start for s in legs)
        kpis.append(
            CrewKpi(
                crew_index=crew_index,
                sectors=len(legs),
                duty_start=start,
                duty_end=max(s.end for s in legs),
                limit_minutes=duty_limit(start, rules),
                max_sectors=rules.max_sectors,
            )
        )
    return kpis
