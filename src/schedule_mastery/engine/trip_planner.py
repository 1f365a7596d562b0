from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Iterable, Optional, Tuple

from schedule_mastery.domain.route import Route
from schedule_mastery.domain.rules import Rules
from schedule_mastery.domain.segment import Segment, SegmentKind
from schedule_mastery.engine.time_windows import free_windows, snap_up

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlannedTrip:
    """
    A proposed round trip: outbound, turnaround and inbound, contiguous.

    Nothing is committed by planning; the controller decides whether the
    proposal becomes part of the timeline.
    """
    trip_id: str
    outbound: Segment
    turnaround: Segment
    inbound: Segment

    @property
    def segments(self) -> Tuple[Segment, Segment, Segment]:
        return (self.outbound, self.turnaround, self.inbound)

    @property
    def start(self) -> int:
        return self.outbound.start

    @property
    def end(self) -> int:
        return self.inbound.end

    @property
    def span(self) -> int:
        return self.end - self.start

    def with_crew(self, crew_index: int, charter: bool = False) -> "PlannedTrip":
        return PlannedTrip(
            trip_id=self.trip_id,
            outbound=replace(self.outbound, crew_index=crew_index, charter=charter),
            turnaround=replace(self.turnaround, crew_index=crew_index, charter=charter),
            inbound=replace(self.inbound, crew_index=crew_index, charter=charter),
        )


def build_trip(route: Route, aircraft_type: str, start: int, trip_id: str) -> PlannedTrip:
    block = route.block_minutes
    turn = route.turn_minutes(aircraft_type)

    out_end = start + block
    in_start = out_end + turn

    outbound = Segment(
        segment_id=f"{trip_id}/out",
        trip_id=trip_id,
        kind=SegmentKind.OUTBOUND,
        start=start,
        end=out_end,
        origin=route.origin,
        destination=route.destination,
        block_minutes=block,
        route_type=route.route_type,
        route_id=route.route_id,
    )
    turnaround = Segment(
        segment_id=f"{trip_id}/turn",
        trip_id=trip_id,
        kind=SegmentKind.TURNAROUND,
        start=out_end,
        end=in_start,
        origin=route.destination,
        destination=route.destination,
        route_type=route.route_type,
        route_id=route.route_id,
    )
    inbound = Segment(
        segment_id=f"{trip_id}/in",
        trip_id=trip_id,
        kind=SegmentKind.INBOUND,
        start=in_start,
        end=in_start + block,
        origin=route.destination,
        destination=route.origin,
        block_minutes=block,
        route_type=route.route_type,
        route_id=route.route_id,
    )
    return PlannedTrip(trip_id=trip_id, outbound=outbound, turnaround=turnaround, inbound=inbound)


def plan_trip(
        existing: Iterable[Segment],
        route: Route,
        aircraft_type: str,
        desired_start: int,
        trip_id: str,
        *,
        lead_in: int = 0,
        rules: Rules | None = None,
) -> Optional[PlannedTrip]:
    """
    Place a round trip of `route` in the first free window that can hold it.

    The outbound never starts before `desired_start`; within a window it is
    pushed forward only as far as the window start (plus `lead_in` free
    minutes reserved right before the outbound) and the grid require.

    Returns None when no window before curfew is large enough.
    """
    rules = rules or Rules()
    span = route.trip_span(aircraft_type)
    needed = span + lead_in

    for w_start, w_end in free_windows(existing, rules.day_start, rules.curfew_end):
        if w_end - w_start < needed:
            continue

        start = snap_up(max(w_start + lead_in, desired_start), rules.grid_minutes)
        end = start + span

        if start < rules.day_start or end > w_end or end > rules.curfew_end:
            continue

        logger.debug(
            "Planned %s on %s in window [%d, %d): %d-%d",
            route.route_id, aircraft_type, w_start, w_end, start, end,
        )
        return build_trip(route, aircraft_type, start, trip_id)

    logger.debug("No window for %s (span %d) at or after %d", route.route_id, needed, desired_start)
    return None
