from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from schedule_mastery.domain.disruption import DisruptionState
from schedule_mastery.domain.route import Aircraft, Route
from schedule_mastery.domain.rules import Rules
from schedule_mastery.domain.segment import Segment, SegmentKind
from schedule_mastery.engine.crew_duty import (
    CrewDutyState,
    CrewPlan,
    plan_with_crew,
    recompute_crew_state,
)
from schedule_mastery.engine.errors import (
    AircraftUnavailable,
    DutyCapExceeded,
    Infeasible,
    OverlapDetected,
    ResourceExhausted,
    ScheduleError,
    UnknownAircraft,
    UnknownRoute,
    UnknownSegment,
    UnknownTrip,
)
from schedule_mastery.engine.time_windows import overlaps, snap_to_grid
from schedule_mastery.scoring.score import AircraftScore, score_timeline

logger = logging.getLogger(__name__)

Timeline = Tuple[Segment, ...]


@dataclass(frozen=True)
class Placement:
    """A committed trip placement."""
    aircraft_id: str
    trip_id: str
    route_id: str
    desired_start: int
    segments: List[Segment]
    crew_index: int
    crew_change: Optional[str] = None

    @property
    def start(self) -> int:
        return next(s.start for s in self.segments if s.kind is SegmentKind.OUTBOUND)

    @property
    def end(self) -> int:
        return next(s.end for s in self.segments if s.kind is SegmentKind.INBOUND)


@dataclass(frozen=True)
class PlacementPreview:
    """Result of a read-only placement simulation (ghost trip)."""
    ok: bool
    segments: List[Segment] = field(default_factory=list)
    crew_index: Optional[int] = None
    crew_change: Optional[str] = None
    error_code: Optional[str] = None
    message: str = ""


def prune_stale_gaps(ordered: Sequence[Segment]) -> List[Segment]:
    """
    Keep a crew-change gap only while an outbound starts exactly at its end
    and no other segment overlaps it.
    """
    real = [s for s in ordered if not s.is_gap]
    outbound_starts = {s.start for s in real if s.kind is SegmentKind.OUTBOUND}

    kept: List[Segment] = []
    for s in ordered:
        if s.is_gap:
            if s.end not in outbound_starts:
                continue
            if any(overlaps((s.start, s.end), (r.start, r.end)) for r in real):
                continue
            if any(k.is_gap and k.end == s.end for k in kept):
                continue
        kept.append(s)
    return kept


class ScheduleController:
    """
    Owns the day's schedule: one timeline per aircraft, the route inventory,
    the active disruption effects, and the derived crew states and scores.

    Every mutation is a single synchronous transaction. All checks run before
    anything is written; the final commit step sorts the timeline, prunes stale
    crew-change markers and recomputes crew state and score from scratch.
    """

    def __init__(
            self,
            fleet: Sequence[Aircraft],
            routes: Sequence[Route],
            rules: Rules | None = None,
            inventory: Dict[str, int] | None = None,
    ) -> None:
        self.rules = rules or Rules()
        self._aircraft: Dict[str, Aircraft] = {a.aircraft_id: a for a in fleet}
        self._routes: Dict[str, Route] = {r.route_id: r for r in routes}
        self._inventory: Dict[str, int] = (
            dict(inventory) if inventory is not None else {r.route_id: int(r.requested) for r in routes}
        )
        self.disruptions = DisruptionState()

        self._timelines: Dict[str, Timeline] = {}
        self._crew: Dict[str, CrewDutyState] = {}
        self._scores: Dict[str, AircraftScore] = {}
        self._next_trip = 1
        self._next_gap = 1

        for aircraft_id in self._aircraft:
            self._commit(aircraft_id, [])

    # --- Accessors ---

    @property
    def aircraft_ids(self) -> List[str]:
        return list(self._aircraft)

    @property
    def routes(self) -> List[Route]:
        return list(self._routes.values())

    @property
    def inventory(self) -> Dict[str, int]:
        return dict(self._inventory)

    def aircraft(self, aircraft_id: str) -> Aircraft:
        try:
            return self._aircraft[aircraft_id]
        except KeyError:
            raise UnknownAircraft(f"Unknown aircraft: {aircraft_id}", aircraft_id=aircraft_id) from None

    def route(self, route_id: str) -> Route:
        try:
            return self._routes[route_id]
        except KeyError:
            raise UnknownRoute(f"Unknown route: {route_id}") from None

    def timeline(self, aircraft_id: str) -> Timeline:
        self.aircraft(aircraft_id)
        return self._timelines[aircraft_id]

    def crew_state(self, aircraft_id: str) -> CrewDutyState:
        self.aircraft(aircraft_id)
        return self._crew[aircraft_id]

    def score(self, aircraft_id: str) -> AircraftScore:
        self.aircraft(aircraft_id)
        return self._scores[aircraft_id]

    def scores(self) -> Dict[str, AircraftScore]:
        return dict(self._scores)

    def total_score(self) -> int:
        return sum(s.points for s in self._scores.values())

    def trip_segments(self, aircraft_id: str, trip_id: str) -> List[Segment]:
        return [s for s in self.timeline(aircraft_id) if s.trip_id == trip_id and not s.is_gap]

    # --- Placement ---

    def initial_start(self, aircraft_id: str, route: Route, desired_start: Optional[int] = None) -> int:
        """
        Drop position snapped to the grid, or the end of the last segment when
        no position is given; plus the airport delay when the route touches the
        delayed airport.
        """
        existing = self.timeline(aircraft_id)
        if desired_start is None:
            start = max((s.end for s in existing), default=self.rules.day_start)
        else:
            start = snap_to_grid(desired_start, self.rules.grid_minutes, self.rules.day_start)

        if self.disruptions.delays(route.origin, route.destination):
            start += self.rules.airport_delay
        return start

    def _plan_placement(
            self,
            aircraft_id: str,
            route_id: str,
            desired_start: Optional[int],
    ) -> Tuple[Route, int, CrewPlan]:
        aircraft = self.aircraft(aircraft_id)

        if self.disruptions.is_frozen(aircraft_id):
            raise AircraftUnavailable(f"Aircraft {aircraft_id} is unavailable", aircraft_id=aircraft_id)

        route = self.route(route_id)
        if self._inventory.get(route_id, 0) <= 0:
            raise ResourceExhausted(f"No {route_id} trips left in inventory", aircraft_id=aircraft_id)

        existing = self._timelines[aircraft_id]
        desired = self.initial_start(aircraft_id, route, desired_start)

        plan = plan_with_crew(
            existing,
            route,
            aircraft.aircraft_type,
            desired,
            self._crew[aircraft_id],
            trip_id=f"T{self._next_trip:04d}",
            gap_id=f"G{self._next_gap:04d}",
            rules=self.rules,
        )

        total = sum(s.duration_min for s in existing) + sum(s.duration_min for s in plan.segments)
        if total > self.rules.aircraft_duty_cap:
            raise DutyCapExceeded(
                f"Duty time exceeded on {aircraft_id}: {total} > {self.rules.aircraft_duty_cap} min",
                aircraft_id=aircraft_id,
            )

        if self.disruptions.charter_applies(aircraft_id) and route.block_minutes <= self.rules.charter_max_block:
            plan = replace(plan, trip=plan.trip.with_crew(plan.crew_index, charter=True))

        return route, desired, plan

    def preview_trip(
            self,
            aircraft_id: str,
            route_id: str,
            desired_start: Optional[int] = None,
    ) -> PlacementPreview:
        """
        Simulate a placement without committing anything.

        Safe to call at high frequency: no ids are consumed and no state is
        written, so identical calls on an unchanged schedule return identical
        proposals.
        """
        try:
            _, _, plan = self._plan_placement(aircraft_id, route_id, desired_start)
        except ScheduleError as exc:
            return PlacementPreview(ok=False, error_code=exc.code, message=exc.message)

        return PlacementPreview(
            ok=True,
            segments=plan.segments,
            crew_index=plan.crew_index,
            crew_change=plan.change,
        )

    def add_trip(
            self,
            aircraft_id: str,
            route_id: str,
            desired_start: Optional[int] = None,
    ) -> Placement:
        """
        Place one round trip of `route_id` on `aircraft_id`.

        Raises AircraftUnavailable, UnknownRoute, ResourceExhausted, Infeasible,
        CrewLimitReached or DutyCapExceeded; the schedule is unchanged in
        every case.
        """
        try:
            route, desired, plan = self._plan_placement(aircraft_id, route_id, desired_start)
        except ScheduleError as exc:
            logger.warning("Rejected %s on %s: %s (%s)", route_id, aircraft_id, exc.message, exc.code)
            raise

        # --- Commit ---
        self._next_trip += 1
        if plan.gap is not None:
            self._next_gap += 1

        existing = self._timelines[aircraft_id]
        self._commit(aircraft_id, list(existing) + plan.segments, clear_pending=True)
        self._inventory[route.route_id] -= 1

        logger.info(
            "Placed %s %s on %s at %d-%d (crew %d%s)",
            plan.trip.trip_id, route.route_id, aircraft_id, plan.trip.start, plan.trip.end,
            plan.crew_index, f", {plan.change} change" if plan.change else "",
        )
        return Placement(
            aircraft_id=aircraft_id,
            trip_id=plan.trip.trip_id,
            route_id=route.route_id,
            desired_start=desired,
            segments=plan.segments,
            crew_index=plan.crew_index,
            crew_change=plan.change,
        )

    # --- Deletion ---

    def delete_segment(self, aircraft_id: str, segment_id: str) -> List[Segment]:
        """Delete the whole trip the segment belongs to. Returns the removed segments."""
        timeline = self.timeline(aircraft_id)
        seg = next((s for s in timeline if s.segment_id == segment_id), None)
        if seg is None:
            raise UnknownSegment(f"Unknown segment {segment_id} on {aircraft_id}", aircraft_id=aircraft_id)
        return self.delete_trip(aircraft_id, seg.trip_id)

    def delete_trip(self, aircraft_id: str, trip_id: str) -> List[Segment]:
        """
        Delete a whole round trip. Crew-change markers are not trips: they
        only disappear when pruned after the trip they precede is removed.
        """
        timeline = self.timeline(aircraft_id)
        removed = [s for s in timeline if s.trip_id == trip_id and not s.is_gap]
        if not removed:
            raise UnknownTrip(f"Unknown trip {trip_id} on {aircraft_id}", aircraft_id=aircraft_id)

        remaining = [s for s in timeline if s.trip_id != trip_id]
        self._commit(aircraft_id, remaining)

        route_id = next((s.route_id for s in removed if s.kind is SegmentKind.OUTBOUND), "")
        if route_id in self._inventory:
            self._inventory[route_id] += 1

        logger.info("Deleted trip %s (%s) from %s", trip_id, route_id, aircraft_id)
        return removed

    def remove_last_trip(self, aircraft_id: str) -> List[Segment]:
        """Delete the latest trip of the aircraft, if any (crew illness)."""
        outbounds = [s for s in self.timeline(aircraft_id) if s.kind is SegmentKind.OUTBOUND]
        if not outbounds:
            return []
        last = max(outbounds, key=lambda s: s.start)
        return self.delete_trip(aircraft_id, last.trip_id)

    # --- Reschedule ---

    def reschedule_trip_start(self, aircraft_id: str, trip_id: str, new_start: int) -> List[Segment]:
        """
        Move a whole trip so its outbound starts at `new_start`, keeping each
        segment's duration. Returns the moved segments.
        """
        timeline = self.timeline(aircraft_id)
        trio = [s for s in timeline if s.trip_id == trip_id and not s.is_gap]
        if len(trio) != 3:
            raise UnknownTrip(f"Unknown trip {trip_id} on {aircraft_id}", aircraft_id=aircraft_id)

        outbound = next(s for s in trio if s.kind is SegmentKind.OUTBOUND)
        delta = int(new_start) - outbound.start
        moved = [s.shifted(delta) for s in trio]

        new_out = min(s.start for s in moved)
        new_in_end = max(s.end for s in moved)
        try:
            if new_out < self.rules.day_start:
                raise Infeasible(f"Trip {trip_id} would depart before the operating day", aircraft_id=aircraft_id)
            if new_in_end > self.rules.curfew_end:
                raise Infeasible(f"Trip {trip_id} would arrive after curfew", aircraft_id=aircraft_id)

            # the trip's own crew-change marker moves away with it
            others = [
                s for s in timeline
                if s.trip_id != trip_id and not (s.is_gap and s.end == outbound.start)
            ]
            clash = next(
                (o for o in others for m in moved if overlaps((o.start, o.end), (m.start, m.end))),
                None,
            )
            if clash is not None:
                raise OverlapDetected(
                    f"Trip {trip_id} would overlap {clash.segment_id}", aircraft_id=aircraft_id
                )
        except ScheduleError as exc:
            logger.warning("Rejected reschedule of %s on %s: %s", trip_id, aircraft_id, exc.message)
            raise

        remaining = [s for s in timeline if s.trip_id != trip_id]
        self._commit(aircraft_id, remaining + moved)
        logger.info("Moved trip %s on %s by %+d min", trip_id, aircraft_id, delta)
        return moved

    # --- Crew change arming ---

    def arm_crew_change(self, aircraft_id: str, crew_index: Optional[int] = None) -> CrewDutyState:
        state = self.crew_state(aircraft_id)
        requested = None if crew_index is None else min(max(int(crew_index), 1), self.rules.max_crews)
        self._crew[aircraft_id] = replace(state, pending_change=True, pending_crew_index=requested)
        return self._crew[aircraft_id]

    def disarm_crew_change(self, aircraft_id: str) -> CrewDutyState:
        state = self.crew_state(aircraft_id)
        self._crew[aircraft_id] = replace(state, pending_change=False, pending_crew_index=None)
        return self._crew[aircraft_id]

    # --- Disruption hooks (clears are idempotent) ---

    def freeze_aircraft(self, aircraft_id: str) -> None:
        self.aircraft(aircraft_id)
        self.disruptions.frozen_aircraft.add(aircraft_id)

    def unfreeze_aircraft(self, aircraft_id: str) -> None:
        self.disruptions.frozen_aircraft.discard(aircraft_id)

    def set_delayed_airport(self, airport: str) -> None:
        self.disruptions.delayed_airport = airport

    def clear_delayed_airport(self, airport: Optional[str] = None) -> None:
        if airport is None or self.disruptions.delayed_airport == airport:
            self.disruptions.delayed_airport = None

    def set_charter_bonus(self, aircraft_id: str) -> None:
        self.aircraft(aircraft_id)
        self.disruptions.charter_bonus_active = True
        self.disruptions.charter_aircraft = aircraft_id

    def clear_charter_bonus(self, aircraft_id: Optional[str] = None) -> None:
        if aircraft_id is None or self.disruptions.charter_aircraft == aircraft_id:
            self.disruptions.charter_bonus_active = False
            self.disruptions.charter_aircraft = None

    # --- Commit ---

    def _commit(self, aircraft_id: str, segments: Iterable[Segment], clear_pending: bool = False) -> None:
        ordered = sorted(segments, key=lambda s: s.sort_key())
        timeline = tuple(prune_stale_gaps(ordered))

        previous = self._crew.get(aircraft_id, CrewDutyState())
        pending = False if clear_pending else previous.pending_change
        pending_index = None if clear_pending else previous.pending_crew_index

        self._timelines[aircraft_id] = timeline
        self._crew[aircraft_id] = recompute_crew_state(timeline, pending, pending_index)
        self._scores[aircraft_id] = score_timeline(timeline, self.rules)

        logger.debug(
            "Committed %s: %d segments, crew %d, %d points",
            aircraft_id, len(timeline), self._crew[aircraft_id].crew_index,
            self._scores[aircraft_id].points,
        )
