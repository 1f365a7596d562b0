from conftest import CTA, LGW, make_trip

from schedule_mastery.domain.segment import SegmentKind
from schedule_mastery.engine.trip_planner import plan_trip


def test_empty_aircraft_places_trip_at_desired_start():
    trip = plan_trip([], CTA, "A320", 360, "T1")

    assert [(s.kind, s.start, s.end) for s in trip.segments] == [
        (SegmentKind.OUTBOUND, 360, 425),
        (SegmentKind.TURNAROUND, 425, 460),
        (SegmentKind.INBOUND, 460, 525),
    ]
    assert {s.trip_id for s in trip.segments} == {"T1"}
    assert trip.outbound.origin == "NAP" and trip.outbound.destination == "CTA"
    assert trip.inbound.origin == "CTA" and trip.inbound.destination == "NAP"


def test_occupied_start_pushes_trip_to_next_window():
    existing = make_trip(CTA, 360, "T0")
    trip = plan_trip(existing, CTA, "A320", 400, "T1")

    assert trip.start == 525
    assert trip.end == 690


def test_too_small_window_is_skipped():
    existing = make_trip(CTA, 360, "T0") + make_trip(CTA, 600, "T1")
    trip = plan_trip(existing, CTA, "A320", 360, "T2")

    # [525, 600) is only 75 minutes
    assert trip.start == 765


def test_never_placed_before_desired_start():
    trip = plan_trip([], CTA, "A320", 603, "T1")
    assert trip.start == 605


def test_inbound_may_end_exactly_at_curfew():
    trip = plan_trip([], CTA, "A320", 1215, "T1")
    assert trip.end == 1380


def test_curfew_violation_is_infeasible():
    assert plan_trip([], CTA, "A320", 1300, "T1") is None
    assert plan_trip([], LGW, "A320", 1000, "T1") is None


def test_lead_in_keeps_minutes_free_before_outbound():
    existing = make_trip(CTA, 360, "T0")
    trip = plan_trip(existing, CTA, "A320", 525, "T1", lead_in=10)
    assert trip.start == 535


def test_turnaround_depends_on_aircraft_type():
    a320 = plan_trip([], CTA, "A320", 360, "T1")
    a321 = plan_trip([], CTA, "A321", 360, "T1")
    assert a320.turnaround.duration_min == 35
    assert a321.turnaround.duration_min == 45


def test_planned_trips_stay_inside_operating_day():
    existing = make_trip(CTA, 700, "T0")
    for desired in range(300, 1400, 37):
        trip = plan_trip(existing, CTA, "A320", desired, "T1")
        if trip is None:
            continue
        assert trip.start >= 360
        assert trip.end <= 1380
        assert trip.start >= desired


def test_planning_does_not_mutate_inputs():
    existing = make_trip(CTA, 360, "T0")
    before = list(existing)
    plan_trip(existing, CTA, "A320", 360, "T1")
    assert existing == before
