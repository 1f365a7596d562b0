import pytest
from conftest import (
    CTA,
    FLEET,
    ROUTES,
    assert_sector_cap,
    assert_trips_contiguous,
    make_route,
    make_trip,
)

from schedule_mastery.domain.segment import SegmentKind
from schedule_mastery.engine.controller import ScheduleController
from schedule_mastery.engine.errors import (
    AircraftUnavailable,
    CrewLimitReached,
    DutyCapExceeded,
    Infeasible,
    OverlapDetected,
    ResourceExhausted,
    UnknownRoute,
    UnknownSegment,
    UnknownTrip,
)


def _spans(ctrl, aircraft_id):
    return [(s.kind, s.start, s.end) for s in ctrl.timeline(aircraft_id)]


def _crew_change_day(ctrl):
    """Four crew-1 legs ending at 1000, then a fifth leg requested."""
    ctrl.add_trip("A1", "NAPCTA", 600)
    ctrl.add_trip("A1", "NAPCTA", 835)
    return ctrl.add_trip("A1", "NAPCTA")


# ============================================================================
# ADD
# ============================================================================

def test_add_on_empty_aircraft(ctrl):
    placed = ctrl.add_trip("A1", "NAPCTA", 360)

    assert _spans(ctrl, "A1") == [
        (SegmentKind.OUTBOUND, 360, 425),
        (SegmentKind.TURNAROUND, 425, 460),
        (SegmentKind.INBOUND, 460, 525),
    ]
    assert {s.trip_id for s in ctrl.timeline("A1")} == {placed.trip_id}
    assert ctrl.inventory["NAPCTA"] == 5
    assert ctrl.score("A1").points == 6
    assert ctrl.crew_state("A1").sectors == 2


def test_default_start_follows_last_segment(ctrl):
    ctrl.add_trip("A1", "NAPCTA", 360)
    placed = ctrl.add_trip("A1", "NAPPMO")

    assert placed.desired_start == 525
    assert (placed.start, placed.end) == (525, 670)


def test_drop_position_is_snapped(ctrl):
    assert ctrl.add_trip("A1", "NAPCTA", 403).start == 405
    assert ctrl.add_trip("A2", "NAPCTA", 300).start == 360


def test_occupied_slot_moves_to_next_window(ctrl):
    ctrl.add_trip("A1", "NAPCTA", 360)
    placed = ctrl.add_trip("A1", "NAPCTA", 400)
    assert placed.start == 525


def test_sector_cap_inserts_crew_change_gap(ctrl):
    placed = _crew_change_day(ctrl)

    gaps = [s for s in ctrl.timeline("A1") if s.is_gap]
    assert [(g.start, g.end) for g in gaps] == [(1000, 1010)]
    assert placed.crew_change == "automatic"
    assert placed.start == 1010
    assert placed.crew_index == 2

    state = ctrl.crew_state("A1")
    assert state.crew_index == 2
    assert state.sectors == 2
    assert state.duty_start == 1010

    assert_trips_contiguous(ctrl.timeline("A1"))
    assert_sector_cap(ctrl.timeline("A1"))


def test_third_crew_rejected_without_changes():
    ctrl = ScheduleController(FLEET, ROUTES)
    ctrl._commit("A1", make_trip(CTA, 360, "X1", 2) + make_trip(CTA, 525, "X2", 2))
    before = ctrl.timeline("A1")

    with pytest.raises(CrewLimitReached):
        ctrl.add_trip("A1", "NAPCTA")

    assert ctrl.timeline("A1") == before
    assert ctrl.inventory["NAPCTA"] == 6


def test_duty_cap_rejects_whole_placement():
    long_route = make_route("NAPXXX", "XXX", 150, "Leisure", 2, {"A320": 50, "A321": 50})
    short_route = make_route("NAPYYY", "YYY", 45, "Domestic", 2, {"A320": 40, "A321": 40})
    ctrl = ScheduleController(FLEET, [long_route, short_route])
    ctrl._commit("A1", make_trip(long_route, 360, "X1", 1) + make_trip(long_route, 710, "X2", 2))
    assert ctrl.score("A1").duty_minutes == 700
    before = ctrl.timeline("A1")

    with pytest.raises(DutyCapExceeded):
        ctrl.add_trip("A1", "NAPYYY")

    assert ctrl.timeline("A1") == before
    assert ctrl.inventory["NAPYYY"] == 2


def test_frozen_aircraft_rejected(ctrl):
    ctrl.freeze_aircraft("A1")
    with pytest.raises(AircraftUnavailable):
        ctrl.add_trip("A1", "NAPCTA", 360)

    ctrl.unfreeze_aircraft("A1")
    ctrl.unfreeze_aircraft("A1")
    assert ctrl.add_trip("A1", "NAPCTA", 360).start == 360


def test_exhausted_route_rejected(ctrl):
    ctrl.add_trip("A1", "NAPLGW", 360)
    ctrl.add_trip("A2", "NAPLGW", 360)
    assert ctrl.inventory["NAPLGW"] == 0

    with pytest.raises(ResourceExhausted):
        ctrl.add_trip("A3", "NAPLGW", 360)
    assert ctrl.timeline("A3") == ()


def test_unknown_route(ctrl):
    with pytest.raises(UnknownRoute):
        ctrl.add_trip("A1", "NAPXYZ")
    with pytest.raises(KeyError):
        ctrl.add_trip("A1", "NAPXYZ")


def test_no_space_before_curfew(ctrl):
    with pytest.raises(Infeasible):
        ctrl.add_trip("A1", "NAPLGW", 1100)
    assert ctrl.inventory["NAPLGW"] == 2


def test_delayed_airport_shifts_start(ctrl):
    ctrl.set_delayed_airport("LGW")

    assert ctrl.add_trip("A1", "NAPLGW", 360).start == 375
    assert ctrl.add_trip("A2", "NAPCTA", 360).start == 360

    ctrl.clear_delayed_airport("CTA")
    assert ctrl.disruptions.delayed_airport == "LGW"
    ctrl.clear_delayed_airport("LGW")
    assert ctrl.disruptions.delayed_airport is None


def test_charter_bonus_tags_short_trips(ctrl):
    ctrl.set_charter_bonus("A3")
    ctrl.add_trip("A3", "NAPCTA", 360)
    ctrl.add_trip("A3", "NAPLGW")

    charter = {s.route_id for s in ctrl.timeline("A3") if s.charter}
    assert charter == {"NAPCTA"}
    assert ctrl.score("A3").breakdown["charter"] == 5


# ============================================================================
# MANUAL CREW CHANGE
# ============================================================================

def test_armed_crew_change_applies_to_next_placement(ctrl):
    ctrl.add_trip("A1", "NAPCTA", 360)
    ctrl.arm_crew_change("A1", 2)
    assert ctrl.crew_state("A1").pending_change

    placed = ctrl.add_trip("A1", "NAPCTA")

    assert placed.crew_change == "manual"
    assert placed.start == 535
    assert [(g.start, g.end) for g in ctrl.timeline("A1") if g.is_gap] == [(525, 535)]
    assert ctrl.crew_state("A1").crew_index == 2
    assert not ctrl.crew_state("A1").pending_change


def test_armed_change_survives_rejection(ctrl):
    ctrl.arm_crew_change("A1")
    ctrl.freeze_aircraft("A1")
    with pytest.raises(AircraftUnavailable):
        ctrl.add_trip("A1", "NAPCTA")
    assert ctrl.crew_state("A1").pending_change

    ctrl.disarm_crew_change("A1")
    assert not ctrl.crew_state("A1").pending_change


def test_manual_change_cannot_overload_earlier_crew(ctrl):
    ctrl.add_trip("A1", "NAPCTA", 360)
    ctrl.add_trip("A1", "NAPCTA", 525)
    assert ctrl.add_trip("A1", "NAPCTA", 700).crew_change == "automatic"
    ctrl.arm_crew_change("A1", 1)
    before = ctrl.timeline("A1")

    with pytest.raises(CrewLimitReached):
        ctrl.add_trip("A1", "NAPCTA", 1000)

    assert ctrl.timeline("A1") == before
    assert all(k.within_limits for k in ctrl.score("A1").crews)


# ============================================================================
# DELETE
# ============================================================================

def test_delete_removes_whole_trip_and_restores_inventory(ctrl):
    placed = ctrl.add_trip("A1", "NAPCTA", 360)
    inbound = next(s for s in placed.segments if s.kind is SegmentKind.INBOUND)

    removed = ctrl.delete_segment("A1", inbound.segment_id)

    assert len(removed) == 3
    assert ctrl.timeline("A1") == ()
    assert ctrl.inventory["NAPCTA"] == 6
    assert ctrl.score("A1").points == 0


def test_delete_prunes_crew_change_marker(ctrl):
    placed = _crew_change_day(ctrl)

    ctrl.delete_trip("A1", placed.trip_id)

    assert not any(s.is_gap for s in ctrl.timeline("A1"))
    state = ctrl.crew_state("A1")
    assert (state.crew_index, state.sectors) == (1, 4)
    assert ctrl.inventory["NAPCTA"] == 4


def test_crew_change_marker_cannot_be_deleted_alone(ctrl):
    _crew_change_day(ctrl)
    gap = next(s for s in ctrl.timeline("A1") if s.is_gap)
    before = ctrl.timeline("A1")

    with pytest.raises(UnknownTrip):
        ctrl.delete_segment("A1", gap.segment_id)
    with pytest.raises(UnknownTrip):
        ctrl.delete_trip("A1", gap.trip_id)

    assert ctrl.timeline("A1") == before


def test_delete_unknown_segment(ctrl):
    with pytest.raises(UnknownSegment):
        ctrl.delete_segment("A1", "nope")


def test_remove_last_trip(ctrl):
    ctrl.add_trip("A2", "NAPCTA", 360)
    late = ctrl.add_trip("A2", "NAPPMO", 900)

    removed = ctrl.remove_last_trip("A2")

    assert {s.trip_id for s in removed} == {late.trip_id}
    assert ctrl.inventory["NAPPMO"] == 4
    assert ctrl.remove_last_trip("A3") == []


# ============================================================================
# RESCHEDULE
# ============================================================================

def test_reschedule_keeps_durations(ctrl):
    placed = ctrl.add_trip("A1", "NAPCTA", 360)
    ctrl.reschedule_trip_start("A1", placed.trip_id, 600)

    assert _spans(ctrl, "A1") == [
        (SegmentKind.OUTBOUND, 600, 665),
        (SegmentKind.TURNAROUND, 665, 700),
        (SegmentKind.INBOUND, 700, 765),
    ]


def test_reschedule_outside_operating_day(ctrl):
    placed = ctrl.add_trip("A1", "NAPCTA", 360)
    before = ctrl.timeline("A1")

    with pytest.raises(Infeasible):
        ctrl.reschedule_trip_start("A1", placed.trip_id, 300)
    with pytest.raises(Infeasible):
        ctrl.reschedule_trip_start("A1", placed.trip_id, 1300)

    assert ctrl.timeline("A1") == before


def test_reschedule_overlap_rejected(ctrl):
    ctrl.add_trip("A1", "NAPCTA", 360)
    second = ctrl.add_trip("A1", "NAPCTA", 600)
    before = ctrl.timeline("A1")

    with pytest.raises(OverlapDetected):
        ctrl.reschedule_trip_start("A1", second.trip_id, 400)
    assert ctrl.timeline("A1") == before


def test_reschedule_drops_own_crew_marker(ctrl):
    placed = _crew_change_day(ctrl)

    ctrl.reschedule_trip_start("A1", placed.trip_id, 1005)

    assert not any(s.is_gap for s in ctrl.timeline("A1"))
    assert_trips_contiguous(ctrl.timeline("A1"))


def test_reschedule_unknown_trip(ctrl):
    with pytest.raises(UnknownTrip):
        ctrl.reschedule_trip_start("A1", "T9999", 600)


# ============================================================================
# PREVIEW
# ============================================================================

def test_preview_is_idempotent_and_read_only(ctrl):
    ctrl.add_trip("A1", "NAPCTA", 360)
    before = ctrl.timeline("A1")

    first = ctrl.preview_trip("A1", "NAPIBZ", 700)
    second = ctrl.preview_trip("A1", "NAPIBZ", 700)

    assert first.ok
    assert first == second
    assert ctrl.timeline("A1") == before
    assert ctrl.inventory["NAPIBZ"] == 4

    placed = ctrl.add_trip("A1", "NAPIBZ", 700)
    assert placed.segments == first.segments


def test_preview_reports_rejection(ctrl):
    ctrl.freeze_aircraft("A2")
    preview = ctrl.preview_trip("A2", "NAPCTA")

    assert not preview.ok
    assert preview.error_code == "aircraft_unavailable"
    assert preview.segments == []


# ============================================================================
# INVARIANTS
# ============================================================================

def test_add_delete_sequences_keep_invariants(ctrl):
    trips = [ctrl.add_trip("A2", r, None).trip_id for r in ("NAPPMO", "NAPCTA", "NAPPMO", "NAPCTA")]
    ctrl.delete_trip("A2", trips[3])
    ctrl.add_trip("A2", "NAPMLA", 360)
    ctrl.delete_trip("A2", trips[1])

    timeline = ctrl.timeline("A2")
    assert sum(1 for s in timeline if s.is_gap) == 1
    assert list(timeline) == sorted(timeline, key=lambda s: s.sort_key())
    assert_trips_contiguous(timeline)
    assert_sector_cap(timeline)
    for s in timeline:
        assert s.start >= 360 and s.end <= 1380
