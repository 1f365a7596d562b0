from dataclasses import replace

from conftest import CTA, IBZ, LGW, make_trip

from schedule_mastery.domain.segment import make_gap
from schedule_mastery.scoring.score import (
    leg_points,
    points_for_block,
    score_timeline,
    total_score,
)


def test_empty_timeline_scores_zero():
    sc = score_timeline([])
    assert sc.points == 0
    assert sc.flight_minutes == 0
    assert sc.crews == []


def test_single_domestic_trip():
    sc = score_timeline(make_trip(CTA, 360, "T1"))

    # 65 // 30 = 2, +1 Domestic, two legs
    assert sc.breakdown["legs"] == 6
    assert sc.points == 6
    assert sc.flight_minutes == 130
    assert sc.duty_minutes == 165
    assert sc.trips == 1
    assert sc.idle_minutes == 0


def test_leg_points_are_clamped():
    assert points_for_block(20, "Domestic") == 3
    assert points_for_block(300, "Leisure") == 11
    assert points_for_block(90, "Unknown") == 3

    outbound = make_trip(LGW, 360, "T1")[0]
    assert leg_points(outbound) == 5 + 3


def test_utilization_bonus():
    timeline = make_trip(LGW, 360, "T1") + make_trip(IBZ, 745, "T2")
    sc = score_timeline(timeline)

    assert sc.flight_minutes == 600
    assert sc.breakdown["utilization"] == 10
    assert sc.points == 16 + 14 + 10


def test_late_arrival_penalty_without_curfew_penalty():
    sc = score_timeline(make_trip(CTA, 1215, "T1"))   # lands 23:00
    assert sc.breakdown["late_duty"] == -5
    assert sc.breakdown["curfew"] == 0
    assert sc.points == 1


def test_curfew_penalty():
    sc = score_timeline(make_trip(CTA, 300, "T1"))
    assert sc.breakdown["curfew"] == -10
    assert sc.points == -4


def test_idle_penalty_in_thirty_minute_steps():
    timeline = make_trip(CTA, 360, "T1") + make_trip(CTA, 600, "T2")
    sc = score_timeline(timeline)

    assert sc.idle_minutes == 75
    assert sc.breakdown["idle"] == -2
    assert sc.points == 10


def test_crew_gap_is_not_busy_time():
    timeline = make_trip(CTA, 360, "T1") + [make_gap("G1", 525, 535)] + make_trip(CTA, 535, "T2", crew=2)
    sc = score_timeline(timeline)

    assert sc.idle_minutes == 10
    assert sc.breakdown["idle"] == 0
    assert sc.duty_minutes == 340
    assert [k.crew_index for k in sc.crews] == [1, 2]


def test_charter_bonus_counts_trips():
    timeline = [replace(s, charter=True) for s in make_trip(CTA, 360, "T1")]
    assert score_timeline(timeline).breakdown["charter"] == 5


def test_total_score_sums_aircraft():
    scores = {
        "A1": score_timeline(make_trip(CTA, 360, "T1")),
        "A2": score_timeline(make_trip(CTA, 1215, "T2")),
    }
    assert total_score(scores) == 7
