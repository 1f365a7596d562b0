from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List


@dataclass(frozen=True)
class DisruptionSpec:
    """One row of the weighted disruption table."""
    kind: str            # "Freeze", "Delay", "CrewIllness", "CharterBonus"
    target: str          # aircraft id or airport code
    weight: int = 1
    message: str = ""


def _default_route_type_bonus() -> Dict[str, int]:
    return {"Domestic": 1, "Holidays": 2, "Leisure": 3}


def _default_disruptions() -> List[DisruptionSpec]:
    return [
        DisruptionSpec("CrewIllness", "A2", 1, "Crew illness on A2, one trip removed"),
        DisruptionSpec("Delay", "LGW", 1, "Delay at LGW, 15 min added to departures"),
        DisruptionSpec("Freeze", "A1", 1, "Tech issue on A1, no new routes for 2 min"),
        DisruptionSpec("CharterBonus", "A3", 1, "Charter bonus on A3, add a short route"),
    ]


@dataclass(frozen=True)
class Rules:
    """
    Operating rules of the day. All times are minutes since midnight,
    all durations are minutes.

    The defaults reproduce the fixed constants of the game; an instance may
    override any of them in ``rules.json``.

    Attributes
    ----------
    day_start : int
        Earliest allowed departure (06:00).
    curfew_end : int
        Latest allowed arrival (23:00).
    curfew_open : int
        Start of the non-curfew window used by the curfew penalty (05:30).
    grid_minutes : int
        Departure times are snapped to this grid.
    max_sectors : int
        Flight legs allowed per crew.
    max_crews : int
        Crews available per aircraft for the day.
    crew_change_gap : int
        Length of the handover marker between two crews.
    early_start_threshold : int
        A duty starting before this minute uses the early duty limit.
    early_duty_limit, duty_limit : int
        Maximum duty window of one crew (early start / normal).
    aircraft_duty_cap : int
        Maximum sum of segment minutes on one aircraft.
    airport_delay : int
        Added to the desired start while a touched airport is delayed.
    late_arrival : int
        Last arrival after this minute costs ``late_penalty``.
    utilization_threshold : int
        Flight minutes earning ``utilization_bonus``.
    idle_step : int
        Idle minutes per penalty point.
    """
    day_start: int = 360
    curfew_end: int = 1380
    curfew_open: int = 330
    grid_minutes: int = 5
    max_sectors: int = 4
    max_crews: int = 2
    crew_change_gap: int = 10
    early_start_threshold: int = 420
    early_duty_limit: int = 420
    duty_limit: int = 600
    aircraft_duty_cap: int = 720
    airport_delay: int = 15

    min_leg_points: int = 2
    max_leg_points: int = 8
    leg_points_step: int = 30
    route_type_bonus: Dict[str, int] = field(default_factory=_default_route_type_bonus)
    utilization_threshold: int = 480
    utilization_bonus: int = 10
    late_arrival: int = 1350
    late_penalty: int = 5
    curfew_penalty: int = 10
    idle_step: int = 30
    charter_bonus: int = 5
    charter_max_block: int = 75

    session_seconds: int = 20 * 60
    disruption_min_wait: int = 60
    disruption_max_wait: int = 90
    disruption_duration: int = 120
    disruptions: List[DisruptionSpec] = field(default_factory=_default_disruptions)
