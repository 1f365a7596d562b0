from __future__ import annotations


class ScheduleError(Exception):
    """
    Base class of every rejected schedule action.

    Rejections are expected, user-facing outcomes. The committed timeline is
    never modified when one is raised.
    """
    code = "schedule_error"

    def __init__(self, message: str, *, aircraft_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.aircraft_id = aircraft_id

    def __str__(self) -> str:
        return self.message


class Infeasible(ScheduleError):
    """No window of sufficient size before curfew."""
    code = "infeasible"


class ResourceExhausted(ScheduleError):
    """The route has no remaining inventory."""
    code = "resource_exhausted"


class AircraftUnavailable(ScheduleError):
    """The aircraft is frozen by a disruption."""
    code = "aircraft_unavailable"


class CrewLimitReached(ScheduleError):
    """A crew change beyond the last available crew would be required."""
    code = "crew_limit_reached"


class DutyCapExceeded(ScheduleError):
    """The aircraft-day duty cap would be exceeded."""
    code = "duty_cap_exceeded"


class OverlapDetected(ScheduleError):
    """A rescheduled trip would collide with another segment."""
    code = "overlap_detected"


class UnknownAircraft(ScheduleError, KeyError):
    code = "unknown_aircraft"


class UnknownRoute(ScheduleError, KeyError):
    code = "unknown_route"


class UnknownSegment(ScheduleError, KeyError):
    code = "unknown_segment"


class UnknownTrip(ScheduleError, KeyError):
    code = "unknown_trip"
