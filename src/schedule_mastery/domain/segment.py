from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


class SegmentKind(str, Enum):
    OUTBOUND = "Outbound"
    TURNAROUND = "Turnaround"
    INBOUND = "Inbound"
    CREW_CHANGE_GAP = "CrewChangeGap"

    @property
    def is_leg(self) -> bool:
        return self in (SegmentKind.OUTBOUND, SegmentKind.INBOUND)


# Tie-break when two segments share a start minute (a gap ends where an outbound starts).
KIND_ORDER = {
    SegmentKind.CREW_CHANGE_GAP: 0,
    SegmentKind.OUTBOUND: 1,
    SegmentKind.TURNAROUND: 2,
    SegmentKind.INBOUND: 3,
}


@dataclass(frozen=True)
class Segment:
    """
    Represents one scheduled interval on an aircraft timeline.

    Three segments (outbound, turnaround, inbound) sharing a ``trip_id`` form
    a trip. A crew-change gap is a standalone 10-minute marker placed right
    before the first outbound flown by a new crew.

    Attributes
    ----------
    segment_id : str
        Unique identifier of the segment on its aircraft.
    trip_id : str
        Identifier shared by the three members of a trip. Gaps carry their
        own synthetic id.
    kind : SegmentKind
        Role of the segment inside its trip.
    start : int
        Start time in minutes since midnight.
    end : int
        End time in minutes since midnight (end > start).
    origin, destination : str
        Airports flown between. Empty on turnarounds and gaps.
    block_minutes : int
        Scheduled block time of the leg. Zero on turnarounds and gaps.
    route_type : str
        Route category used for scoring bonuses (Domestic, Holidays, Leisure).
    route_id : str
        Inventory key of the route the trip consumed.
    crew_index : int or None
        Crew (1 or 2) operating the segment. None on crew-change gaps.
    charter : bool
        True when the trip was placed while a charter bonus was active.
    """
    segment_id: str
    trip_id: str
    kind: SegmentKind
    start: int
    end: int
    origin: str = ""
    destination: str = ""
    block_minutes: int = 0
    route_type: str = ""
    route_id: str = ""
    crew_index: Optional[int] = None
    charter: bool = False

    @property
    def duration_min(self) -> int:
        return self.end - self.start

    @property
    def is_leg(self) -> bool:
        return self.kind.is_leg

    @property
    def is_gap(self) -> bool:
        return self.kind is SegmentKind.CREW_CHANGE_GAP

    def shifted(self, delta: int) -> "Segment":
        return replace(self, start=self.start + delta, end=self.end + delta)

    def sort_key(self):
        return (self.start, KIND_ORDER[self.kind], self.segment_id)


def make_gap(gap_id: str, start: int, end: int) -> Segment:
    return Segment(
        segment_id=gap_id,
        trip_id=gap_id,
        kind=SegmentKind.CREW_CHANGE_GAP,
        start=start,
        end=end,
    )
