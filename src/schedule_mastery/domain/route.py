from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict


DEFAULT_TURN_MINUTES = 40


@dataclass(frozen=True)
class Route:
    """
    Represents one route of the day's inventory.

    A route is always flown as a round trip: origin -> destination, a
    turnaround at the destination, then destination -> origin.

    Attributes
    ----------
    route_id : str
        Inventory key (e.g. "NAPCTA").
    origin : str
        Departure airport of the outbound leg.
    destination : str
        Arrival airport of the outbound leg, where the turnaround happens.
    block_minutes : int
        Block time of one leg. Both legs share it.
    route_type : str
        Category used for scoring (Domestic, Holidays, Leisure).
    requested : int
        How many round trips of this route the day offers.
    turn_times : Dict[str, int]
        Minimum ground time at the destination by aircraft type.
    """
    route_id: str
    origin: str
    destination: str
    block_minutes: int
    route_type: str
    requested: int
    turn_times: Dict[str, int] = field(default_factory=dict)

    def turn_minutes(self, aircraft_type: str) -> int:
        return int(self.turn_times.get(aircraft_type, DEFAULT_TURN_MINUTES))

    def trip_span(self, aircraft_type: str) -> int:
        return 2 * self.block_minutes + self.turn_minutes(aircraft_type)


@dataclass(frozen=True)
class Aircraft:
    aircraft_id: str
    aircraft_type: str   # "A320" or "A321"
