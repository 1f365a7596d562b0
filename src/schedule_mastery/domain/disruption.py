from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Set


class DisruptionKind(str, Enum):
    FREEZE = "Freeze"
    DELAY = "Delay"
    CREW_ILLNESS = "CrewIllness"
    CHARTER_BONUS = "CharterBonus"


@dataclass
class DisruptionState:
    """
    Effects of the currently active disruptions, read by the controller.

    Attributes
    ----------
    frozen_aircraft : Set[str]
        Aircraft that cannot receive new trips.
    delayed_airport : str or None
        At most one airport whose departures and arrivals are delayed.
    charter_bonus_active : bool
        Whether a charter bonus is running.
    charter_aircraft : str or None
        Aircraft the charter bonus applies to.
    """
    frozen_aircraft: Set[str] = field(default_factory=set)
    delayed_airport: Optional[str] = None
    charter_bonus_active: bool = False
    charter_aircraft: Optional[str] = None

    def is_frozen(self, aircraft_id: str) -> bool:
        return aircraft_id in self.frozen_aircraft

    def delays(self, *airports: str) -> bool:
        return self.delayed_airport is not None and self.delayed_airport in airports

    def charter_applies(self, aircraft_id: str) -> bool:
        return self.charter_bonus_active and self.charter_aircraft == aircraft_id


@dataclass
class EffectToken:
    """
    Handle on one applied disruption effect.

    Timed effects carry ``expires_at`` (session seconds); the scheduler reverts
    them once the session clock passes it, unless the token was cancelled.
    """
    token_id: int
    kind: DisruptionKind
    target: str
    fired_at: float
    expires_at: Optional[float] = None
    message: str = ""
    cancelled: bool = False
    reverted: bool = False

    @property
    def pending_revert(self) -> bool:
        return self.expires_at is not None and not (self.cancelled or self.reverted)
