from __future__ import annotations

from typing import Any, Dict, List, Optional

from schedule_mastery.domain.disruption import EffectToken
from schedule_mastery.engine.controller import ScheduleController
from schedule_mastery.engine.disruptions import DisruptionScheduler


class GameSession:
    """
    One timed game: the controller, its disruption scheduler and the countdown.

    Timer ticks go through `advance`, between player actions, so the clock
    never runs in the middle of a mutation.
    """

    def __init__(
            self,
            controller: ScheduleController,
            scheduler: Optional[DisruptionScheduler] = None,
            seconds: Optional[int] = None,
    ) -> None:
        self.controller = controller
        self.scheduler = scheduler
        self.duration = int(seconds if seconds is not None else controller.rules.session_seconds)
        self.elapsed = 0.0

    @property
    def time_left(self) -> int:
        return max(0, int(self.duration - self.elapsed))

    @property
    def is_over(self) -> bool:
        return self.elapsed >= self.duration

    def advance(self, seconds: float) -> List[EffectToken]:
        if seconds < 0:
            raise ValueError("Cannot advance the clock backwards")
        self.elapsed = min(self.duration, self.elapsed + seconds)
        if self.scheduler is None:
            return []
        return self.scheduler.tick(self.elapsed)

    def summary(self) -> Dict[str, Any]:
        ctrl = self.controller
        aircraft = {}
        for a_id in ctrl.aircraft_ids:
            sc = ctrl.score(a_id)
            aircraft[a_id] = {
                "points": sc.points,
                "trips": sc.trips,
                "flight_minutes": sc.flight_minutes,
                "duty_minutes": sc.duty_minutes,
                "idle_minutes": sc.idle_minutes,
                "breakdown": dict(sc.breakdown),
                "crews": [
                    {
                        "crew_index": k.crew_index,
                        "sectors": k.sectors,
                        "duty_minutes": k.duty_minutes,
                        "limit_minutes": k.limit_minutes,
                        "within_limits": k.within_limits,
                    }
                    for k in sc.crews
                ],
            }

        return {
            "elapsed_seconds": self.elapsed,
            "time_left_seconds": self.time_left,
            "total_score": ctrl.total_score(),
            "aircraft": aircraft,
            "inventory": ctrl.inventory,
        }
