from __future__ import annotations

import logging
import random
from typing import List, Optional, Sequence

from schedule_mastery.domain.disruption import DisruptionKind, EffectToken
from schedule_mastery.domain.rules import DisruptionSpec, Rules
from schedule_mastery.engine.controller import ScheduleController

logger = logging.getLogger(__name__)


class DisruptionScheduler:
    """
    Periodic disruption source driven by an explicit session clock.

    Every 60-90 s (per ``Rules``) one event is drawn from the weighted table
    and applied to the controller. Timed effects get an ``EffectToken`` whose
    revert runs when the clock passes ``expires_at``; a revert against state
    that was already cleared does nothing.
    """

    def __init__(
            self,
            controller: ScheduleController,
            rules: Rules | None = None,
            table: Sequence[DisruptionSpec] | None = None,
            seed: Optional[int] = None,
            rng: Optional[random.Random] = None,
    ) -> None:
        self.controller = controller
        self.rules = rules or controller.rules
        self.table: List[DisruptionSpec] = list(table if table is not None else self.rules.disruptions)
        self.rng = rng or random.Random(seed)

        self.now = 0.0
        self.tokens: List[EffectToken] = []
        self._next_token = 1
        self.next_fire_at: Optional[float] = self._sample_wait() if self.table else None

    def _sample_wait(self) -> float:
        return self.now + self.rng.uniform(self.rules.disruption_min_wait, self.rules.disruption_max_wait)

    def sample(self) -> DisruptionSpec:
        weights = [max(0, int(s.weight)) for s in self.table]
        return self.rng.choices(self.table, weights=weights, k=1)[0]

    @property
    def active(self) -> List[EffectToken]:
        return [t for t in self.tokens if t.pending_revert]

    # --- Clock ---

    def tick(self, now: float) -> List[EffectToken]:
        """
        Advance the clock to `now`, processing reverts and firings in time
        order. Returns the tokens fired during this tick.
        """
        fired: List[EffectToken] = []

        while True:
            due_reverts = [t for t in self.active if t.expires_at <= now]
            next_revert = min(due_reverts, key=lambda t: t.expires_at) if due_reverts else None
            fire_due = self.next_fire_at is not None and self.next_fire_at <= now

            if next_revert is None and not fire_due:
                break

            if next_revert is not None and (not fire_due or next_revert.expires_at <= self.next_fire_at):
                self.now = next_revert.expires_at
                self.revert(next_revert)
                continue

            self.now = self.next_fire_at
            fired.append(self.fire())
            self.next_fire_at = self._sample_wait()

        self.now = max(self.now, now)
        return fired

    # --- Effects ---

    def fire(self, spec: Optional[DisruptionSpec] = None) -> EffectToken:
        """
        Apply one event. Only timed effects stay in ``tokens`` until their
        revert; an effect that fails to apply records nothing.
        """
        spec = spec or self.sample()
        kind = DisruptionKind(spec.kind)
        timed = kind is not DisruptionKind.CREW_ILLNESS

        if kind is DisruptionKind.FREEZE:
            self.controller.freeze_aircraft(spec.target)
        elif kind is DisruptionKind.DELAY:
            self.controller.set_delayed_airport(spec.target)
        elif kind is DisruptionKind.CHARTER_BONUS:
            self.controller.set_charter_bonus(spec.target)
        elif kind is DisruptionKind.CREW_ILLNESS:
            removed = self.controller.remove_last_trip(spec.target)
            logger.info("Crew illness on %s removed %d segments", spec.target, len(removed))

        token = EffectToken(
            token_id=self._next_token,
            kind=kind,
            target=spec.target,
            fired_at=self.now,
            expires_at=self.now + self.rules.disruption_duration if timed else None,
            message=spec.message,
        )
        self._next_token += 1
        if timed:
            self.tokens.append(token)

        logger.info("Disruption %s on %s at %.0fs", kind.value, spec.target, self.now)
        return token

    def _still_held(self, token: EffectToken) -> bool:
        return any(
            t is not token and t.kind is token.kind and t.target == token.target
            for t in self.active
        )

    def revert(self, token: EffectToken) -> None:
        if not token.pending_revert:
            return
        token.reverted = True
        self.tokens = [t for t in self.tokens if t is not token]

        # another active token still holds the same effect
        if self._still_held(token):
            return

        if token.kind is DisruptionKind.FREEZE:
            self.controller.unfreeze_aircraft(token.target)
        elif token.kind is DisruptionKind.DELAY:
            self.controller.clear_delayed_airport(token.target)
        elif token.kind is DisruptionKind.CHARTER_BONUS:
            self.controller.clear_charter_bonus(token.target)

        logger.info("Disruption %s on %s reverted at %.0fs", token.kind.value, token.target, self.now)

    def cancel(self, token: EffectToken) -> None:
        """End an effect early; its scheduled revert is dropped."""
        if not token.pending_revert:
            return
        self.revert(token)
        token.cancelled = True
