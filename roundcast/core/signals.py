from __future__ import annotations

import random
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Sequence

from .outcomes import Category, FusionResult, Signal, utc_now


PLACEHOLDER_RATIONALE = "predictive projection"

_CATEGORIES = (Category.PRIMARY, Category.SECONDARY, Category.NEUTRAL)


class SignalScheduler:
    """Project ``count`` forward time slots from one fusion result.

    This is a pseudo-randomized projection, not a statistical forecast:
    every slot reuses the same fused vote, and each slot independently has
    ``override_probability`` chance of being replaced by a uniformly random
    category with a random confidence in [50, 90). Consumers must not read
    the slots as independent predictions of future rounds.
    """

    def __init__(
        self,
        interval_sec: int = 60,
        override_probability: float = 0.3,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.interval = timedelta(seconds=interval_sec)
        self.override_probability = override_probability
        self._rng = rng if rng is not None else random.Random()
        self._clock = clock

    def project(self, fusion: FusionResult, count: int) -> List[Signal]:
        if count < 0:
            raise ValueError("count must be non-negative")
        now = self._clock()
        signals: List[Signal] = []
        for i in range(1, count + 1):
            category = fusion.category
            confidence = fusion.confidence
            if category is None:
                category = self._pick(_CATEGORIES)
                confidence = self._rng.randrange(60, 90)

            if self._rng.random() < self.override_probability:
                category = self._pick(_CATEGORIES)
                confidence = self._rng.randrange(50, 90)

            signals.append(
                Signal(
                    index=i,
                    scheduled_at=now + i * self.interval,
                    category=category,
                    confidence=min(int(confidence), 95),
                    rationale=fusion.rationale if i == 1 else PLACEHOLDER_RATIONALE,
                )
            )
        return signals

    def _pick(self, options: Sequence[Category]) -> Category:
        return options[self._rng.randrange(len(options))]
