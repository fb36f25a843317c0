from __future__ import annotations

import itertools
import random
from typing import Callable, Optional

from ..core.outcomes import CATEGORY_VALUES, Category, Outcome, utc_now


# Rough long-run shares of the live game
CATEGORY_WEIGHTS = (
    (Category.PRIMARY, 0.45),
    (Category.SECONDARY, 0.45),
    (Category.NEUTRAL, 0.10),
)


class SyntheticOutcomeGenerator:
    """Weighted-random outcomes for degraded mode. Never a live source.

    Ids carry a ``sim-`` prefix so synthetic rounds can always be told
    apart from real ones.
    """

    def __init__(self, rng: Optional[random.Random] = None, clock: Callable = utc_now) -> None:
        self._rng = rng if rng is not None else random.Random()
        self._clock = clock
        self._counter = itertools.count(1)

    def pick_category(self) -> Category:
        draw = self._rng.random()
        cumulative = 0.0
        for category, weight in CATEGORY_WEIGHTS:
            cumulative += weight
            if draw < cumulative:
                return category
        return Category.NEUTRAL

    def next_outcome(self) -> Outcome:
        category = self.pick_category()
        values = CATEGORY_VALUES[category]
        value = values[self._rng.randrange(len(values))]
        now = self._clock()
        outcome_id = f"sim-{int(now.timestamp() * 1000)}-{next(self._counter)}"
        return Outcome(id=outcome_id, occurred_at=now, value=value)
