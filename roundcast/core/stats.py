from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Sequence

from .outcomes import Category, Outcome


@dataclass
class CategoryCount:
    count: int = 0
    total: int = 0

    @property
    def percentage(self) -> float:
        return round(self.count / self.total * 100, 1) if self.total else 0.0


@dataclass
class HistoryStats:
    total: int = 0
    categories: Dict[Category, CategoryCount] = field(default_factory=dict)

    def percentage(self, category: Category) -> float:
        entry = self.categories.get(category)
        return entry.percentage if entry else 0.0


@dataclass(frozen=True)
class Run:
    category: Category
    length: int
    started_at: datetime


def category_stats(outcomes: Sequence[Outcome]) -> HistoryStats:
    total = len(outcomes)
    stats = HistoryStats(
        total=total, categories={c: CategoryCount(total=total) for c in Category}
    )
    for o in outcomes:
        stats.categories[o.category].count += 1
    return stats


def trailing_run(outcomes: Sequence[Outcome]) -> int:
    """Length of the run at the most recent end of a most-recent-first list."""
    if not outcomes:
        return 0
    head = outcomes[0].category
    length = 0
    for o in outcomes:
        if o.category is not head:
            break
        length += 1
    return length


def recent_runs(
    outcomes: Sequence[Outcome], depth: int = 15, limit: int = 5, min_length: int = 2
) -> List[Run]:
    """Completed runs in the newest ``depth`` outcomes, newest first.

    A run still open at the end of the scanned slice is not reported.
    """
    scanned = list(outcomes[:depth])
    runs: List[Run] = []
    if len(scanned) < 3:
        return runs
    current = scanned[0].category
    count = 1
    for prev, o in zip(scanned, scanned[1:]):
        if o.category is current:
            count += 1
            continue
        if count >= min_length:
            # prev is the oldest member of the run just closed
            runs.append(Run(category=current, length=count, started_at=prev.occurred_at))
        current = o.category
        count = 1
    return runs[:limit]
