from __future__ import annotations

from roundcast.core.outcomes import Category
from roundcast.core.stats import category_stats, recent_runs, trailing_run

from helpers import newest_first


def test_category_stats_percentages() -> None:
    stats = category_stats(newest_first("AABN"))
    assert stats.total == 4
    assert stats.categories[Category.PRIMARY].count == 2
    assert stats.percentage(Category.PRIMARY) == 50.0
    assert stats.percentage(Category.NEUTRAL) == 25.0


def test_category_stats_empty() -> None:
    stats = category_stats([])
    assert stats.total == 0
    assert stats.percentage(Category.SECONDARY) == 0.0


def test_trailing_run() -> None:
    assert trailing_run(newest_first("BAAA")) == 3
    assert trailing_run(newest_first("AB")) == 1
    assert trailing_run([]) == 0


def test_recent_runs_reports_closed_runs_newest_first() -> None:
    # newest first: A A | B B B | N | B | A A (still open)
    history = newest_first("AABNBBBAA")
    runs = recent_runs(history)
    assert [(r.category, r.length) for r in runs] == [
        (Category.PRIMARY, 2),
        (Category.SECONDARY, 3),
    ]
    # oldest member of the newest run is r7
    assert runs[0].started_at == history[1].occurred_at


def test_recent_runs_needs_three_outcomes() -> None:
    assert recent_runs(newest_first("AA")) == []
