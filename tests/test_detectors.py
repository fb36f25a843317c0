from __future__ import annotations

from typing import List

from roundcast.core.detectors import (
    DEFAULT_DETECTORS,
    INSUFFICIENT_DATA,
    DetectorBank,
    DetectorSpec,
    detect_fibonacci,
    detect_frequency,
    detect_gale,
    detect_sequence,
    detect_streak,
    detect_trend,
)
from roundcast.core.outcomes import Category, DetectorKind

from helpers import chrono, newest_first


def test_streak_confidence_grows_with_length() -> None:
    two = detect_streak(chrono("BAA"))
    three = detect_streak(chrono("BAAA"))
    assert two is not None and two.confidence == 80
    assert three is not None and three.confidence == 85
    assert three.category is Category.SECONDARY
    assert three.rationale == "Streak: 3 consecutive primary"


def test_streak_ignores_single_and_neutral() -> None:
    assert detect_streak(chrono("AB")) is None
    assert detect_streak(chrono("NN")) is None


def test_sequence_first_table_entry_wins() -> None:
    res = detect_sequence(chrono("BABA"))
    assert res is not None
    assert res.category is Category.SECONDARY
    assert res.confidence == 65
    assert res.rationale == "Sequence ABA detected"

    res = detect_sequence(chrono("NAAB"))
    assert res is not None and (res.category, res.confidence) == (Category.PRIMARY, 60)
    assert detect_sequence(chrono("AAAA")) is None


def test_frequency_flags_underrepresented_primary() -> None:
    res = detect_frequency(chrono("A" * 6 + "B" * 10 + "N" * 4))
    assert res is not None
    assert res.category is Category.PRIMARY
    assert res.confidence == 67.5


def test_frequency_flags_missing_neutral() -> None:
    res = detect_frequency(chrono("AB" * 10))
    assert res is not None
    assert res.category is Category.NEUTRAL
    assert res.confidence == 75


def test_trend_needs_margin_above_two() -> None:
    res = detect_trend(chrono("ABNABNABNA"))
    assert res is not None
    assert res.category is Category.SECONDARY
    assert res.confidence == 52
    assert detect_trend(chrono("ABABABABAB")) is None


def test_gale_requires_four_rounds() -> None:
    res = detect_gale(chrono("NBAA"))
    assert res is not None and (res.category, res.confidence) == (Category.SECONDARY, 68)
    assert detect_gale(chrono("BAA")) is None
    assert detect_gale(chrono("ABNN")) is None


def test_fibonacci_counts_repeated_slot() -> None:
    res = detect_fibonacci(chrono("ABB" + "N" * 10))
    assert res is not None
    assert res.category is Category.SECONDARY
    assert res.confidence == 60
    assert res.rationale == "Fibonacci pattern for secondary (3 matches)"


def test_bank_below_minimum_runs_nothing() -> None:
    calls: List[int] = []

    def spy(window):  # noqa: ANN001, ANN202
        calls.append(len(window))
        return None

    bank = DetectorBank([DetectorSpec(DetectorKind.STREAK, 6, spy, "Spy")], min_history=5)
    report = bank.run(newest_first("AAAA"))
    assert report.insufficient
    assert report.rationale == INSUFFICIENT_DATA
    assert report.results == ()
    assert calls == []


def test_bank_windows_are_oldest_first_and_capped() -> None:
    seen: List[List[str]] = []

    def spy(window):  # noqa: ANN001, ANN202
        seen.append([o.id for o in window])
        return None

    bank = DetectorBank([DetectorSpec(DetectorKind.TREND, 3, spy, "Spy")], min_history=1)
    bank.run(newest_first("ABBAB"))
    assert seen == [["r2", "r3", "r4"]]


def test_bank_isolates_failing_detector() -> None:
    def boom(window):  # noqa: ANN001, ANN202
        raise RuntimeError("bad detector")

    detectors = [DetectorSpec(DetectorKind.STREAK, 6, boom, "Boom")] + list(DEFAULT_DETECTORS)
    report = DetectorBank(detectors).run(newest_first("AAAAAA"))
    assert [r.kind for r in report.results] == ["streak", "frequency", "gale", "fibonacci"]


def test_bank_preserves_declared_order() -> None:
    report = DetectorBank().run(newest_first("AAAAAA"))
    kinds = [r.kind for r in report.results]
    assert kinds == ["streak", "frequency", "gale", "fibonacci"]
    assert report.results[0].confidence == 85
    # 0% secondary share clamps at 95
    assert report.results[1].confidence == 95
