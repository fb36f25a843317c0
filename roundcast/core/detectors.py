"""Pattern detectors and the ordered bank that runs them.

Each detector is a pure function over an oldest-first window of outcomes
(the last element is the most recent round) returning a vote or ``None``.
Thresholds are fixed heuristics with no real predictive power over a
fair game.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from .outcomes import Category, DetectionResult, DetectorKind, Outcome, clamp_confidence


logger = logging.getLogger(__name__)

DetectorFunc = Callable[[Sequence[Outcome]], Optional[DetectionResult]]

INSUFFICIENT_DATA = "insufficient data"


@dataclass(frozen=True)
class DetectorSpec:
    kind: DetectorKind
    window: int
    detect: DetectorFunc
    label: str


def _result(kind: DetectorKind, category: Category, confidence: float, rationale: str) -> DetectionResult:
    return DetectionResult(
        kind=kind,
        category=category,
        confidence=clamp_confidence(confidence),
        rationale=rationale,
    )


def detect_streak(window: Sequence[Outcome]) -> Optional[DetectionResult]:
    """Trailing run of two or more of one non-neutral category: bet the other."""
    if not window:
        return None
    last = window[-1].category
    if last is Category.NEUTRAL:
        return None
    length = 1
    for outcome in reversed(window[:-1]):
        if outcome.category is not last:
            break
        length += 1
    if length < 2:
        return None
    return _result(
        DetectorKind.STREAK,
        last.opposite(),
        min(50 + 15 * length, 85),
        f"Streak: {length} consecutive {last.value}",
    )


# Ordered: the first key found in the window wins
SEQUENCE_TABLE: Tuple[Tuple[str, Category, int], ...] = (
    ("ABA", Category.SECONDARY, 65),
    ("BAB", Category.PRIMARY, 65),
    ("AAB", Category.PRIMARY, 60),
    ("BBA", Category.SECONDARY, 60),
    ("ABB", Category.PRIMARY, 58),
    ("BAA", Category.SECONDARY, 58),
)


def detect_sequence(window: Sequence[Outcome]) -> Optional[DetectionResult]:
    letters = "".join(o.category.letter for o in window)
    for key, nxt, confidence in SEQUENCE_TABLE:
        if key in letters:
            return _result(DetectorKind.SEQUENCE, nxt, confidence, f"Sequence {key} detected")
    return None


EXPECTED_SHARE = 42.5
NEUTRAL_EXPECTED_SHARE = 15.0
SHARE_TOLERANCE = 10.0
NEUTRAL_SHARE_TOLERANCE = 5.0


def detect_frequency(window: Sequence[Outcome]) -> Optional[DetectionResult]:
    """Vote for a category whose share sits well under its expected share."""
    total = len(window)
    if total == 0:
        return None

    def share(category: Category) -> float:
        return sum(1 for o in window if o.category is category) / total * 100

    for category in (Category.PRIMARY, Category.SECONDARY):
        pct = share(category)
        if pct < EXPECTED_SHARE - SHARE_TOLERANCE:
            return _result(
                DetectorKind.FREQUENCY,
                category,
                55 + abs(EXPECTED_SHARE - pct),
                f"{category.value.capitalize()} below expected ({pct:.1f}% vs {EXPECTED_SHARE}%)",
            )

    pct = share(Category.NEUTRAL)
    if pct < NEUTRAL_EXPECTED_SHARE - NEUTRAL_SHARE_TOLERANCE:
        return _result(
            DetectorKind.FREQUENCY,
            Category.NEUTRAL,
            45 + abs(NEUTRAL_EXPECTED_SHARE - pct) * 2,
            f"Neutral below expected ({pct:.1f}% vs {NEUTRAL_EXPECTED_SHARE:g}%)",
        )
    return None


def detect_trend(window: Sequence[Outcome]) -> Optional[DetectionResult]:
    a_to_b = 0
    b_to_a = 0
    for prev, cur in zip(window, window[1:]):
        if prev.category is Category.PRIMARY and cur.category is Category.SECONDARY:
            a_to_b += 1
        elif prev.category is Category.SECONDARY and cur.category is Category.PRIMARY:
            b_to_a += 1

    if a_to_b > b_to_a + 2:
        return _result(
            DetectorKind.TREND, Category.SECONDARY, 52, f"Trend: primary -> secondary ({a_to_b} vs {b_to_a})"
        )
    if b_to_a > a_to_b + 2:
        return _result(
            DetectorKind.TREND, Category.PRIMARY, 52, f"Trend: secondary -> primary ({b_to_a} vs {a_to_b})"
        )
    return None


def detect_gale(window: Sequence[Outcome]) -> Optional[DetectionResult]:
    if len(window) < 4:
        return None
    last, before = window[-1].category, window[-2].category
    if last is before and last is not Category.NEUTRAL:
        return _result(DetectorKind.GALE, last.opposite(), 68, f"Gale: 2 consecutive {last.value}")
    return None


# Fibonacci-numbered slots within a 13-round window; 1 appears twice on purpose
FIBONACCI_POSITIONS: Tuple[int, ...] = (0, 1, 1, 2, 3, 5, 8, 12)


def detect_fibonacci(window: Sequence[Outcome]) -> Optional[DetectionResult]:
    for category in (Category.PRIMARY, Category.SECONDARY):
        matches = sum(
            1
            for pos in FIBONACCI_POSITIONS
            if pos < len(window) and window[pos].category is category
        )
        if matches >= 3:
            return _result(
                DetectorKind.FIBONACCI,
                category,
                45 + matches * 5,
                f"Fibonacci pattern for {category.value} ({matches} matches)",
            )
    return None


DEFAULT_DETECTORS: Tuple[DetectorSpec, ...] = (
    DetectorSpec(kind=DetectorKind.STREAK, window=6, detect=detect_streak, label="Streak (martingale)"),
    DetectorSpec(kind=DetectorKind.SEQUENCE, window=8, detect=detect_sequence, label="Sequence"),
    DetectorSpec(kind=DetectorKind.FREQUENCY, window=20, detect=detect_frequency, label="Frequency"),
    DetectorSpec(kind=DetectorKind.TREND, window=10, detect=detect_trend, label="Trend"),
    DetectorSpec(kind=DetectorKind.GALE, window=4, detect=detect_gale, label="Gale"),
    DetectorSpec(kind=DetectorKind.FIBONACCI, window=13, detect=detect_fibonacci, label="Fibonacci"),
)


@dataclass(frozen=True)
class BankReport:
    results: Tuple[DetectionResult, ...]
    rationale: str = ""

    @property
    def insufficient(self) -> bool:
        return self.rationale == INSUFFICIENT_DATA


class DetectorBank:
    """Runs every registered detector in declared order over a history snapshot."""

    def __init__(
        self, detectors: Sequence[DetectorSpec] = DEFAULT_DETECTORS, min_history: int = 5
    ) -> None:
        self._detectors: Tuple[DetectorSpec, ...] = tuple(detectors)
        self.min_history = min_history

    @property
    def detectors(self) -> Tuple[DetectorSpec, ...]:
        return self._detectors

    def run(self, history: Sequence[Outcome]) -> BankReport:
        """``history`` is most-recent-first, as :class:`HistoryBuffer` returns it."""
        if len(history) < self.min_history:
            return BankReport(results=(), rationale=INSUFFICIENT_DATA)

        results: List[DetectionResult] = []
        for spec in self._detectors:
            window = list(reversed(history[: spec.window]))
            try:
                result = spec.detect(window)
            except Exception:  # noqa: BLE001
                logger.exception("detector failed", extra={"detector": spec.kind})
                continue
            if result is not None:
                results.append(result)
        return BankReport(results=tuple(results))
