from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import FrozenSet, Optional, Tuple


class Category(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    NEUTRAL = "neutral"

    @property
    def letter(self) -> str:
        return _LETTERS[self]

    def opposite(self) -> "Category":
        """Primary <-> Secondary. Neutral has no opposite."""
        if self is Category.PRIMARY:
            return Category.SECONDARY
        if self is Category.SECONDARY:
            return Category.PRIMARY
        raise ValueError("neutral has no opposite category")


_LETTERS = {Category.PRIMARY: "A", Category.SECONDARY: "B", Category.NEUTRAL: "N"}

PRIMARY_VALUES: FrozenSet[int] = frozenset({1, 3, 5, 7, 9, 12, 14})
SECONDARY_VALUES: FrozenSet[int] = frozenset({2, 4, 6, 8, 10, 11, 13})
MIN_VALUE = 0
MAX_VALUE = 14

CATEGORY_VALUES = {
    Category.NEUTRAL: (0,),
    Category.PRIMARY: tuple(sorted(PRIMARY_VALUES)),
    Category.SECONDARY: tuple(sorted(SECONDARY_VALUES)),
}


def category_of(value: int) -> Category:
    """Map a rolled value 0..14 to its category."""
    if not MIN_VALUE <= value <= MAX_VALUE:
        raise ValueError(f"value out of range 0..14: {value}")
    if value == 0:
        return Category.NEUTRAL
    if value in PRIMARY_VALUES:
        return Category.PRIMARY
    return Category.SECONDARY


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Outcome:
    id: str
    occurred_at: datetime
    value: int
    category: Category = field(init=False)

    def __post_init__(self) -> None:
        # Category derives from value only
        object.__setattr__(self, "id", str(self.id))
        object.__setattr__(self, "category", category_of(self.value))


class DetectorKind(str, Enum):
    STREAK = "streak"
    SEQUENCE = "sequence"
    FREQUENCY = "frequency"
    TREND = "trend"
    GALE = "gale"
    FIBONACCI = "fibonacci"


@dataclass(frozen=True)
class DetectionResult:
    kind: DetectorKind
    category: Category
    confidence: float
    rationale: str

    def __post_init__(self) -> None:
        # Unknown kinds fail here rather than weighing in at a default
        object.__setattr__(self, "kind", DetectorKind(self.kind))


@dataclass(frozen=True)
class FusionResult:
    category: Optional[Category]
    confidence: int
    rationale: str
    contributing: Tuple[DetectionResult, ...] = ()

    @property
    def has_prediction(self) -> bool:
        return self.category is not None


@dataclass(frozen=True)
class Signal:
    index: int
    scheduled_at: datetime
    category: Category
    confidence: int
    rationale: str


def clamp_confidence(value: float, upper: float = 95.0) -> float:
    return max(0.0, min(upper, value))
