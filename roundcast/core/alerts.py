"""Human-facing alerts derived from history, fusion and ingestion status.

No inference happens here: every alert restates something the detectors,
the fusion engine or the ingestor already produced.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from .outcomes import Category, DetectionResult, FusionResult, Outcome
from .stats import trailing_run
from .status import IngestionStatus


class AlertKind(str, Enum):
    SOURCE_OFFLINE = "source_offline"
    LONG_STREAK = "long_streak"
    GALE = "gale"
    HIGH_CONFIDENCE = "high_confidence"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class Alert:
    kind: AlertKind
    severity: Severity
    message: str
    category: Optional[Category] = None
    confidence: Optional[float] = None


class AlertEvaluator:
    def __init__(self, long_streak_min: int = 4, high_confidence_min: int = 80) -> None:
        self.long_streak_min = long_streak_min
        self.high_confidence_min = high_confidence_min

    def evaluate(
        self,
        history: Sequence[Outcome],
        fusion: FusionResult,
        gale: Optional[DetectionResult],
        status: IngestionStatus,
    ) -> List[Alert]:
        """``history`` is most-recent-first."""
        if status.is_offline:
            detail = f": {status.last_error}" if status.last_error else ""
            # Supersedes every other alert
            return [
                Alert(
                    kind=AlertKind.SOURCE_OFFLINE,
                    severity=Severity.HIGH,
                    message=f"Live source offline ({status.state.value}){detail}",
                )
            ]

        alerts: List[Alert] = []

        run = trailing_run(history)
        if run >= self.long_streak_min:
            category = history[0].category
            alerts.append(
                Alert(
                    kind=AlertKind.LONG_STREAK,
                    severity=Severity.HIGH,
                    message=f"Streak of {run} {category.value} in a row",
                    category=category,
                )
            )

        if gale is not None:
            alerts.append(
                Alert(
                    kind=AlertKind.GALE,
                    severity=Severity.MEDIUM,
                    message=gale.rationale,
                    category=gale.category,
                    confidence=gale.confidence,
                )
            )

        if fusion.category is not None and fusion.confidence >= self.high_confidence_min:
            alerts.append(
                Alert(
                    kind=AlertKind.HIGH_CONFIDENCE,
                    severity=Severity.HIGH,
                    message=f"Prediction at {fusion.confidence}% confidence: {fusion.category.value}",
                    category=fusion.category,
                    confidence=fusion.confidence,
                )
            )
        return alerts
