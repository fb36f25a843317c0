from __future__ import annotations

import math
from typing import Dict, List, Literal, Mapping, Sequence, Tuple

from .outcomes import Category, DetectionResult, DetectorKind, FusionResult, clamp_confidence


NO_PATTERN = "no pattern detected"

FusionStrategy = Literal["weighted", "simplified"]

DETECTOR_WEIGHTS: Mapping[DetectorKind, float] = {
    DetectorKind.STREAK: 1.2,
    DetectorKind.GALE: 1.1,
    DetectorKind.SEQUENCE: 1.0,
    DetectorKind.FREQUENCY: 0.9,
    DetectorKind.TREND: 0.8,
    DetectorKind.FIBONACCI: 0.7,
}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def group_by_category(
    results: Sequence[DetectionResult],
) -> List[Tuple[Category, List[DetectionResult]]]:
    """Group votes by category, groups ordered by first appearance."""
    groups: Dict[Category, List[DetectionResult]] = {}
    for result in results:
        groups.setdefault(result.category, []).append(result)
    return list(groups.items())


def _weighted_score(group: Sequence[DetectionResult], weights: Mapping[DetectorKind, float]) -> float:
    total_weight = 0.0
    weighted = 0.0
    for result in group:
        w = weights[result.kind]
        weighted += result.confidence * w
        total_weight += w
    bonus = min(3 * len(group), 15)
    return weighted / total_weight + bonus


def _simplified_score(group: Sequence[DetectionResult]) -> float:
    mean = sum(r.confidence for r in group) / len(group)
    return mean + min(5 * len(group), 15)


class FusionEngine:
    """Combine detector votes into one prediction.

    ``weighted`` (default) averages with per-detector weights and adds a
    corroboration bonus of 3 per agreeing detector (max 15). ``simplified``
    is the legacy plain average with a bonus of 5 per detector (max 15),
    kept for parity checks. Exact ties keep the group formed first.
    """

    def __init__(
        self,
        strategy: FusionStrategy = "weighted",
        weights: Mapping[str, float] = DETECTOR_WEIGHTS,
    ) -> None:
        if strategy not in ("weighted", "simplified"):
            raise ValueError(f"unknown fusion strategy: {strategy}")
        self.strategy = strategy
        # Overrides are validated; unlisted kinds keep their default weight
        self.weights = {**DETECTOR_WEIGHTS, **{DetectorKind(k): float(w) for k, w in weights.items()}}

    def score(self, group: Sequence[DetectionResult]) -> float:
        if self.strategy == "weighted":
            raw = _weighted_score(group, self.weights)
        else:
            raw = _simplified_score(group)
        return clamp_confidence(raw)

    def fuse(self, results: Sequence[DetectionResult]) -> FusionResult:
        if not results:
            return FusionResult(category=None, confidence=0, rationale=NO_PATTERN)

        best_category = None
        best_score = 0.0
        best_group: List[DetectionResult] = []
        for category, group in group_by_category(results):
            score = self.score(group)
            # Strict comparison keeps the earlier group on a tie
            if best_category is None or score > best_score:
                best_category = category
                best_score = score
                best_group = group

        return FusionResult(
            category=best_category,
            confidence=_round_half_up(best_score),
            rationale=" + ".join(r.rationale for r in best_group),
            contributing=tuple(best_group),
        )
