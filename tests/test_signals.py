from __future__ import annotations

import random
from datetime import timedelta

import pytest

from roundcast.core.outcomes import Category, FusionResult
from roundcast.core.signals import PLACEHOLDER_RATIONALE, SignalScheduler

from helpers import T0


def make_scheduler(p: float, seed: int = 7) -> SignalScheduler:
    return SignalScheduler(
        interval_sec=60, override_probability=p, rng=random.Random(seed), clock=lambda: T0
    )


def test_no_override_repeats_fusion_vote() -> None:
    fusion = FusionResult(category=Category.PRIMARY, confidence=70, rationale="because")
    signals = make_scheduler(0.0).project(fusion, 3)
    assert [s.index for s in signals] == [1, 2, 3]
    assert all(s.category is Category.PRIMARY and s.confidence == 70 for s in signals)
    assert [s.scheduled_at for s in signals] == [T0 + timedelta(minutes=i) for i in (1, 2, 3)]
    assert signals[0].rationale == "because"
    assert {s.rationale for s in signals[1:]} == {PLACEHOLDER_RATIONALE}


def test_full_override_draws_fresh_confidence() -> None:
    fusion = FusionResult(category=Category.PRIMARY, confidence=93, rationale="because")
    signals = make_scheduler(1.0).project(fusion, 25)
    assert len(signals) == 25
    for s in signals:
        assert 50 <= s.confidence < 90
        assert s.category in (Category.PRIMARY, Category.SECONDARY, Category.NEUTRAL)


def test_null_fusion_falls_back_to_random_vote() -> None:
    fusion = FusionResult(category=None, confidence=0, rationale="no pattern detected")
    signals = make_scheduler(0.0).project(fusion, 10)
    assert all(60 <= s.confidence < 90 for s in signals)
    assert signals[0].rationale == "no pattern detected"


def test_zero_and_negative_count() -> None:
    fusion = FusionResult(category=Category.SECONDARY, confidence=60, rationale="x")
    assert make_scheduler(0.3).project(fusion, 0) == []
    with pytest.raises(ValueError):
        make_scheduler(0.3).project(fusion, -1)
