from __future__ import annotations

import json
import logging
import random
from collections import Counter
from typing import List

import pytest

from roundcast.core.outcomes import Category
from roundcast.data.simulator import SyntheticOutcomeGenerator
from roundcast.utils.logging import JsonFormatter
from roundcast.utils.retry import exponential_backoff, linear_backoff, with_retries
from roundcast.utils.timers import ManualTimerScheduler

from helpers import T0


def test_backoff_shapes() -> None:
    assert [linear_backoff(n, 3.0) for n in (1, 2, 3)] == [3.0, 6.0, 9.0]
    assert [exponential_backoff(n, 0.5, 2.0) for n in (1, 2, 3, 4)] == [0.5, 1.0, 2.0, 2.0]


def test_with_retries_only_retries_listed_errors() -> None:
    calls: List[int] = []

    def flaky() -> str:
        calls.append(1)
        raise KeyError("not retryable")

    with pytest.raises(KeyError):
        with_retries(flaky, 5, 0.1, 1.0, retry_on=(ValueError,), sleep=lambda _: None)
    assert len(calls) == 1


def test_synthetic_generator_weights_and_ids() -> None:
    gen = SyntheticOutcomeGenerator(rng=random.Random(42), clock=lambda: T0)
    outcomes = [gen.next_outcome() for _ in range(2000)]
    counts = Counter(o.category for o in outcomes)
    assert 0.05 < counts[Category.NEUTRAL] / 2000 < 0.15
    assert 0.40 < counts[Category.PRIMARY] / 2000 < 0.50
    assert len({o.id for o in outcomes}) == 2000
    assert outcomes[0].id == f"sim-{int(T0.timestamp() * 1000)}-1"


def test_manual_scheduler_cancel_all() -> None:
    fired: List[str] = []
    scheduler = ManualTimerScheduler()
    scheduler.call_later(1, lambda: fired.append("a"), name="a")
    handle = scheduler.call_later(2, lambda: fired.append("b"), name="b")
    handle.cancel()
    assert not scheduler.fire_next("b")
    assert scheduler.fire_next()
    scheduler.call_later(3, lambda: fired.append("c"), name="c")
    scheduler.cancel_all()
    assert not scheduler.fire_next()
    assert fired == ["a"]


def test_json_formatter_includes_extra_fields() -> None:
    record = logging.LogRecord("roundcast.test", logging.INFO, __file__, 1, "new outcome", None, None)
    record.outcome_id = "abc"
    payload = json.loads(JsonFormatter().format(record))
    assert payload["message"] == "new outcome"
    assert payload["outcome_id"] == "abc"
    assert payload["level"] == "INFO"
