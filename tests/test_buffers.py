from __future__ import annotations

import pytest

from roundcast.core.buffers import HistoryBuffer

from helpers import outcome


def test_history_buffer_evicts_oldest() -> None:
    buf = HistoryBuffer(capacity=20)
    for i in range(21):
        buf.push(outcome(i, minute=i))
    assert buf.size() == 20
    ids = [o.id for o in buf.all()]
    assert ids[0] == "20"
    assert ids[-1] == "1"
    assert "0" not in buf


def test_push_duplicate_id_is_noop() -> None:
    buf = HistoryBuffer(capacity=3)
    assert buf.push(outcome(1, "A"))
    assert not buf.push(outcome(1, "B"))
    assert len(buf) == 1
    assert buf.all()[0].value == 1


def test_window_and_chronological() -> None:
    buf = HistoryBuffer(capacity=5)
    for i in range(5):
        buf.push(outcome(i, minute=i))
    assert [o.id for o in buf.window(3)] == ["4", "3", "2"]
    assert [o.id for o in buf.chronological(3)] == ["2", "3", "4"]
    with pytest.raises(ValueError):
        buf.window(6)


def test_seed_keeps_newest_first_order() -> None:
    buf = HistoryBuffer(capacity=3)
    stored = buf.seed([outcome(9), outcome(8), outcome(7), outcome(6)])
    assert stored == 3
    assert [o.id for o in buf.all()] == ["9", "8", "7"]
    assert buf.latest().id == "9"  # type: ignore[union-attr]
