from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterator, List, Optional, Sequence, Union

from roundcast.config import AppConfig, RuntimeConfig
from roundcast.core.outcomes import Outcome


T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

# One representative value per category letter
VALUES: Dict[str, int] = {"A": 1, "B": 2, "N": 0}


def make_config(**runtime_overrides) -> AppConfig:  # noqa: ANN003
    runtime = RuntimeConfig(**runtime_overrides)
    return AppConfig(env={"LOG_LEVEL": "INFO"}, runtime=runtime)


def outcome(oid: Union[int, str], letter: str = "A", minute: int = 0) -> Outcome:
    return Outcome(id=str(oid), occurred_at=T0 + timedelta(minutes=minute), value=VALUES[letter])


def chrono(letters: str) -> List[Outcome]:
    """Oldest-first outcomes from category letters, e.g. ``"ABBA"``."""
    return [outcome(f"r{i}", letter, minute=i) for i, letter in enumerate(letters)]


def newest_first(letters: str) -> List[Outcome]:
    """Same letters (written oldest first) returned most-recent-first."""
    return list(reversed(chrono(letters)))


def round_frame(o: Outcome, channel: str = "double") -> str:
    payload = {"id": o.id, "created_at": o.occurred_at.isoformat(), "roll": o.value}
    return "42" + json.dumps([channel, payload])


class FakeClient:
    """Stands in for OutcomeSourceClient."""

    base_url = "http://proxy.test"

    def __init__(
        self,
        status: Optional[dict] = None,
        batches: Sequence[Union[List[Outcome], Exception]] = (),
        simulated: Optional[Outcome] = None,
    ) -> None:
        self._status = status
        self._batches = list(batches)
        self.simulated = simulated
        self.fetches = 0

    def status(self) -> Optional[dict]:
        return self._status

    def recent_outcomes(self) -> List[Outcome]:
        self.fetches += 1
        # Last batch repeats once the script runs out
        item = self._batches.pop(0) if len(self._batches) > 1 else self._batches[0]
        if isinstance(item, Exception):
            raise item
        return list(item)

    def simulate_outcome(self) -> Outcome:
        assert self.simulated is not None
        return self.simulated


class FakeConnection:
    def __init__(self, frames: Sequence[str] = (), error: Optional[Exception] = None) -> None:
        self.frames = list(frames)
        self.error = error
        self.sent: List[str] = []
        self.closed = False

    def send(self, message: str) -> None:
        self.sent.append(message)

    def __iter__(self) -> Iterator[str]:
        for frame in self.frames:
            if self.closed:
                return
            yield frame
        if self.error is not None:
            raise self.error

    def close(self) -> None:
        self.closed = True


def connector_from(*items: Union[FakeConnection, Exception]):  # noqa: ANN201
    queue = list(items)
    urls: List[str] = []

    def connect(url: str) -> FakeConnection:
        urls.append(url)
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    connect.urls = urls  # type: ignore[attr-defined]
    return connect
