"""Cancellable timers owned by the ingestor.

``ThreadTimerScheduler`` backs timers with ``threading.Timer`` and spawns
daemon reader threads. ``cancel_all`` disposes of everything still pending
so ``stop()`` leaves no orphaned work behind.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional, Protocol


logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class TimerScheduler(Protocol):
    def call_later(self, delay: float, fn: Callable[[], None], name: str = "") -> TimerHandle: ...

    def spawn(self, fn: Callable[[], None], name: str = "") -> None: ...

    def cancel_all(self) -> None: ...


class _ThreadTimer:
    def __init__(self, timer: threading.Timer) -> None:
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()

    @property
    def alive(self) -> bool:
        return self._timer.is_alive()


class ThreadTimerScheduler:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._timers: List[_ThreadTimer] = []

    def call_later(self, delay: float, fn: Callable[[], None], name: str = "") -> TimerHandle:
        timer = threading.Timer(max(0.0, delay), self._guard(fn, name))
        timer.daemon = True
        if name:
            timer.name = name
        handle = _ThreadTimer(timer)
        with self._lock:
            # Drop handles whose timers already fired
            self._timers = [t for t in self._timers if t.alive]
            self._timers.append(handle)
        timer.start()
        return handle

    def spawn(self, fn: Callable[[], None], name: str = "") -> None:
        thread = threading.Thread(target=self._guard(fn, name), name=name or None, daemon=True)
        thread.start()

    def cancel_all(self) -> None:
        with self._lock:
            timers, self._timers = self._timers, []
        for handle in timers:
            handle.cancel()

    @staticmethod
    def _guard(fn: Callable[[], None], name: str) -> Callable[[], None]:
        def run() -> None:
            try:
                fn()
            except Exception:  # noqa: BLE001
                logger.exception("background task failed", extra={"task": name})

        return run


class ManualTimerScheduler:
    """Deterministic scheduler: nothing runs until the caller says so.

    Used by tests and by single-threaded embedders that drive their own loop.
    """

    class _Pending:
        def __init__(self, delay: float, fn: Callable[[], None], name: str) -> None:
            self.delay = delay
            self.fn = fn
            self.name = name
            self.cancelled = False

        def cancel(self) -> None:
            self.cancelled = True

    def __init__(self, run_spawned: bool = True) -> None:
        self.run_spawned = run_spawned
        self.pending: List[ManualTimerScheduler._Pending] = []
        self.spawned: List[Callable[[], None]] = []

    def call_later(self, delay: float, fn: Callable[[], None], name: str = "") -> TimerHandle:
        item = self._Pending(delay, fn, name)
        self.pending.append(item)
        return item

    def spawn(self, fn: Callable[[], None], name: str = "") -> None:
        if self.run_spawned:
            fn()
        else:
            self.spawned.append(fn)

    def cancel_all(self) -> None:
        for item in self.pending:
            item.cancel()
        self.pending = []

    def active(self, name: Optional[str] = None) -> List["ManualTimerScheduler._Pending"]:
        return [p for p in self.pending if not p.cancelled and (name is None or p.name == name)]

    def fire_next(self, name: Optional[str] = None) -> bool:
        """Run the oldest live timer (optionally matching ``name``). False if none."""
        for item in list(self.pending):
            if item.cancelled or (name is not None and item.name != name):
                continue
            self.pending.remove(item)
            item.fn()
            return True
        return False
