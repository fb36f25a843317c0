"""Outcome ingestion: acquire, dedup, reconnect, fan out.

Two acquisition modes share one dispatch path:

* ``poll``: ``GET /status`` gates start-up, the first ``/recent-outcomes``
  batch seeds history, then every tick dispatches the newest outcome only
  if its id differs from the last one dispatched.
* ``push``: a websocket subscribes to the round channel; each round frame
  is dispatched as it arrives. Lost connections are retried after
  ``base_delay * attempt``; once attempts run out the ingestor degrades to
  a synthetic generator and says so in its status. A heartbeat pings the
  feed and closes a connection that has gone silent, which reconnects it.

All history writes and listener calls happen under one lock, so history
keeps a single writer even though timers fire on their own threads.
"""

from __future__ import annotations

import logging
import random
import threading
from typing import Callable, Iterator, List, Optional, Protocol, Union

from websockets.exceptions import WebSocketException
from websockets.sync.client import connect as ws_connect

from ..config import FeedConfig
from ..core.buffers import HistoryBuffer
from ..core.outcomes import Outcome, utc_now
from ..core.status import ConnectionState, IngestionStatus
from ..errors import ProtocolError, SourceUnavailableError, TransientNetworkError
from ..utils.retry import linear_backoff
from ..utils.timers import ThreadTimerScheduler, TimerScheduler
from .codec import PING_FRAME, PONG_FRAME, decode_frame, parse_outcome, subscribe_frame
from .simulator import SyntheticOutcomeGenerator
from .source_client import OutcomeSourceClient


logger = logging.getLogger(__name__)

OutcomeListener = Callable[[Outcome], None]

_CONNECT_ERRORS = (OSError, WebSocketException)


class FeedConnection(Protocol):
    def send(self, message: str) -> None: ...

    def __iter__(self) -> Iterator[Union[str, bytes]]: ...

    def close(self) -> None: ...


Connector = Callable[[str], FeedConnection]


def websocket_connector(config: FeedConfig) -> Connector:
    def connect(url: str) -> FeedConnection:
        return ws_connect(url, open_timeout=config.network_timeout_sec)

    return connect


class FeedIngestor:
    def __init__(
        self,
        config: FeedConfig,
        history: HistoryBuffer,
        client: Optional[OutcomeSourceClient] = None,
        connector: Optional[Connector] = None,
        scheduler: Optional[TimerScheduler] = None,
        rng: Optional[random.Random] = None,
        clock: Callable = utc_now,
    ) -> None:
        self.config = config
        self.history = history
        self.client = client or OutcomeSourceClient(config)
        self._connector = connector or websocket_connector(config)
        self._scheduler: TimerScheduler = scheduler or ThreadTimerScheduler()
        self._rng = rng
        self._clock = clock

        self._lock = threading.RLock()
        self._listeners: List[OutcomeListener] = []
        self._started = False
        # Bumped on every start/stop; callbacks from an older run are ignored
        self._generation = 0
        self._state = ConnectionState.DISCONNECTED
        self._attempts = 0
        self._simulated = False
        self._source_available: Optional[bool] = None
        self._last_error: Optional[str] = None
        self._last_dispatched_id: Optional[str] = None
        self._conn: Optional[FeedConnection] = None
        self._stalled: Optional[FeedConnection] = None
        self._last_frame_at = clock()
        self._generator: Optional[SyntheticOutcomeGenerator] = None

    # ───────────────────────────── public API ─────────────────────────────
    def start(self) -> None:
        """Begin acquisition. Raises SourceUnavailableError if the source is down."""
        with self._lock:
            if self._started:
                return
            self._started = True
            self._generation += 1
            generation = self._generation
            self._attempts = 0
            self._simulated = False
            self._last_error = None
            self._state = ConnectionState.CONNECTING
        logger.info("ingestor starting", extra={"mode": self.config.mode})

        try:
            if self.config.mode == "poll":
                self._start_poll(generation)
            else:
                self._start_push(generation)
        except SourceUnavailableError as exc:
            with self._lock:
                self._started = False
                self._generation += 1
                self._state = ConnectionState.DISCONNECTED
                self._source_available = False
                self._last_error = str(exc)
            logger.error("source unavailable", extra={"error": str(exc)})
            raise

    def stop(self) -> None:
        with self._lock:
            self._started = False
            self._generation += 1
            self._scheduler.cancel_all()
            conn, self._conn = self._conn, None
            self._listeners.clear()
            self._state = ConnectionState.DISCONNECTED
            self._attempts = 0
            self._simulated = False
            self._generator = None
            self._stalled = None
            self._last_dispatched_id = None
        if conn is not None:
            try:
                conn.close()
            except _CONNECT_ERRORS as exc:
                logger.debug("error closing feed connection", extra={"error": str(exc)})
        logger.info("ingestor stopped")

    def on_outcome(self, callback: OutcomeListener) -> None:
        with self._lock:
            self._listeners.append(callback)

    def remove_listener(self, callback: OutcomeListener) -> None:
        with self._lock:
            self._listeners = [cb for cb in self._listeners if cb != callback]

    def get_status(self) -> IngestionStatus:
        with self._lock:
            return IngestionStatus(
                state=self._state,
                mode=self.config.mode,
                attempts=self._attempts,
                simulated=self._simulated,
                source_available=self._source_available,
                last_error=self._last_error,
            )

    def simulate_outcome(self) -> Outcome:
        """Have the proxy inject a test round and push it through dispatch."""
        outcome = self.client.simulate_outcome()
        with self._lock:
            # Keeps the next poll from dispatching it a second time
            self._last_dispatched_id = outcome.id
            self._dispatch(outcome)
        return outcome

    # ───────────────────────────── dispatch ─────────────────────────────
    def _dispatch(self, outcome: Outcome) -> bool:
        with self._lock:
            if not self.history.push(outcome):
                logger.debug("duplicate outcome ignored", extra={"outcome_id": outcome.id})
                return False
            logger.info(
                "new outcome",
                extra={"outcome_id": outcome.id, "value": outcome.value, "category": outcome.category.value},
            )
            for callback in list(self._listeners):
                try:
                    callback(outcome)
                except Exception:  # noqa: BLE001
                    logger.exception(
                        "outcome listener failed",
                        extra={"listener": getattr(callback, "__name__", repr(callback))},
                    )
            return True

    def _is_current(self, generation: int) -> bool:
        return self._started and generation == self._generation

    # ───────────────────────────── poll mode ─────────────────────────────
    def _start_poll(self, generation: int) -> None:
        status = self.client.status()
        if not status:
            raise SourceUnavailableError(f"status check failed for {self.client.base_url}")
        try:
            batch = self.client.recent_outcomes()
        except (TransientNetworkError, ProtocolError) as exc:
            raise SourceUnavailableError(f"initial fetch failed: {exc}") from exc

        with self._lock:
            self.history.seed(batch)
            if batch:
                self._last_dispatched_id = batch[0].id
            self._source_available = True
            self._state = ConnectionState.CONNECTED
            self._schedule_poll(generation)
        logger.info("polling started", extra={"seeded": len(batch), "interval_sec": self.config.poll_interval_sec})

    def _schedule_poll(self, generation: int) -> None:
        self._scheduler.call_later(
            self.config.poll_interval_sec, lambda: self._poll_tick(generation), name="poll"
        )

    def _poll_tick(self, generation: int) -> None:
        if not self._is_current(generation):
            return
        try:
            self._poll_once(generation)
        finally:
            with self._lock:
                if self._is_current(generation):
                    self._schedule_poll(generation)

    def _poll_once(self, generation: int) -> None:
        try:
            batch = self.client.recent_outcomes()
        except TransientNetworkError as exc:
            with self._lock:
                self._attempts += 1
                self._state = ConnectionState.RECONNECTING
                self._last_error = str(exc)
                if self._attempts >= self.config.max_reconnect_attempts and self._source_available:
                    self._source_available = False
                    logger.error(
                        "source unreachable, still polling",
                        extra={"attempts": self._attempts, "last_error": self._last_error},
                    )
            logger.warning("poll failed, retrying next tick", extra={"error": str(exc), "attempt": self._attempts})
            return
        except ProtocolError as exc:
            logger.warning("dropping malformed poll response", extra={"error": str(exc)})
            return

        with self._lock:
            if not self._is_current(generation):
                return
            if self._source_available is False:
                logger.info("source reachable again", extra={"attempts": self._attempts})
            self._attempts = 0
            self._state = ConnectionState.CONNECTED
            self._source_available = True
            if batch and batch[0].id != self._last_dispatched_id:
                self._last_dispatched_id = batch[0].id
                self._dispatch(batch[0])

    # ───────────────────────────── push mode ─────────────────────────────
    def _start_push(self, generation: int) -> None:
        try:
            conn = self._open_connection()
        except TransientNetworkError as exc:
            raise SourceUnavailableError(str(exc)) from exc
        with self._lock:
            self._conn = conn
            self._source_available = True
            self._state = ConnectionState.CONNECTED
            self._arm_heartbeat(conn, generation)
        logger.info("connected to live feed", extra={"url": self.config.ws_url})
        self._scheduler.spawn(lambda: self._read_loop(conn, generation), name="feed-reader")

    def _open_connection(self) -> FeedConnection:
        try:
            conn = self._connector(self.config.ws_url)
            conn.send(subscribe_frame(self.config.channel))
        except _CONNECT_ERRORS as exc:
            raise TransientNetworkError(f"connect to {self.config.ws_url} failed: {exc}") from exc
        return conn

    def _read_loop(self, conn: FeedConnection, generation: int) -> None:
        reason = "connection closed by peer"
        try:
            for frame in conn:
                if not self._is_current(generation):
                    return
                self._handle_frame(conn, frame)
        except _CONNECT_ERRORS as exc:
            reason = str(exc) or type(exc).__name__
        if self._stalled is conn:
            reason = f"no frames for {self.config.stale_timeout_sec:g}s"
        self._on_connection_lost(reason, generation)

    def _handle_frame(self, conn: FeedConnection, frame: Union[str, bytes]) -> None:
        self._last_frame_at = self._clock()
        if isinstance(frame, bytes):
            frame = frame.decode("utf-8", errors="replace")
        if frame == PING_FRAME:
            conn.send(PONG_FRAME)
            return
        try:
            payload = decode_frame(frame, self.config.channel)
            if payload is None:
                return
            outcome = parse_outcome(payload)
        except ProtocolError as exc:
            logger.warning("dropping malformed frame", extra={"error": str(exc)})
            return
        self._dispatch(outcome)

    # Engine.IO v3 expects the client to ping; any inbound frame counts as liveness
    def _arm_heartbeat(self, conn: FeedConnection, generation: int) -> None:
        self._last_frame_at = self._clock()
        self._scheduler.call_later(
            self.config.heartbeat_interval_sec,
            lambda: self._heartbeat(conn, generation),
            name="heartbeat",
        )

    def _heartbeat(self, conn: FeedConnection, generation: int) -> None:
        with self._lock:
            if not self._is_current(generation) or self._conn is not conn:
                return
            silent = (self._clock() - self._last_frame_at).total_seconds()
            if silent >= self.config.stale_timeout_sec:
                self._stalled = conn
                logger.warning("feed went silent, closing connection", extra={"silent_sec": silent})
            else:
                self._scheduler.call_later(
                    self.config.heartbeat_interval_sec,
                    lambda: self._heartbeat(conn, generation),
                    name="heartbeat",
                )
        try:
            if self._stalled is conn:
                # The reader sees the close and takes the reconnect path
                conn.close()
            else:
                conn.send(PING_FRAME)
        except _CONNECT_ERRORS as exc:
            logger.debug("heartbeat on a dead connection", extra={"error": str(exc)})

    def _on_connection_lost(self, reason: str, generation: int) -> None:
        with self._lock:
            if not self._is_current(generation):
                return
            self._conn = None
            self._last_error = reason
            if self._attempts >= self.config.max_reconnect_attempts:
                self._enter_degraded(generation)
                return
            self._attempts += 1
            self._state = ConnectionState.RECONNECTING
            delay = linear_backoff(self._attempts, self.config.reconnect_base_delay_sec)
            self._scheduler.call_later(delay, lambda: self._reconnect(generation), name="reconnect")
        logger.warning(
            "feed connection lost",
            extra={"reason": reason, "attempt": self._attempts, "retry_in_sec": delay},
        )

    def _reconnect(self, generation: int) -> None:
        if not self._is_current(generation):
            return
        try:
            conn = self._open_connection()
        except TransientNetworkError as exc:
            self._on_connection_lost(str(exc), generation)
            return
        with self._lock:
            if not self._is_current(generation):
                conn.close()
                return
            self._conn = conn
            self._attempts = 0
            self._state = ConnectionState.CONNECTED
            self._source_available = True
            self._arm_heartbeat(conn, generation)
        logger.info("reconnected to live feed")
        self._read_loop(conn, generation)

    # ───────────────────────────── degraded mode ─────────────────────────────
    def _enter_degraded(self, generation: int) -> None:
        self._state = ConnectionState.DEGRADED
        self._simulated = True
        self._source_available = False
        self._generator = SyntheticOutcomeGenerator(rng=self._rng, clock=self._clock)
        logger.error(
            "reconnect attempts exhausted, emitting simulated outcomes",
            extra={"attempts": self._attempts, "last_error": self._last_error},
        )
        self._schedule_synthetic(generation)

    def _schedule_synthetic(self, generation: int) -> None:
        self._scheduler.call_later(
            self.config.simulation_interval_sec,
            lambda: self._synthetic_tick(generation),
            name="synthetic",
        )

    def _synthetic_tick(self, generation: int) -> None:
        with self._lock:
            if not self._is_current(generation) or self._generator is None:
                return
            self._dispatch(self._generator.next_outcome())
            self._schedule_synthetic(generation)
