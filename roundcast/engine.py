from __future__ import annotations

import logging
import random
from datetime import datetime
from typing import Callable, List, Optional

from .config import AppConfig
from .core.alerts import Alert, AlertEvaluator
from .core.buffers import HistoryBuffer
from .core.detectors import INSUFFICIENT_DATA, BankReport, DetectorBank
from .core.fusion import FusionEngine
from .core.outcomes import DetectorKind, FusionResult, Outcome, Signal, utc_now
from .core.signals import SignalScheduler
from .core.stats import HistoryStats, Run, category_stats, recent_runs
from .core.status import IngestionStatus
from .data.ingestor import FeedIngestor


logger = logging.getLogger(__name__)


class SignalEngine:
    """One ingest-and-analyse pipeline. Build one per feed and pass it around.

    ``generate_signals`` output is a pseudo-randomized projection of the
    current fused vote, not a forecast of future rounds.
    """

    def __init__(
        self,
        config: AppConfig,
        ingestor: Optional[FeedIngestor] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.config = config
        runtime = config.runtime
        self._rng = rng if rng is not None else random.Random()
        if ingestor is None:
            history = HistoryBuffer(runtime.analysis.history_capacity)
            ingestor = FeedIngestor(runtime.feed, history, rng=self._rng, clock=clock)
        self.ingestor = ingestor
        self.history = ingestor.history
        self.bank = DetectorBank(min_history=runtime.analysis.min_history)
        self.fusion = FusionEngine(strategy=runtime.analysis.fusion_strategy)
        self.scheduler = SignalScheduler(
            interval_sec=runtime.signals.interval_sec,
            override_probability=runtime.signals.override_probability,
            rng=self._rng,
            clock=clock,
        )
        self.alerts = AlertEvaluator(
            long_streak_min=runtime.alerts.long_streak_min,
            high_confidence_min=runtime.alerts.high_confidence_min,
        )

    # ───────────────────────────── ingestion ─────────────────────────────
    def start(self) -> None:
        self.ingestor.start()

    def stop(self) -> None:
        self.ingestor.stop()

    def on_outcome(self, callback: Callable[[Outcome], None]) -> None:
        self.ingestor.on_outcome(callback)

    def get_status(self) -> IngestionStatus:
        return self.ingestor.get_status()

    def simulate_outcome(self) -> Outcome:
        return self.ingestor.simulate_outcome()

    # ───────────────────────────── analysis ─────────────────────────────
    def get_history(self) -> List[Outcome]:
        """Most recent first."""
        return self.history.all()

    def analyze(self) -> FusionResult:
        return self._fuse(self.bank.run(self.history.all()))

    def _fuse(self, report: BankReport) -> FusionResult:
        if report.insufficient:
            return FusionResult(category=None, confidence=0, rationale=INSUFFICIENT_DATA)
        result = self.fusion.fuse(report.results)
        logger.debug(
            "analysis complete",
            extra={
                "votes": len(report.results),
                "category": result.category.value if result.category else None,
                "confidence": result.confidence,
            },
        )
        return result

    def generate_signals(self, count: Optional[int] = None) -> List[Signal]:
        n = self.config.runtime.signals.default_count if count is None else count
        return self.scheduler.project(self.analyze(), n)

    def get_alerts(self) -> List[Alert]:
        snapshot = self.history.all()
        report = self.bank.run(snapshot)
        fusion = self._fuse(report)
        gale = next((r for r in report.results if r.kind is DetectorKind.GALE), None)
        return self.alerts.evaluate(snapshot, fusion, gale, self.get_status())

    def get_statistics(self) -> HistoryStats:
        return category_stats(self.history.all())

    def get_recent_runs(self) -> List[Run]:
        return recent_runs(self.history.all())
