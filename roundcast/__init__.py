"""Roundcast: rolling-history pattern signals for a round-based game feed.

Outcomes arrive from a live source (websocket push or HTTP poll), land in a
bounded most-recent-first history, and are scanned by a fixed bank of
heuristic detectors whose votes are fused into one ranked prediction. The
detectors are behavioral heuristics, not statistical forecasts: a fair game
is an independent random process and nothing here beats it.
"""

from .engine import SignalEngine

__all__ = [
    "SignalEngine",
    "config",
    "core",
    "data",
    "engine",
    "errors",
    "utils",
]
