"""Error taxonomy shared by ingestion and analysis."""

from __future__ import annotations


class RoundcastError(Exception):
    """Base class for all package errors."""


class TransientNetworkError(RoundcastError):
    """Connect or fetch failed; callers retry per backoff policy."""


class ProtocolError(RoundcastError):
    """A frame or payload could not be decoded into an outcome."""


class SourceUnavailableError(RoundcastError):
    """The live source is unreachable (failed status check or connect)."""

