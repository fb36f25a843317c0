"""HTTP client for the outcome proxy.

Endpoints:
    GET  /status                 truthy JSON when the proxy is healthy
    GET  /recent-outcomes        {success, data: [{id, createdAt, roll}], source, count}
    POST /simulate-new-outcome   {success, data: {id, createdAt, roll}}
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional

import requests

from ..config import FeedConfig
from ..core.outcomes import Outcome
from ..errors import ProtocolError, TransientNetworkError
from ..utils.retry import with_retries
from .codec import parse_batch, parse_outcome


logger = logging.getLogger(__name__)

USER_AGENT = "roundcast/0.1"


class OutcomeSourceClient:
    """Thin ``requests`` wrapper; network failures surface as TransientNetworkError."""

    def __init__(
        self,
        config: FeedConfig,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json", "User-Agent": USER_AGENT})
        self._sleep = sleep

    def _request(self, method: str, path: str) -> Any:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(method, url, timeout=self.config.network_timeout_sec)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise TransientNetworkError(f"{method} {path} failed: {exc}") from exc
        try:
            return resp.json()
        except ValueError as exc:
            raise ProtocolError(f"{method} {path} returned non-JSON body") from exc

    def status(self) -> Optional[Dict[str, Any]]:
        """Health check. None means the source is unavailable."""
        try:
            body = self._request("GET", "/status")
        except (TransientNetworkError, ProtocolError) as exc:
            logger.warning("source status check failed", extra={"error": str(exc)})
            return None
        if not body:
            return None
        return body if isinstance(body, dict) else {"status": body}

    def recent_outcomes(self) -> List[Outcome]:
        """Newest-first batch, retried with capped exponential backoff."""
        body = with_retries(
            lambda: self._request("GET", "/recent-outcomes"),
            max_attempts=self.config.max_retries,
            base_seconds=self.config.backoff_base_sec,
            cap_seconds=self.config.backoff_cap_sec,
            retry_on=(TransientNetworkError,),
            sleep=self._sleep,
        )
        outcomes = parse_batch(body)
        logger.debug(
            "fetched recent outcomes",
            extra={"count": len(outcomes), "source": body.get("source")},
        )
        return outcomes

    def simulate_outcome(self) -> Outcome:
        """Ask the proxy to inject a test round and return it."""
        body = self._request("POST", "/simulate-new-outcome")
        if not isinstance(body, dict) or not body.get("success"):
            raise ProtocolError("simulate request was rejected")
        return parse_outcome(body.get("data"))

    def close(self) -> None:
        self.session.close()
