"""Decode source payloads into outcomes.

Push frames follow the Socket.IO-over-Engine.IO text framing the game feed
uses: ``42`` prefixes an event message whose body is a JSON array
``[event, payload]``. Every other frame type (open, ping, ack, ...) carries
no round data and is ignored.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from ..core.outcomes import MAX_VALUE, MIN_VALUE, Outcome, utc_now
from ..errors import ProtocolError


EVENT_PREFIX = "42"
PING_FRAME = "2"
PONG_FRAME = "3"

logger = logging.getLogger(__name__)


def subscribe_frame(channel: str) -> str:
    body = ["cmd", {"id": "subscribe", "payload": {"room": channel}}]
    return EVENT_PREFIX + json.dumps(body, separators=(",", ":"))


def decode_frame(frame: str, channel: str) -> Optional[Dict[str, Any]]:
    """Return the round payload carried by ``frame``, or None if it has none.

    Raises ProtocolError when an event frame cannot be parsed.
    """
    if not isinstance(frame, str) or not frame.startswith(EVENT_PREFIX):
        return None
    try:
        body = json.loads(frame[len(EVENT_PREFIX):])
    except ValueError as exc:
        raise ProtocolError(f"undecodable event frame: {exc}") from exc
    if not isinstance(body, list) or len(body) < 2:
        raise ProtocolError("event frame is not an [event, payload] array")
    event, payload = body[0], body[1]
    if event != channel or not isinstance(payload, dict):
        return None
    # Status ticks on the same channel carry no roll
    if payload.get("roll") is None:
        return None
    return payload


def _parse_timestamp(raw: Any) -> datetime:
    if raw is None or raw == "":
        return utc_now()
    if isinstance(raw, (int, float)):
        # Epoch milliseconds when it is too large to be seconds
        seconds = raw / 1000.0 if raw > 10**11 else float(raw)
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as exc:
            raise ProtocolError(f"bad timestamp: {raw!r}") from exc
    if isinstance(raw, str):
        text = raw.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ProtocolError(f"bad timestamp: {raw!r}") from exc
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    raise ProtocolError(f"bad timestamp: {raw!r}")


def parse_outcome(raw: Mapping[str, Any]) -> Outcome:
    """Build an Outcome from ``{id, createdAt | created_at, roll}``."""
    if not isinstance(raw, Mapping):
        raise ProtocolError("outcome payload is not an object")
    outcome_id = raw.get("id")
    if outcome_id is None or outcome_id == "":
        raise ProtocolError("outcome payload has no id")
    roll = raw.get("roll")
    # bool is an int subclass and never a valid roll
    if isinstance(roll, bool) or not isinstance(roll, int):
        try:
            roll = int(str(roll))
        except ValueError as exc:
            raise ProtocolError(f"bad roll: {raw.get('roll')!r}") from exc
    if not MIN_VALUE <= roll <= MAX_VALUE:
        raise ProtocolError(f"roll out of range: {roll}")
    created = raw.get("createdAt", raw.get("created_at"))
    return Outcome(id=str(outcome_id), occurred_at=_parse_timestamp(created), value=roll)


def parse_batch(body: Any) -> List[Outcome]:
    """Parse a ``/recent-outcomes`` response into newest-first outcomes."""
    if not isinstance(body, dict):
        raise ProtocolError("response is not an object")
    if not body.get("success"):
        raise ProtocolError(f"source reported failure: {body.get('error', 'unknown error')}")
    data = body.get("data")
    if not isinstance(data, list):
        raise ProtocolError("response data is not a list")
    outcomes: List[Outcome] = []
    for item in data:
        try:
            outcomes.append(parse_outcome(item))
        except ProtocolError as exc:
            logger.warning("dropping malformed outcome", extra={"error": str(exc)})
    return outcomes
