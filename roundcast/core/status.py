from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    # Live source lost, synthetic outcomes only
    DEGRADED = "degraded"


@dataclass(frozen=True)
class IngestionStatus:
    state: ConnectionState
    mode: str
    attempts: int = 0
    simulated: bool = False
    # None until the first status check or connect
    source_available: Optional[bool] = None
    last_error: Optional[str] = None

    @property
    def is_live(self) -> bool:
        return self.state is ConnectionState.CONNECTED and not self.simulated

    @property
    def is_offline(self) -> bool:
        return self.state is ConnectionState.DEGRADED or self.source_available is False
