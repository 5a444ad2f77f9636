"""Session data models — lifecycle state, connection info, backoff and stats."""

from __future__ import annotations

import enum
import time
import uuid
from dataclasses import asdict, dataclass, field

_MB = 1024 * 1024


class SessionState(enum.Enum):
    """Lifecycle state of the messaging session."""

    UNINITIALIZED = "uninitialized"
    AWAITING_SCAN = "awaiting_scan"
    AUTHENTICATING = "authenticating"
    READY = "ready"
    DISCONNECTED = "disconnected"
    RECONNECT_SCHEDULED = "reconnect_scheduled"


@dataclass(frozen=True)
class ConnectionInfo:
    """Identity of the authenticated account, known only while READY."""

    display_name: str
    account_id: str


@dataclass
class ReconnectPolicy:
    """Linear backoff counters for reconnect scheduling.

    ``attempt_count`` resets on successful authentication; once it reaches
    ``max_attempts`` no further automatic reconnect is scheduled.
    """

    max_attempts: int = 10
    base_delay: float = 5.0
    max_delay: float = 60.0
    attempt_count: int = 0

    @property
    def exhausted(self) -> bool:
        return self.attempt_count >= self.max_attempts

    def next_delay(self) -> float:
        """Consume one attempt and return the delay before it runs."""
        self.attempt_count += 1
        return min(self.base_delay * self.attempt_count, self.max_delay)

    def reset(self) -> None:
        self.attempt_count = 0


@dataclass(frozen=True)
class MemorySample:
    """A single process memory reading. Not retained between ticks."""

    rss_bytes: int
    vms_bytes: int
    timestamp: float = field(default_factory=time.monotonic)

    @property
    def rss_mb(self) -> float:
        return self.rss_bytes / _MB


@dataclass(frozen=True)
class InboundMessage:
    """A message received from the messaging network."""

    sender: str
    body: str
    timestamp: float = field(default_factory=time.time)
    type: str = "chat"
    has_media: bool = False
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])


@dataclass(frozen=True)
class SendReceipt:
    """Acknowledgement returned by the session client for an outbound send."""

    message_id: str
    timestamp: float


@dataclass(frozen=True)
class QueueStats:
    pending: int
    capacity: int
    processed: int
    dropped: int
    running: bool


@dataclass(frozen=True)
class StatsSnapshot:
    """Read-only projection of the manager, computed on demand."""

    uptime: float
    state: SessionState
    attempt_count: int
    max_attempts: int
    reconnect_exhausted: bool
    message_count: int
    queue: QueueStats
    memory: MemorySample | None = None
    connection: ConnectionInfo | None = None

    @property
    def connected(self) -> bool:
        return self.state is SessionState.READY

    def to_dict(self) -> dict:
        memory = None
        if self.memory is not None:
            memory = {
                "rss_mb": round(self.memory.rss_mb, 1),
                "rss_bytes": self.memory.rss_bytes,
                "vms_bytes": self.memory.vms_bytes,
            }
        return {
            "connected": self.connected,
            "state": self.state.value,
            "uptime": round(self.uptime, 3),
            "reconnect": {
                "attempts": self.attempt_count,
                "max_attempts": self.max_attempts,
                "exhausted": self.reconnect_exhausted,
            },
            "message_count": self.message_count,
            "queue": asdict(self.queue),
            "memory": memory,
            "client_info": asdict(self.connection) if self.connection else None,
        }
