"""SessionClient protocol — the messaging-network client the manager drives.

A client is built by a factory that receives an ``emit`` callback. The client
reports everything that happens on the network through that callback as a
:class:`SessionEvent`; it never touches manager state directly.
"""

from __future__ import annotations

import enum
import importlib
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from sessionrelay.errors import ClientFactoryError
from sessionrelay.session.models import ConnectionInfo, InboundMessage, SendReceipt

if TYPE_CHECKING:
    from sessionrelay.config import RelayConfig


class EventKind(enum.Enum):
    """Events a session client can emit."""

    QR = "qr"
    READY = "ready"
    MESSAGE = "message"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class SessionEvent:
    """An event emitted by a session client.

    ``data`` depends on the kind: the QR payload string for ``QR``, a
    :class:`ConnectionInfo` for ``READY``, an :class:`InboundMessage` for
    ``MESSAGE`` and the reason string for ``DISCONNECTED``.
    """

    kind: EventKind
    data: Any = None

    @classmethod
    def qr(cls, payload: str) -> SessionEvent:
        return cls(EventKind.QR, payload)

    @classmethod
    def ready(cls, info: ConnectionInfo) -> SessionEvent:
        return cls(EventKind.READY, info)

    @classmethod
    def message(cls, message: InboundMessage) -> SessionEvent:
        return cls(EventKind.MESSAGE, message)

    @classmethod
    def disconnected(cls, reason: str = "") -> SessionEvent:
        return cls(EventKind.DISCONNECTED, reason)


EventSink = Callable[[SessionEvent], None]


@runtime_checkable
class SessionClient(Protocol):
    """Protocol for messaging-network session clients."""

    async def connect(self) -> None:
        """Start the session. Progress is reported through emitted events."""
        ...

    async def send_message(self, target: str, body: str) -> SendReceipt:
        """Deliver a text message to a fully-qualified recipient."""
        ...

    async def probe(self) -> None:
        """Cheap no-op round trip used as a keep-alive."""
        ...

    async def destroy(self) -> None:
        """Tear the session down. May be called on a half-started client."""
        ...


ClientFactory = Callable[[EventSink, "RelayConfig"], SessionClient]


def load_client_factory(path: str) -> ClientFactory:
    """Resolve a ``module:attribute`` reference to a client factory."""
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ClientFactoryError(
            f"Client factory must look like 'package.module:factory', got {path!r}"
        )
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ClientFactoryError(f"Cannot import {module_name!r}: {e}") from e
    factory = getattr(module, attr, None)
    if factory is None or not callable(factory):
        raise ClientFactoryError(f"{module_name!r} has no callable {attr!r}")
    return factory
