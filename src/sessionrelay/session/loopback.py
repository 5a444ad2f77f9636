"""In-process session client for running the relay without a real network."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import TYPE_CHECKING

from sessionrelay.session.client import EventSink, SessionEvent
from sessionrelay.session.models import ConnectionInfo, InboundMessage, SendReceipt

if TYPE_CHECKING:
    from sessionrelay.config import RelayConfig

logger = logging.getLogger(__name__)

_MARKER = "loopback.session"


class LoopbackClient:
    """Pretends to be a messaging session.

    The first connect emits a QR code and then authenticates on its own,
    leaving a marker under the auth directory so later connects skip the
    scan. Messages sent to the loopback account are echoed back as inbound
    messages.
    """

    account_id = "10000000000@c.us"

    def __init__(self, emit: EventSink, config: RelayConfig) -> None:
        self._emit = emit
        self._marker = config.auth_dir / _MARKER
        self._connected = False

    async def connect(self) -> None:
        logger.debug("Loopback client connect()")
        if not self._marker.exists():
            self._emit(SessionEvent.qr(f"loopback:{uuid.uuid4().hex}"))
            await asyncio.sleep(0)
            self._marker.parent.mkdir(parents=True, exist_ok=True)
            self._marker.write_text(self.account_id, encoding="utf-8")
        self._connected = True
        self._emit(SessionEvent.ready(ConnectionInfo("Loopback", self.account_id)))

    async def send_message(self, target: str, body: str) -> SendReceipt:
        if not self._connected:
            raise RuntimeError("Loopback session is not connected")
        logger.info("Loopback send to %s: %s", target, body)
        if target == self.account_id:
            self._emit(SessionEvent.message(InboundMessage(sender=target, body=body)))
        return SendReceipt(
            message_id=f"true_{target}_{uuid.uuid4().hex[:20].upper()}",
            timestamp=time.time(),
        )

    async def probe(self) -> None:
        if not self._connected:
            raise RuntimeError("Loopback session is not connected")

    async def destroy(self) -> None:
        logger.debug("Loopback client destroy()")
        if self._connected:
            self._connected = False
            self._emit(SessionEvent.disconnected("destroyed"))
