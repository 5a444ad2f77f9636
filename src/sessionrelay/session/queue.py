"""Bounded single-consumer queue for inbound message handling."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from sessionrelay.session.models import QueueStats

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Awaitable[None]]


@dataclass
class QueueEntry:
    payload: Any
    handler: Handler


class BoundedMessageQueue:
    """FIFO with admission control and exactly one consumer task.

    Entries beyond ``capacity`` are rejected, never evicted. The consumer
    runs each handler to completion, pauses for ``pacing_delay`` and moves
    on; a failing handler is logged and does not stop the loop.
    """

    def __init__(self, capacity: int = 100, pacing_delay: float = 0.1) -> None:
        if capacity < 1:
            raise ValueError("Queue capacity must be at least 1")
        self._capacity = capacity
        self._pacing_delay = pacing_delay
        self._entries: deque[QueueEntry] = deque()
        self._running = False
        self._worker: asyncio.Task[None] | None = None
        self._idle = asyncio.Event()
        self._idle.set()
        self._processed = 0
        self._dropped = 0

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def running(self) -> bool:
        return self._running

    @property
    def processed(self) -> int:
        return self._processed

    @property
    def dropped(self) -> int:
        return self._dropped

    def stats(self) -> QueueStats:
        return QueueStats(
            pending=len(self._entries),
            capacity=self._capacity,
            processed=self._processed,
            dropped=self._dropped,
            running=self._running,
        )

    def enqueue(self, payload: Any, handler: Handler) -> bool:
        """Admit an entry unless the queue is full. Never blocks."""
        if len(self._entries) >= self._capacity:
            self._dropped += 1
            logger.warning(
                "Message queue full (%d/%d), dropping entry",
                len(self._entries),
                self._capacity,
            )
            return False

        self._entries.append(QueueEntry(payload=payload, handler=handler))
        if not self._running:
            self._running = True
            self._idle.clear()
            self._worker = asyncio.create_task(self._consume(), name="message-queue")
        return True

    async def join(self) -> None:
        """Wait until the queue has drained and the consumer has stopped."""
        await self._idle.wait()

    async def close(self) -> None:
        """Cancel the consumer and discard pending entries."""
        self._entries.clear()
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None
        self._running = False
        self._idle.set()

    async def _consume(self) -> None:
        try:
            while self._entries:
                entry = self._entries.popleft()
                try:
                    await entry.handler(entry.payload)
                except Exception:
                    logger.exception("Queue handler failed")
                self._processed += 1
                if self._pacing_delay > 0:
                    await asyncio.sleep(self._pacing_delay)
        finally:
            self._running = False
            self._idle.set()
