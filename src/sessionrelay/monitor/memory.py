"""Memory guard — samples process memory and exits past a ceiling.

There is no in-process remediation beyond a garbage-collection hint: once the
resident set exceeds the limit the process terminates with a non-zero exit
code and the external supervisor restarts it.
"""

from __future__ import annotations

import asyncio
import gc
import logging
import os
from collections.abc import Callable

import psutil

from sessionrelay.session.models import MemorySample

logger = logging.getLogger(__name__)

EXIT_MEMORY_LIMIT = 1


def _terminate(code: int) -> None:
    logging.shutdown()
    os._exit(code)


class MemoryGuard:
    """Periodically samples RSS and enforces ``limit_mb``."""

    def __init__(
        self,
        limit_mb: float = 450.0,
        interval: float = 60.0,
        terminate: Callable[[int], None] = _terminate,
        process: psutil.Process | None = None,
    ) -> None:
        self._limit_mb = limit_mb
        self._interval = interval
        self._terminate = terminate
        self._process = process or psutil.Process()
        self._task: asyncio.Task[None] | None = None

    @property
    def limit_mb(self) -> float:
        return self._limit_mb

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def sample(self) -> MemorySample:
        info = self._process.memory_info()
        return MemorySample(rss_bytes=info.rss, vms_bytes=info.vms)

    def try_sample(self) -> MemorySample | None:
        try:
            return self.sample()
        except psutil.Error as e:
            logger.debug("Memory sampling failed: %s", e)
            return None

    def check(self) -> MemorySample | None:
        """Take a sample and terminate the process if it is over the limit."""
        sample = self.try_sample()
        if sample is None:
            return None
        if sample.rss_mb > self._limit_mb:
            logger.critical(
                "Memory limit exceeded: RSS %.1f MB > %.1f MB — exiting for restart",
                sample.rss_mb,
                self._limit_mb,
            )
            gc.collect()
            self._terminate(EXIT_MEMORY_LIMIT)
        else:
            logger.debug("Memory RSS %.1f MB (limit %.1f MB)", sample.rss_mb, self._limit_mb)
        return sample

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="memory-guard")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self.check()
