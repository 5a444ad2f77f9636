"""Backend notifier — best-effort JSON POSTs to the backend API."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class BackendNotifier:
    """Sends fire-and-forget, timeout-bounded notifications.

    Every call is wrapped in a hard ``asyncio.wait_for`` timeout on top of the
    httpx client's own timeouts. Failures are logged and swallowed; nothing
    here is retried.
    """

    def __init__(
        self,
        base_url: str,
        token: str = "",
        *,
        prefix: str = "",
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._prefix = prefix.strip("/")
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._pending: set[asyncio.Task[bool]] = set()

    @property
    def enabled(self) -> bool:
        return bool(self._base_url)

    def url_for(self, event_type: str) -> str:
        parts = [self._base_url]
        if self._prefix:
            parts.append(self._prefix)
        parts.append(event_type.strip("/"))
        return "/".join(parts)

    async def notify(self, event_type: str, data: dict[str, Any]) -> bool:
        """POST ``data`` plus a send timestamp unless ``data`` carries its own.

        Returns True if the backend accepted it.
        """
        if not self.enabled:
            logger.debug("Backend URL not configured, skipping '%s' notification", event_type)
            return False

        url = self.url_for(event_type)
        body = {"timestamp": datetime.now(timezone.utc).isoformat(), **data}
        headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}

        try:
            response = await asyncio.wait_for(
                self._http().post(url, json=body, headers=headers),
                timeout=self._timeout,
            )
            response.raise_for_status()
        except asyncio.TimeoutError:
            logger.warning("Backend notification '%s' timed out after %.1fs", event_type, self._timeout)
            return False
        except httpx.HTTPStatusError as e:
            logger.warning(
                "Backend rejected '%s' notification: HTTP %d",
                event_type,
                e.response.status_code,
            )
            return False
        except Exception as e:
            logger.warning("Backend notification '%s' failed: %s", event_type, e)
            return False

        logger.debug("Notified backend: %s", url)
        return True

    def notify_soon(self, event_type: str, data: dict[str, Any]) -> asyncio.Task[bool]:
        """Schedule :meth:`notify` without waiting for it."""
        task = asyncio.create_task(self.notify(event_type, data), name=f"notify-{event_type}")
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for scheduled notifications to finish."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    async def aclose(self) -> None:
        for task in list(self._pending):
            task.cancel()
        await self.drain()
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
            self._owns_client = True
        return self._client
