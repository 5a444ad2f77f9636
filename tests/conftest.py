"""Shared test fixtures."""

from __future__ import annotations

import asyncio
import time
import uuid
from collections import namedtuple
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from sessionrelay.config import RelayConfig
from sessionrelay.monitor.memory import MemoryGuard
from sessionrelay.notify.backend import BackendNotifier
from sessionrelay.session.client import EventSink, SessionEvent
from sessionrelay.session.models import ConnectionInfo, SendReceipt

MemInfo = namedtuple("MemInfo", ["rss", "vms"])

MB = 1024 * 1024


class ScriptedClient:
    """Session client double that emits a scripted event sequence on connect."""

    def __init__(
        self,
        emit: EventSink,
        on_connect: list[SessionEvent],
        connect_error: Exception | None = None,
        send_error: Exception | None = None,
        probe_error: Exception | None = None,
        destroy_error: Exception | None = None,
        hang_connect: bool = False,
    ) -> None:
        self.emit = emit
        self._on_connect = on_connect
        self._connect_error = connect_error
        self._send_error = send_error
        self._probe_error = probe_error
        self._destroy_error = destroy_error
        self._hang_connect = hang_connect
        self.sent: list[tuple[str, str]] = []
        self.probes = 0
        self.destroyed = False

    async def connect(self) -> None:
        for event in self._on_connect:
            self.emit(event)
        if self._hang_connect:
            await asyncio.Event().wait()
        if self._connect_error is not None:
            raise self._connect_error

    async def send_message(self, target: str, body: str) -> SendReceipt:
        if self._send_error is not None:
            raise self._send_error
        self.sent.append((target, body))
        return SendReceipt(message_id=f"msg-{uuid.uuid4().hex[:8]}", timestamp=time.time())

    async def probe(self) -> None:
        self.probes += 1
        if self._probe_error is not None:
            raise self._probe_error

    async def destroy(self) -> None:
        self.destroyed = True
        if self._destroy_error is not None:
            raise self._destroy_error


class ScriptedFactory:
    """Builds ScriptedClients and remembers every one it built."""

    def __init__(self, on_connect: list[SessionEvent] | None = None) -> None:
        self.on_connect = list(on_connect or [])
        self.connect_error: Exception | None = None
        self.send_error: Exception | None = None
        self.probe_error: Exception | None = None
        self.destroy_error: Exception | None = None
        self.hang_connect = False
        self.clients: list[ScriptedClient] = []

    def __call__(self, emit: EventSink, config: RelayConfig) -> ScriptedClient:
        client = ScriptedClient(
            emit,
            on_connect=self.on_connect,
            connect_error=self.connect_error,
            send_error=self.send_error,
            probe_error=self.probe_error,
            destroy_error=self.destroy_error,
            hang_connect=self.hang_connect,
        )
        self.clients.append(client)
        return client

    @property
    def latest(self) -> ScriptedClient:
        return self.clients[-1]


READY_INFO = ConnectionInfo(display_name="Clinic Bot", account_id="33600000001")


def fake_process(rss_mb: float = 100.0) -> MagicMock:
    proc = MagicMock()
    proc.memory_info.return_value = MemInfo(rss=int(rss_mb * MB), vms=int(rss_mb * 2 * MB))
    return proc


@pytest.fixture
def config(tmp_path: Path) -> RelayConfig:
    return RelayConfig(
        data_dir=tmp_path,
        api_token="test-token",
        reconnect_base_delay=5.0,
        reconnect_max_delay=60.0,
        reconnect_max_attempts=5,
        keepalive_interval=60.0,
        queue_capacity=5,
        queue_pacing_delay=0.0,
    )


@pytest.fixture
def ready_info() -> ConnectionInfo:
    return READY_INFO


@pytest.fixture
def make_factory():
    return ScriptedFactory


@pytest.fixture
def ready_factory() -> ScriptedFactory:
    return ScriptedFactory([SessionEvent.ready(READY_INFO)])


@pytest.fixture
def make_process():
    return fake_process


@pytest.fixture
def terminations() -> list[int]:
    return []


@pytest.fixture
def guard(terminations: list[int]) -> MemoryGuard:
    return MemoryGuard(
        limit_mb=450.0,
        interval=3600.0,
        terminate=terminations.append,
        process=fake_process(100.0),
    )


@pytest.fixture
def offline_notifier() -> BackendNotifier:
    """Notifier with no backend configured: every call is a no-op."""
    return BackendNotifier("")
