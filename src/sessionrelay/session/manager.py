"""Session lifecycle manager — state machine, reconnect backoff, keep-alive, dispatch."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Coroutine
from typing import Any, NamedTuple

from sessionrelay.config import RelayConfig
from sessionrelay.errors import SendFailed, SessionNotReady
from sessionrelay.messages import normalize_recipient
from sessionrelay.monitor.memory import MemoryGuard
from sessionrelay.notify.backend import BackendNotifier
from sessionrelay.qr import publish_qr
from sessionrelay.replies.loader import load_rules_or_default
from sessionrelay.replies.models import ReplyRules
from sessionrelay.session.client import (
    ClientFactory,
    EventKind,
    EventSink,
    SessionClient,
    SessionEvent,
    load_client_factory,
)
from sessionrelay.session.models import (
    ConnectionInfo,
    InboundMessage,
    ReconnectPolicy,
    SendReceipt,
    SessionState,
    StatsSnapshot,
)
from sessionrelay.session.queue import BoundedMessageQueue

logger = logging.getLogger(__name__)


class Transition(NamedTuple):
    sources: frozenset[SessionState]
    target: SessionState
    handler: str


_STARTED = frozenset(SessionState) - {SessionState.UNINITIALIZED}

# Event kind -> states it is accepted in, state it leads to, and the handler.
# Anything else is ignored.
TRANSITIONS: dict[EventKind, Transition] = {
    EventKind.QR: Transition(_STARTED, SessionState.AWAITING_SCAN, "_on_qr"),
    EventKind.READY: Transition(
        frozenset({SessionState.AWAITING_SCAN, SessionState.AUTHENTICATING}),
        SessionState.READY,
        "_on_ready",
    ),
    EventKind.MESSAGE: Transition(
        frozenset({SessionState.READY}), SessionState.READY, "_on_message"
    ),
    EventKind.DISCONNECTED: Transition(
        frozenset(
            {
                SessionState.READY,
                SessionState.AWAITING_SCAN,
                SessionState.AUTHENTICATING,
                SessionState.RECONNECT_SCHEDULED,
            }
        ),
        SessionState.DISCONNECTED,
        "_on_disconnected",
    ),
}


class LifecycleManager:
    """Owns the session client and every transition of its lifecycle.

    All state is touched from the event loop thread only. Session clients must
    call their ``emit`` callback from that thread as well.
    """

    def __init__(
        self,
        config: RelayConfig,
        *,
        client_factory: ClientFactory | None = None,
        notifier: BackendNotifier | None = None,
        guard: MemoryGuard | None = None,
        queue: BoundedMessageQueue | None = None,
        replies: ReplyRules | None = None,
    ) -> None:
        self._config = config
        self._factory = client_factory or load_client_factory(config.client_factory)
        self._notifier = notifier or BackendNotifier(
            config.backend_url,
            config.effective_backend_token,
            prefix=config.notify_prefix,
            timeout=config.notify_timeout,
        )
        self._guard = guard or MemoryGuard(
            limit_mb=config.memory_limit_mb,
            interval=config.memory_check_interval,
        )
        self._queue = queue or BoundedMessageQueue(
            capacity=config.queue_capacity,
            pacing_delay=config.queue_pacing_delay,
        )
        self._replies = replies or load_rules_or_default(config.autoreply_path)
        self._policy = ReconnectPolicy(
            max_attempts=config.reconnect_max_attempts,
            base_delay=config.reconnect_base_delay,
            max_delay=config.reconnect_max_delay,
        )

        self._state = SessionState.UNINITIALIZED
        self._connection: ConnectionInfo | None = None
        self._client: SessionClient | None = None
        self._generation = 0
        self._init_lock = asyncio.Lock()
        self._init_task: asyncio.Task[None] | None = None
        self._reconnect_handle: asyncio.TimerHandle | None = None
        self._keepalive_task: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._message_count = 0
        self._started_at = time.monotonic()
        self._closed = False

    # -- read side -------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is SessionState.READY

    @property
    def connection_info(self) -> ConnectionInfo | None:
        return self._connection

    @property
    def policy(self) -> ReconnectPolicy:
        return self._policy

    @property
    def queue(self) -> BoundedMessageQueue:
        return self._queue

    @property
    def notifier(self) -> BackendNotifier:
        return self._notifier

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    @property
    def keepalive_running(self) -> bool:
        return self._keepalive_task is not None and not self._keepalive_task.done()

    def get_stats(self) -> StatsSnapshot:
        """Snapshot of the manager. Pure read; safe to call at any time."""
        return StatsSnapshot(
            uptime=time.monotonic() - self._started_at,
            state=self._state,
            attempt_count=self._policy.attempt_count,
            max_attempts=self._policy.max_attempts,
            reconnect_exhausted=self._policy.exhausted,
            message_count=self._message_count,
            queue=self._queue.stats(),
            memory=self._guard.try_sample(),
            connection=self._connection,
        )

    # -- lifecycle -------------------------------------------------------

    async def start(self) -> None:
        """Start the memory guard and bring up the first session client.

        Returns without waiting for the client to connect.
        """
        asyncio.get_running_loop().set_exception_handler(_log_loop_exception)
        self._guard.start()
        self._spawn_initialize("session-init")

    async def initialize(self) -> None:
        """Replace the session client with a fresh one and connect it.

        Never raises: any failure goes through reconnect scheduling. The lock
        only covers swapping the client; ``connect()`` runs outside it so a
        newer initialisation never waits on a hung one.
        """
        async with self._init_lock:
            if self._closed:
                return
            await self._discard_client()
            self._generation += 1
            generation = self._generation
            self._state = SessionState.AUTHENTICATING
            logger.info("Initializing session client (generation %d)", generation)

            try:
                client = self._factory(self._sink_for(generation), self._config)
            except Exception as e:
                self._initialization_failed(generation, e)
                return
            self._client = client

        try:
            await asyncio.wait_for(client.connect(), timeout=self._config.connect_timeout)
        except Exception as e:
            self._initialization_failed(generation, e)

    def _initialization_failed(self, generation: int, e: Exception) -> None:
        reason = str(e) or e.__class__.__name__
        if generation != self._generation or self._closed:
            logger.debug("Ignoring failure of superseded initialization: %s", reason)
            return
        logger.error("Session initialization failed: %s", reason)
        if self._state in (SessionState.DISCONNECTED, SessionState.RECONNECT_SCHEDULED):
            # The client already reported the disconnect itself.
            return
        self._handle_disconnect(f"initialization failed: {reason}")

    def force_reconnect(self) -> None:
        """Destroy the current client and re-initialise, skipping any backoff.

        An initialisation still in flight is superseded: its task is cancelled
        and its late events or failure are ignored.
        """
        if self._closed:
            return
        logger.warning("Forced reconnect requested")
        self._cancel_reconnect()
        self._stop_keepalive()
        self._generation += 1
        self._connection = None
        self._state = SessionState.AUTHENTICATING
        self._spawn_initialize("session-force-reconnect")

    async def shutdown(self) -> None:
        """Stop timers and tasks, destroy the client and close the notifier."""
        self._closed = True
        self._cancel_reconnect()
        self._stop_keepalive()
        await self._guard.stop()
        await self._queue.close()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        await self._discard_client()
        self._connection = None
        self._state = SessionState.DISCONNECTED
        await self._notifier.aclose()
        logger.info("Session manager stopped")

    # -- outbound --------------------------------------------------------

    async def send_message(self, to: str, body: str) -> SendReceipt:
        """Send a text message through the live session."""
        client = self._client
        if self._state is not SessionState.READY or client is None:
            raise SessionNotReady("Session is not connected")

        target = normalize_recipient(to, self._config.recipient_suffix)
        try:
            receipt = await asyncio.wait_for(
                client.send_message(target, body),
                timeout=self._config.send_timeout,
            )
        except asyncio.TimeoutError as e:
            raise SendFailed(f"Send timed out after {self._config.send_timeout:.0f}s") from e
        except Exception as e:
            raise SendFailed(str(e) or e.__class__.__name__) from e

        logger.info("Sent message %s to %s", receipt.message_id, target)
        return receipt

    # -- inbound ---------------------------------------------------------

    def handle_inbound_message(self, message: InboundMessage) -> bool:
        """Count the message and queue it for backend delivery."""
        self._message_count += 1
        logger.info("Message from %s (%d chars)", message.sender, len(message.body))
        return self._queue.enqueue(message, self._process_message)

    async def _process_message(self, message: InboundMessage) -> None:
        await self._notifier.notify(
            "message",
            {
                "from": message.sender,
                "body": message.body,
                "timestamp": message.timestamp,
                "type": message.type,
                "hasMedia": message.has_media,
            },
        )

        rule = self._replies.reply_for(message.body)
        if rule is None:
            return
        logger.debug("Auto-reply rule matched for %s: %s", message.sender, rule.reason)
        await self.send_message(message.sender, rule.reply)

    # -- event dispatch --------------------------------------------------

    def _sink_for(self, generation: int) -> EventSink:
        def emit(event: SessionEvent) -> None:
            self.dispatch(event, generation)

        return emit

    def dispatch(self, event: SessionEvent, generation: int | None = None) -> None:
        """Apply ``event`` through the transition table."""
        if generation is not None and generation != self._generation:
            logger.debug("Ignoring '%s' from replaced client", event.kind.value)
            return
        if self._closed:
            return

        transition = TRANSITIONS[event.kind]
        if self._state not in transition.sources:
            logger.debug(
                "Ignoring '%s' event in state %s", event.kind.value, self._state.value
            )
            return
        getattr(self, transition.handler)(event.data)

    def _on_qr(self, payload: str) -> None:
        self._cancel_reconnect()
        self._stop_keepalive()
        self._connection = None
        self._state = SessionState.AWAITING_SCAN
        self._policy.reset()
        publish_qr(payload, self._config.qr_path)

    def _on_ready(self, info: ConnectionInfo) -> None:
        self._cancel_reconnect()
        self._connection = info
        self._policy.reset()
        self._state = SessionState.READY
        self._start_keepalive()
        logger.info("Session ready as %s (%s)", info.display_name, info.account_id)
        self._notifier.notify_soon(
            "connected",
            {
                "status": "connected",
                "phone": info.account_id,
                "name": info.display_name,
            },
        )

    def _on_message(self, message: InboundMessage) -> None:
        self.handle_inbound_message(message)

    def _on_disconnected(self, reason: str) -> None:
        self._handle_disconnect(reason or "unknown")

    def _handle_disconnect(self, reason: str) -> None:
        was_ready = self._state is SessionState.READY
        self._stop_keepalive()
        self._connection = None
        self._state = SessionState.DISCONNECTED
        logger.warning("Session disconnected: %s", reason)
        if was_ready:
            self._notifier.notify_soon(
                "disconnected", {"status": "disconnected", "reason": reason}
            )
        self.schedule_reconnect()

    # -- reconnect backoff -----------------------------------------------

    def schedule_reconnect(self) -> float | None:
        """Arm the reconnect timer. Returns the delay, or None when exhausted."""
        if self._closed:
            return None
        self._cancel_reconnect()
        if self._policy.exhausted:
            self._state = SessionState.DISCONNECTED
            logger.critical(
                "Reconnect attempts exhausted (%d/%d) — manual reconnect required",
                self._policy.attempt_count,
                self._policy.max_attempts,
            )
            return None

        delay = self._policy.next_delay()
        loop = asyncio.get_running_loop()
        self._reconnect_handle = loop.call_later(delay, self._on_reconnect_timer)
        self._state = SessionState.RECONNECT_SCHEDULED
        logger.warning(
            "Reconnecting in %.1fs (attempt %d/%d)",
            delay,
            self._policy.attempt_count,
            self._policy.max_attempts,
        )
        return delay

    def _on_reconnect_timer(self) -> None:
        self._reconnect_handle = None
        if self._state is not SessionState.RECONNECT_SCHEDULED:
            return
        self._state = SessionState.AUTHENTICATING
        self._spawn_initialize("session-reconnect")

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    # -- keep-alive ------------------------------------------------------

    def _start_keepalive(self) -> None:
        if self.keepalive_running:
            return
        self._keepalive_task = asyncio.create_task(self._keepalive(), name="session-keepalive")

    def _stop_keepalive(self) -> None:
        if self._keepalive_task is not None:
            self._keepalive_task.cancel()
            self._keepalive_task = None

    async def _keepalive(self) -> None:
        interval = self._config.keepalive_interval
        while True:
            await asyncio.sleep(interval)
            client = self._client
            if client is not None:
                try:
                    await asyncio.wait_for(client.probe(), timeout=interval)
                except Exception as e:
                    logger.debug("Keep-alive probe failed: %s", e)
            self._guard.check()

    # -- helpers ---------------------------------------------------------

    async def _discard_client(self) -> None:
        client = self._client
        self._client = None
        # Bump first so events the old client emits while dying are ignored.
        self._generation += 1
        self._stop_keepalive()
        if client is None:
            return
        try:
            await client.destroy()
        except Exception as e:
            logger.warning("Destroying session client failed: %s", e)

    def _spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _spawn_initialize(self, name: str) -> asyncio.Task[None]:
        previous = self._init_task
        if previous is not None and not previous.done():
            previous.cancel()
        task = self._spawn(self.initialize(), name)
        self._init_task = task
        return task


def _log_loop_exception(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
    exc = context.get("exception")
    logger.error("Unhandled error in event loop: %s", context.get("message"), exc_info=exc)
