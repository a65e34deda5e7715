"""
WebSocket subscription to a program's transaction logs.

Features:
    - logsSubscribe with a ``mentions`` filter for the watched program
    - Auto-reconnect with exponential backoff, re-subscribing on connect
    - Heartbeat monitoring (detect stale connections)
    - Explicit logsUnsubscribe before closing on stop

Swap decoding note:
    The subscription delivers raw log lines. SwapLogFilter keeps the
    notifications that touch the watched pool and contain a swap line, and
    hands them to a SwapDecoder. This module never parses a DEX's binary
    log layout itself.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol

import websockets
from websockets.exceptions import (
    ConnectionClosed,
    ConnectionClosedError,
    ConnectionClosedOK,
)

from .models import LogNotification, SwapEvent

logger = logging.getLogger(__name__)

# Raydium AMM v4 and its SOL/USDC pool
DEFAULT_PROGRAM_ID = "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8"
DEFAULT_POOL_ID = "58oQChx4yWmvKdwLLZzBi4ChoCc2fqCUWBkwMihLYQo2"
SWAP_LOG_MARKER = "Swap"


class SubscriptionState(str, Enum):
    """Subscription connection state."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"
    RECONNECTING = "reconnecting"
    STOPPING = "stopping"


# Type aliases for callbacks
NotificationCallback = Callable[[LogNotification], Awaitable[None]]
StateCallback = Callable[[SubscriptionState], Awaitable[None]]
ErrorCallback = Callable[[Exception], Awaitable[None]]


def ws_url_from_rpc(rpc_url: str) -> str:
    """
    Derive the websocket endpoint from an HTTP RPC endpoint.

    Examples:
        >>> ws_url_from_rpc("https://api.mainnet-beta.solana.com")
        'wss://api.mainnet-beta.solana.com'
    """
    if rpc_url.startswith("https://"):
        return "wss://" + rpc_url[len("https://"):]
    if rpc_url.startswith("http://"):
        return "ws://" + rpc_url[len("http://"):]
    return rpc_url


class ProgramLogSubscription:
    """
    Resilient logsSubscribe client.

    Usage:
        async def handle(notification: LogNotification):
            print(notification.signature, len(notification.logs))

        subscription = ProgramLogSubscription(
            url="wss://api.mainnet-beta.solana.com",
            program_id=DEFAULT_PROGRAM_ID,
            on_notification=handle,
        )
        await subscription.start()

        # ... later
        await subscription.stop()
    """

    def __init__(
        self,
        url: str,
        program_id: str,
        on_notification: NotificationCallback,
        commitment: str = "confirmed",
        on_state_change: Optional[StateCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        heartbeat_timeout: float = 60.0,
        initial_reconnect_delay: float = 1.0,
        max_reconnect_delay: float = 60.0,
        reconnect_multiplier: float = 2.0,
    ):
        """
        Initialize the subscription.

        Args:
            url: Websocket RPC endpoint
            program_id: Program whose logs to subscribe to
            on_notification: Callback for each log notification (required)
            commitment: Commitment level for the subscription
            on_state_change: Optional callback for connection state changes
            on_error: Optional callback for errors
            heartbeat_timeout: Seconds without message before reconnect
            initial_reconnect_delay: Initial delay before reconnect attempt
            max_reconnect_delay: Maximum delay between reconnect attempts
            reconnect_multiplier: Multiplier for exponential backoff
        """
        self._url = url
        self._program_id = program_id
        self._commitment = commitment
        self._on_notification = on_notification
        self._on_state_change = on_state_change
        self._on_error = on_error

        self._heartbeat_timeout = heartbeat_timeout
        self._initial_reconnect_delay = initial_reconnect_delay
        self._max_reconnect_delay = max_reconnect_delay
        self._reconnect_multiplier = reconnect_multiplier

        self._state = SubscriptionState.DISCONNECTED
        self._ws: Optional[websockets.WebSocketClientProtocol] = None
        self._request_ids = itertools.count(1)
        self._subscribe_request_id: Optional[int] = None
        self._subscription_id: Optional[int] = None

        self._current_reconnect_delay = initial_reconnect_delay
        self._reconnect_count = 0

        self._receive_task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

        self._last_message_time: Optional[float] = None
        self._notifications_received = 0

    @property
    def state(self) -> SubscriptionState:
        return self._state

    @property
    def is_subscribed(self) -> bool:
        return self._subscription_id is not None

    @property
    def subscription_id(self) -> Optional[int]:
        return self._subscription_id

    @property
    def reconnect_count(self) -> int:
        """Number of reconnection attempts since start."""
        return self._reconnect_count

    @property
    def notifications_received(self) -> int:
        return self._notifications_received

    @property
    def last_message_time(self) -> Optional[float]:
        return self._last_message_time

    async def _set_state(self, state: SubscriptionState) -> None:
        """Update state and notify callback."""
        if self._state != state:
            old_state = self._state
            self._state = state
            logger.info(f"Log subscription state: {old_state.value} -> {state.value}")

            if self._on_state_change:
                try:
                    await self._on_state_change(state)
                except Exception as e:
                    logger.error(f"Error in state change callback: {e}")

    async def start(self) -> None:
        """Connect, subscribe and start receiving in the background."""
        if self._state != SubscriptionState.DISCONNECTED:
            logger.warning(f"Cannot start: already in state {self._state.value}")
            return

        self._stop_event.clear()
        self._receive_task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Unsubscribe, close the connection and cancel the receive task."""
        if self._state == SubscriptionState.DISCONNECTED and self._receive_task is None:
            return

        logger.info("Stopping log subscription...")
        await self._set_state(SubscriptionState.STOPPING)
        self._stop_event.set()

        await self._unsubscribe()

        if self._ws:
            try:
                await self._ws.close()
            except Exception as e:
                logger.warning(f"Error closing websocket: {e}")
            self._ws = None

        if self._receive_task:
            self._receive_task.cancel()
            try:
                await self._receive_task
            except asyncio.CancelledError:
                pass
            self._receive_task = None

        await self._set_state(SubscriptionState.DISCONNECTED)
        logger.info("Log subscription stopped")

    async def _run(self) -> None:
        """Connect-receive-reconnect loop."""
        while not self._stop_event.is_set():
            try:
                await self._connect()
                await self._receive_loop()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Log subscription error: {e}")
                if self._on_error:
                    await self._on_error(e)
            finally:
                self._subscription_id = None

            if self._stop_event.is_set():
                break
            await self._backoff()

    async def _connect(self) -> None:
        """Open the websocket and send logsSubscribe."""
        await self._set_state(SubscriptionState.CONNECTING)

        self._ws = await websockets.connect(
            self._url,
            ping_interval=20,
            ping_timeout=10,
            close_timeout=5,
        )
        self._last_message_time = time.monotonic()

        self._subscribe_request_id = next(self._request_ids)
        await self._ws.send(json.dumps({
            "jsonrpc": "2.0",
            "id": self._subscribe_request_id,
            "method": "logsSubscribe",
            "params": [
                {"mentions": [self._program_id]},
                {"commitment": self._commitment},
            ],
        }))
        logger.info(f"Connected to {self._url}, subscribing to logs of {self._program_id}")

    async def _receive_loop(self) -> None:
        """Receive until the connection drops, goes stale or we stop."""
        while not self._stop_event.is_set() and self._ws:
            try:
                message = await asyncio.wait_for(
                    self._ws.recv(),
                    timeout=self._heartbeat_timeout,
                )
                self._last_message_time = time.monotonic()
                await self._handle_message(message)

            except asyncio.TimeoutError:
                logger.warning(
                    f"No message received in {self._heartbeat_timeout}s, reconnecting..."
                )
                await self._close_quietly()
                return

            except ConnectionClosedOK:
                logger.info("Websocket closed normally")
                return

            except ConnectionClosedError as e:
                logger.warning(f"Websocket closed with error: {e}")
                return

            except ConnectionClosed as e:
                logger.warning(f"Websocket connection closed: {e}")
                return

    async def _close_quietly(self) -> None:
        if self._ws:
            try:
                await self._ws.close()
            except Exception as close_err:
                logger.debug(f"Error closing stale socket: {close_err}")
            self._ws = None

    async def _backoff(self) -> None:
        """Wait before the next connection attempt with exponential backoff."""
        self._reconnect_count += 1
        await self._set_state(SubscriptionState.RECONNECTING)

        delay = self._current_reconnect_delay
        logger.info(f"Reconnecting in {delay:.1f}s (attempt #{self._reconnect_count})...")

        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

        self._current_reconnect_delay = min(
            self._current_reconnect_delay * self._reconnect_multiplier,
            self._max_reconnect_delay,
        )

    async def _unsubscribe(self) -> None:
        """Send logsUnsubscribe for the active subscription, if any."""
        if not self._ws or self._subscription_id is None:
            return
        try:
            await self._ws.send(json.dumps({
                "jsonrpc": "2.0",
                "id": next(self._request_ids),
                "method": "logsUnsubscribe",
                "params": [self._subscription_id],
            }))
            logger.info(f"Sent logsUnsubscribe for subscription {self._subscription_id}")
        except Exception as e:
            logger.warning(f"Failed to unsubscribe: {e}")
        finally:
            self._subscription_id = None

    async def _handle_message(self, raw_message: str) -> None:
        """Parse and dispatch one websocket message."""
        try:
            if not raw_message or not raw_message.strip():
                return

            data = json.loads(raw_message)
            if not isinstance(data, dict):
                logger.debug(f"Ignoring non-object message: {str(data)[:200]}")
                return

            if data.get("id") == self._subscribe_request_id and "result" in data:
                self._subscription_id = data["result"]
                self._current_reconnect_delay = self._initial_reconnect_delay
                await self._set_state(SubscriptionState.SUBSCRIBED)
                logger.info(f"Log subscription confirmed: id={self._subscription_id}")
                return

            if "error" in data:
                logger.error(f"Subscription error message: {data['error']}")
                return

            if data.get("method") == "logsNotification":
                notification = parse_log_notification(data)
                if notification is not None:
                    self._notifications_received += 1
                    await self._on_notification(notification)
                return

            logger.debug(f"Unknown message: {str(data)[:200]}")

        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse message: {e}")

        except Exception as e:
            logger.error(f"Error handling message: {e}")
            if self._on_error:
                await self._on_error(e)


def parse_log_notification(data: dict) -> Optional[LogNotification]:
    """Build a LogNotification from a logsNotification message."""
    result = (data.get("params") or {}).get("result") or {}
    value = result.get("value") or {}
    signature = value.get("signature")
    if not signature:
        return None
    return LogNotification(
        signature=signature,
        logs=tuple(value.get("logs") or ()),
        slot=int((result.get("context") or {}).get("slot", 0)),
        err=value.get("err"),
    )


class SwapDecoder(Protocol):
    """Turns a swap log notification into a SwapEvent (or None if it can't)."""

    def decode(self, notification: LogNotification, observed_at: float) -> Optional[SwapEvent]:
        ...


class SwapLogFilter:
    """
    Notification callback that feeds decoded swaps into a bounded queue.

    Keeps notifications that succeeded, mention the watched pool and carry
    a swap log line. A full queue drops the event with a warning instead of
    blocking the websocket reader.
    """

    def __init__(
        self,
        decoder: SwapDecoder,
        queue: "asyncio.Queue[SwapEvent]",
        pool_id: Optional[str] = DEFAULT_POOL_ID,
        swap_marker: str = SWAP_LOG_MARKER,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._decoder = decoder
        self._queue = queue
        self._pool_id = pool_id
        self._swap_marker = swap_marker
        self._clock = clock

        self.matched = 0
        self.decoded = 0
        self.dropped = 0
        self.decode_errors = 0

    def matches(self, notification: LogNotification) -> bool:
        if notification.err is not None:
            return False
        if self._pool_id and not notification.mentions(self._pool_id):
            return False
        return notification.mentions(self._swap_marker)

    async def __call__(self, notification: LogNotification) -> None:
        if not self.matches(notification):
            return
        self.matched += 1

        try:
            event = self._decoder.decode(notification, self._clock())
        except Exception as e:
            self.decode_errors += 1
            logger.warning(f"Swap decoder failed for {notification.signature}: {e}")
            return

        if event is None:
            return
        self.decoded += 1

        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f"Swap queue full, dropped swap from {notification.signature}")
