"""Transport - owns the socket lifecycle.

Exposes raw text-frame send/receive to the rest of the client:
- connect(): rate-limited; forcibly replaces a previous socket
- send(frame): only while connected
- inbound frames are handed, in arrival order, to one frame handler
- lifecycle is published on the bus as ``open``, ``close`` and ``error``

The transport never reconnects on its own; see ``reconnect.Reconnector``.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable
from enum import Enum
from typing import Any

from websockets.asyncio.client import ClientConnection, connect

from .bus import ClientEvent, EventBus
from .config import ClientConfig
from .errors import NotConnectedError, RateLimitError, SendError

logger = logging.getLogger(__name__)

Frame = str | bytes
FrameHandler = Callable[[Frame], Awaitable[None]]


class TransportState(str, Enum):
    """Connection state machine."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class BaseTransport(ABC):
    """Base class for transports with common functionality.

    Provides:
    - State management
    - Connect rate limiting
    - Background reader task delivering frames in order
    """

    def __init__(
        self,
        config: ClientConfig,
        bus: EventBus,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self._bus = bus
        self._clock = clock
        self._state = TransportState.DISCONNECTED
        self._frame_handler: FrameHandler | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._last_connect_at: float | None = None
        # Bumped for every socket so a stale reader cannot touch a newer one
        self._generation = 0
        self._lock = asyncio.Lock()

    @property
    def state(self) -> TransportState:
        """Current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Check if transport is connected."""
        return self._state == TransportState.CONNECTED

    def set_frame_handler(self, handler: FrameHandler) -> None:
        """Set the coroutine that receives every inbound frame."""
        self._frame_handler = handler

    def attach_bus(self, bus: EventBus) -> None:
        """Publish lifecycle events on ``bus`` instead of the constructor's."""
        self._bus = bus

    async def connect(self) -> None:
        """Open a new socket, replacing any existing one.

        Raises:
            RateLimitError: Called again within ``min_connect_interval``
            NotConnectedError: The socket could not be opened
        """
        now = self._clock()
        if self._last_connect_at is not None:
            elapsed = now - self._last_connect_at
            if elapsed < self.config.min_connect_interval:
                raise RateLimitError(elapsed, self.config.min_connect_interval)
        self._last_connect_at = now

        async with self._lock:
            if self._state != TransportState.DISCONNECTED or self._reader_task is not None:
                logger.info("Terminating previous connection before reconnecting")
                await self._teardown(force=True)

            self._generation += 1
            generation = self._generation
            self._state = TransportState.CONNECTING
            try:
                await self._do_connect()
            except Exception as e:
                self._state = TransportState.DISCONNECTED
                logger.warning(f"Failed to connect to {self.config.url}: {e}")
                await self._bus.publish(ClientEvent.ERROR, e)
                raise NotConnectedError(f"Failed to connect to {self.config.url}: {e}") from e

            self._state = TransportState.CONNECTED
            self._reader_task = asyncio.create_task(self._read_loop(generation))
            logger.info(f"{self.__class__.__name__} connected to {self.config.url}")

        await self._bus.publish(ClientEvent.OPEN)

    async def disconnect(self) -> None:
        """Close the socket gracefully. No-op when already disconnected."""
        async with self._lock:
            if self._state == TransportState.DISCONNECTED and self._reader_task is None:
                return
            await self._teardown(force=False)

    async def send(self, frame: str) -> None:
        """Transmit one text frame.

        Raises:
            NotConnectedError: The transport is not connected
            SendError: The socket failed to transmit the frame
        """
        if not self.is_connected:
            raise NotConnectedError("Transport not connected")
        try:
            await self._do_send(frame)
        except NotConnectedError:
            raise
        except Exception as e:
            raise SendError(f"Failed to send frame: {e}") from e
        logger.debug(f"Sent frame: {frame[:200]}")

    async def _teardown(self, force: bool) -> None:
        """Stop the reader, close the socket and publish ``close``."""
        task, self._reader_task = self._reader_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        was_open = self._state != TransportState.DISCONNECTED
        self._generation += 1
        self._state = TransportState.DISCONNECTED
        if force:
            await self._do_abort()
        else:
            await self._do_disconnect()

        if was_open:
            logger.info(f"{self.__class__.__name__} disconnected")
            await self._bus.publish(ClientEvent.CLOSE)

    async def _read_loop(self, generation: int) -> None:
        """Background task delivering frames until the socket closes."""
        try:
            async for frame in self._receive_frames():
                await self._deliver(frame)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if generation == self._generation:
                logger.error(f"Read loop error: {e}")
                await self._bus.publish(ClientEvent.ERROR, e)

        if generation != self._generation:
            return
        # Closed by the peer or by an I/O fault
        self._reader_task = None
        self._generation += 1
        self._state = TransportState.DISCONNECTED
        await self._do_disconnect()
        logger.info(f"{self.__class__.__name__} connection closed")
        await self._bus.publish(ClientEvent.CLOSE)

    async def _deliver(self, frame: Frame) -> None:
        if self._frame_handler is None:
            logger.debug("No frame handler set, dropping frame")
            return
        try:
            await self._frame_handler(frame)
        except Exception as e:
            logger.exception("Frame handler failed")
            await self._bus.publish(ClientEvent.ERROR, e)

    # Abstract methods for subclasses
    @abstractmethod
    async def _do_connect(self) -> None:
        """Implementation-specific connection logic."""
        ...

    @abstractmethod
    async def _do_disconnect(self) -> None:
        """Implementation-specific graceful close. Must be idempotent."""
        ...

    async def _do_abort(self) -> None:
        """Implementation-specific forced close. Defaults to a graceful close."""
        await self._do_disconnect()

    @abstractmethod
    async def _do_send(self, frame: str) -> None:
        """Implementation-specific send logic."""
        ...

    @abstractmethod
    def _receive_frames(self) -> AsyncIterator[Frame]:
        """Implementation-specific receive logic. Must be an async generator."""
        ...


class WebSocketTransport(BaseTransport):
    """Transport over a WebSocket connection to the gateway.

    Wire format: one JSON object per text frame, in both directions.
    """

    def __init__(
        self,
        config: ClientConfig,
        bus: EventBus,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(config, bus, clock)
        self._ws: ClientConnection | None = None

    async def _do_connect(self) -> None:
        self._ws = await connect(
            self.config.url,
            ping_interval=self.config.ping_interval,
            ping_timeout=self.config.ping_timeout,
            max_size=self.config.max_frame_size,
        )

    async def _do_disconnect(self) -> None:
        ws, self._ws = self._ws, None
        if ws is not None:
            await ws.close()

    async def _do_abort(self) -> None:
        ws, self._ws = self._ws, None
        if ws is not None:
            ws.transport.abort()

    async def _do_send(self, frame: str) -> None:
        if self._ws is None:
            raise NotConnectedError("WebSocket not connected")
        await self._ws.send(frame)

    async def _receive_frames(self) -> AsyncIterator[Frame]:
        ws = self._ws
        if ws is None:
            raise NotConnectedError("WebSocket not connected")
        # Ends on a clean close; raises ConnectionClosedError otherwise
        async for message in ws:
            yield message


_CLOSED = object()

Responder = Callable[[dict[str, Any]], list[Any] | None]


class MockTransport(BaseTransport):
    """In-memory transport for testing.

    Records outbound frames and lets tests inject inbound ones. An optional
    responder plays the gateway: it is called with every decoded outbound
    frame and returns inbound frames (dicts are JSON-encoded, strings and
    bytes are sent as-is) to deliver after the send completes.

    Usage:
        transport = MockTransport()
        client = PadchatClient(transport=transport)
        await client.connect()
        await transport.feed({"type": "userEvent", "event": "login", "data": {}})
        assert transport.sent_frames == []
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        bus: EventBus | None = None,
        clock: Callable[[], float] = time.monotonic,
        responder: Responder | None = None,
        connect_delay: float = 0.0,
    ) -> None:
        super().__init__(config or ClientConfig(min_connect_interval=0), bus or EventBus(), clock)
        self.responder = responder
        self.connect_delay = connect_delay
        self.connect_error: Exception | None = None
        self.send_error: Exception | None = None
        self.sent: list[str] = []
        self.connect_count = 0
        self.aborted = 0
        self._inbox: asyncio.Queue[Any] = asyncio.Queue()

    @property
    def sent_frames(self) -> list[dict[str, Any]]:
        """Outbound frames, decoded."""
        return [json.loads(frame) for frame in self.sent]

    async def feed(self, *frames: Any) -> None:
        """Deliver inbound frames and wait until they have been processed."""
        if not self.is_connected:
            raise NotConnectedError("Mock transport not connected")
        for frame in frames:
            self._inbox.put_nowait(_encode(frame))
        await self._inbox.join()

    def inject(self, frame: Any) -> None:
        """Queue an inbound frame without waiting for it to be processed."""
        self._inbox.put_nowait(_encode(frame))

    async def simulate_close(self) -> None:
        """Close the connection from the peer's side."""
        self._inbox.put_nowait(_CLOSED)
        task = self._reader_task
        if task is not None:
            await task

    async def _do_connect(self) -> None:
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if self.connect_error is not None:
            raise self.connect_error
        self.connect_count += 1
        self._inbox = asyncio.Queue()

    async def _do_disconnect(self) -> None:
        self._inbox.put_nowait(_CLOSED)

    async def _do_abort(self) -> None:
        self.aborted += 1
        self._inbox.put_nowait(_CLOSED)

    async def _do_send(self, frame: str) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(frame)
        if self.responder is not None:
            for reply in self.responder(json.loads(frame)) or []:
                self.inject(reply)

    async def _receive_frames(self) -> AsyncIterator[Frame]:
        inbox = self._inbox
        while True:
            item = await inbox.get()
            try:
                if item is _CLOSED:
                    return
                yield item
            finally:
                inbox.task_done()


def _encode(frame: Any) -> Any:
    if isinstance(frame, str | bytes):
        return frame
    return json.dumps(frame)
