"""Padchat client.

Wires the transport, correlator, dispatcher and event bus together and
exposes the single generic operation every gateway command goes through:

    async with PadchatClient("ws://127.0.0.1:7777") as client:
        client.on("push", handle_push)
        info = await client.send("getMyInfo")

There are no per-command wrappers; pass the command name (a CommandName or
plain string) and its fields.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

from .bus import ClientEvent, EventBus, EventCallback
from .config import ClientConfig
from .correlator import Correlator
from .dispatcher import Dispatcher
from .errors import CommandFailedError
from .protocol.commands import CommandName
from .protocol.envelopes import CommandReply
from .protocol.normalize import Normalizer
from .reconnect import Reconnector
from .transport import BaseTransport, TransportState, WebSocketTransport

logger = logging.getLogger(__name__)


class PadchatClient:
    """Persistent-connection client for the Padchat gateway.

    Args:
        url: Gateway address; overrides ``config.url`` when given
        config: Client configuration (default: ClientConfig())
        transport: Transport to use (default: WebSocketTransport). Tests pass
            a MockTransport here.
        bus: Event bus to publish on (default: a new EventBus)
        normalizer: Inbound normalizer (default: Normalizer())
    """

    def __init__(
        self,
        url: str | None = None,
        *,
        config: ClientConfig | None = None,
        transport: BaseTransport | None = None,
        bus: EventBus | None = None,
        normalizer: Normalizer | None = None,
    ) -> None:
        if config is None:
            config = transport.config if transport is not None else ClientConfig()
        if url is not None:
            config = config.with_overrides(url=url)
        self.config = config
        self.bus = bus or EventBus()

        self._transport = transport or WebSocketTransport(config, self.bus)
        self._transport.attach_bus(self.bus)
        self._correlator = Correlator(self._transport, self.bus, config.timeout)
        self._dispatcher = Dispatcher(self._correlator, self.bus, normalizer)
        self._transport.set_frame_handler(self._dispatcher.handle_frame)

        self.bus.subscribe(ClientEvent.CLOSE, self._on_close)
        self._reconnector: Reconnector | None = None
        if config.auto_reconnect:
            self._reconnector = Reconnector(
                self._transport.connect,
                self.bus,
                config,
                is_connected=lambda: self._transport.is_connected,
            )

    @property
    def transport(self) -> BaseTransport:
        """Access the underlying transport."""
        return self._transport

    @property
    def state(self) -> TransportState:
        return self._transport.state

    @property
    def is_connected(self) -> bool:
        """Check if the gateway connection is open."""
        return self._transport.is_connected

    @property
    def pending_count(self) -> int:
        """Number of commands still waiting for a reply."""
        return self._correlator.pending_count

    async def connect(self) -> None:
        """Open (or re-open) the gateway connection.

        Raises:
            RateLimitError: Called again within ``min_connect_interval``
            NotConnectedError: The connection could not be established
        """
        if self._reconnector is not None:
            self._reconnector.resume()
        await self._transport.connect()

    async def close(self) -> None:
        """Close the connection without reconnecting."""
        if self._reconnector is not None:
            await self._reconnector.stop()
        await self._transport.disconnect()

    async def request(
        self,
        command: str | CommandName,
        payload: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> CommandReply:
        """Send a command and return the gateway's full reply.

        Does not raise on ``success: false``; inspect ``reply.success``.

        Raises:
            NotConnectedError: Not connected, or the connection closed while waiting
            SendError: The frame could not be transmitted
            CommandTimeoutError: No reply within the timeout
        """
        reply = await self._correlator.send(command, payload, timeout)
        name = command.value if isinstance(command, CommandName) else command
        # Lets callers capture every command/reply pair
        await self.bus.publish(ClientEvent.CMD_RET, (name, reply))
        return reply

    async def send(
        self,
        command: str | CommandName,
        payload: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Send a command and return its result data.

        Returns:
            The reply's ``data`` field (``{}`` when the gateway sent none)

        Raises:
            CommandFailedError: The gateway replied with ``success: false``
            NotConnectedError, SendError, CommandTimeoutError: see request()
        """
        reply = await self.request(command, payload, timeout)
        if not reply.ok:
            name = command.value if isinstance(command, CommandName) else command
            raise CommandFailedError(
                name,
                None if reply.error is None else str(reply.error),
                None if reply.msg is None else str(reply.msg),
            )
        return reply.data if reply.data is not None else {}

    def on(self, event: str | Enum, callback: EventCallback) -> Callable[[], None]:
        """Subscribe to an event. Returns an unsubscribe function."""
        return self.bus.subscribe(event, callback)

    def off(self, event: str | Enum, callback: EventCallback) -> bool:
        """Unsubscribe a callback."""
        return self.bus.unsubscribe(event, callback)

    def _on_close(self, _payload: object) -> None:
        if self.config.fail_pending_on_close:
            self._correlator.fail_all("Connection closed")

    async def __aenter__(self) -> PadchatClient:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
