"""Event Bus - publish/subscribe surface of the client.

Each client owns one bus instance. Callers observe connection lifecycle,
push notifications, server events and diagnostics by subscribing to event
names. Callbacks may be plain functions or coroutine functions; they are
invoked in subscription order and awaited one at a time, so events reach
subscribers in the order they were published.

Subscribers run on the connection's reader task. A callback that awaits a
command reply inline blocks further frames until that reply's timeout;
spawn a task for such work instead.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

WILDCARD = "*"


class ClientEvent(str, Enum):
    """Events published by the client itself.

    Server events (``qrcode``, ``scan``, ``login``, ...) are published under
    their wire names, see ``ServerEventName``.
    """

    OPEN = "open"  # Socket connected
    CLOSE = "close"  # Socket closed
    ERROR = "error"  # Connection or parse fault (payload: exception)
    WARN = "warn"  # Non-fatal diagnostic (payload: Warning instance)
    MSG = "msg"  # Every normalized inbound frame
    OTHER = "other"  # Unclassified frame
    PUSH = "push"  # One per surviving push item
    CMD_RET = "cmdRet"  # (command, reply) after a command resolves


# Type for event callbacks
EventCallback = Callable[[Any], Awaitable[None] | None]
WildcardCallback = Callable[[str, Any], Awaitable[None] | None]


def _event_key(event: str | Enum) -> str:
    return event.value if isinstance(event, Enum) else event


class EventBus:
    """Per-client event bus with wildcard subscription support."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, list[Callable[..., Any]]] = {}

    def subscribe(self, event: str | Enum, callback: EventCallback) -> Callable[[], None]:
        """Subscribe to one event.

        Args:
            event: Event name (a ClientEvent, ServerEventName or plain string)
            callback: Called with the event payload

        Returns:
            Unsubscribe function
        """
        return self._subscribe(_event_key(event), callback)

    def subscribe_all(self, callback: WildcardCallback) -> Callable[[], None]:
        """Subscribe to every event. The callback receives (event_name, payload)."""
        return self._subscribe(WILDCARD, callback)

    def unsubscribe(self, event: str | Enum, callback: Callable[..., Any]) -> bool:
        """Remove a callback. Returns False if it was not subscribed."""
        key = _event_key(event)
        callbacks = self._subscriptions.get(key)
        if not callbacks or callback not in callbacks:
            return False
        callbacks.remove(callback)
        if not callbacks:
            del self._subscriptions[key]
        return True

    def _subscribe(self, key: str, callback: Callable[..., Any]) -> Callable[[], None]:
        self._subscriptions.setdefault(key, []).append(callback)

        def unsubscribe() -> None:
            self.unsubscribe(key, callback)

        return unsubscribe

    def has_subscribers(self, event: str | Enum) -> bool:
        """Check whether anything listens for an event (wildcards included)."""
        return bool(self._subscriptions.get(_event_key(event)) or self._subscriptions.get(WILDCARD))

    async def publish(self, event: str | Enum, payload: Any = None) -> None:
        """Publish an event to its subscribers, then to wildcard subscribers.

        Exceptions raised by callbacks are logged and do not stop delivery.
        """
        key = _event_key(event)

        # Copy subscriber lists to avoid mutation during iteration
        specific_subs = list(self._subscriptions.get(key, []))
        wildcard_subs = list(self._subscriptions.get(WILDCARD, []))

        for callback in specific_subs:
            try:
                result = callback(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Error in subscriber for {key}")

        for callback in wildcard_subs:
            try:
                result = callback(key, payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Error in wildcard subscriber for {key}")

    async def once(self, event: str | Enum, timeout: float | None = None) -> Any:
        """Wait for the next occurrence of an event and return its payload.

        Raises:
            TimeoutError: If the event does not occur within ``timeout`` seconds
        """
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()

        def on_event(payload: Any) -> None:
            if not future.done():
                future.set_result(payload)

        unsubscribe = self.subscribe(event, on_event)
        try:
            return await asyncio.wait_for(future, timeout=timeout)
        finally:
            unsubscribe()

    async def stream(self, *events: str | Enum) -> AsyncIterator[tuple[str, Any]]:
        """Yield (event_name, payload) pairs as they are published.

        With no arguments every event is yielded; otherwise only the named ones.

        Usage:
            async for name, payload in client.bus.stream("push"):
                print(name, payload)
        """
        wanted = {_event_key(e) for e in events}
        queue: asyncio.Queue[tuple[str, Any]] = asyncio.Queue()

        def on_event(name: str, payload: Any) -> None:
            if not wanted or name in wanted:
                queue.put_nowait((name, payload))

        unsubscribe = self.subscribe_all(on_event)

        try:
            while True:
                yield await queue.get()
        finally:
            unsubscribe()

    def clear(self) -> None:
        """Remove all subscriptions."""
        self._subscriptions = {}
