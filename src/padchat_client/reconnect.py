"""Reconnect policy.

The transport never reconnects by itself. A Reconnector subscribes to
``close`` and re-opens the connection with exponential backoff until it
succeeds or the client is closed on purpose.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

from .bus import ClientEvent, EventBus
from .config import ClientConfig
from .errors import PadchatError, RateLimitError

logger = logging.getLogger(__name__)


class Reconnector:
    """Re-invokes ``connect`` after an unexpected close.

    Args:
        connect: Coroutine function opening the connection
        bus: Bus publishing the ``close`` events to react to
        config: Supplies reconnect_delay, reconnect_backoff, max_reconnect_delay
        is_connected: Reports whether a connection is already open; an attempt
            is skipped when someone else reconnected in the meantime
    """

    def __init__(
        self,
        connect: Callable[[], Awaitable[None]],
        bus: EventBus,
        config: ClientConfig,
        is_connected: Callable[[], bool] | None = None,
    ) -> None:
        self._connect = connect
        self._is_connected = is_connected
        self._config = config
        self._task: asyncio.Task[None] | None = None
        self._stopped = False
        self.attempts = 0
        self._unsubscribe = bus.subscribe(ClientEvent.CLOSE, self._on_close)

    @property
    def is_reconnecting(self) -> bool:
        return self._task is not None and not self._task.done()

    def _on_close(self, _payload: object) -> None:
        if self._stopped or self.is_reconnecting:
            return
        self._task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        delay = self._config.reconnect_delay
        while not self._stopped:
            await asyncio.sleep(delay)
            if self._stopped:
                return
            if self._is_connected is not None and self._is_connected():
                logger.debug("Connection already re-opened, skipping reconnect")
                self.attempts = 0
                return
            self.attempts += 1
            try:
                await self._connect()
            except RateLimitError as e:
                logger.debug(f"Reconnect rate limited: {e}")
                delay = max(delay, self._config.min_connect_interval)
                continue
            except PadchatError as e:
                delay = min(
                    delay * self._config.reconnect_backoff, self._config.max_reconnect_delay
                )
                logger.warning(
                    f"Reconnect attempt {self.attempts} failed: {e}; retrying in {delay}s"
                )
                continue
            logger.info(f"Reconnected after {self.attempts} attempt(s)")
            self.attempts = 0
            return

    def resume(self) -> None:
        """Re-arm after stop()."""
        self._stopped = False

    async def stop(self) -> None:
        """Stop reacting to ``close`` and cancel any attempt in progress."""
        self._stopped = True
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def detach(self) -> None:
        """Unsubscribe from the bus."""
        self._stopped = True
        self._unsubscribe()
