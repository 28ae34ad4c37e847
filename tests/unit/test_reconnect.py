"""Unit tests for the reconnect policy."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from padchat_client import ClientConfig, MockTransport, PadchatClient
from padchat_client.bus import EventBus
from padchat_client.errors import NotConnectedError, RateLimitError
from padchat_client.reconnect import Reconnector


async def settle(reconnector: Reconnector, timeout: float = 1.0) -> None:
    """Wait for a reconnect run to finish."""
    await asyncio.sleep(0)
    async with asyncio.timeout(timeout):
        while reconnector.is_reconnecting:
            await asyncio.sleep(0.005)


def reconnect_config(**overrides: object) -> ClientConfig:
    values: dict[str, object] = {
        "min_connect_interval": 0,
        "auto_reconnect": True,
        "reconnect_delay": 0.01,
        "max_reconnect_delay": 0.04,
    }
    values.update(overrides)
    return ClientConfig(**values)  # type: ignore[arg-type]


class TestReconnector:
    """Tests driving a Reconnector directly."""

    @pytest.mark.asyncio
    async def test_reconnects_on_close(self) -> None:
        """A close event triggers one connect call after the delay."""
        bus = EventBus()
        connect = AsyncMock()
        reconnector = Reconnector(connect, bus, reconnect_config())

        await bus.publish("close")
        assert reconnector.is_reconnecting
        await settle(reconnector)

        connect.assert_awaited_once()
        assert reconnector.attempts == 0

    @pytest.mark.asyncio
    async def test_backs_off_on_failure(self) -> None:
        """Failed attempts are retried until one succeeds."""
        bus = EventBus()
        down = NotConnectedError("down")
        connect = AsyncMock(side_effect=[down, down, None])
        reconnector = Reconnector(connect, bus, reconnect_config())

        await bus.publish("close")
        await settle(reconnector)

        assert connect.await_count == 3

    @pytest.mark.asyncio
    async def test_waits_out_rate_limit(self) -> None:
        """A rate-limited attempt is retried rather than abandoned."""
        bus = EventBus()
        connect = AsyncMock(side_effect=[RateLimitError(0.0, 0.02), None])
        reconnector = Reconnector(connect, bus, reconnect_config(min_connect_interval=0.02))

        await bus.publish("close")
        await settle(reconnector)

        assert connect.await_count == 2

    @pytest.mark.asyncio
    async def test_single_run_per_outage(self) -> None:
        """Repeated close events while reconnecting do not start parallel runs."""
        bus = EventBus()
        connect = AsyncMock()
        reconnector = Reconnector(connect, bus, reconnect_config(reconnect_delay=0.02))

        await bus.publish("close")
        await bus.publish("close")
        await settle(reconnector)

        connect.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_skips_when_already_connected(self) -> None:
        """No attempt is made once the connection is open again."""
        bus = EventBus()
        connect = AsyncMock()
        reconnector = Reconnector(connect, bus, reconnect_config(), is_connected=lambda: True)

        await bus.publish("close")
        await settle(reconnector)

        connect.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stop_cancels_attempt(self) -> None:
        """stop() cancels a pending attempt and ignores later closes."""
        bus = EventBus()
        connect = AsyncMock()
        reconnector = Reconnector(connect, bus, reconnect_config(reconnect_delay=10))

        await bus.publish("close")
        await reconnector.stop()
        await bus.publish("close")

        assert not reconnector.is_reconnecting
        connect.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_detach(self) -> None:
        """A detached reconnector no longer listens to the bus."""
        bus = EventBus()
        reconnector = Reconnector(AsyncMock(), bus, reconnect_config())

        reconnector.detach()

        assert not bus.has_subscribers("close")


class TestClientReconnect:
    """Tests for auto_reconnect on PadchatClient."""

    @pytest.mark.asyncio
    async def test_peer_close_reconnects(self) -> None:
        """The client re-opens the connection after the peer drops it."""
        transport = MockTransport(reconnect_config())
        client = PadchatClient(transport=transport)
        await client.connect()
        reopened = asyncio.create_task(client.bus.once("open", timeout=1))
        await asyncio.sleep(0)

        await transport.simulate_close()
        await reopened

        assert client.is_connected
        assert transport.connect_count == 2
        await client.close()

    @pytest.mark.asyncio
    async def test_deliberate_close_does_not_reconnect(self) -> None:
        """close() stops the reconnector before disconnecting."""
        transport = MockTransport(reconnect_config())
        client = PadchatClient(transport=transport)
        await client.connect()

        await client.close()
        await asyncio.sleep(0.05)

        assert not client.is_connected
        assert transport.connect_count == 1

    @pytest.mark.asyncio
    async def test_connect_rearms_after_close(self) -> None:
        """A client closed and connected again reconnects on the next drop."""
        transport = MockTransport(reconnect_config())
        client = PadchatClient(transport=transport)
        await client.connect()
        await client.close()
        await client.connect()
        reopened = asyncio.create_task(client.bus.once("open", timeout=1))
        await asyncio.sleep(0)

        await transport.simulate_close()
        await reopened

        assert transport.connect_count == 3
        await client.close()

    @pytest.mark.asyncio
    async def test_manual_reconnect_is_not_repeated(self) -> None:
        """Replacing the socket by hand does not trigger a second reconnect."""
        transport = MockTransport(reconnect_config())
        client = PadchatClient(transport=transport)
        await client.connect()

        await client.connect()
        await asyncio.sleep(0.05)

        assert client.is_connected
        assert transport.connect_count == 2
        assert transport.aborted == 1
        await client.close()
