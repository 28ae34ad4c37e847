"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from typing import Any

import pytest

from padchat_client import ClientConfig, MockTransport, PadchatClient


@pytest.fixture(scope="module")
def anyio_backend():
    """Configure anyio to use asyncio backend."""
    return "asyncio"


class Recorder:
    """Collects (event_name, payload) pairs published on a bus."""

    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []

    def __call__(self, name: str, payload: Any) -> None:
        self.events.append((name, payload))

    def named(self, name: str) -> list[Any]:
        return [payload for event, payload in self.events if event == name]

    @property
    def names(self) -> list[str]:
        return [event for event, _ in self.events]


@pytest.fixture
def transport() -> MockTransport:
    """Mock transport with rate limiting disabled."""
    return MockTransport(ClientConfig(min_connect_interval=0, timeout=1.0))


@pytest.fixture
def client(transport: MockTransport) -> PadchatClient:
    """Client wired to the mock transport (not yet connected)."""
    return PadchatClient(transport=transport)


@pytest.fixture
def recorder(client: PadchatClient) -> Recorder:
    """Records every event published on the client's bus."""
    rec = Recorder()
    client.bus.subscribe_all(rec)
    return rec
