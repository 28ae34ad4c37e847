"""Padchat client - persistent WebSocket client for the Padchat gateway.

Sends commands over one long-lived socket, matches each command with its
asynchronous reply, and publishes unsolicited server events and push
notifications on an event bus.

Usage:
    from padchat_client import PadchatClient

    async with PadchatClient("ws://127.0.0.1:7777") as client:
        client.on("push", print)
        info = await client.send("getMyInfo")
"""

from .bus import ClientEvent, EventBus
from .client import PadchatClient
from .config import DEFAULT_URL, ClientConfig
from .correlator import Correlator, PendingRequest
from .dispatcher import Dispatcher
from .errors import (
    CommandFailedError,
    CommandTimeoutError,
    NotConnectedError,
    PadchatError,
    ProtocolError,
    RateLimitError,
    SendError,
    ServerWarning,
    UnmatchedReplyWarning,
)
from .protocol import (
    CommandEnvelope,
    CommandName,
    CommandReply,
    InboundKind,
    Normalizer,
    PushItem,
    ServerEvent,
    ServerEventName,
    normalize,
)
from .reconnect import Reconnector
from .transport import BaseTransport, MockTransport, TransportState, WebSocketTransport

__all__ = [
    # Client
    "PadchatClient",
    "ClientConfig",
    "DEFAULT_URL",
    # Components
    "BaseTransport",
    "WebSocketTransport",
    "MockTransport",
    "TransportState",
    "Correlator",
    "PendingRequest",
    "Dispatcher",
    "Reconnector",
    "EventBus",
    "ClientEvent",
    # Protocol
    "CommandEnvelope",
    "CommandName",
    "CommandReply",
    "InboundKind",
    "Normalizer",
    "PushItem",
    "ServerEvent",
    "ServerEventName",
    "normalize",
    # Errors
    "PadchatError",
    "NotConnectedError",
    "RateLimitError",
    "SendError",
    "CommandTimeoutError",
    "CommandFailedError",
    "ProtocolError",
    "UnmatchedReplyWarning",
    "ServerWarning",
]
