"""Wire protocol for the Padchat gateway.

Key concepts:
- Commands: client -> gateway frames carrying a ``cmdId`` correlation id
- Replies: ``cmdRet`` frames echoing the ``cmdId`` of their command
- Events: unsolicited ``userEvent`` frames, including batched ``push`` items
- Normalization: snake_case -> camelCase and decoding of pre-encoded JSON fields
"""

from .commands import CommandEnvelope, CommandName, clean_raw_message, new_correlation_id
from .envelopes import (
    CommandReply,
    InboundEnvelope,
    InboundKind,
    PushBatch,
    PushItem,
    ServerEvent,
    ServerEventName,
    Unclassified,
    classify,
)
from .normalize import DecodeRule, Normalizer, camelize, normalize, to_snake_keys

__all__ = [
    # Outbound
    "CommandEnvelope",
    "CommandName",
    "clean_raw_message",
    "new_correlation_id",
    # Inbound
    "CommandReply",
    "InboundEnvelope",
    "InboundKind",
    "PushBatch",
    "PushItem",
    "ServerEvent",
    "ServerEventName",
    "Unclassified",
    "classify",
    # Normalization
    "DecodeRule",
    "Normalizer",
    "camelize",
    "normalize",
    "to_snake_keys",
]
