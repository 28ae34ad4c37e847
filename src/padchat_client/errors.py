"""Error taxonomy for the Padchat client.

Request-scoped errors (NotConnectedError, SendError, CommandTimeoutError,
CommandFailedError) are raised to the caller awaiting that request.
Connection- and parse-scoped faults (ProtocolError, transport errors) are
published on the event bus as ``error``. Warnings are published as ``warn``
and never raised.
"""

from __future__ import annotations

from typing import Any


class PadchatError(Exception):
    """Base class for all client errors."""

    pass


class NotConnectedError(PadchatError, ConnectionError):
    """A command was sent while the transport is not connected."""

    pass


class RateLimitError(PadchatError):
    """connect() was called again before the minimum interval elapsed."""

    def __init__(self, elapsed: float, min_interval: float) -> None:
        super().__init__(
            f"Connect attempted {elapsed * 1000:.0f}ms after the previous one "
            f"(minimum {min_interval * 1000:.0f}ms)"
        )
        self.elapsed = elapsed
        self.min_interval = min_interval


class SendError(PadchatError):
    """The underlying socket failed to transmit a frame."""

    pass


class CommandTimeoutError(PadchatError, TimeoutError):
    """No reply arrived for a command within its timeout."""

    def __init__(self, command: str, cmd_id: str, timeout: float) -> None:
        super().__init__(f"No reply to {command!r} (cmdId={cmd_id}) within {timeout}s")
        self.command = command
        self.cmd_id = cmd_id
        self.timeout = timeout


class CommandFailedError(PadchatError):
    """The gateway replied with ``success: false``."""

    def __init__(self, command: str, error: str | None, msg: str | None = None) -> None:
        super().__init__(f"Command {command!r} failed: {error or msg or 'unknown error'}")
        self.command = command
        self.error = error
        self.msg = msg


class ProtocolError(PadchatError, ValueError):
    """An inbound frame could not be decoded or has an invalid shape."""

    def __init__(self, message: str, raw: Any = None) -> None:
        super().__init__(message)
        self.raw = raw


class UnmatchedReplyWarning(Warning):
    """A reply arrived with no pending request waiting for it."""

    def __init__(self, cmd_id: str) -> None:
        super().__init__(f"Reply for cmdId={cmd_id} has no pending request")
        self.cmd_id = cmd_id


class ServerWarning(Warning):
    """The gateway pushed a ``warn`` event.

    ``success`` mirrors the envelope's flag: when True the warning is
    informational.
    """

    def __init__(self, error: str, success: bool | None = None, data: Any = None) -> None:
        super().__init__(f"Server warning: {error}")
        self.error = error
        self.success = success
        self.data = data
