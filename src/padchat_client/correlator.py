"""Correlator - matches commands to their asynchronous replies.

Every outbound command gets a pending request keyed by its ``cmdId``. The
request is removed exactly once, by whichever comes first:
- resolve(): the matching ``cmdRet`` reply arrived
- the timeout elapsed
- fail_all(): the connection closed
- the awaiting task was cancelled

A reply for an id that is no longer pending is reported as an
UnmatchedReplyWarning on the bus and otherwise ignored.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from .bus import ClientEvent, EventBus
from .errors import CommandTimeoutError, NotConnectedError, UnmatchedReplyWarning
from .protocol.commands import CommandEnvelope, CommandName
from .protocol.envelopes import CommandReply
from .transport import BaseTransport

logger = logging.getLogger(__name__)


@dataclass
class PendingRequest:
    """A command waiting for its reply."""

    cmd_id: str
    command: str
    deadline: float
    future: asyncio.Future[CommandReply]


class Correlator:
    """Owns the pending-request table.

    There is no back-pressure: the number of outstanding requests is
    bounded only by memory.
    """

    def __init__(
        self,
        transport: BaseTransport,
        bus: EventBus,
        default_timeout: float = 30.0,
    ) -> None:
        self._transport = transport
        self._bus = bus
        self.default_timeout = default_timeout
        self._pending: dict[str, PendingRequest] = {}

    @property
    def pending_count(self) -> int:
        """Number of requests still waiting for a reply."""
        return len(self._pending)

    def is_pending(self, cmd_id: str) -> bool:
        return cmd_id in self._pending

    async def send(
        self,
        command: str | CommandName,
        payload: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> CommandReply:
        """Send a command and wait for its reply.

        Args:
            command: Command name
            payload: Command fields; a ``cmdId`` in it is used as correlation id
            timeout: Seconds to wait (default: ``default_timeout``)

        Returns:
            The matching reply

        Raises:
            NotConnectedError: Not connected, or the connection closed while waiting
            SendError: The frame could not be transmitted
            CommandTimeoutError: No reply within ``timeout``
            ValueError: The payload's ``cmdId`` is already pending
        """
        envelope = CommandEnvelope.create(command, payload)
        cmd_id = envelope.cmd_id
        if cmd_id in self._pending:
            raise ValueError(f"A request with cmdId={cmd_id} is already pending")

        timeout = self.default_timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        pending = PendingRequest(
            cmd_id=cmd_id,
            command=envelope.cmd,
            deadline=loop.time() + timeout,
            future=loop.create_future(),
        )
        self._pending[cmd_id] = pending

        try:
            await self._transport.send(envelope.to_frame())
            logger.debug(f"Sent {envelope.cmd} (cmdId={cmd_id}), waiting up to {timeout}s")

            remaining = max(0.0, pending.deadline - loop.time())
            try:
                return await asyncio.wait_for(pending.future, timeout=remaining)
            except TimeoutError:
                logger.warning(f"Command {envelope.cmd} (cmdId={cmd_id}) timed out")
                raise CommandTimeoutError(envelope.cmd, cmd_id, timeout) from None
        finally:
            # Clean up pending request
            if self._pending.get(cmd_id) is pending:
                del self._pending[cmd_id]

    async def resolve(self, cmd_id: str, reply: CommandReply) -> bool:
        """Fulfil the pending request for ``cmd_id``.

        Returns:
            True if a request was resolved, False if the reply was unmatched
        """
        pending = self._pending.pop(cmd_id, None)
        if pending is None or pending.future.done():
            warning = UnmatchedReplyWarning(cmd_id)
            logger.warning(str(warning))
            await self._bus.publish(ClientEvent.WARN, warning)
            return False

        pending.future.set_result(reply)
        logger.debug(f"Resolved {pending.command} (cmdId={cmd_id})")
        return True

    def fail_all(self, reason: str = "Connection closed") -> int:
        """Reject every pending request with NotConnectedError.

        Returns:
            Number of requests rejected
        """
        count = 0
        for pending in list(self._pending.values()):
            if not pending.future.done():
                pending.future.set_exception(
                    NotConnectedError(f"{reason} while waiting for {pending.command}")
                )
                count += 1
        self._pending.clear()
        if count:
            logger.info(f"Rejected {count} pending request(s): {reason}")
        return count
