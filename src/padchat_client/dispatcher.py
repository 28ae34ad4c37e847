"""Dispatcher - routes inbound frames.

For every text frame received by the transport:
1. parse JSON (failure -> ``error`` with ProtocolError, frame dropped)
2. normalize (camelCase keys, decode pre-encoded fields)
3. publish ``msg`` with the normalized frame
4. classify and route:
   - command reply  -> Correlator.resolve()
   - server event   -> published under its own name (``warn`` as ServerWarning)
   - push batch     -> one ``push`` event per non-noise item, in order
   - anything else  -> ``other``

Malformed input never raises out of the dispatcher; it degrades to
``error``/``warn`` events.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError

from .bus import ClientEvent, EventBus
from .correlator import Correlator
from .errors import ProtocolError, ServerWarning
from .protocol.envelopes import (
    CommandReply,
    InboundEnvelope,
    PushBatch,
    PushItem,
    ServerEvent,
    ServerEventName,
    Unclassified,
    classify,
)
from .protocol.normalize import PUSH_ITEM_DECODE_RULES, Normalizer

logger = logging.getLogger(__name__)


class Dispatcher:
    """Classifies normalized envelopes and fans them out."""

    def __init__(
        self,
        correlator: Correlator,
        bus: EventBus,
        normalizer: Normalizer | None = None,
    ) -> None:
        self._correlator = correlator
        self._bus = bus
        self._normalizer = normalizer or Normalizer()

    async def handle_frame(self, raw: str | bytes) -> InboundEnvelope | None:
        """Parse, normalize and dispatch one raw transport frame.

        Returns:
            The classified envelope, or None if the frame was rejected
        """
        if not isinstance(raw, str):
            await self._protocol_error("Frame is not text", raw)
            return None
        try:
            parsed = json.loads(raw)
        except ValueError as e:
            await self._protocol_error(f"Failed to parse frame: {e}", raw)
            return None

        try:
            frame = self._normalizer.normalize(parsed)
        except Exception as e:
            await self._protocol_error(f"Failed to normalize frame: {e}", raw)
            return None

        logger.debug(f"Received frame: {raw[:200]}")
        return await self.dispatch(frame)

    async def dispatch(self, frame: Any) -> InboundEnvelope:
        """Route one normalized frame."""
        await self._bus.publish(ClientEvent.MSG, frame)

        envelope = classify(frame)
        if isinstance(envelope, CommandReply):
            await self._correlator.resolve(envelope.cmd_id, envelope)
        elif isinstance(envelope, ServerEvent):
            await self._dispatch_event(envelope)
        elif isinstance(envelope, PushBatch):
            await self._dispatch_push(envelope)
        else:
            await self._dispatch_other(envelope)
        return envelope

    async def _dispatch_event(self, event: ServerEvent) -> None:
        if event.name == ServerEventName.WARN.value:
            # success=True marks an informational warning; still reported
            warning = ServerWarning(
                event.error or event.msg or "", success=event.success, data=event.data
            )
            logger.warning(f"{warning} (success={event.success})")
            await self._bus.publish(ClientEvent.WARN, warning)
            return
        await self._bus.publish(event.name, event.data)

    async def _dispatch_push(self, batch: PushBatch) -> int:
        """Emit one ``push`` per surviving item. Returns the number emitted."""
        if not batch.is_valid:
            await self._protocol_error("Malformed push: data.list missing or empty", batch.items)
            return 0

        emitted = 0
        for raw_item in batch.items:
            if not isinstance(raw_item, dict):
                logger.debug(f"Dropping non-mapping push item: {raw_item!r}")
                continue

            item = self._normalizer.decode_fields(dict(raw_item), PUSH_ITEM_DECODE_RULES)
            try:
                push = PushItem.model_validate(item)
            except ValidationError as e:
                await self._protocol_error(f"Invalid push item: {e}", raw_item)
                continue

            if push.is_noise:
                continue

            await self._bus.publish(ClientEvent.PUSH, push.resolve_type())
            emitted += 1
        return emitted

    async def _dispatch_other(self, envelope: Unclassified) -> None:
        logger.debug(f"Unclassified frame: {str(envelope.raw)[:200]}")
        await self._bus.publish(ClientEvent.OTHER, envelope.raw)

    async def _protocol_error(self, message: str, raw: Any) -> None:
        logger.warning(message)
        await self._bus.publish(ClientEvent.ERROR, ProtocolError(message, raw=raw))
