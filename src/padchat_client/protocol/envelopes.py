"""Inbound envelope definitions.

Frames from the gateway are discriminated by ``type``:

- ``cmdRet``: reply to a command, carries the echoed ``cmdId``
- ``userEvent``: unsolicited server event named by ``event``; the ``push``
  event carries a batch of notifications in ``data.list``
- anything else is unclassified

All models expect frames that already went through the Normalizer, so keys
are camelCase.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

REPLY_TYPE = "cmdRet"
EVENT_TYPE = "userEvent"

# msgType values of padding records that carry nothing
NOISE_MSG_TYPES = frozenset({2048, 32768})

# msgType meaning "look at subType"
COMPOUND_MSG_TYPE = 5


class InboundKind(str, Enum):
    """Classification of an inbound frame."""

    COMMAND_REPLY = "command_reply"
    SERVER_EVENT = "server_event"
    PUSH_BATCH = "push_batch"
    UNCLASSIFIED = "unclassified"


class ServerEventName(str, Enum):
    """Event names the gateway sends in ``userEvent`` frames."""

    WARN = "warn"  # Diagnostic, possibly informational
    QRCODE = "qrcode"  # Login QR code issued
    SCAN = "scan"  # QR code scan status changed
    LOGIN = "login"  # Login succeeded
    LOADED = "loaded"  # Contacts finished loading
    LOGOUT = "logout"  # Account logged out
    OVER = "over"  # Instance terminated (account stays logged in)
    SNS = "sns"  # Moments feed update
    PUSH = "push"  # Batch of push notifications


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CommandReply(_CamelModel):
    """Reply to a command.

    Example (normalized):
        {
            "type": "cmdRet",
            "cmdId": "b61eb250-3770-11e8-b00f-595f9d4f3df0",
            "taskId": "5",
            "data": {"success": true, "error": "", "msg": "", "data": {...}}
        }
    """

    kind: Literal[InboundKind.COMMAND_REPLY] = InboundKind.COMMAND_REPLY
    cmd_id: str
    task_id: str | None = None
    success: bool | None = None
    error: Any = None
    msg: Any = None
    data: Any = None

    @property
    def ok(self) -> bool:
        """True unless the gateway explicitly reported failure."""
        return self.success is not False

    @classmethod
    def from_frame(cls, frame: dict[str, Any]) -> CommandReply:
        payload = frame.get("data")
        if not isinstance(payload, dict):
            payload = {"data": payload}
        task_id = frame.get("taskId")
        return cls(
            cmd_id=str(frame["cmdId"]),
            task_id=None if task_id is None else str(task_id),
            success=payload.get("success"),
            error=payload.get("error", payload.get("err")),
            msg=payload.get("msg"),
            data=payload.get("data"),
        )


class ServerEvent(_CamelModel):
    """A named, unsolicited server event."""

    kind: Literal[InboundKind.SERVER_EVENT] = InboundKind.SERVER_EVENT
    name: str
    data: dict[str, Any] = Field(default_factory=dict)
    success: bool | None = None

    @property
    def error(self) -> str | None:
        value = self.data.get("error")
        return None if value is None else str(value)

    @property
    def msg(self) -> str | None:
        value = self.data.get("msg")
        return None if value is None else str(value)


class PushItem(_CamelModel):
    """One notification from a push batch.

    Known fields are typed; everything else the gateway sends is kept as
    extra fields and dumped back with ``model_dump(by_alias=True)``.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    # Numeric values are ints; anything else the gateway invents stays a str
    msg_type: int | str | None = None
    sub_type: int | str | None = None
    effective_type: int | str | None = None
    # Legacy alias of effective_type
    m_type: int | str | None = None

    @field_validator("msg_type", "sub_type", mode="before")
    @classmethod
    def _numeric_string_to_int(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return int(value)
            except ValueError:
                return value
        return value

    @property
    def is_noise(self) -> bool:
        return self.msg_type is None or self.msg_type in NOISE_MSG_TYPES

    def resolve_type(self) -> PushItem:
        """Fill effective_type (and m_type) from msg_type/sub_type."""
        if self.msg_type == COMPOUND_MSG_TYPE:
            effective = self.sub_type
        else:
            effective = self.msg_type
        self.effective_type = effective
        self.m_type = effective
        return self

    def get(self, key: str, default: Any = None) -> Any:
        """Read a field by its wire (camelCase) or Python name."""
        dumped = self.model_dump(by_alias=True)
        if key in dumped:
            return dumped[key]
        return getattr(self, key, default)


class PushBatch(BaseModel):
    """A ``push`` server event; ``items`` is the raw ``data.list`` value."""

    kind: Literal[InboundKind.PUSH_BATCH] = InboundKind.PUSH_BATCH
    items: Any = None

    @property
    def is_valid(self) -> bool:
        return isinstance(self.items, list) and len(self.items) > 0


class Unclassified(BaseModel):
    """Anything the dispatcher does not recognise."""

    kind: Literal[InboundKind.UNCLASSIFIED] = InboundKind.UNCLASSIFIED
    raw: Any = None


InboundEnvelope = CommandReply | ServerEvent | PushBatch | Unclassified

_SERVER_EVENT_NAMES = frozenset(e.value for e in ServerEventName) - {ServerEventName.PUSH.value}


def classify(frame: Any) -> InboundEnvelope:
    """Classify a normalized frame. Never raises."""
    if not isinstance(frame, dict):
        return Unclassified(raw=frame)

    frame_type = frame.get("type")

    if frame_type == REPLY_TYPE:
        cmd_id = frame.get("cmdId")
        if cmd_id is None or cmd_id == "":
            return Unclassified(raw=frame)
        try:
            return CommandReply.from_frame(frame)
        except ValueError:
            return Unclassified(raw=frame)

    if frame_type == EVENT_TYPE:
        name = frame.get("event")
        data = frame.get("data")
        if name == ServerEventName.PUSH.value:
            items = data.get("list") if isinstance(data, dict) else None
            return PushBatch(items=items)
        if isinstance(name, str) and name in _SERVER_EVENT_NAMES:
            payload = data if isinstance(data, dict) else {}
            success = frame.get("success", payload.get("success"))
            return ServerEvent(
                name=name,
                data=payload,
                success=success if isinstance(success, bool) else None,
            )

    return Unclassified(raw=frame)
