"""Outbound command definitions.

Every command is sent as one JSON text frame:

    {"type": "user", "cmd": "getMyInfo", "data": {..., "cmdId": "<uuid>"}}

The gateway echoes ``cmdId`` back in its ``cmdRet`` reply, which is how the
reply is matched to the request.
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from .normalize import to_snake_keys

OUTBOUND_TYPE = "user"

# Keys filled in by PushItem.resolve_type(); the gateway never sent them
RESOLVED_TYPE_KEYS = ("effectiveType", "mType")


def new_correlation_id() -> str:
    """Generate a time-ordered, collision-resistant correlation id."""
    return str(uuid.uuid1())


class CommandName(str, Enum):
    """Commands understood by the gateway.

    Not exhaustive: any string is accepted by send().
    """

    # Instance / login
    INIT = "init"
    CLOSE = "close"
    LOGIN = "login"
    GET_WX_DATA = "getWxData"
    GET_LOGIN_TOKEN = "getLoginToken"
    GET_MY_INFO = "getMyInfo"
    SYNC_MSG = "syncMsg"
    SYNC_CONTACT = "syncContact"
    LOGOUT = "logout"

    # Messaging
    SEND_MSG = "sendMsg"
    SEND_APP_MSG = "sendAppMsg"
    SHARE_CARD = "shareCard"
    SEND_IMAGE = "sendImage"
    SEND_VOICE = "sendVoice"
    GET_MSG_IMAGE = "getMsgImage"
    GET_MSG_VIDEO = "getMsgVideo"
    GET_MSG_VOICE = "getMsgVoice"

    # Rooms
    CREATE_ROOM = "createRoom"
    GET_ROOM_MEMBERS = "getRoomMembers"
    ADD_ROOM_MEMBER = "addRoomMember"
    INVITE_ROOM_MEMBER = "inviteRoomMember"
    DELETE_ROOM_MEMBER = "deleteRoomMember"
    QUIT_ROOM = "quitRoom"
    SET_ROOM_ANNOUNCEMENT = "setRoomAnnouncement"
    SET_ROOM_NAME = "setRoomName"
    GET_ROOM_QRCODE = "getRoomQrcode"

    # Contacts
    GET_CONTACT = "getContact"
    SEARCH_CONTACT = "searchContact"
    DELETE_CONTACT = "deleteContact"
    GET_USER_QRCODE = "getUserQrcode"
    ACCEPT_USER = "acceptUser"
    ADD_CONTACT = "addContact"
    SAY_HELLO = "sayHello"
    SET_REMARK = "setRemark"
    SET_HEAD_IMG = "setHeadImg"

    # Moments
    SNS_UPLOAD = "snsUpload"
    SNS_OBJECT_OP = "snsobjectOp"
    SNS_SEND_MOMENT = "snsSendMoment"
    SNS_USER_PAGE = "snsUserPage"
    SNS_TIMELINE = "snsTimeline"
    SNS_GET_OBJECT = "snsGetObject"
    SNS_COMMENT = "snsComment"
    SNS_LIKE = "snsLike"

    # Favorites and labels
    SYNC_FAV = "syncFav"
    ADD_FAV = "addFav"
    GET_FAV = "getFav"
    DELETE_FAV = "deleteFav"
    GET_LABEL_LIST = "getLabelList"
    ADD_LABEL = "addLabel"
    DELETE_LABEL = "deleteLabel"
    SET_LABEL = "setLabel"

    # Payments
    QUERY_TRANSFER = "queryTransfer"
    ACCEPT_TRANSFER = "acceptTransfer"
    RECEIVE_RED_PACKET = "receiveRedPacket"
    QUERY_RED_PACKET = "queryRedPacket"
    OPEN_RED_PACKET = "openRedPacket"

    # Subscription accounts
    SEARCH_MP = "searchMp"
    GET_SUBSCRIPTION_INFO = "getSubscriptionInfo"
    OPERATE_SUBSCRIPTION = "operateSubscription"
    GET_REQUEST_TOKEN = "getRequestToken"
    REQUEST_URL = "requestUrl"


def clean_raw_message(raw: Any) -> Any:
    """Prepare a pushed message for echoing back to the gateway.

    Drops the bulky ``data`` field and restores the gateway's snake_case keys.
    A model (normally a ``PushItem`` taken from a ``push`` event) is dumped
    under its wire names first, without the type fields the client added.
    """
    if isinstance(raw, BaseModel):
        raw = raw.model_dump(by_alias=True, exclude_none=True)
        for key in RESOLVED_TYPE_KEYS:
            raw.pop(key, None)
    if not isinstance(raw, dict):
        return raw
    trimmed = {k: v for k, v in raw.items() if k != "data"}
    return to_snake_keys(trimmed)


class CommandEnvelope(BaseModel):
    """An outbound command frame.

    Example:
        {
            "type": "user",
            "cmd": "sendMsg",
            "data": {"toUserName": "wxid_1", "content": "hi", "cmdId": "..."}
        }
    """

    type: Literal["user"] = OUTBOUND_TYPE
    cmd: str
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def cmd_id(self) -> str:
        """Correlation id carried in ``data.cmdId``."""
        return self.data["cmdId"]

    def to_frame(self) -> str:
        """Serialize to a single-line JSON text frame."""
        return self.model_dump_json()

    @classmethod
    def create(
        cls,
        cmd: str | CommandName,
        payload: dict[str, Any] | None = None,
        cmd_id: str | None = None,
    ) -> CommandEnvelope:
        """Build an envelope, assigning a correlation id if none was given.

        The caller's payload is copied, never mutated. A ``cmdId`` already
        present in the payload wins over a generated one; an explicit
        ``cmd_id`` argument wins over both. The id is always sent as a string,
        the form replies are matched under.
        """
        data = dict(payload or {})
        if "rawMsgData" in data:
            data["rawMsgData"] = clean_raw_message(data["rawMsgData"])
        if cmd_id is None:
            cmd_id = data.get("cmdId")
        if cmd_id is None or cmd_id == "":
            cmd_id = new_correlation_id()
        data["cmdId"] = str(cmd_id)
        return cls(
            cmd=cmd.value if isinstance(cmd, CommandName) else cmd,
            data=data,
        )
