"""Unit tests for outbound command envelopes."""

from __future__ import annotations

import json
import uuid

from padchat_client.protocol.commands import (
    OUTBOUND_TYPE,
    CommandEnvelope,
    CommandName,
    clean_raw_message,
    new_correlation_id,
)
from padchat_client.protocol.envelopes import PushItem


class TestCorrelationId:
    """Tests for correlation id generation."""

    def test_is_uuid1(self) -> None:
        """Ids are time-based UUIDs."""
        assert uuid.UUID(new_correlation_id()).version == 1

    def test_unique(self) -> None:
        """Ids do not repeat."""
        ids = {new_correlation_id() for _ in range(1000)}

        assert len(ids) == 1000


class TestCommandEnvelopeCreation:
    """Test CommandEnvelope creation and basic properties."""

    def test_create_with_defaults(self) -> None:
        """Envelope should generate a correlation id automatically."""
        envelope = CommandEnvelope.create("getMyInfo")

        assert envelope.type == OUTBOUND_TYPE
        assert envelope.cmd == "getMyInfo"
        assert envelope.cmd_id
        assert envelope.data == {"cmdId": envelope.cmd_id}

    def test_create_with_enum(self) -> None:
        """CommandName members are sent by value."""
        envelope = CommandEnvelope.create(CommandName.SEND_MSG, {"toUserName": "wxid_1"})

        assert envelope.cmd == "sendMsg"
        assert envelope.data["toUserName"] == "wxid_1"

    def test_explicit_cmd_id_wins(self) -> None:
        """An explicit cmd_id overrides one carried in the payload."""
        envelope = CommandEnvelope.create("init", {"cmdId": "from-payload"}, cmd_id="explicit")

        assert envelope.cmd_id == "explicit"

    def test_payload_cmd_id_is_kept(self) -> None:
        """A caller-supplied cmdId is used as the correlation id."""
        envelope = CommandEnvelope.create("init", {"cmdId": "mine"})

        assert envelope.cmd_id == "mine"

    def test_numeric_cmd_id_sent_as_string(self) -> None:
        """A non-string cmdId goes out in the string form replies are matched by."""
        envelope = CommandEnvelope.create("init", {"cmdId": 42})

        assert envelope.cmd_id == "42"
        assert json.loads(envelope.to_frame())["data"]["cmdId"] == "42"

    def test_zero_cmd_id_is_kept(self) -> None:
        """A falsy but present cmdId is not replaced by a generated one."""
        assert CommandEnvelope.create("init", {"cmdId": 0}).cmd_id == "0"

    def test_empty_cmd_id_is_replaced(self) -> None:
        """An empty cmdId gets a generated correlation id."""
        envelope = CommandEnvelope.create("init", {"cmdId": ""})

        assert uuid.UUID(envelope.cmd_id).version == 1

    def test_payload_not_mutated(self) -> None:
        """The caller's payload dict is copied."""
        payload = {"content": "hi"}
        CommandEnvelope.create("sendMsg", payload)

        assert payload == {"content": "hi"}

    def test_distinct_ids_per_envelope(self) -> None:
        """Two envelopes from the same payload get different ids."""
        payload = {"content": "hi"}

        first = CommandEnvelope.create("sendMsg", payload)
        second = CommandEnvelope.create("sendMsg", payload)

        assert first.cmd_id != second.cmd_id


class TestCommandEnvelopeSerialization:
    """Tests for the wire frame."""

    def test_to_frame(self) -> None:
        """The frame is one JSON object with type, cmd and data."""
        envelope = CommandEnvelope.create("getContact", {"userId": "wxid_1"}, cmd_id="c1")

        frame = json.loads(envelope.to_frame())

        assert frame == {
            "type": "user",
            "cmd": "getContact",
            "data": {"userId": "wxid_1", "cmdId": "c1"},
        }

    def test_frame_is_single_line(self) -> None:
        """Frames contain no newlines."""
        envelope = CommandEnvelope.create("sendMsg", {"content": "a\nb"})

        assert "\n" not in envelope.to_frame()

    def test_round_trip(self) -> None:
        """The peer recovers the command name and payload plus a cmdId."""
        payload = {"toUserName": "wxid_1", "content": "hi", "atList": ["a", "b"]}
        envelope = CommandEnvelope.create(CommandName.SEND_MSG, payload)

        decoded = json.loads(envelope.to_frame())
        data = dict(decoded["data"])
        cmd_id = data.pop("cmdId")

        assert decoded["cmd"] == "sendMsg"
        assert data == payload
        assert cmd_id == envelope.cmd_id


class TestRawMessageCleanup:
    """Tests for echoing a pushed message back to the gateway."""

    def test_drops_data_and_restores_snake_case(self) -> None:
        """rawMsgData loses its data field and regains snake_case keys."""
        raw = {"msgId": "1", "fromUser": "wxid_1", "data": "bulky", "msgType": 3}

        assert clean_raw_message(raw) == {"msg_id": "1", "from_user": "wxid_1", "msg_type": 3}

    def test_non_mapping_passes_through(self) -> None:
        """Strings and other values are left alone."""
        assert clean_raw_message("<xml/>") == "<xml/>"
        assert clean_raw_message(None) is None

    def test_applied_by_create(self) -> None:
        """Envelopes clean rawMsgData without touching the caller's copy."""
        raw = {"msgId": "1", "data": "bulky"}
        payload = {"rawMsgData": raw}

        envelope = CommandEnvelope.create(CommandName.GET_MSG_IMAGE, payload)

        assert envelope.data["rawMsgData"] == {"msg_id": "1"}
        assert payload["rawMsgData"] is raw
        assert raw == {"msgId": "1", "data": "bulky"}

    def test_push_item_is_cleaned(self) -> None:
        """A resolved PushItem from a push event is echoed in the gateway's form."""
        item = PushItem.model_validate(
            {"msgType": 3, "fromUser": "wxid_1", "msgId": "9", "data": "bulky"}
        ).resolve_type()

        envelope = CommandEnvelope.create(CommandName.GET_MSG_IMAGE, {"rawMsgData": item})

        assert envelope.data["rawMsgData"] == {"msg_type": 3, "from_user": "wxid_1", "msg_id": "9"}
        sent = json.loads(envelope.to_frame())["data"]["rawMsgData"]
        assert "data" not in sent
        assert not {"sub_type", "effective_type", "m_type", "mType"} & sent.keys()

    def test_compound_push_item_keeps_sub_type(self) -> None:
        """A subType sent by the gateway survives; the resolved type does not."""
        item = PushItem.model_validate({"msgType": 5, "subType": 49, "msgId": "9"}).resolve_type()

        assert clean_raw_message(item) == {"msg_type": 5, "sub_type": 49, "msg_id": "9"}


class TestCommandName:
    """Tests for the command catalogue."""

    def test_values_are_wire_names(self) -> None:
        """Members compare equal to their wire names."""
        assert CommandName.GET_MY_INFO == "getMyInfo"
        assert CommandName.SNS_OBJECT_OP.value == "snsobjectOp"

    def test_values_unique(self) -> None:
        """No two members share a wire name."""
        values = [member.value for member in CommandName]

        assert len(values) == len(set(values))
