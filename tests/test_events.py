import json

import pytest

from chatsync.core.errors import EventDecodeError
from chatsync.schemas.events import (
    ClosedEvent,
    ConnectionEvent,
    ConversationEvent,
    HelloEvent,
    JoinedEvent,
    LoadedEvent,
    MessageUpdatedEvent,
    TextEvent,
    decode_event,
)
from chatsync.schemas.message import TextData
from conftest import at, conversation_doc, envelope, iso, message_doc


def test_decodes_from_json_text():
    assert isinstance(decode_event('{"type": "hello"}'), HelloEvent)


def test_connection_snapshot():
    raw = {"type": "connection", "conversations": {"conversations": [conversation_doc("c1")], "total": 3}}

    decoded = decode_event(json.dumps(raw))

    assert isinstance(decoded, ConnectionEvent)
    assert decoded.conversations.total == 3
    conversation = decoded.conversations.conversations[0].to_conversation()
    assert conversation.id == "c1"
    assert conversation.created_at == at(0)
    assert conversation.participants == ("alice", "bob")


def test_conversation_snapshot_keeps_presence_and_messages():
    raw = {
        "type": "conversation",
        "conversation": conversation_doc("c1")["conversation"],
        "connected": ["bob"],
        "leftAt": iso(4),
        "messages": {"messages": [message_doc("m1")], "total": 1},
    }

    decoded = decode_event(raw)

    assert isinstance(decoded, ConversationEvent)
    assert decoded.connected == ["bob"]
    assert decoded.left_at == at(4)
    assert decoded.messages.messages[0].data == TextData(text="hello")


def test_loaded_page_with_latest_message():
    latest = message_doc("m1", conversation_id="c1", minute=2, updated_minute=3)
    decoded = decode_event({"type": "loaded", "conversations": [conversation_doc("c1", latest_message=latest)], "count": 4})

    assert isinstance(decoded, LoadedEvent)
    message = decoded.conversations[0].to_conversation().latest_message
    assert message.effective_at == at(3)


def test_header_mutation_targets_data_conversation():
    raw = envelope("closed", "envelope-id", {"conversationId": "c7", "closedAt": iso(1)})

    decoded = decode_event(raw)

    assert isinstance(decoded, ClosedEvent)
    assert decoded.conversation_ref == "c7"


def test_presence_event_has_no_data():
    decoded = decode_event(envelope("joined", "c1", None, from_id="carol"))

    assert isinstance(decoded, JoinedEvent)
    assert decoded.from_id == "carol"
    assert decoded.conversation_ref == "c1"


def test_missing_participants_stays_none():
    decoded = decode_event(envelope("left", "c1", None, omit_participants=True))
    assert decoded.participants is None


def test_text_event_builds_message():
    decoded = decode_event(envelope("text", "c1", {"text": "yo"}, minute=6, message_id="m6"))

    assert isinstance(decoded, TextEvent)
    message = decoded.to_message()
    assert message.id == "m6"
    assert message.from_id == "bob"
    assert message.created_at == at(6)
    assert message.data == TextData(text="yo")


def test_message_update_carries_partial_fields():
    decoded = decode_event(envelope("message-updated", "c1", {"messageId": "m1", "updatedAt": iso(2), "text": "x"}))

    assert isinstance(decoded, MessageUpdatedEvent)
    assert decoded.data.text == "x"
    assert decoded.data.link is None


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        '{"type": "mystery"}',
        '{"no": "type"}',
        json.dumps({"type": "text", "conversationId": "c1", "data": {"text": "no timestamp"}}),
        json.dumps({"type": "closed", "data": {"conversationId": "c1"}}),
    ],
)
def test_malformed_frames_raise_decode_error(raw):
    with pytest.raises(EventDecodeError) as info:
        decode_event(raw)
    assert info.value.errors


def test_stamps_without_offset_are_read_as_utc():
    raw = envelope("text", "c1", {"text": "naive"}, message_id="m5")
    raw["createdAt"] = "2024-05-01T10:05:00"

    message = decode_event(raw).to_message()

    assert message.created_at == at(5)
    assert message.created_at.tzinfo is not None
