import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from chatsync.schemas.commands import Command
from chatsync.schemas.events import decode_event
from chatsync.utils.dispatcher import EventDispatcher
from documents import ConversationResponseDocument, MessageDocument


BASE_TIME = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)


def at(minute: int) -> datetime:
    return BASE_TIME + timedelta(minutes=minute)


def iso(minute: int) -> str:
    return at(minute).isoformat().replace("+00:00", "Z")


def conversation_doc(
    conversation_id: str,
    participants: Optional[List[str]] = None,
    created_by: str = "alice",
    minute: int = 0,
    title: Optional[str] = None,
    latest_message: Optional[MessageDocument] = None,
    connected: Optional[List[str]] = None,
) -> ConversationResponseDocument:
    """A ConversationResponse entry as found in pages and snapshots."""
    doc: ConversationResponseDocument = {
        "conversation": {
            "id": conversation_id,
            "title": title,
            "participants": participants if participants is not None else ["alice", "bob"],
            "createdBy": created_by,
            "createdAt": iso(minute),
        },
    }
    if latest_message is not None:
        doc["latestMessage"] = latest_message
    if connected is not None:
        doc["connected"] = connected
    return doc


def message_doc(
    message_id: Optional[str],
    conversation_id: str = "c1",
    minute: int = 0,
    text: str = "hello",
    from_id: str = "alice",
    participants: Optional[List[str]] = None,
    updated_minute: Optional[int] = None,
    deleted_minute: Optional[int] = None,
) -> MessageDocument:
    doc: MessageDocument = {
        "id": message_id,
        "conversationId": conversation_id,
        "participants": participants if participants is not None else ["alice", "bob"],
        "connectionId": "conn-1",
        "fromId": from_id,
        "type": "text",
        "data": {"text": text},
        "createdAt": iso(minute),
    }
    if updated_minute is not None:
        doc["updatedAt"] = iso(updated_minute)
    if deleted_minute is not None:
        doc["deletedAt"] = iso(deleted_minute)
    return doc


def file_message_doc(message_id: str, conversation_id: str = "c1", minute: int = 0, name: str = "a.txt") -> MessageDocument:
    doc = message_doc(message_id, conversation_id=conversation_id, minute=minute)
    doc["type"] = "file"
    doc["data"] = {"link": f"https://files.example/{name}", "name": name, "type": "text/plain", "size": 12}
    return doc


def envelope(
    event_type: str,
    conversation_id: str = "c1",
    data: Any = None,
    from_id: str = "bob",
    minute: int = 0,
    participants: Optional[List[str]] = None,
    omit_participants: bool = False,
    message_id: Optional[str] = None,
) -> Dict[str, Any]:
    doc: Dict[str, Any] = {
        "type": event_type,
        "id": message_id,
        "conversationId": conversation_id,
        "connectionId": "conn-2",
        "fromId": from_id,
        "createdAt": iso(minute),
        "data": data,
    }
    if not omit_participants:
        doc["participants"] = participants if participants is not None else ["alice", "bob"]
    return doc


def event(doc: Dict[str, Any]):
    return decode_event(doc)


def loaded(conversations: List[ConversationResponseDocument], count: int):
    return event({"type": "loaded", "conversations": conversations, "count": count})


def loaded_messages(messages: List[MessageDocument], count: int):
    return event({"type": "loaded-messages", "messages": messages, "count": count})


def text_event(message_id: Optional[str], conversation_id: str = "c1", minute: int = 0, text: str = "hi", **kwargs: Any):
    return event(envelope("text", conversation_id, {"text": text}, minute=minute, message_id=message_id, **kwargs))


def closed_event(conversation_id: str, minute: int = 5):
    return event(envelope("closed", conversation_id, {"conversationId": conversation_id, "closedAt": iso(minute)}, minute=minute))


def deleted_event(conversation_id: str, minute: int = 5):
    return event(
        envelope(
            "deleted",
            conversation_id,
            {"conversationId": conversation_id, "closedAt": iso(minute), "deletedAt": iso(minute)},
            minute=minute,
        )
    )


def updated_event(conversation_id: str, title: str, participants: List[str], minute: int = 5):
    return event(
        envelope(
            "updated",
            conversation_id,
            {"conversationId": conversation_id, "title": title, "participants": participants, "updatedAt": iso(minute)},
            minute=minute,
        )
    )


def presence_event(event_type: str, conversation_id: str, from_id: str):
    return event(envelope(event_type, conversation_id, None, from_id=from_id))


class RecordingTransport:
    """Stands in for the websocket; keeps every frame sent."""

    def __init__(self) -> None:
        self.frames: List[str] = []

    def send_text(self, data: str) -> None:
        self.frames.append(data)

    @property
    def sent(self) -> List[Dict[str, Any]]:
        return [json.loads(frame) for frame in self.frames]


@pytest.fixture
def dispatcher():
    return EventDispatcher()


@pytest.fixture
def commands_sent():
    return []


@pytest.fixture
def sender(commands_sent):
    def send(command: Command) -> None:
        commands_sent.append(json.loads(command.encode()))

    return send


@pytest.fixture
def transport():
    return RecordingTransport()
