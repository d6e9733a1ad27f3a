"""Inbound server events.

Every frame the server pushes is a JSON object tagged by ``type``. The models
below decode those frames into immutable values; ``decode_event`` is the single
entry point used by the session.
"""
from typing import Annotated, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from chatsync.core.errors import EventDecodeError
from chatsync.schemas.conversation import ConversationHeader, ConversationPage, ConversationResponse
from chatsync.schemas.message import FileData, Message, MessagePage, TextData, Timestamp


class HelloEvent(BaseModel):

    type: Literal["hello"]


class ConnectionEvent(BaseModel):
    """Initial snapshot of the user's own conversations."""

    type: Literal["connection"]
    conversations: ConversationPage = ConversationPage()


class WatchingEvent(BaseModel):
    """Initial snapshot of the watch list."""

    type: Literal["watching"]
    conversations: ConversationPage = ConversationPage()


class ConversationEvent(BaseModel):
    """Snapshot of a joined conversation and its most recent messages."""

    type: Literal["conversation"]
    conversation: ConversationHeader
    connected: Optional[List[str]] = None
    left_at: Optional[Timestamp] = Field(None, alias="leftAt")
    messages: Optional[MessagePage] = None

    model_config = {"populate_by_name": True}


class LoadedEvent(BaseModel):

    type: Literal["loaded"]
    conversations: List[ConversationResponse] = []
    count: int = 0


class LoadedMessagesEvent(BaseModel):

    type: Literal["loaded-messages"]
    messages: List[Message] = []
    count: int = 0


class EnvelopeEvent(BaseModel):
    """Fields shared by every event the server relays as a message."""

    id: Optional[str] = None
    client_message_id: Optional[str] = Field(None, alias="clientMessageId")
    conversation_id: Optional[str] = Field(None, alias="conversationId")
    # None when the field is absent, which matters for watch backfills
    participants: Optional[Tuple[str, ...]] = None
    connection_id: Optional[str] = Field(None, alias="connectionId")
    from_id: Optional[str] = Field(None, alias="fromId")
    created_at: Optional[Timestamp] = Field(None, alias="createdAt")
    updated_at: Optional[Timestamp] = Field(None, alias="updatedAt")
    deleted_at: Optional[Timestamp] = Field(None, alias="deletedAt")

    model_config = {"frozen": True, "populate_by_name": True}

    @property
    def conversation_ref(self) -> Optional[str]:
        return self.conversation_id


class ClosedData(BaseModel):

    conversation_id: str = Field(..., alias="conversationId")
    closed_at: Timestamp = Field(..., alias="closedAt")

    model_config = {"frozen": True, "populate_by_name": True}


class DeletedData(BaseModel):

    conversation_id: str = Field(..., alias="conversationId")
    closed_at: Timestamp = Field(..., alias="closedAt")
    deleted_at: Timestamp = Field(..., alias="deletedAt")

    model_config = {"frozen": True, "populate_by_name": True}


class UpdatedData(BaseModel):

    conversation_id: str = Field(..., alias="conversationId")
    title: Optional[str] = None
    participants: Tuple[str, ...] = ()
    updated_at: Timestamp = Field(..., alias="updatedAt")

    model_config = {"frozen": True, "populate_by_name": True}


class MessageDeletedData(BaseModel):

    message_id: str = Field(..., alias="messageId")
    deleted_at: Timestamp = Field(..., alias="deletedAt")

    model_config = {"frozen": True, "populate_by_name": True}


class MessageUpdatedData(BaseModel):
    """Carries the fields of whichever message type is being edited."""

    message_id: str = Field(..., alias="messageId")
    updated_at: Timestamp = Field(..., alias="updatedAt")
    text: Optional[str] = None
    link: Optional[str] = None
    name: Optional[str] = None
    type: Optional[str] = None
    size: Optional[int] = None

    model_config = {"frozen": True, "populate_by_name": True}


class _HeaderMutationEvent(EnvelopeEvent):

    @property
    def conversation_ref(self) -> Optional[str]:
        return self.data.conversation_id  # type: ignore[attr-defined]


class ClosedEvent(_HeaderMutationEvent):

    type: Literal["closed"]
    data: ClosedData


class DeletedEvent(_HeaderMutationEvent):

    type: Literal["deleted"]
    data: DeletedData


class UpdatedEvent(_HeaderMutationEvent):

    type: Literal["updated"]
    data: UpdatedData


class JoinedEvent(EnvelopeEvent):

    type: Literal["joined"]
    data: None = None


class LeftEvent(EnvelopeEvent):

    type: Literal["left"]
    data: None = None


class MessageDeletedEvent(EnvelopeEvent):

    type: Literal["message-deleted"]
    data: MessageDeletedData


class MessageUpdatedEvent(EnvelopeEvent):

    type: Literal["message-updated"]
    data: MessageUpdatedData


class _NewMessageEvent(EnvelopeEvent):

    conversation_id: str = Field(..., alias="conversationId")
    from_id: str = Field(..., alias="fromId")
    created_at: Timestamp = Field(..., alias="createdAt")

    def to_message(self) -> Message:
        return Message(
            id=self.id,
            client_message_id=self.client_message_id,
            conversation_id=self.conversation_id,
            participants=self.participants or (),
            connection_id=self.connection_id,
            from_id=self.from_id,
            type=self.type,  # type: ignore[attr-defined]
            data=self.data,  # type: ignore[attr-defined]
            created_at=self.created_at,
            updated_at=self.updated_at,
            deleted_at=self.deleted_at,
        )


class TextEvent(_NewMessageEvent):

    type: Literal["text"]
    data: TextData


class FileEvent(_NewMessageEvent):

    type: Literal["file"]
    data: FileData


HeaderMutationEvent = Union[ClosedEvent, DeletedEvent, UpdatedEvent]
PresenceEvent = Union[JoinedEvent, LeftEvent]
MessageMutationEvent = Union[MessageDeletedEvent, MessageUpdatedEvent]
NewMessageEvent = Union[TextEvent, FileEvent]

Event = Annotated[
    Union[
        HelloEvent,
        ConnectionEvent,
        ConversationEvent,
        WatchingEvent,
        LoadedEvent,
        LoadedMessagesEvent,
        ClosedEvent,
        DeletedEvent,
        UpdatedEvent,
        JoinedEvent,
        LeftEvent,
        MessageDeletedEvent,
        MessageUpdatedEvent,
        TextEvent,
        FileEvent,
    ],
    Field(discriminator="type"),
]

_event_adapter: TypeAdapter = TypeAdapter(Event)


def decode_event(raw: Union[str, bytes, dict]):
    """Decode one server frame (JSON text or an already-parsed dict)."""
    try:
        if isinstance(raw, dict):
            return _event_adapter.validate_python(raw)
        return _event_adapter.validate_json(raw)
    except ValidationError as exc:
        raise EventDecodeError(f"Invalid server event: {exc.error_count()} error(s)", errors=exc.errors()) from exc
