from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from chatsync.schemas.message import Message, Timestamp


class ConversationHeader(BaseModel):
    """The `conversation` object exactly as nested inside wire responses."""

    id: str
    client_conversation_id: Optional[str] = Field(None, alias="clientConversationId")
    title: Optional[str] = None
    participants: Tuple[str, ...] = ()
    created_by: str = Field(..., alias="createdBy")
    created_at: Timestamp = Field(..., alias="createdAt")
    updated_at: Optional[Timestamp] = Field(None, alias="updatedAt")
    closed_at: Optional[Timestamp] = Field(None, alias="closedAt")
    deleted_at: Optional[Timestamp] = Field(None, alias="deletedAt")

    model_config = {"frozen": True, "populate_by_name": True}


class Conversation(ConversationHeader):
    """A conversation summary held by a synchronizer."""

    latest_message: Optional[Message] = Field(None, alias="latestMessage")
    connected: Optional[Tuple[str, ...]] = None
    left_at: Optional[Timestamp] = Field(None, alias="leftAt")


class ConversationResponse(BaseModel):
    """One entry of a conversation page: the header plus per-user extras."""

    conversation: ConversationHeader
    latest_message: Optional[Message] = Field(None, alias="latestMessage")
    connected: Optional[List[str]] = None
    left_at: Optional[Timestamp] = Field(None, alias="leftAt")

    model_config = {"populate_by_name": True}

    def to_conversation(self) -> Conversation:
        return Conversation(
            **self.conversation.model_dump(),
            latest_message=self.latest_message,
            connected=tuple(self.connected) if self.connected is not None else None,
            left_at=self.left_at,
        )


class ConversationPage(BaseModel):

    conversations: List[ConversationResponse] = []
    total: int = 0


class ConversationList(BaseModel):
    """Snapshot held by the list and watch synchronizers."""

    conversations: Tuple[Conversation, ...] = ()
    # None until the first snapshot or page arrives
    total: Optional[int] = None

    model_config = {"frozen": True}

    @property
    def has_more(self) -> bool:
        return self.total is not None and len(self.conversations) < self.total


class ConversationDetail(BaseModel):
    """Snapshot held by the detail synchronizer: header plus timeline."""

    conversation: Optional[Conversation] = None
    messages: Tuple[Message, ...] = ()
    total: Optional[int] = None

    model_config = {"frozen": True}

    @property
    def has_more(self) -> bool:
        return self.total is not None and len(self.messages) < self.total
