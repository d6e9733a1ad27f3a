from datetime import datetime, timezone
from typing import Annotated, List, Literal, Optional, Tuple, Union

from pydantic import AfterValidator, BaseModel, Field


MessageType = Literal["text", "file"]


def _as_utc(value: datetime) -> datetime:
    # stamps without an offset are UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


Timestamp = Annotated[datetime, AfterValidator(_as_utc)]


class TextData(BaseModel):

    text: str

    model_config = {"frozen": True}


class FileData(BaseModel):

    link: str
    name: str
    type: str
    size: int

    model_config = {"frozen": True}


MessageData = Union[TextData, FileData]


class Message(BaseModel):
    """A text or file message as held in a timeline or as a conversation's latest message."""

    id: Optional[str] = None
    client_message_id: Optional[str] = Field(None, alias="clientMessageId")
    conversation_id: str = Field(..., alias="conversationId")
    participants: Tuple[str, ...] = ()
    connection_id: Optional[str] = Field(None, alias="connectionId")
    from_id: str = Field(..., alias="fromId")
    type: MessageType
    data: Optional[MessageData] = None
    created_at: Timestamp = Field(..., alias="createdAt")
    updated_at: Optional[Timestamp] = Field(None, alias="updatedAt")
    deleted_at: Optional[Timestamp] = Field(None, alias="deletedAt")

    model_config = {"frozen": True, "populate_by_name": True}

    @property
    def effective_at(self) -> datetime:
        """Latest of createdAt, updatedAt and deletedAt."""
        stamps = [self.created_at]
        if self.updated_at is not None:
            stamps.append(self.updated_at)
        if self.deleted_at is not None:
            stamps.append(self.deleted_at)
        return max(stamps)


class MessagePage(BaseModel):
    """A message timeline slice plus the total the server reports for it."""

    messages: List[Message] = []
    total: int = 0
