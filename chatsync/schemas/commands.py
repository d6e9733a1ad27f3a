import json
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from chatsync.schemas.message import FileData, MessageType, TextData


class LoadData(BaseModel):

    size: int
    exclude_ids: Optional[List[str]] = Field(None, alias="excludeIds")
    ids: Optional[List[str]] = None

    model_config = {"populate_by_name": True}


class JoinData(BaseModel):

    conversation_id: Optional[str] = Field(None, alias="conversationId")
    title: Optional[str] = None
    messages_size: int = Field(..., alias="messagesSize")
    participants: Optional[List[str]] = None

    model_config = {"populate_by_name": True}


class UpdateData(BaseModel):

    conversation_id: str = Field(..., alias="conversationId")
    title: Optional[str] = None
    participants: Optional[List[str]] = None

    model_config = {"populate_by_name": True}


class ConversationRef(BaseModel):

    conversation_id: str = Field(..., alias="conversationId")

    model_config = {"populate_by_name": True}


class MessageUpdateData(BaseModel):

    message_id: str = Field(..., alias="messageId")
    text: Optional[str] = None
    link: Optional[str] = None
    name: Optional[str] = None
    type: Optional[str] = None
    size: Optional[int] = None

    model_config = {"populate_by_name": True}


class MessageRef(BaseModel):

    message_id: str = Field(..., alias="messageId")

    model_config = {"populate_by_name": True}


class LoadMessagesData(BaseModel):

    size: int
    before: Optional[datetime] = None
    exclude_ids: Optional[List[str]] = Field(None, alias="excludeIds")

    model_config = {"populate_by_name": True}


class Command(BaseModel):
    """An outbound `{type, data}` frame."""

    type: str
    data: Optional[BaseModel] = None

    def encode(self) -> str:
        payload: dict = {"type": self.type}
        if self.data is not None:
            payload["data"] = self.data.model_dump(mode="json", by_alias=True, exclude_none=True)
        return json.dumps(payload)


def load(size: int, exclude_ids: Optional[List[str]] = None, ids: Optional[List[str]] = None) -> Command:
    return Command(type="load", data=LoadData(size=size, exclude_ids=exclude_ids, ids=ids))


def watch() -> Command:
    return Command(type="watch")


def join(
    messages_size: int,
    conversation_id: Optional[str] = None,
    participants: Optional[List[str]] = None,
    title: Optional[str] = None,
) -> Command:
    return Command(
        type="join",
        data=JoinData(conversation_id=conversation_id, title=title, messages_size=messages_size, participants=participants),
    )


def update(conversation_id: str, participants: Optional[List[str]] = None, title: Optional[str] = None) -> Command:
    return Command(type="update", data=UpdateData(conversation_id=conversation_id, title=title, participants=participants))


def close(conversation_id: str) -> Command:
    return Command(type="close", data=ConversationRef(conversation_id=conversation_id))


def delete(conversation_id: str) -> Command:
    return Command(type="delete", data=ConversationRef(conversation_id=conversation_id))


def message_update(message_id: str, data: TextData | FileData) -> Command:
    return Command(type="message-update", data=MessageUpdateData(message_id=message_id, **data.model_dump()))


def message_delete(message_id: str) -> Command:
    return Command(type="message-delete", data=MessageRef(message_id=message_id))


def load_messages(size: int, before: Optional[datetime] = None, exclude_ids: Optional[List[str]] = None) -> Command:
    return Command(type="load-messages", data=LoadMessagesData(size=size, before=before, exclude_ids=exclude_ids))


def send(message_type: MessageType, data: TextData | FileData) -> Command:
    return Command(type=message_type, data=data)
