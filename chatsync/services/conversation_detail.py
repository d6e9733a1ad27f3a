import logging
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from chatsync.core.config import settings
from chatsync.schemas import commands
from chatsync.schemas.conversation import Conversation, ConversationDetail
from chatsync.schemas.events import (
    ConversationEvent,
    HeaderMutationEvent,
    JoinedEvent,
    LeftEvent,
    LoadedMessagesEvent,
    MessageDeletedEvent,
    MessageMutationEvent,
    MessageUpdatedEvent,
    NewMessageEvent,
    PresenceEvent,
)
from chatsync.schemas.message import FileData, Message, TextData
from chatsync.services.conversation_list import apply_header_mutation
from chatsync.services.store import CommandSender, SyncStore, find_index, merge_page, replace_at
from chatsync.utils.dispatcher import EventDispatcher


logger = logging.getLogger(__name__)

FILE_FIELDS = ("link", "name", "type", "size")


def apply_message_mutation(message: Message, event: MessageMutationEvent) -> Message:
    """Return a copy of ``message`` with a message-updated/message-deleted event applied."""
    if isinstance(event, MessageDeletedEvent):
        # data is kept so a deleted message can still be shown as such
        return message.model_copy(update={"deleted_at": event.data.deleted_at})

    if isinstance(event, MessageUpdatedEvent):
        edit = event.data
        if message.type == "file":
            current = message.data if isinstance(message.data, FileData) else None
            fields = {}
            for name in FILE_FIELDS:
                value = getattr(edit, name)
                if value is None and current is not None:
                    value = getattr(current, name)
                fields[name] = value
            data = FileData.model_construct(**fields)
        else:
            text = edit.text
            if text is None and isinstance(message.data, TextData):
                text = message.data.text
            data = TextData.model_construct(text=text)
        return message.model_copy(update={"data": data, "updated_at": edit.updated_at})

    return message


def apply_presence(conversation: Conversation, event: PresenceEvent) -> Conversation:
    """Add or remove ``event.from_id`` in ``connected``; returns the same object on a no-op."""
    connected = conversation.connected or ()
    if isinstance(event, JoinedEvent):
        if event.from_id is None or event.from_id in connected:
            return conversation
        return conversation.model_copy(update={"connected": connected + (event.from_id,)})
    if isinstance(event, LeftEvent):
        if event.from_id not in connected:
            return conversation
        return conversation.model_copy(update={"connected": tuple(i for i in connected if i != event.from_id)})
    return conversation


def page_cursor(messages: Sequence[Message]) -> Tuple[Optional[datetime], List[str]]:
    """Cursor for the next backward page.

    ``before`` is the oldest loaded createdAt; every loaded message stamped with
    exactly that instant is excluded so colliding rows are not fetched again.
    """
    before: Optional[datetime] = None
    exclude_ids: List[str] = []
    for message in messages:
        if before is None:
            before = message.created_at
        elif message.created_at != before:
            break
        if message.id is not None:
            exclude_ids.append(message.id)
    return before, exclude_ids


def detail_from_event(event: ConversationEvent) -> ConversationDetail:
    conversation = Conversation(
        **event.conversation.model_dump(),
        connected=tuple(event.connected) if event.connected is not None else None,
        left_at=event.left_at,
    )
    if event.messages is None:
        return ConversationDetail(conversation=conversation)
    # the server sends newest first
    messages = sorted(reversed(event.messages.messages), key=lambda m: m.created_at)
    return ConversationDetail(conversation=conversation, messages=tuple(messages), total=event.messages.total)


class ConversationDetailSynchronizer(SyncStore[ConversationDetail]):
    """The open conversation: its header and its message timeline."""

    def __init__(
        self,
        dispatcher: EventDispatcher,
        send: CommandSender,
        initial: Optional[ConversationDetail] = None,
        page_size: Optional[int] = None,
    ) -> None:
        super().__init__(dispatcher, ConversationDetail())
        self._send = send
        self._page_size = page_size or settings.MESSAGES_PAGE_SIZE
        if initial is not None:
            self._commit(initial)

    def _handlers(self):
        return {
            "loaded-messages": self._on_loaded_messages_event,
            "text": self._on_new_message_event,
            "file": self._on_new_message_event,
            "message-updated": self.on_message_mutation,
            "message-deleted": self.on_message_mutation,
            "joined": self.on_presence,
            "left": self.on_presence,
            "closed": self.on_conversation_mutation,
            "deleted": self.on_conversation_mutation,
            "updated": self.on_conversation_mutation,
        }

    def _entities(self):
        for message in self._state.messages:
            if message.id is not None:
                yield message.id, message
        if self._state.conversation is not None:
            yield self._state.conversation.id, self._state.conversation

    @property
    def conversation_id(self) -> Optional[str]:
        conversation = self._state.conversation
        return conversation.id if conversation is not None else None

    @property
    def has_more(self) -> bool:
        return self._state.has_more

    def request_page(self) -> None:
        before, exclude_ids = page_cursor(self._state.messages)
        self._send(commands.load_messages(self._page_size, before=before, exclude_ids=exclude_ids or None))

    def _on_loaded_messages_event(self, event: LoadedMessagesEvent) -> None:
        self.on_loaded_messages(event.messages, event.count)

    def on_loaded_messages(self, loaded: Sequence[Message], count: int) -> None:
        own = [m for m in loaded if m.conversation_id == self.conversation_id]
        if loaded and not own:
            logger.debug("Ignoring message page for another conversation")
            return
        merged, total = merge_page(self._state.messages, own, count)
        messages = tuple(sorted(merged, key=lambda m: m.created_at))
        self._commit(self._state.model_copy(update={"messages": messages, "total": total}))

    def _on_new_message_event(self, event: NewMessageEvent) -> None:
        self.on_live_message(event.to_message())

    def on_live_message(self, msg: Message) -> None:
        if msg.conversation_id != self.conversation_id:
            return
        messages = self._state.messages

        index = len(messages)
        while index > 0 and messages[index - 1].created_at >= msg.created_at:
            if msg.id is not None and messages[index - 1].id == msg.id:
                logger.debug("Dropping duplicate delivery of message %s", msg.id)
                return
            index -= 1

        # keep arrival order among equal timestamps
        position = len(messages)
        while position > 0 and messages[position - 1].created_at > msg.created_at:
            position -= 1

        total = (self._state.total or 0) + 1
        self._commit(
            self._state.model_copy(
                update={"messages": messages[:position] + (msg,) + messages[position:], "total": total}
            )
        )

    def on_message_mutation(self, event: MessageMutationEvent) -> None:
        if event.conversation_ref != self.conversation_id:
            return
        messages = self._state.messages
        index = find_index(messages, event.data.message_id)
        if index < 0:
            logger.debug("Ignoring %s for unknown message %s", event.type, event.data.message_id)
            return
        updated = apply_message_mutation(messages[index], event)
        self._commit(self._state.model_copy(update={"messages": replace_at(messages, index, updated)}))

    def on_presence(self, event: PresenceEvent) -> None:
        conversation = self._state.conversation
        if conversation is None or event.conversation_ref != conversation.id:
            return
        updated = apply_presence(conversation, event)
        if updated is not conversation:
            self._commit(self._state.model_copy(update={"conversation": updated}))

    def on_conversation_mutation(self, event: HeaderMutationEvent) -> None:
        conversation = self._state.conversation
        if conversation is None or event.conversation_ref != conversation.id:
            return
        self._commit(self._state.model_copy(update={"conversation": apply_header_mutation(conversation, event)}))
