import logging
from typing import Any, List, Optional, Sequence, Set

from chatsync.core.config import settings
from chatsync.schemas import commands
from chatsync.schemas.conversation import Conversation, ConversationList
from chatsync.schemas.events import (
    ClosedEvent,
    DeletedEvent,
    EnvelopeEvent,
    LoadedEvent,
    MessageDeletedEvent,
    MessageUpdatedEvent,
    UpdatedEvent,
)
from chatsync.services.conversation_detail import apply_message_mutation, apply_presence
from chatsync.services.conversation_list import apply_header_mutation
from chatsync.services.store import CommandSender, SyncStore, find_index, merge_page, replace_at
from chatsync.utils.dispatcher import EventDispatcher


logger = logging.getLogger(__name__)


def refresh_latest_message(conversation: Conversation, event: EnvelopeEvent) -> Conversation:
    """Last-writer-wins update of ``latest_message``.

    The event wins when its own timestamp is not older than the newest stamp
    (created, updated or deleted) already recorded on the held latest message.
    """
    latest = conversation.latest_message

    if isinstance(event, (MessageUpdatedEvent, MessageDeletedEvent)):
        if latest is None or latest.id != event.data.message_id:
            return conversation
        stamp = event.data.updated_at if isinstance(event, MessageUpdatedEvent) else event.data.deleted_at
        if stamp < latest.effective_at:
            return conversation
        return conversation.model_copy(update={"latest_message": apply_message_mutation(latest, event)})

    message = event.to_message()  # type: ignore[attr-defined]
    if latest is not None:
        if message.effective_at < latest.effective_at:
            return conversation
        # a replayed push of the held message
        if message.id is not None and message.id == latest.id and message.effective_at == latest.effective_at:
            return conversation
    return conversation.model_copy(update={"latest_message": message})


class WatchSynchronizer(SyncStore[ConversationList]):
    """Observed conversations, pulled in one by one as events mention them."""

    def __init__(
        self,
        dispatcher: EventDispatcher,
        send: CommandSender,
        user_id: Optional[str],
        initial: Optional[ConversationList] = None,
        page_size: Optional[int] = None,
    ) -> None:
        super().__init__(dispatcher, ConversationList())
        self._send = send
        self._user_id = user_id
        self._page_size = page_size or settings.CONVERSATIONS_PAGE_SIZE
        self._backfilling: Set[str] = set()
        if initial is not None:
            self._commit(initial)

    def _handlers(self):
        handlers = {"loaded": self._on_loaded_event}
        for name in ("closed", "deleted", "updated", "joined", "left", "message-deleted", "message-updated", "text", "file"):
            handlers[name] = self._on_conversation_event
        return handlers

    def _entities(self):
        return ((c.id, c) for c in self._state.conversations)

    @property
    def has_more(self) -> bool:
        return self._state.has_more

    @property
    def backfilling(self) -> Set[str]:
        return set(self._backfilling)

    def request_page(self, ids: Optional[List[str]] = None, exclude_ids: Optional[List[str]] = None) -> None:
        if ids is None and exclude_ids is None:
            exclude_ids = [c.id for c in self._state.conversations]
        size = len(ids) if ids else self._page_size
        self._send(commands.load(size, exclude_ids=exclude_ids, ids=ids))

    def reset(self) -> None:
        self._backfilling.clear()
        super().reset()

    def _on_loaded_event(self, event: LoadedEvent) -> None:
        self.on_loaded([item.to_conversation() for item in event.conversations], event.count)

    def on_loaded(self, loaded: Sequence[Conversation], count: int) -> None:
        if not loaded:
            self._backfilling.clear()
        for conversation in loaded:
            self._backfilling.discard(conversation.id)
        merged, total = merge_page(self._state.conversations, loaded, count)
        self._commit(self._state.model_copy(update={"conversations": merged, "total": total}))

    def _on_conversation_event(self, event: Any) -> None:
        conversation_id = event.conversation_ref
        if not conversation_id:
            return
        conversations = self._state.conversations
        index = find_index(conversations, conversation_id)
        if index < 0:
            self._maybe_backfill(event, conversation_id)
            return

        conversation = conversations[index]
        if isinstance(event, (ClosedEvent, DeletedEvent, UpdatedEvent)):
            updated = apply_header_mutation(conversation, event)
        elif event.type in ("joined", "left"):
            updated = apply_presence(conversation, event)
        else:
            updated = refresh_latest_message(conversation, event)

        if updated is conversation:
            logger.debug("Ignoring stale or no-op %s for conversation %s", event.type, conversation_id)
            return
        self._commit(self._state.model_copy(update={"conversations": replace_at(conversations, index, updated)}))

    def _maybe_backfill(self, event: EnvelopeEvent, conversation_id: str) -> None:
        if event.participants is not None and self._user_id not in event.participants:
            return
        if conversation_id in self._backfilling:
            return
        logger.info("Backfilling watched conversation %s", conversation_id)
        self._backfilling.add(conversation_id)
        self.request_page(ids=[conversation_id])
