import logging
from typing import List, Optional, Sequence

from chatsync.core.config import settings
from chatsync.schemas import commands
from chatsync.schemas.conversation import Conversation, ConversationList, ConversationPage
from chatsync.schemas.events import ClosedEvent, DeletedEvent, HeaderMutationEvent, LoadedEvent, UpdatedEvent
from chatsync.services.store import CommandSender, SyncStore, find_index, merge_page, replace_at
from chatsync.utils.dispatcher import EventDispatcher


logger = logging.getLogger(__name__)


def apply_header_mutation(conversation: Conversation, event: HeaderMutationEvent) -> Conversation:
    """Return a copy of ``conversation`` with a closed/deleted/updated event applied."""
    if isinstance(event, ClosedEvent):
        return conversation.model_copy(update={"closed_at": event.data.closed_at})
    if isinstance(event, DeletedEvent):
        return conversation.model_copy(update={"closed_at": event.data.closed_at, "deleted_at": event.data.deleted_at})
    if isinstance(event, UpdatedEvent):
        return conversation.model_copy(
            update={
                "title": event.data.title,
                "participants": event.data.participants,
                "updated_at": event.data.updated_at,
            }
        )
    return conversation


def conversations_from_page(page: Optional[ConversationPage]) -> ConversationList:
    if page is None:
        return ConversationList()
    return ConversationList(
        conversations=tuple(item.to_conversation() for item in page.conversations),
        total=page.total,
    )


class ConversationListSynchronizer(SyncStore[ConversationList]):
    """Conversations the user owns or has joined, loaded page by page."""

    def __init__(
        self,
        dispatcher: EventDispatcher,
        send: CommandSender,
        initial: Optional[ConversationList] = None,
        page_size: Optional[int] = None,
    ) -> None:
        super().__init__(dispatcher, ConversationList())
        self._send = send
        self._page_size = page_size or settings.CONVERSATIONS_PAGE_SIZE
        if initial is not None:
            self._commit(initial)

    def _handlers(self):
        return {
            "loaded": self._on_loaded_event,
            "closed": self.on_mutation,
            "deleted": self.on_mutation,
            "updated": self.on_mutation,
        }

    def _entities(self):
        return ((c.id, c) for c in self._state.conversations)

    @property
    def has_more(self) -> bool:
        return self._state.has_more

    def exclude_ids(self) -> List[str]:
        return [c.id for c in self._state.conversations]

    def request_page(self, exclude_ids: Optional[List[str]] = None) -> None:
        if exclude_ids is None:
            exclude_ids = self.exclude_ids()
        self._send(commands.load(self._page_size, exclude_ids=exclude_ids))

    def _on_loaded_event(self, event: LoadedEvent) -> None:
        self.on_loaded([item.to_conversation() for item in event.conversations], event.count)

    def on_loaded(self, loaded: Sequence[Conversation], count: int) -> None:
        merged, total = merge_page(self._state.conversations, loaded, count)
        logger.debug("Conversation page: %d loaded, count=%d, total now %d", len(loaded), count, total)
        self._commit(self._state.model_copy(update={"conversations": merged, "total": total}))

    def on_mutation(self, event: HeaderMutationEvent) -> None:
        conversations = self._state.conversations
        index = find_index(conversations, event.conversation_ref)
        if index < 0:
            logger.debug("Ignoring %s for unknown conversation %s", event.type, event.conversation_ref)
            return
        updated = apply_header_mutation(conversations[index], event)
        self._commit(self._state.model_copy(update={"conversations": replace_at(conversations, index, updated)}))
