import logging
from typing import Any, Callable, List, Optional, Protocol, Union

from chatsync.core.config import Settings, settings as default_settings
from chatsync.core.errors import EventDecodeError, NotConnectedError
from chatsync.schemas import commands
from chatsync.schemas.commands import Command
from chatsync.schemas.events import ConnectionEvent, ConversationEvent, HelloEvent, WatchingEvent, decode_event
from chatsync.schemas.message import FileData, MessageType, TextData
from chatsync.services.conversation_detail import ConversationDetailSynchronizer, detail_from_event
from chatsync.services.conversation_list import ConversationListSynchronizer, conversations_from_page
from chatsync.services.watch import WatchSynchronizer
from chatsync.utils.dispatcher import EventDispatcher


logger = logging.getLogger(__name__)


class Transport(Protocol):

    def send_text(self, data: str) -> None:
        ...


class SyncSession:
    """Everything that lives for one connection.

    Owns the dispatcher, builds the synchronizers from the snapshot events the
    server sends, and turns user intents into outbound commands.
    """

    def __init__(self, transport: Optional[Transport] = None, user_id: Optional[str] = None, config: Optional[Settings] = None) -> None:
        self.config = config or default_settings
        self.dispatcher = EventDispatcher()
        self.transport = transport
        self.user_id = user_id
        self.connected = False
        self.conversations: Optional[ConversationListSynchronizer] = None
        self.conversation: Optional[ConversationDetailSynchronizer] = None
        self.watching: Optional[WatchSynchronizer] = None
        self._listeners: List[Callable[["SyncSession"], None]] = []

    def subscribe(self, listener: Callable[["SyncSession"], None]) -> Callable[[], None]:
        """Be told when a synchronizer is created, replaced or dropped."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return unsubscribe

    # inbound

    def receive_text(self, raw: Union[str, bytes]) -> Optional[Any]:
        try:
            event = decode_event(raw)
        except EventDecodeError as exc:
            logger.warning("Dropping server frame: %s", exc.message)
            return None
        self.receive(event)
        return event

    def receive(self, event: Any) -> None:
        if isinstance(event, HelloEvent):
            self.connected = True
            self._notify()
        elif isinstance(event, ConnectionEvent):
            self._replace_conversations(
                ConversationListSynchronizer(
                    self.dispatcher,
                    self.send,
                    initial=conversations_from_page(event.conversations),
                    page_size=self.config.CONVERSATIONS_PAGE_SIZE,
                )
            )
        elif isinstance(event, ConversationEvent):
            logger.info("Opened conversation %s", event.conversation.id)
            self._replace_conversation(
                ConversationDetailSynchronizer(
                    self.dispatcher,
                    self.send,
                    initial=detail_from_event(event),
                    page_size=self.config.MESSAGES_PAGE_SIZE,
                )
            )
        elif isinstance(event, WatchingEvent):
            self._replace_watching(
                WatchSynchronizer(
                    self.dispatcher,
                    self.send,
                    self.user_id,
                    initial=conversations_from_page(event.conversations),
                    page_size=self.config.CONVERSATIONS_PAGE_SIZE,
                )
            )

        self.dispatcher.dispatch(event)

    def disconnect(self) -> None:
        """Drop every synchronizer; nothing from this connection survives."""
        for store in (self.conversations, self.conversation, self.watching):
            if store is not None:
                store.reset()
                store.close()
        self.conversations = None
        self.conversation = None
        self.watching = None
        self.dispatcher.clear()
        self.connected = False
        self.user_id = None
        self.transport = None
        logger.info("Session disconnected")
        self._notify()

    # outbound

    def send(self, command: Command) -> None:
        if self.transport is None:
            raise NotConnectedError()
        logger.debug("Sending %s", command.type)
        self.transport.send_text(command.encode())

    def load_more_conversations(self, exclude_ids: Optional[List[str]] = None) -> None:
        if self.conversations is not None:
            self.conversations.request_page(exclude_ids)
        else:
            self.send(commands.load(self.config.CONVERSATIONS_PAGE_SIZE, exclude_ids=exclude_ids))

    def load_more_watching(self, ids: Optional[List[str]] = None, exclude_ids: Optional[List[str]] = None) -> None:
        if self.watching is not None:
            self.watching.request_page(ids=ids, exclude_ids=exclude_ids)
        else:
            self.send(commands.load(self.config.CONVERSATIONS_PAGE_SIZE, exclude_ids=exclude_ids, ids=ids))

    def load_more_messages(self) -> None:
        if self.conversation is None:
            return
        self.conversation.request_page()

    def watch(self) -> None:
        # the watch list takes over `loaded` pages from here on
        self._replace_conversations(None)
        self.send(commands.watch())

    def join(self, conversation_id: Optional[str] = None, participants: Optional[List[str]] = None, title: Optional[str] = None) -> None:
        if conversation_id is not None:
            self._mark_conversation(conversation_id)
        self.send(
            commands.join(
                self.config.JOIN_MESSAGES_SIZE,
                conversation_id=conversation_id,
                participants=participants,
                title=title,
            )
        )

    def update(self, conversation_id: str, participants: Optional[List[str]] = None, title: Optional[str] = None) -> None:
        self._mark_conversation(conversation_id)
        self.send(commands.update(conversation_id, participants=participants, title=title))

    def close(self, conversation_id: str) -> None:
        self._mark_conversation(conversation_id)
        self.send(commands.close(conversation_id))

    def delete(self, conversation_id: str) -> None:
        self._mark_conversation(conversation_id)
        self.send(commands.delete(conversation_id))

    def message_update(self, message_id: str, data: Union[TextData, FileData]) -> None:
        if self.conversation is not None:
            self.conversation.mark_pending(message_id)
        self.send(commands.message_update(message_id, data))

    def message_delete(self, message_id: str) -> None:
        if self.conversation is not None:
            self.conversation.mark_pending(message_id)
        self.send(commands.message_delete(message_id))

    def send_message(self, message_type: MessageType, data: Union[TextData, FileData]) -> None:
        self.send(commands.send(message_type, data))

    def _mark_conversation(self, conversation_id: str) -> None:
        for store in (self.conversations, self.conversation):
            if store is not None:
                store.mark_pending(conversation_id)

    def _replace_conversations(self, store: Optional[ConversationListSynchronizer]) -> None:
        if self.conversations is not None:
            self.conversations.close()
        self.conversations = store
        if store is not None:
            store.attach()
        self._notify()

    def _replace_conversation(self, store: ConversationDetailSynchronizer) -> None:
        if self.conversation is not None:
            self.conversation.close()
        self.conversation = store
        store.attach()
        # a join is answered by this snapshot, not by a change to the list entry
        if self.conversations is not None and store.conversation_id is not None:
            self.conversations.clear_pending(store.conversation_id)
        self._notify()

    def _replace_watching(self, store: WatchSynchronizer) -> None:
        if self.watching is not None:
            self.watching.close()
        self.watching = store
        store.attach()
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)
