import logging
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, Sequence, Tuple, TypeVar

from chatsync.schemas.commands import Command
from chatsync.utils.dispatcher import EventDispatcher
from chatsync.utils.mutation_guard import MutationGuard


logger = logging.getLogger(__name__)

S = TypeVar("S")
T = TypeVar("T")

Listener = Callable[[Any], None]
CommandSender = Callable[[Command], None]


def replace_at(items: Tuple[T, ...], index: int, item: T) -> Tuple[T, ...]:
    return items[:index] + (item,) + items[index + 1:]


def find_index(items: Sequence[Any], entity_id: Optional[str]) -> int:
    if entity_id is None:
        return -1
    for i, item in enumerate(items):
        if item.id == entity_id:
            return i
    return -1


def merge_page(
    held: Tuple[T, ...],
    loaded: Sequence[T],
    count: int,
    key: Callable[[T], Optional[str]] = lambda item: item.id,  # type: ignore[attr-defined]
) -> Tuple[Tuple[T, ...], int]:
    """Prepend a backward page to what is already held.

    Returns the merged entries and the new total. Entries whose id is already
    held are dropped; an empty page or a zero count pins the total to what is
    loaded, which tells callers there is nothing more to fetch.
    """
    known = {key(item) for item in held if key(item) is not None}
    fresh = tuple(item for item in loaded if key(item) is None or key(item) not in known)

    if not loaded or not count:
        merged = fresh + held
        return merged, len(merged)

    if not held:
        return fresh, max(count, len(fresh))

    merged = fresh + held
    return merged, max(len(held) + count, len(merged))


class SyncStore(Generic[S]):
    """Base for the synchronizers: one state value, replaced on every change.

    Subclasses map event types to handlers in ``_handlers``; ``apply`` is the
    callback registered on the dispatcher.
    """

    def __init__(self, dispatcher: EventDispatcher, state: S) -> None:
        self._dispatcher = dispatcher
        self._state = state
        self._empty = state
        self._listeners: List[Listener] = []
        self.guard = MutationGuard()

    @property
    def snapshot(self) -> S:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return unsubscribe

    def attach(self) -> None:
        self._dispatcher.register(self.apply)

    def close(self) -> None:
        self._dispatcher.unregister(self.apply)
        self.guard.discard()

    def reset(self) -> None:
        self.guard.discard()
        self._commit(self._empty)

    def apply(self, event: Any) -> None:
        handler = self._handlers().get(getattr(event, "type", None))
        if handler is None:
            return
        handler(event)

    def mark_pending(self, entity_id: str) -> None:
        self.guard.mark(entity_id, dict(self._entities()).get(entity_id))

    def is_pending(self, entity_id: Optional[str]) -> bool:
        return self.guard.is_pending(entity_id)

    def clear_pending(self, entity_id: str) -> None:
        self.guard.clear(entity_id)

    def _handlers(self) -> Dict[str, Callable[[Any], None]]:
        raise NotImplementedError

    def _entities(self) -> Iterable[Tuple[str, Any]]:
        raise NotImplementedError

    def _commit(self, state: S) -> None:
        if state is self._state:
            return
        self._state = state
        self.guard.refresh(self._entities())
        for listener in list(self._listeners):
            listener(state)
