import logging
from typing import Any, Callable, List


logger = logging.getLogger(__name__)

EventCallback = Callable[[Any], None]


class EventDispatcher:
    """Fans each decoded server event out to the registered callbacks.

    Owned by one connection; callbacks run synchronously, in registration order.
    """

    def __init__(self) -> None:
        self._callbacks: List[EventCallback] = []

    def register(self, callback: EventCallback) -> None:
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister(self, callback: EventCallback) -> None:
        try:
            self._callbacks.remove(callback)
        except ValueError:
            pass

    def dispatch(self, event: Any) -> None:
        # iterate a copy: a callback removed mid-pass still gets this event
        for callback in list(self._callbacks):
            try:
                callback(event)
            except Exception:
                logger.exception("Event subscriber %r failed on %s", callback, getattr(event, "type", event))

    def clear(self) -> None:
        self._callbacks.clear()

    def __len__(self) -> int:
        return len(self._callbacks)
