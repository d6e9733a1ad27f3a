from typing import Any, Dict, Iterable, Optional, Tuple


class MutationGuard:
    """Per-entity in-flight flags for submitted mutations.

    A flag is cleared once the owning store holds a different object for that
    entity than the one it held when the mutation was submitted.
    """

    def __init__(self) -> None:
        self._pending: Dict[str, Optional[Any]] = {}

    def mark(self, entity_id: str, current: Optional[Any] = None) -> None:
        self._pending[entity_id] = current

    def is_pending(self, entity_id: Optional[str]) -> bool:
        return entity_id is not None and entity_id in self._pending

    @property
    def pending(self) -> Tuple[str, ...]:
        return tuple(self._pending)

    def refresh(self, entities: Iterable[Tuple[str, Any]]) -> None:
        """Clear flags whose entity now has a fresh snapshot."""
        if not self._pending:
            return
        held = dict(entities)
        for entity_id, seen in list(self._pending.items()):
            if entity_id in held and held[entity_id] is not seen:
                del self._pending[entity_id]

    def clear(self, entity_id: str) -> None:
        self._pending.pop(entity_id, None)

    def discard(self) -> None:
        self._pending.clear()
