"""
Change feed: pushes full row lists to subscribers after a table changes.

Subscribers always get the complete, position-ordered table; they are expected
to replace their local collection rather than diff it.
"""
import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Rows = List[Dict[str, Any]]


class ChangeFeed:
    """Per-entity subscriber registry."""

    def __init__(self):
        self.subscribers: Dict[str, List[Callable[[Rows], None]]] = {}

    def subscribe(self, entity: str, callback: Callable[[Rows], None]) -> Callable[[], None]:
        """Register a callback for an entity. Returns an unsubscribe function."""
        if entity not in self.subscribers:
            self.subscribers[entity] = []
        self.subscribers[entity].append(callback)

        def unsubscribe() -> None:
            callbacks = self.subscribers.get(entity, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def has_subscribers(self, entity: str) -> bool:
        return bool(self.subscribers.get(entity))

    def publish(self, entity: str, rows: Rows) -> None:
        """Deliver rows to every subscriber of the entity."""
        for callback in list(self.subscribers.get(entity, [])):
            try:
                callback(rows)
            except Exception as e:
                logger.error(f"Error in {entity} change callback: {e}")
