"""
Event Logger Service - change notification for store consumers.

Every successful store mutation is published as a ChangeEvent. Presentation
code subscribes to re-render; the logger also keeps a bounded in-memory
activity history that screens can show as "recent activity".
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from domain.entities import utcnow

logger = logging.getLogger(__name__)

# Event types for different operations
EVENT_TYPES = {
    'CREATED': 'Entity was created',
    'UPDATED': 'Entity was updated',
    'DELETED': 'Entity was deleted',
    'STATUS_CHANGED': 'Status was changed',
    'PAYMENT_RECEIVED': 'Invoice was paid',
    'PAYMENT_REVERSED': 'Invoice payment was reversed',
    'RELOADED': 'All collections were reloaded from storage',
}


@dataclass(frozen=True)
class ChangeEvent:
    kind: str
    event_type: str
    entity_id: Optional[str] = None
    description: str = ''
    metadata: Dict = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self):
        return {
            'kind': self.kind,
            'event_type': self.event_type,
            'entity_id': self.entity_id,
            'description': self.description,
            'metadata': dict(self.metadata),
            'timestamp': self.timestamp.isoformat(),
        }


Subscriber = Callable[[ChangeEvent], None]


class EventLogger:
    """Publishes change events to subscribers and records recent activity."""

    def __init__(self, history_size: int = 200):
        self._subscribers: List[Subscriber] = []
        self._history = deque(maxlen=history_size)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback for every change event.

        Returns:
            A function that removes the subscription when called
        """
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def log(self, kind: str, event_type: str, entity_id: str = None,
            description: str = None, metadata: Dict = None) -> ChangeEvent:
        """
        Record an event and notify subscribers.

        A failing subscriber is logged and skipped; it never undoes a change
        that has already been persisted.
        """
        event = ChangeEvent(
            kind=kind,
            event_type=event_type,
            entity_id=entity_id,
            description=description or EVENT_TYPES.get(event_type, event_type),
            metadata=metadata or {},
        )
        self._history.append(event)
        logger.debug(f"Event logged: {event_type} on {kind}:{entity_id}")

        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception(f"Subscriber {callback!r} failed on {event_type} {kind}")
        return event

    def log_create(self, kind: str, entity_id: str) -> ChangeEvent:
        return self.log(kind, 'CREATED', entity_id, f"New {kind} record created")

    def log_update(self, kind: str, entity_id: str) -> ChangeEvent:
        return self.log(kind, 'UPDATED', entity_id)

    def log_delete(self, kind: str, entity_id: str) -> ChangeEvent:
        return self.log(kind, 'DELETED', entity_id)

    def log_status_change(self, kind: str, entity_id: str,
                          old_status: str, new_status: str) -> ChangeEvent:
        """Log a status change event."""
        return self.log(
            kind, 'STATUS_CHANGED', entity_id,
            description=f"{kind} status changed from '{old_status}' to '{new_status}'",
            metadata={'old_status': old_status, 'new_status': new_status},
        )

    def get_recent_events(self, kind: str = None, event_types: List[str] = None,
                          limit: int = 50) -> List[ChangeEvent]:
        """Most recent events first, optionally filtered."""
        events = [
            e for e in reversed(self._history)
            if (kind is None or e.kind == kind)
            and (not event_types or e.event_type in event_types)
        ]
        return events[:limit]

    def get_entity_history(self, kind: str, entity_id: str) -> List[ChangeEvent]:
        """Get the event history for a specific record, newest first."""
        return [e for e in reversed(self._history) if e.kind == kind and e.entity_id == entity_id]
