"""Ledger events - Fire-and-forget notifications for external observers.

Observers (live dashboards, websocket fan-out, cache invalidation) subscribe
to an event name. Publishing never raises: an observer failure is logged and
the remaining observers still run.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

logger = logging.getLogger(__name__)

INVESTMENT_CREATED = "investment.created"
COMPANY_UPDATED = "company.updated"
MILESTONE_VERIFIED = "milestone.verified"


@dataclass
class LedgerEvent:
    """A ledger change, published after the transaction committed."""

    name: str
    payload: dict[str, Any]
    occurred_at: datetime = field(default_factory=datetime.utcnow)


Observer = Callable[[LedgerEvent], None]


class EventBus:
    """In-process publish/subscribe for ledger events.

    Example:
        bus = EventBus()
        bus.subscribe(INVESTMENT_CREATED, lambda event: print(event.payload))
    """

    def __init__(self):
        self._observers: dict[str, list[Observer]] = defaultdict(list)

    def subscribe(self, name: str, observer: Observer) -> None:
        self._observers[name].append(observer)

    def unsubscribe(self, name: str, observer: Observer) -> None:
        if observer in self._observers.get(name, []):
            self._observers[name].remove(observer)

    def publish(self, name: str, payload: dict[str, Any]) -> LedgerEvent:
        """Deliver an event to every observer of ``name``.

        Returns:
            The published event
        """
        event = LedgerEvent(name=name, payload=payload)
        for observer in list(self._observers.get(name, [])):
            try:
                observer(event)
            except Exception as e:
                logger.error(f"Observer {observer!r} failed on {name}: {e}")
        return event
