# Overview: In-process domain event bus; decouples state changes from side effects.

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from threading import RLock
from datetime import datetime
from typing import Callable, Dict, List, Type

from .time_utils import utcnow


EventHandler = Callable[["DomainEvent"], None]


@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    occurred_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True, kw_only=True)
class RequestSubmitted(DomainEvent):
    request_id: int
    request_number: str


@dataclass(frozen=True, kw_only=True)
class RequestStatusChanged(DomainEvent):
    request_id: int
    request_number: str
    previous_status: str
    new_status: str
    actor_user_id: int | None = None
    notes: str | None = None


class EventBus:
    """
    Synchronous publish/subscribe.

    Handlers run after the publishing transaction has committed. A failing
    handler is logged and skipped; it never reaches the publisher.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._handlers: Dict[Type[DomainEvent], List[EventHandler]] = {}
        self._logger = logging.getLogger("proforma.events")

    def subscribe(self, event_type: Type[DomainEvent], handler: EventHandler) -> None:
        with self._lock:
            handlers = self._handlers.setdefault(event_type, [])
            if handler not in handlers:
                handlers.append(handler)

    def publish(self, event: DomainEvent) -> None:
        with self._lock:
            handlers = list(self._handlers.get(type(event), []))
        for handler in handlers:
            try:
                handler(event)
            except Exception:  # noqa: BLE001
                self._logger.exception("event handler failed for %s", type(event).__name__)

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()


_DEFAULT_EVENT_BUS = EventBus()


def get_event_bus() -> EventBus:
    return _DEFAULT_EVENT_BUS
