from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable, Sequence
from typing import Any

from sqlmodel import Session

from app.domain.models import EventEnvelope, EventRecord
from app.infra.db import engine

logger = logging.getLogger(__name__)

EventHandler = Callable[[EventEnvelope], None]


def _to_record(event: EventEnvelope) -> EventRecord:
    return EventRecord(
        event_id=event.event_id,
        event_type=event.event_type,
        ts=event.ts,
        actor_id=event.actor_id,
        correlation_id=event.correlation_id,
        payload=event.payload,
    )


class EventBus:
    """Stores envelopes in the ``events`` table, then fans them out in-process.

    Subscribing to ``"*"`` receives every event type.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        self._subscribers[event_type].append(handler)

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        if event_type in self._subscribers and handler in self._subscribers[event_type]:
            self._subscribers[event_type].remove(handler)

    def publish(self, event: EventEnvelope, session: Session | None = None) -> None:
        self.publish_many([event], session=session)

    def publish_many(self, batch: Sequence[EventEnvelope], session: Session | None = None) -> None:
        """Persist ``batch`` together, then dispatch in order.

        With an external ``session`` the caller owns the commit.
        """
        if not batch:
            return
        if session is None:
            with Session(engine) as own_session:
                own_session.add_all([_to_record(event) for event in batch])
                own_session.commit()
        else:
            session.add_all([_to_record(event) for event in batch])

        for event in batch:
            logger.debug("published %s %s", event.event_type, event.event_id)
            handlers = [*self._subscribers.get(event.event_type, []), *self._subscribers.get("*", [])]
            for handler in handlers:
                handler(event)

    def publish_dict(
        self,
        event_type: str,
        payload: dict[str, Any],
        *,
        actor_id: str | None = None,
        correlation_id: str | None = None,
    ) -> EventEnvelope:
        event = EventEnvelope(
            event_type=event_type,
            actor_id=actor_id,
            correlation_id=correlation_id,
            payload=payload,
        )
        self.publish(event)
        return event


event_bus = EventBus()
