# src/infrastructure/repositories/outbox_repository.py

import json
import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from src.domain.events import DomainEvent
from src.infrastructure.db.models import OutboxEvent
from src.infrastructure.db.session import get_db_session

logger = logging.getLogger(__name__)


def _add_outbox_event(
    db: Session,
    aggregate_type: str,
    aggregate_id: str,
    event_type: str,
    payload: dict,
    dedupe_key: str,
) -> None:
    existing = db.execute(
        select(OutboxEvent).where(OutboxEvent.dedupe_key == dedupe_key)
    ).scalar_one_or_none()
    if existing:
        return

    db.add(
        OutboxEvent(
            aggregate_type=aggregate_type,
            aggregate_id=aggregate_id,
            event_type=event_type,
            payload=json.dumps(payload, sort_keys=True),
            dedupe_key=dedupe_key,
            status="PENDING",
            attempts=0,
        )
    )


class OutboxEventPublisher:
    """
    Writes domain events to the outbox table. An external dispatcher
    reads PENDING rows and marks them published once delivered.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def publish(self, event: DomainEvent) -> None:
        with get_db_session(self._session_factory) as db:
            _add_outbox_event(
                db,
                aggregate_type="booking",
                aggregate_id=event.booking_id,
                event_type=event.event_type,
                payload=event.to_dict(),
                dedupe_key=event.dedupe_key,
            )
        logger.info("Queued %s for booking %s", event.event_type, event.booking_id)

    def list_events(self, status: str | None = None, limit: int = 100) -> list[OutboxEvent]:
        stmt = select(OutboxEvent).order_by(OutboxEvent.created_at).limit(limit)
        if status:
            stmt = stmt.where(OutboxEvent.status == status)
        with get_db_session(self._session_factory) as db:
            return list(db.execute(stmt).scalars().all())

    def mark_published(self, event_id: str) -> OutboxEvent | None:
        with get_db_session(self._session_factory) as db:
            event = db.get(OutboxEvent, event_id)
            if event is None:
                return None
            event.status = "PUBLISHED"
            event.attempts += 1
            event.published_at = datetime.now(timezone.utc)
            return event
