"""AuditService — immutable append-only audit log.

Static methods so any module can call AuditService.log_event() directly
without DI wiring — avoids circular imports.
"""

import uuid
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit import AuditEvent


def _jsonable(value):
    """Make Decimals, enums and UUIDs in a state dict safe for the JSON column."""
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if hasattr(value, "value") and isinstance(getattr(value, "value"), str):
        return value.value
    return value


class AuditService:
    """Static audit event logger and query interface."""

    @staticmethod
    async def log_event(
        db: AsyncSession,
        *,
        event_type: str,
        entity_type: str | None = None,
        entity_id: uuid.UUID | None = None,
        batch_id: uuid.UUID | None = None,
        action: str | None = None,
        actor: str = "system",
        actor_type: str = "system",
        event_data: dict | None = None,
        previous_state: dict | None = None,
        new_state: dict | None = None,
        note: str | None = None,
    ) -> AuditEvent:
        """Append an immutable audit event."""
        event = AuditEvent(
            id=uuid.uuid4(),
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            batch_id=batch_id,
            action=action or event_type,
            actor=actor,
            actor_type=actor_type,
            event_data=_jsonable(event_data),
            previous_state=_jsonable(previous_state),
            new_state=_jsonable(new_state),
            note=note,
        )
        db.add(event)
        await db.flush()
        return event

    @staticmethod
    async def get_entity_events(
        db: AsyncSession,
        entity_id: uuid.UUID,
        event_type: str | None = None,
    ) -> list[AuditEvent]:
        """All events for one entity, oldest first."""
        query = select(AuditEvent).where(AuditEvent.entity_id == entity_id)
        if event_type:
            query = query.where(AuditEvent.event_type == event_type)
        result = await db.execute(query.order_by(AuditEvent.created_at.asc()))
        return list(result.scalars().all())

    @staticmethod
    async def get_batch_trail(
        db: AsyncSession,
        batch_id: uuid.UUID,
        event_type: str | None = None,
    ) -> list[AuditEvent]:
        """Events for a batch and any of its items, oldest first."""
        query = select(AuditEvent).where(AuditEvent.batch_id == batch_id)
        if event_type:
            query = query.where(AuditEvent.event_type == event_type)
        result = await db.execute(query.order_by(AuditEvent.created_at.asc(), AuditEvent.event_type))
        return list(result.scalars().all())
