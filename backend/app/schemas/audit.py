import uuid
from datetime import datetime

from pydantic import BaseModel


class AuditEventResponse(BaseModel):
    id: uuid.UUID
    event_type: str
    entity_type: str | None = None
    entity_id: uuid.UUID | None = None
    batch_id: uuid.UUID | None = None
    action: str | None = None
    actor: str | None = None
    actor_type: str | None = None
    event_data: dict | None = None
    previous_state: dict | None = None
    new_state: dict | None = None
    note: str | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class BatchAuditTrail(BaseModel):
    """Every audited change to a batch and its items, oldest first."""

    batch_id: uuid.UUID
    total: int
    by_event_type: dict[str, int] = {}
    events: list[AuditEventResponse] = []
