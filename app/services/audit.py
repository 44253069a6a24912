"""Audit event service for append-only audit logging."""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import audit_logger
from app.models.audit_event import ActorType, AuditEvent


async def write_audit_event(
    session: AsyncSession,
    actor_type: ActorType,
    actor_id: int | None,
    action: str,
    entity_type: str,
    entity_id: int | None,
    metadata: dict[str, Any] | None = None,
    description: str | None = None,
    request_id: str | None = None,
) -> AuditEvent:
    """Add an audit event to the current transaction.

    The event is flushed, not committed, so it lands together with the
    state change it records.

    Args:
        session: Database session
        actor_type: Type of actor (system, user)
        actor_id: Platform user id of the actor
        action: Action performed (e.g. "child_assessment.submitted")
        entity_type: Type of entity affected
        entity_id: ID of the affected entity
        metadata: Additional context as JSON
        description: Human-readable description
        request_id: Request correlation ID

    Returns:
        Created AuditEvent instance
    """
    event = AuditEvent(
        actor_type=actor_type,
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        event_metadata=metadata,
        description=description,
        request_id=request_id,
    )

    session.add(event)
    await session.flush()

    audit_logger.log(
        action=action,
        actor_type=ActorType(actor_type).value,
        actor_id=str(actor_id) if actor_id is not None else "system",
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else "none",
        metadata=metadata,
    )

    return event

