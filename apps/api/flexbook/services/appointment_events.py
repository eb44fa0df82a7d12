"""Appointment event outbox.

Every booking and status change adds an AppointmentEvent row in the same
transaction as the change. A notification worker outside this service polls
``list_pending_events`` and calls ``mark_dispatched`` once delivered.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from flexbook.db.enums import AppointmentEventType
from flexbook.db.models import Appointment, AppointmentEvent
from flexbook.utils.datetime_utils import utcnow


def record_event(
    db: Session,
    appointment: Appointment,
    event_type: AppointmentEventType,
    previous_status: str | None = None,
) -> AppointmentEvent:
    """Queue an event for the appointment's current status (no commit)."""
    event = AppointmentEvent(
        tenant_id=appointment.tenant_id,
        appointment=appointment,
        event_type=event_type.value,
        status=appointment.status,
        previous_status=previous_status,
    )
    db.add(event)
    return event


def list_pending_events(
    db: Session,
    tenant_id: UUID,
    limit: int = 100,
) -> list[AppointmentEvent]:
    """Undispatched events of a tenant, oldest first."""
    return (
        db.query(AppointmentEvent)
        .filter(
            AppointmentEvent.tenant_id == tenant_id,
            AppointmentEvent.dispatched_at.is_(None),
        )
        .order_by(AppointmentEvent.created_at)
        .limit(limit)
        .all()
    )


def mark_dispatched(db: Session, tenant_id: UUID, event_ids: list[UUID]) -> int:
    """Stamp events as delivered. Returns the number of rows updated."""
    if not event_ids:
        return 0
    updated = (
        db.query(AppointmentEvent)
        .filter(
            AppointmentEvent.tenant_id == tenant_id,
            AppointmentEvent.id.in_(event_ids),
            AppointmentEvent.dispatched_at.is_(None),
        )
        .update({AppointmentEvent.dispatched_at: utcnow()}, synchronize_session=False)
    )
    db.commit()
    return updated
