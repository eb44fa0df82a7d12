"""Slot service - candidate generation and conflict filtering.

Handles:
- Slot generation from a working-hours window
- Conflict filtering against existing appointments and "now"
- The read-only availability query exposed to the booking UI

The availability query is only a hint for the UI. The booking write path
re-runs the conflict filter inside its own transaction.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Iterable, NamedTuple, Sequence
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from flexbook.core.config import settings
from flexbook.db.enums import AppointmentStatus
from flexbook.db.models import Appointment
from flexbook.services import tenant_service
from flexbook.services.working_hours import DayWindow, resolve_working_hours
from flexbook.utils.datetime_utils import combine_local, get_timezone, utcnow


# =============================================================================
# Types
# =============================================================================

class BookedSlot(NamedTuple):
    """Minimal view of an existing appointment for conflict checks."""
    scheduled_at: datetime
    status: str
    professional_id: UUID | None


# =============================================================================
# Slot Generation
# =============================================================================

def generate_slots(
    window: DayWindow | None,
    granularity_minutes: int = 30,
) -> list[time]:
    """
    Candidate start times for a window.

    Starts at window.start and steps by granularity_minutes while the start
    is strictly before window.end. Only the start is checked, so a service
    may run past closing.
    """
    if granularity_minutes <= 0:
        raise ValueError("granularity_minutes must be positive")
    if window is None:
        return []

    # Any fixed date works, only the time-of-day is kept
    anchor = date(2000, 1, 1)
    current = datetime.combine(anchor, window.start)
    end = datetime.combine(anchor, window.end)
    step = timedelta(minutes=granularity_minutes)

    slots: list[time] = []
    while current < end:
        slots.append(current.time())
        current += step
    return slots


# =============================================================================
# Conflict Filter
# =============================================================================

def _slot_key(value: time) -> time:
    return value.replace(second=0, microsecond=0)


def occupied_times(
    day: date,
    appointments: Iterable[BookedSlot | Appointment],
    professional_id: UUID | None,
    tz: ZoneInfo,
) -> set[time]:
    """Local start times-of-day already taken on ``day``."""
    occupied: set[time] = set()
    for appt in appointments:
        if appt.status == AppointmentStatus.CANCELED.value:
            continue
        if professional_id is not None and appt.professional_id != professional_id:
            continue
        local_start = appt.scheduled_at.astimezone(tz)
        if local_start.date() != day:
            continue
        occupied.add(_slot_key(local_start.time()))
    return occupied


def filter_available_slots(
    candidates: Sequence[time],
    day: date,
    appointments: Iterable[BookedSlot | Appointment],
    professional_id: UUID | None,
    now: datetime,
    tz: ZoneInfo,
) -> list[time]:
    """
    Remove occupied and past slots, keeping chronological order.

    - Without a professional filter every appointment of the day occupies its slot.
    - On the current local date a slot at or before now's time-of-day is past.
    - Every slot of an earlier date is past.
    """
    occupied = occupied_times(day, appointments, professional_id, tz)
    local_now = now.astimezone(tz)
    today = local_now.date()
    if day < today:
        return []

    available: list[time] = []
    for slot in candidates:
        if _slot_key(slot) in occupied:
            continue
        if day == today and slot <= local_now.time():
            continue
        available.append(slot)
    return available


# =============================================================================
# Availability Query
# =============================================================================

def get_day_appointments(
    db: Session,
    tenant_id: UUID,
    day: date,
    tz: ZoneInfo,
    professional_id: UUID | None = None,
    exclude_appointment_id: UUID | None = None,
) -> list[Appointment]:
    """Non-canceled appointments starting on the local date ``day``."""
    start_dt = combine_local(day, time.min, tz)
    end_dt = combine_local(day + timedelta(days=1), time.min, tz)

    query = db.query(Appointment).filter(
        Appointment.tenant_id == tenant_id,
        Appointment.scheduled_at >= start_dt,
        Appointment.scheduled_at < end_dt,
        Appointment.status != AppointmentStatus.CANCELED.value,
    )
    if professional_id is not None:
        query = query.filter(Appointment.professional_id == professional_id)
    if exclude_appointment_id is not None:
        query = query.filter(Appointment.id != exclude_appointment_id)
    return query.order_by(Appointment.scheduled_at).all()


def get_available_slots(
    db: Session,
    tenant_id: UUID,
    day: date,
    professional_id: UUID | None = None,
    now: datetime | None = None,
    granularity_minutes: int | None = None,
) -> list[time]:
    """
    Available start times for a tenant/date, optionally for one professional.

    Resolves working hours, generates candidates and removes occupied and
    past ones. Read-only; calling it twice without bookings in between
    gives the same result.
    """
    now = now or utcnow()
    granularity = granularity_minutes or settings.SLOT_GRANULARITY_MINUTES

    tenant = tenant_service.require_tenant(db, tenant_id)
    config = tenant_service.load_config(tenant)
    tz = get_timezone(tenant.timezone)

    entries = None
    if professional_id is not None:
        professional = tenant_service.require_professional(db, tenant_id, professional_id)
        entries = professional.working_hours

    window = resolve_working_hours(config, entries, day)
    candidates = generate_slots(window, granularity)
    if not candidates:
        return []

    appointments = get_day_appointments(db, tenant_id, day, tz, professional_id=professional_id)
    return filter_available_slots(candidates, day, appointments, professional_id, now, tz)
