"""Analytics service - dashboard statistics for a tenant.

All windows are computed in the tenant's timezone from an explicit ``now``:
- today: [00:00:00, 23:59:59] of now's local date, completed only
- week: Sunday-start week containing now, completed + confirmed
- month: calendar month of now, completed + confirmed

Read-only; nothing is cached.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session, selectinload

from flexbook.core.config import settings
from flexbook.db.enums import AppointmentStatus
from flexbook.db.models import Appointment, Professional, Service
from flexbook.schemas.analytics import (
    AnalyticsSnapshot,
    HourBucket,
    PeriodStats,
    RankingEntry,
    RecentAppointment,
)
from flexbook.services import tenant_service
from flexbook.utils.datetime_utils import get_timezone, local_day_bounds, month_bounds, utcnow, week_bounds

logger = logging.getLogger(__name__)

UNASSIGNED_LABEL = "Unassigned"

# Hours always present in the histogram, even when empty
BUSINESS_HOURS_AXIS = range(8, 21)

REVENUE_STATUSES = (AppointmentStatus.COMPLETED.value, AppointmentStatus.CONFIRMED.value)


# ============================================================================
# Windows
# ============================================================================

def _appointments_between(
    db: Session,
    tenant_id: UUID,
    start: datetime,
    end: datetime | None,
    statuses: Iterable[str] | None = None,
    exclude_canceled: bool = False,
) -> list[Appointment]:
    """Appointments with start in [start, end] (end open when None), oldest first."""
    query = db.query(Appointment).filter(
        Appointment.tenant_id == tenant_id,
        Appointment.scheduled_at >= start,
    )
    if end is not None:
        query = query.filter(Appointment.scheduled_at <= end)
    if statuses is not None:
        query = query.filter(Appointment.status.in_(list(statuses)))
    if exclude_canceled:
        query = query.filter(Appointment.status != AppointmentStatus.CANCELED.value)
    return query.order_by(Appointment.scheduled_at, Appointment.created_at).all()


def period_stats(appointments: Iterable[Appointment]) -> PeriodStats:
    """Revenue (sum of service prices) and count."""
    revenue = Decimal("0")
    count = 0
    for appt in appointments:
        revenue += appt.total_price
        count += 1
    return PeriodStats(revenue=revenue, count=count)


# ============================================================================
# Rankings
# ============================================================================

def rank(counts: dict, limit: int) -> list[tuple]:
    """Sort (key, count) pairs by count desc; ties keep insertion order."""
    return sorted(counts.items(), key=lambda item: item[1], reverse=True)[:limit]


def top_professionals(
    db: Session,
    tenant_id: UUID,
    completed: list[Appointment],
    limit: int,
) -> list[RankingEntry]:
    """Professionals by completed appointments; only those that appear at all."""
    counts: dict[UUID | None, int] = {}
    for appt in completed:
        counts[appt.professional_id] = counts.get(appt.professional_id, 0) + 1

    ranked = rank(counts, limit)
    ids = [pid for pid, _ in ranked if pid is not None]
    names: dict[UUID, str] = {}
    if ids:
        names = dict(
            db.query(Professional.id, Professional.name).filter(
                Professional.tenant_id == tenant_id,
                Professional.id.in_(ids),
            ).all()
        )
    return [
        RankingEntry(id=pid, name=names.get(pid, UNASSIGNED_LABEL) if pid else UNASSIGNED_LABEL, count=count)
        for pid, count in ranked
    ]


def top_services(
    db: Session,
    tenant_id: UUID,
    completed: list[Appointment],
    limit: int,
) -> list[RankingEntry]:
    """Services of the tenant by completed appointments; zero counts dropped."""
    usage = Counter(sid for appt in completed for sid in appt.service_ids)
    services = db.query(Service).filter(
        Service.tenant_id == tenant_id
    ).order_by(Service.created_at, Service.name).all()

    counts = {service: usage.get(service.id, 0) for service in services}
    return [
        RankingEntry(id=service.id, name=service.name, count=count)
        for service, count in rank(counts, limit)
        if count > 0
    ]


# ============================================================================
# Today
# ============================================================================

def hourly_distribution(appointments: Iterable[Appointment], tz: ZoneInfo) -> list[HourBucket]:
    """
    Count appointments per local start hour.

    Keeps buckets with appointments plus the 08-20 axis.
    """
    counts = [0] * 24
    for appt in appointments:
        counts[appt.scheduled_at.astimezone(tz).hour] += 1
    return [
        HourBucket(hour=hour, count=count)
        for hour, count in enumerate(counts)
        if count > 0 or hour in BUSINESS_HOURS_AXIS
    ]


def recent_appointments(db: Session, tenant_id: UUID, limit: int) -> list[RecentAppointment]:
    """Latest appointments by start, any status."""
    appointments = (
        db.query(Appointment)
        .options(
            selectinload(Appointment.client),
            selectinload(Appointment.professional),
        )
        .filter(Appointment.tenant_id == tenant_id)
        .order_by(Appointment.scheduled_at.desc(), Appointment.created_at.desc())
        .limit(limit)
        .all()
    )
    return [
        RecentAppointment(
            id=appt.id,
            client_name=appt.client.name,
            professional_name=appt.professional.name if appt.professional else UNASSIGNED_LABEL,
            service_names=appt.service_names,
            scheduled_at=appt.scheduled_at,
            status=appt.status,
        )
        for appt in appointments
    ]


def count_pending(db: Session, tenant_id: UUID) -> int:
    return db.query(Appointment).filter(
        Appointment.tenant_id == tenant_id,
        Appointment.status == AppointmentStatus.PENDING.value,
    ).count()


# ============================================================================
# Snapshot
# ============================================================================

def compute_stats(
    db: Session,
    tenant_id: UUID,
    now: datetime | None = None,
    tz: ZoneInfo | None = None,
) -> AnalyticsSnapshot:
    """
    Compute the dashboard snapshot for a tenant.

    now defaults to the current instant and tz to the tenant's timezone.
    """
    now = now or utcnow()
    tenant = tenant_service.require_tenant(db, tenant_id)
    tz = tz or get_timezone(tenant.timezone)
    local_today = now.astimezone(tz).date()

    day_start, day_end = local_day_bounds(local_today, tz)
    week_start, week_end = week_bounds(local_today, tz)
    month_start, month_end = month_bounds(local_today, tz)

    today_completed = _appointments_between(
        db, tenant_id, day_start, day_end, statuses=[AppointmentStatus.COMPLETED.value]
    )
    week_appts = _appointments_between(db, tenant_id, week_start, week_end, statuses=REVENUE_STATUSES)
    month_appts = _appointments_between(db, tenant_id, month_start, month_end, statuses=REVENUE_STATUSES)

    trailing_start = now - timedelta(days=settings.ANALYTICS_TRAILING_DAYS)
    trailing_completed = _appointments_between(
        db, tenant_id, trailing_start, None, statuses=[AppointmentStatus.COMPLETED.value]
    )

    today_active = _appointments_between(db, tenant_id, day_start, day_end, exclude_canceled=True)

    snapshot = AnalyticsSnapshot(
        today=period_stats(today_completed),
        week=period_stats(week_appts),
        month=period_stats(month_appts),
        top_professionals=top_professionals(db, tenant_id, trailing_completed, settings.ANALYTICS_TOP_N),
        top_services=top_services(db, tenant_id, trailing_completed, settings.ANALYTICS_TOP_N),
        hourly_distribution=hourly_distribution(today_active, tz),
        recent_appointments=recent_appointments(db, tenant_id, settings.ANALYTICS_RECENT_LIMIT),
        pending_count=count_pending(db, tenant_id),
        active_clients_count=tenant_service.count_clients(db, tenant_id),
        generated_at=now,
        timezone=str(tz),
    )
    logger.debug(f"Computed analytics for tenant {tenant_id}")
    return snapshot
