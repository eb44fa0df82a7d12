"""Analytics schemas - the computed dashboard snapshot."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel


class PeriodStats(BaseModel):
    """Revenue and appointment count for one window."""
    revenue: Decimal = Decimal("0")
    count: int = 0


class RankingEntry(BaseModel):
    id: UUID | None
    name: str
    count: int


class HourBucket(BaseModel):
    hour: int
    count: int


class RecentAppointment(BaseModel):
    id: UUID
    client_name: str
    professional_name: str
    service_names: str
    scheduled_at: datetime
    status: str


class AnalyticsSnapshot(BaseModel):
    """
    Dashboard statistics for a tenant.

    Computed on every request and never stored.
    """
    today: PeriodStats
    week: PeriodStats
    month: PeriodStats
    top_professionals: list[RankingEntry]
    top_services: list[RankingEntry]
    hourly_distribution: list[HourBucket]
    recent_appointments: list[RecentAppointment]
    pending_count: int
    active_clients_count: int
    generated_at: datetime
    timezone: str
