"""Pydantic schemas for API request/response models."""

from flexbook.schemas.auth import UserSession
from flexbook.schemas.tenant_config import (
    ModulesConfig,
    PaymentConfig,
    TenantConfig,
    WorkingHoursConfig,
)
from flexbook.schemas.appointment import (
    AppointmentListResponse,
    AppointmentRead,
    AppointmentReschedule,
    AvailabilityResponse,
    BookingCreate,
    BulkDeleteRequest,
    BulkDeleteResponse,
    PaymentSettlement,
    StatusUpdate,
)
from flexbook.schemas.analytics import (
    AnalyticsSnapshot,
    HourBucket,
    PeriodStats,
    RankingEntry,
    RecentAppointment,
)

__all__ = [
    # Auth
    "UserSession",
    # Tenant config
    "ModulesConfig",
    "PaymentConfig",
    "TenantConfig",
    "WorkingHoursConfig",
    # Appointments
    "AppointmentListResponse",
    "AppointmentRead",
    "AppointmentReschedule",
    "AvailabilityResponse",
    "BookingCreate",
    "BulkDeleteRequest",
    "BulkDeleteResponse",
    "PaymentSettlement",
    "StatusUpdate",
    # Analytics
    "AnalyticsSnapshot",
    "HourBucket",
    "PeriodStats",
    "RankingEntry",
    "RecentAppointment",
]
