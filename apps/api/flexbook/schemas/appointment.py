"""Appointment schemas - Pydantic models for the booking API."""

from datetime import date, datetime, time
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from flexbook.db.enums import AppointmentStatus, PaymentGateway, PaymentMethod


# =============================================================================
# Availability
# =============================================================================

class AvailabilityResponse(BaseModel):
    """Available start times for one date."""
    date: date
    professional_id: UUID | None
    timezone: str
    slots: list[str]  # HH:MM, chronological


# =============================================================================
# Booking
# =============================================================================

class BookingCreate(BaseModel):
    """Schema for creating a booking."""
    service_ids: list[UUID] = Field(..., min_length=1)
    professional_id: UUID | None = None
    location_id: UUID | None = None
    date: date
    time: str = Field(..., pattern=r"^\d{2}:\d{2}$", description="HH:MM in the business timezone")
    payment_method: PaymentMethod = PaymentMethod.AT_LOCATION
    gateway: PaymentGateway | None = None
    notes: str | None = Field(None, max_length=2000)
    # Staff/admin booking on behalf of a client; ignored for clients
    client_id: UUID | None = None


class StatusUpdate(BaseModel):
    """Schema for a status change."""
    status: AppointmentStatus
    reason: str | None = Field(None, max_length=1000)


class AppointmentReschedule(BaseModel):
    """Schema for moving an appointment to a new slot."""
    date: date
    time: str = Field(..., pattern=r"^\d{2}:\d{2}$")
    professional_id: UUID | None = None


class BulkDeleteRequest(BaseModel):
    """Schema for administrative bulk delete."""
    ids: list[UUID] = Field(..., min_length=1, max_length=500)


class BulkDeleteResponse(BaseModel):
    deleted: int


class PaymentSettlement(BaseModel):
    """Outcome delivered by the payment layer."""
    approved: bool


# =============================================================================
# Reads
# =============================================================================

class AppointmentServiceRead(BaseModel):
    id: UUID
    name: str
    duration_minutes: int
    price: Decimal


class AppointmentRead(BaseModel):
    """Schema for reading an appointment."""
    id: UUID
    client_id: UUID
    client_name: str | None = None
    professional_id: UUID | None
    professional_name: str | None = None
    location_id: UUID | None
    scheduled_at: datetime
    status: str
    payment_method: str
    payment_gateway: str | None
    payment_status: str
    subscription_id: UUID | None
    services: list[AppointmentServiceRead]
    total_price: Decimal
    total_duration_minutes: int
    notes: str | None
    confirmed_at: datetime | None
    completed_at: datetime | None
    canceled_at: datetime | None
    cancellation_reason: str | None
    created_at: datetime
    updated_at: datetime


class AppointmentListResponse(BaseModel):
    """Schema for appointment list response."""
    items: list[AppointmentRead]
    total: int
    page: int
    per_page: int
    pages: int


def parse_hhmm(value: str) -> time:
    """Parse an HH:MM string validated by the request schema."""
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))
