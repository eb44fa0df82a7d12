"""SQLAlchemy ORM models for appointments and their outbox events."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Index, Integer, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from flexbook.db.base import Base
from flexbook.db.enums import AppointmentStatus, PaymentMethod, PaymentStatus
from flexbook.utils.datetime_utils import utcnow

if TYPE_CHECKING:
    from flexbook.db.models import Location, Professional, Service, Subscription, User


# Partial predicate shared by PostgreSQL and SQLite for the slot uniqueness index
_NOT_CANCELED = text(f"status <> '{AppointmentStatus.CANCELED.value}'")


class Appointment(Base):
    """
    Booked appointment.

    Lifecycle: pending → confirmed → completed, or → canceled.
    At most one non-canceled appointment per (tenant, professional, start).
    """

    __tablename__ = "appointments"
    __table_args__ = (
        Index(
            "uq_appointments_professional_slot",
            "tenant_id",
            "professional_id",
            "scheduled_at",
            unique=True,
            postgresql_where=_NOT_CANCELED,
            sqlite_where=_NOT_CANCELED,
        ),
        Index("idx_appointments_tenant_date", "tenant_id", "scheduled_at"),
        Index("idx_appointments_tenant_status", "tenant_id", "status"),
        Index("idx_appointments_client", "tenant_id", "client_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    professional_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("professionals.id", ondelete="SET NULL"), nullable=True
    )
    location_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("locations.id", ondelete="SET NULL"), nullable=True
    )

    # Start instant (stored in UTC)
    scheduled_at: Mapped[datetime] = mapped_column(nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), default=AppointmentStatus.PENDING.value, nullable=False
    )

    # Payment path
    payment_method: Mapped[str] = mapped_column(
        String(20), default=PaymentMethod.AT_LOCATION.value, nullable=False
    )
    payment_gateway: Mapped[str | None] = mapped_column(String(20), nullable=True)
    payment_status: Mapped[str] = mapped_column(
        String(20), default=PaymentStatus.DUE_ON_SITE.value, nullable=False
    )
    # Subscription charged for PLAN_CREDIT bookings (refunded on cancel)
    subscription_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("subscriptions.id", ondelete="SET NULL"), nullable=True
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Lifecycle tracking
    confirmed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    canceled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, nullable=False
    )

    # Relationships
    client: Mapped["User"] = relationship()
    professional: Mapped["Professional | None"] = relationship()
    location: Mapped["Location | None"] = relationship()
    subscription: Mapped["Subscription | None"] = relationship()
    service_links: Mapped[list["AppointmentServiceLink"]] = relationship(
        back_populates="appointment",
        cascade="all, delete-orphan",
        order_by="AppointmentServiceLink.position",
        lazy="selectin",
    )
    events: Mapped[list["AppointmentEvent"]] = relationship(
        back_populates="appointment",
        cascade="all, delete-orphan",
        order_by="AppointmentEvent.created_at",
    )

    @property
    def services(self) -> list["Service"]:
        """Services in booking order."""
        return [link.service for link in self.service_links]

    @property
    def service_ids(self) -> list[uuid.UUID]:
        return [link.service_id for link in self.service_links]

    @property
    def total_price(self) -> Decimal:
        return sum((s.price or Decimal("0") for s in self.services), Decimal("0"))

    @property
    def total_duration_minutes(self) -> int:
        return sum(s.duration_minutes for s in self.services)

    @property
    def service_names(self) -> str:
        return ", ".join(s.name for s in self.services)


class AppointmentServiceLink(Base):
    """Ordered service line of an appointment."""

    __tablename__ = "appointment_services"

    appointment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("appointments.id", ondelete="CASCADE"), primary_key=True
    )
    service_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("services.id", ondelete="RESTRICT"), primary_key=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    appointment: Mapped["Appointment"] = relationship(back_populates="service_links")
    service: Mapped["Service"] = relationship(lazy="selectin")


class AppointmentEvent(Base):
    """
    Outbox of booking and status-change events.

    Written in the same transaction as the appointment change; the
    notification layer reads undispatched rows and sets dispatched_at.
    """

    __tablename__ = "appointment_events"
    __table_args__ = (
        Index("idx_appointment_events_pending", "tenant_id", "dispatched_at"),
        Index("idx_appointment_events_appt", "appointment_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    appointment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False
    )
    event_type: Mapped[str] = mapped_column(String(30), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    previous_status: Mapped[str | None] = mapped_column(String(20), nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    dispatched_at: Mapped[datetime | None] = mapped_column(nullable=True)

    appointment: Mapped["Appointment"] = relationship(back_populates="events")
