"""SQLAlchemy ORM models for bookable services and professionals."""

from __future__ import annotations

import uuid
from datetime import datetime, time
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Time,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from flexbook.db.base import Base
from flexbook.utils.datetime_utils import utcnow

if TYPE_CHECKING:
    from flexbook.db.models import Tenant, User


class Service(Base):
    """
    A bookable service (e.g. "Haircut", "Beard trim").

    An appointment references one or more services; its price and
    duration are the sums across them.
    """

    __tablename__ = "services"
    __table_args__ = (
        Index("idx_services_tenant", "tenant_id", "is_active"),
        CheckConstraint("price >= 0", name="ck_services_price_non_negative"),
        CheckConstraint("duration_minutes > 0", name="ck_services_duration_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=30, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    tenant: Mapped["Tenant"] = relationship(back_populates="services")


class Professional(Base):
    """
    A team member who performs services.

    Working hours, when any are set, replace the tenant defaults
    entirely for this professional.
    """

    __tablename__ = "professionals"
    __table_args__ = (Index("idx_professionals_tenant", "tenant_id"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    # Staff login of this professional, if any
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    tenant: Mapped["Tenant"] = relationship(back_populates="professionals")
    user: Mapped["User | None"] = relationship()
    working_hours: Mapped[list["ProfessionalWorkingHours"]] = relationship(
        back_populates="professional",
        cascade="all, delete-orphan",
        order_by="ProfessionalWorkingHours.day_of_week",
    )


class ProfessionalWorkingHours(Base):
    """
    Weekly working window of a professional (e.g. "Tuesday 10:00-14:00").

    Uses day_of_week Sunday=0 ... Saturday=6.
    One window per professional per weekday.
    """

    __tablename__ = "professional_working_hours"
    __table_args__ = (
        UniqueConstraint("professional_id", "day_of_week", name="uq_professional_working_day"),
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_valid_day_of_week"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    professional_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("professionals.id", ondelete="CASCADE"), nullable=False
    )
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)

    professional: Mapped["Professional"] = relationship(back_populates="working_hours")
