"""SQLAlchemy ORM models for plans and client subscriptions."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from flexbook.db.base import Base
from flexbook.db.enums import PlanInterval, SubscriptionStatus
from flexbook.utils.datetime_utils import utcnow

if TYPE_CHECKING:
    from flexbook.db.models import User


class Plan(Base):
    """A prepaid package granting a number of appointment credits."""

    __tablename__ = "plans"
    __table_args__ = (Index("idx_plans_tenant", "tenant_id"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    credits: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    interval: Mapped[str] = mapped_column(
        String(20), default=PlanInterval.MONTHLY.value, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)


class Subscription(Base):
    """
    A client's plan subscription.

    credits_remaining is only changed through flexbook.services.credit_ledger
    so that every change rides on the triggering appointment write.
    """

    __tablename__ = "subscriptions"
    __table_args__ = (
        Index("idx_subscriptions_client", "tenant_id", "client_id", "status"),
        CheckConstraint("credits_remaining >= 0", name="ck_subscriptions_credits_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    plan_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("plans.id", ondelete="RESTRICT"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), default=SubscriptionStatus.PENDING.value, nullable=False
    )
    credits_remaining: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    starts_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    ends_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, nullable=False
    )

    plan: Mapped["Plan"] = relationship()
    client: Mapped["User"] = relationship()
