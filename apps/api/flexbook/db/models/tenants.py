"""SQLAlchemy ORM models for tenants, users and locations."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, ForeignKey, Index, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from flexbook.db.base import Base
from flexbook.db.enums import Role
from flexbook.utils.datetime_utils import utcnow

if TYPE_CHECKING:
    from flexbook.db.models import Professional, Service


class Tenant(Base):
    """
    A business account in the multi-tenant system.

    All domain entities belong to a tenant
    and must be scoped by tenant_id in all queries.
    """

    __tablename__ = "tenants"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    timezone: Mapped[str] = mapped_column(
        String(50), default="America/Sao_Paulo", nullable=False
    )
    currency: Mapped[str] = mapped_column(String(3), default="BRL", nullable=False)
    locale: Mapped[str] = mapped_column(String(10), default="pt-BR", nullable=False)

    # Raw JSON settings document (modules, workingHours, payment).
    # Read through flexbook.schemas.tenant_config.TenantConfig, never directly.
    config: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, nullable=False
    )

    # Relationships
    users: Mapped[list["User"]] = relationship(back_populates="tenant")
    professionals: Mapped[list["Professional"]] = relationship(back_populates="tenant")
    services: Mapped[list["Service"]] = relationship(back_populates="tenant")
    locations: Mapped[list["Location"]] = relationship(back_populates="tenant")


class User(Base):
    """
    A person with a login inside one tenant.

    Clients book appointments; staff map to a Professional via
    Professional.user_id; admins manage the tenant.
    """

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("tenant_id", "email", name="uq_users_tenant_email"),
        Index("idx_users_tenant_role", "tenant_id", "role"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    role: Mapped[str] = mapped_column(String(20), default=Role.CLIENT.value, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    tenant: Mapped["Tenant"] = relationship(back_populates="users")


class Location(Base):
    """A physical unit of the business. Used as a label/filter only."""

    __tablename__ = "locations"
    __table_args__ = (Index("idx_locations_tenant", "tenant_id"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    tenant: Mapped["Tenant"] = relationship(back_populates="locations")
