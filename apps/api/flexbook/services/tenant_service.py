"""Tenant-scoped lookups used by the scheduling core.

Every lookup filters by tenant_id; an id that exists in another tenant is
reported exactly like a missing one.
"""

from uuid import UUID

from sqlalchemy.orm import Session, selectinload

from flexbook.db.enums import Role
from flexbook.db.models import Location, Professional, Tenant, User
from flexbook.schemas.tenant_config import TenantConfig
from flexbook.services.errors import NotFoundError


def get_tenant(db: Session, tenant_id: UUID) -> Tenant | None:
    """Get tenant by ID."""
    return db.query(Tenant).filter(Tenant.id == tenant_id).first()


def require_tenant(db: Session, tenant_id: UUID) -> Tenant:
    tenant = get_tenant(db, tenant_id)
    if not tenant:
        raise NotFoundError(f"Tenant {tenant_id} not found")
    return tenant


def load_config(tenant: Tenant) -> TenantConfig:
    """Typed configuration for a tenant."""
    return TenantConfig.from_tenant(tenant)


def require_professional(db: Session, tenant_id: UUID, professional_id: UUID) -> Professional:
    """Get a professional of the tenant with working hours preloaded."""
    professional = (
        db.query(Professional)
        .options(selectinload(Professional.working_hours))
        .filter(
            Professional.id == professional_id,
            Professional.tenant_id == tenant_id,
        )
        .first()
    )
    if not professional:
        raise NotFoundError(f"Professional {professional_id} not found")
    return professional


def require_location(db: Session, tenant_id: UUID, location_id: UUID) -> Location:
    location = db.query(Location).filter(
        Location.id == location_id,
        Location.tenant_id == tenant_id,
    ).first()
    if not location:
        raise NotFoundError(f"Location {location_id} not found")
    return location


def require_user(db: Session, tenant_id: UUID, user_id: UUID) -> User:
    user = db.query(User).filter(
        User.id == user_id,
        User.tenant_id == tenant_id,
    ).first()
    if not user:
        raise NotFoundError(f"User {user_id} not found")
    return user


def get_professional_for_user(db: Session, tenant_id: UUID, user_id: UUID) -> Professional | None:
    """Professional record linked to a staff login."""
    return db.query(Professional).filter(
        Professional.tenant_id == tenant_id,
        Professional.user_id == user_id,
    ).first()


def count_clients(db: Session, tenant_id: UUID) -> int:
    return db.query(User).filter(
        User.tenant_id == tenant_id,
        User.role == Role.CLIENT.value,
    ).count()
