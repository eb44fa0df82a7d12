"""
Test configuration and fixtures.

Provides:
- Fresh in-memory SQLite schema per test
- Tenant, users, professional, services and subscription fixtures
- Fixed "now" instants in the tenant timezone
- HTTPX AsyncClient with identity headers
"""
import os
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from typing import AsyncGenerator, Callable, Generator
from zoneinfo import ZoneInfo

# Must be set before any flexbook import reads settings
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from flexbook.core.deps import get_db
from flexbook.db.base import Base
from flexbook.db.enums import AppointmentStatus, PaymentMethod, PaymentStatus, Role, SubscriptionStatus
from flexbook.db.models import (
    Appointment,
    AppointmentServiceLink,
    Location,
    Plan,
    Professional,
    ProfessionalWorkingHours,
    Service,
    Subscription,
    Tenant,
    User,
)
from flexbook.db.session import SessionLocal, engine
from flexbook.main import app
from flexbook.utils.datetime_utils import combine_local


TENANT_TZ = ZoneInfo("America/Sao_Paulo")

# Wednesday 2026-10-21, 08:00 local (UTC-3)
WEDNESDAY = date(2026, 10, 21)
THURSDAY = date(2026, 10, 22)
NOW = combine_local(WEDNESDAY, time(8, 0), TENANT_TZ)


def local_dt(day: date, hour: int, minute: int = 0) -> datetime:
    """UTC instant for a wall-clock time in the tenant timezone."""
    return combine_local(day, time(hour, minute), TENANT_TZ)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Session on a freshly created schema.

    The in-memory engine shares one connection, so app code can commit
    freely; the schema is dropped after each test.
    """
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def tenant(db: Session) -> Tenant:
    """Tenant without working hours configured (hard default applies)."""
    tenant = Tenant(
        name="Barbearia Teste",
        slug=f"barbearia-{uuid.uuid4().hex[:8]}",
        timezone="America/Sao_Paulo",
        config={
            "modules": {"plans": True, "reviews": True, "onlinePayments": True},
            "payment": {"stripeEnabled": True, "mpEnabled": True, "mpAccessToken": None},
        },
    )
    db.add(tenant)
    db.commit()
    return tenant


def _make_user(db: Session, tenant: Tenant, role: Role, name: str) -> User:
    user = User(
        tenant_id=tenant.id,
        name=name,
        email=f"{role.value}-{uuid.uuid4().hex[:8]}@test.com",
        role=role.value,
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture(scope="function")
def admin_user(db: Session, tenant: Tenant) -> User:
    return _make_user(db, tenant, Role.ADMIN, "Admin")


@pytest.fixture(scope="function")
def client_user(db: Session, tenant: Tenant) -> User:
    return _make_user(db, tenant, Role.CLIENT, "Carla Cliente")


@pytest.fixture(scope="function")
def other_client(db: Session, tenant: Tenant) -> User:
    return _make_user(db, tenant, Role.CLIENT, "Outro Cliente")


@pytest.fixture(scope="function")
def staff_user(db: Session, tenant: Tenant) -> User:
    return _make_user(db, tenant, Role.STAFF, "Pedro Staff")


@pytest.fixture(scope="function")
def professional(db: Session, tenant: Tenant, staff_user: User) -> Professional:
    """Professional linked to staff_user, without weekly entries."""
    prof = Professional(tenant_id=tenant.id, user_id=staff_user.id, name="Pedro")
    db.add(prof)
    db.commit()
    return prof


@pytest.fixture(scope="function")
def other_professional(db: Session, tenant: Tenant) -> Professional:
    prof = Professional(tenant_id=tenant.id, name="Quintino")
    db.add(prof)
    db.commit()
    return prof


@pytest.fixture(scope="function")
def location(db: Session, tenant: Tenant) -> Location:
    loc = Location(tenant_id=tenant.id, name="Centro", address="Rua A, 1")
    db.add(loc)
    db.commit()
    return loc


@pytest.fixture(scope="function")
def services(db: Session, tenant: Tenant) -> list[Service]:
    """Haircut (45.00) and beard (35.00)."""
    haircut = Service(tenant_id=tenant.id, name="Corte", duration_minutes=30, price=Decimal("45.00"))
    db.add(haircut)
    db.commit()
    beard = Service(tenant_id=tenant.id, name="Barba", duration_minutes=20, price=Decimal("35.00"))
    db.add(beard)
    db.commit()
    return [haircut, beard]


@pytest.fixture(scope="function")
def subscription(db: Session, tenant: Tenant, client_user: User) -> Subscription:
    """Active subscription with two credits."""
    plan = Plan(tenant_id=tenant.id, name="Mensal", price=Decimal("120.00"), credits=4)
    db.add(plan)
    db.commit()
    sub = Subscription(
        tenant_id=tenant.id,
        client_id=client_user.id,
        plan_id=plan.id,
        status=SubscriptionStatus.ACTIVE.value,
        credits_remaining=2,
        starts_at=local_dt(date(2026, 10, 1), 0),
    )
    db.add(sub)
    db.commit()
    return sub


def add_working_hours(
    db: Session,
    prof: Professional,
    entries: list[tuple[int, time, time]],
) -> None:
    for day_of_week, start, end in entries:
        db.add(ProfessionalWorkingHours(
            professional_id=prof.id,
            day_of_week=day_of_week,
            start_time=start,
            end_time=end,
        ))
    db.commit()
    db.refresh(prof)


@pytest.fixture(scope="function")
def make_appointment(db: Session, tenant: Tenant, client_user: User) -> Callable[..., Appointment]:
    """Insert an appointment directly, bypassing the booking checks."""
    def _make(
        scheduled_at: datetime,
        services: list[Service],
        status: AppointmentStatus = AppointmentStatus.CONFIRMED,
        professional: Professional | None = None,
        client: User | None = None,
        payment_method: PaymentMethod = PaymentMethod.AT_LOCATION,
        payment_status: PaymentStatus = PaymentStatus.DUE_ON_SITE,
        subscription: Subscription | None = None,
    ) -> Appointment:
        appt = Appointment(
            tenant_id=tenant.id,
            client_id=(client or client_user).id,
            professional_id=professional.id if professional else None,
            scheduled_at=scheduled_at,
            status=status.value,
            payment_method=payment_method.value,
            payment_status=payment_status.value,
            subscription_id=subscription.id if subscription else None,
        )
        appt.service_links = [
            AppointmentServiceLink(service=s, position=i) for i, s in enumerate(services)
        ]
        db.add(appt)
        db.commit()
        return appt
    return _make


# =============================================================================
# Client Fixtures
# =============================================================================

@dataclass
class GatewayIdentity:
    """Identity headers forwarded by the auth gateway."""
    user: User
    role: Role

    @property
    def headers(self) -> dict[str, str]:
        return {
            "X-Tenant-ID": str(self.user.tenant_id),
            "X-User-ID": str(self.user.id),
            "X-User-Role": self.role.value,
        }


def identity(user: User) -> GatewayIdentity:
    return GatewayIdentity(user=user, role=Role(user.role))


@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """
    AsyncClient sharing the test session; pass identity headers per request.
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
