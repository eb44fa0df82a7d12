"""SQLAlchemy ORM models."""

from flexbook.db.models.appointments import (
    Appointment,
    AppointmentEvent,
    AppointmentServiceLink,
)
from flexbook.db.models.catalog import Professional, ProfessionalWorkingHours, Service
from flexbook.db.models.subscriptions import Plan, Subscription
from flexbook.db.models.tenants import Location, Tenant, User

__all__ = [
    "Appointment",
    "AppointmentEvent",
    "AppointmentServiceLink",
    "Location",
    "Plan",
    "Professional",
    "ProfessionalWorkingHours",
    "Service",
    "Subscription",
    "Tenant",
    "User",
]
