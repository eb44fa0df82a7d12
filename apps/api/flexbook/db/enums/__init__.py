"""Enum definitions for application constants."""

from flexbook.db.enums.appointments import (
    AppointmentEventType,
    AppointmentStatus,
    PaymentGateway,
    PaymentMethod,
    PaymentStatus,
)
from flexbook.db.enums.auth import Role
from flexbook.db.enums.subscriptions import PlanInterval, SubscriptionStatus

__all__ = [
    "AppointmentEventType",
    "AppointmentStatus",
    "PaymentGateway",
    "PaymentMethod",
    "PaymentStatus",
    "PlanInterval",
    "Role",
    "SubscriptionStatus",
]
