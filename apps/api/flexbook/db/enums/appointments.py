"""Appointment, payment and scheduling enums."""

from enum import Enum


class AppointmentStatus(str, Enum):
    """
    Appointment lifecycle status.

    Flow: pending → confirmed → completed
              ↘ canceled  ↘ canceled
    """

    PENDING = "pending"  # Awaiting payment or staff confirmation
    CONFIRMED = "confirmed"  # Slot held, service not yet delivered
    COMPLETED = "completed"  # Service delivered
    CANCELED = "canceled"  # Canceled by client or staff

    @property
    def is_terminal(self) -> bool:
        return self in (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELED)


class PaymentMethod(str, Enum):
    """How the client pays for an appointment."""

    AT_LOCATION = "AT_LOCATION"
    ONLINE = "ONLINE"
    PLAN_CREDIT = "PLAN_CREDIT"


class PaymentGateway(str, Enum):
    """Online checkout providers a tenant can enable."""

    STRIPE = "STRIPE"
    MERCADO_PAGO = "MERCADO_PAGO"
    PAYPAL = "PAYPAL"


class PaymentStatus(str, Enum):
    """Payment state recorded on the appointment."""

    DUE_ON_SITE = "due_on_site"  # Collected at the location
    PENDING = "pending"  # Waiting for gateway settlement
    SETTLED = "settled"  # Paid online or covered by a plan credit
    FAILED = "failed"  # Gateway rejected the payment


class AppointmentEventType(str, Enum):
    """Outbox events consumed by the notification layer."""

    BOOKED = "booked"
    STATUS_CHANGED = "status_changed"
    RESCHEDULED = "rescheduled"
