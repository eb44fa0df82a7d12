"""Appointment service - booking orchestration and lifecycle.

Handles:
- Booking creation with write-time slot re-validation
- Payment path selection (at location, online gateway, plan credit)
- Status transitions with credit refunds on cancellation
- Reschedule, payment settlement and administrative bulk delete
- Role-scoped listing

Every write runs as one unit: the appointment row, its service lines, the
credit change and the outbox event commit together or not at all.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import NamedTuple
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from flexbook.core.structured_logging import build_log_context
from flexbook.db.enums import (
    AppointmentEventType,
    AppointmentStatus,
    PaymentGateway,
    PaymentMethod,
    PaymentStatus,
    Role,
)
from flexbook.db.models import Appointment, AppointmentServiceLink, Service
from flexbook.schemas.tenant_config import TenantConfig
from flexbook.services import appointment_events, credit_ledger, slot_service, tenant_service
from flexbook.services.errors import (
    COMPLETED_NOT_DELETABLE,
    GATEWAY_NOT_CONFIGURED,
    INVALID_SERVICE,
    INVALID_TIME,
    NO_CREDIT,
    SLOT_IN_PAST,
    SLOT_TAKEN,
    BookingValidationError,
    InsufficientCreditError,
    InsufficientResourceError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    SchedulingError,
    SlotConflictError,
)
from flexbook.utils.datetime_utils import combine_local, get_timezone, utcnow

logger = logging.getLogger(__name__)


# =============================================================================
# Types
# =============================================================================

class Actor(NamedTuple):
    """Caller identity. Service functions take None for system callers."""
    user_id: UUID
    role: Role


ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELED}),
    AppointmentStatus.CONFIRMED: frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELED}),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELED: frozenset(),
}

RESCHEDULABLE_STATUSES = frozenset({AppointmentStatus.PENDING.value, AppointmentStatus.CONFIRMED.value})


def can_transition(current: AppointmentStatus | str, new: AppointmentStatus | str) -> bool:
    return AppointmentStatus(new) in ALLOWED_TRANSITIONS[AppointmentStatus(current)]


# =============================================================================
# Helpers
# =============================================================================

def _lock_slot_day(db: Session, tenant_id: UUID, professional_id: UUID | None, day: date) -> None:
    """
    Serialize check-then-insert per (tenant, professional, date) on PostgreSQL.

    An unassigned booking competes with every professional of the day, so it
    takes the tenant-day key exclusively; assigned bookings take it shared.
    Other backends rely on the partial unique index alone.
    """
    if db.get_bind().dialect.name != "postgresql":
        return
    day_key = f"{tenant_id}:*:{day.isoformat()}"
    if professional_id is None:
        db.execute(text("SELECT pg_advisory_xact_lock(hashtext(:key))"), {"key": day_key})
        return
    db.execute(text("SELECT pg_advisory_xact_lock_shared(hashtext(:key))"), {"key": day_key})
    db.execute(
        text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
        {"key": f"{tenant_id}:{professional_id}:{day.isoformat()}"},
    )


def _load_services(db: Session, tenant_id: UUID, service_ids: list[UUID]) -> list[Service]:
    """Active services of the tenant in request order (duplicates collapsed)."""
    unique_ids = list(dict.fromkeys(service_ids))
    if not unique_ids:
        raise BookingValidationError("At least one service is required", code=INVALID_SERVICE)

    services = db.query(Service).filter(
        Service.tenant_id == tenant_id,
        Service.id.in_(unique_ids),
        Service.is_active.is_(True),
    ).all()
    by_id = {s.id: s for s in services}
    missing = [sid for sid in unique_ids if sid not in by_id]
    if missing:
        raise BookingValidationError(
            f"Unknown or inactive service(s): {', '.join(str(m) for m in missing)}",
            code=INVALID_SERVICE,
        )
    return [by_id[sid] for sid in unique_ids]


def _compose_start(day: date, start_time: time, tz, now: datetime) -> datetime:
    """UTC start instant; must lie strictly after now."""
    if start_time.second or start_time.microsecond:
        raise BookingValidationError("Start time must be on a whole minute", code=INVALID_TIME)
    scheduled_at = combine_local(day, start_time, tz)
    if scheduled_at <= now:
        raise BookingValidationError("Selected time is in the past", code=SLOT_IN_PAST)
    return scheduled_at


def _assert_slot_free(
    db: Session,
    tenant_id: UUID,
    day: date,
    start_time: time,
    professional_id: UUID | None,
    tz,
    now: datetime,
    exclude_appointment_id: UUID | None = None,
) -> None:
    """Re-run the conflict filter for one slot inside the write transaction."""
    existing = slot_service.get_day_appointments(
        db,
        tenant_id,
        day,
        tz,
        professional_id=professional_id,
        exclude_appointment_id=exclude_appointment_id,
    )
    available = slot_service.filter_available_slots(
        [start_time], day, existing, professional_id, now, tz
    )
    if not available:
        raise SlotConflictError("Selected time is no longer available", code=SLOT_TAKEN)


def _require_appointment(
    db: Session,
    tenant_id: UUID,
    appointment_id: UUID,
    lock: bool = False,
) -> Appointment:
    query = db.query(Appointment).filter(
        Appointment.id == appointment_id,
        Appointment.tenant_id == tenant_id,
    )
    if lock:
        query = query.with_for_update()
    appointment = query.first()
    if not appointment:
        raise NotFoundError(f"Appointment {appointment_id} not found")
    return appointment


def _staff_professional_id(db: Session, tenant_id: UUID, actor: Actor) -> UUID | None:
    professional = tenant_service.get_professional_for_user(db, tenant_id, actor.user_id)
    return professional.id if professional else None


def _assert_can_access(db: Session, appointment: Appointment, actor: Actor | None) -> None:
    """Clients reach their own appointments, staff those of their professional."""
    if actor is None or actor.role == Role.ADMIN:
        return
    if actor.role == Role.CLIENT:
        if appointment.client_id != actor.user_id:
            raise PermissionDeniedError("You can only manage your own appointments")
        return
    if actor.role == Role.STAFF:
        professional_id = _staff_professional_id(db, appointment.tenant_id, actor)
        if professional_id is None or appointment.professional_id != professional_id:
            raise PermissionDeniedError("You can only manage your own schedule")
        return
    raise PermissionDeniedError(f"Role {actor.role} cannot manage appointments")


def _assert_can_transition(
    db: Session,
    appointment: Appointment,
    new_status: AppointmentStatus,
    actor: Actor | None,
) -> None:
    if new_status == AppointmentStatus.COMPLETED and (actor is None or actor.role == Role.CLIENT):
        raise PermissionDeniedError("Only staff can complete appointments")
    if actor is not None and actor.role == Role.CLIENT and new_status != AppointmentStatus.CANCELED:
        raise PermissionDeniedError("Clients can only cancel appointments")
    _assert_can_access(db, appointment, actor)


def _apply_transition(
    db: Session,
    appointment: Appointment,
    new_status: AppointmentStatus,
    now: datetime,
    reason: str | None = None,
) -> None:
    """Mutate status, timestamps and credits; emit the outbox event. No commit."""
    current = AppointmentStatus(appointment.status)
    if not can_transition(current, new_status):
        logger.warning(
            f"Rejected transition {current.value} -> {new_status.value}",
            extra=build_log_context(
                tenant_id=appointment.tenant_id,
                appointment_id=appointment.id,
                status=current.value,
                code=InvalidTransitionError.code,
            ),
        )
        raise InvalidTransitionError(
            f"Cannot change appointment from {current.value} to {new_status.value}"
        )

    appointment.status = new_status.value
    if new_status == AppointmentStatus.CONFIRMED:
        appointment.confirmed_at = now
    elif new_status == AppointmentStatus.COMPLETED:
        appointment.completed_at = now
    elif new_status == AppointmentStatus.CANCELED:
        appointment.canceled_at = now
        appointment.cancellation_reason = reason
        if (
            appointment.payment_method == PaymentMethod.PLAN_CREDIT.value
            and appointment.subscription_id is not None
        ):
            credit_ledger.restore(db, appointment.subscription_id)

    appointment_events.record_event(
        db, appointment, AppointmentEventType.STATUS_CHANGED, previous_status=current.value
    )


# =============================================================================
# Booking
# =============================================================================

def _resolve_payment(
    db: Session,
    config: TenantConfig,
    tenant_id: UUID,
    client_id: UUID,
    payment_method: PaymentMethod,
    gateway: PaymentGateway | str | None,
) -> tuple[AppointmentStatus, PaymentStatus, PaymentGateway | None, UUID | None]:
    """Pick status and payment state for a new booking; consumes a credit for plans."""
    if payment_method == PaymentMethod.PLAN_CREDIT:
        if not config.modules.plans:
            raise InsufficientResourceError("Plans are not enabled for this business", code=NO_CREDIT)
        subscription = credit_ledger.get_active_subscription(
            db, tenant_id, client_id, with_credit=True, lock=True
        )
        if not subscription:
            raise InsufficientResourceError("No active plan with credits available", code=NO_CREDIT)
        try:
            credit_ledger.consume(db, subscription.id)
        except InsufficientCreditError:
            raise InsufficientResourceError("No active plan with credits available", code=NO_CREDIT)
        return AppointmentStatus.CONFIRMED, PaymentStatus.SETTLED, None, subscription.id

    if payment_method == PaymentMethod.ONLINE:
        if (
            not gateway
            or not config.modules.online_payments
            or not config.payment.is_gateway_enabled(gateway)
        ):
            raise InsufficientResourceError(
                f"Payment gateway {gateway or '(none)'} is not configured",
                code=GATEWAY_NOT_CONFIGURED,
            )
        return AppointmentStatus.PENDING, PaymentStatus.PENDING, PaymentGateway(gateway), None

    return AppointmentStatus.CONFIRMED, PaymentStatus.DUE_ON_SITE, None, None


def create_booking(
    db: Session,
    tenant_id: UUID,
    client_id: UUID,
    service_ids: list[UUID],
    day: date,
    start_time: time,
    payment_method: PaymentMethod | str,
    professional_id: UUID | None = None,
    location_id: UUID | None = None,
    gateway: PaymentGateway | str | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> Appointment:
    """
    Validate and persist a booking.

    Checks run in order and fail fast: referenced entities, services, start in
    the future, slot still free, then the payment path. The slot check runs
    inside the insert transaction; a unique-index violation at commit is
    reported the same way.

    Raises:
        NotFoundError: tenant, client, professional or location missing
        BookingValidationError: INVALID_SERVICE, INVALID_TIME, SLOT_IN_PAST
        SlotConflictError: SLOT_TAKEN
        InsufficientResourceError: NO_CREDIT, GATEWAY_NOT_CONFIGURED
    """
    now = now or utcnow()
    # Wall-clock time in the tenant's zone
    start_time = start_time.replace(tzinfo=None)
    try:
        payment_method = PaymentMethod(payment_method)
    except ValueError:
        raise BookingValidationError(f"Unknown payment method {payment_method}")

    log_ctx = build_log_context(
        tenant_id=tenant_id,
        user_id=client_id,
        professional_id=professional_id,
    )

    try:
        tenant = tenant_service.require_tenant(db, tenant_id)
        config = tenant_service.load_config(tenant)
        tz = get_timezone(tenant.timezone)
        tenant_service.require_user(db, tenant_id, client_id)
        if professional_id is not None:
            tenant_service.require_professional(db, tenant_id, professional_id)
        if location_id is not None:
            tenant_service.require_location(db, tenant_id, location_id)

        services = _load_services(db, tenant_id, service_ids)
        scheduled_at = _compose_start(day, start_time, tz, now)

        _lock_slot_day(db, tenant_id, professional_id, day)
        _assert_slot_free(db, tenant_id, day, start_time, professional_id, tz, now)

        status, payment_status, payment_gateway, subscription_id = _resolve_payment(
            db, config, tenant_id, client_id, payment_method, gateway
        )

        appointment = Appointment(
            tenant_id=tenant_id,
            client_id=client_id,
            professional_id=professional_id,
            location_id=location_id,
            scheduled_at=scheduled_at,
            status=status.value,
            payment_method=payment_method.value,
            payment_gateway=payment_gateway.value if payment_gateway else None,
            payment_status=payment_status.value,
            subscription_id=subscription_id,
            notes=notes,
            confirmed_at=now if status == AppointmentStatus.CONFIRMED else None,
        )
        appointment.service_links = [
            AppointmentServiceLink(service=service, position=position)
            for position, service in enumerate(services)
        ]
        db.add(appointment)
        appointment_events.record_event(db, appointment, AppointmentEventType.BOOKED)
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info("Booking rejected", extra={**log_ctx, "code": SLOT_TAKEN})
        raise SlotConflictError("Selected time is no longer available", code=SLOT_TAKEN)
    except SchedulingError as exc:
        db.rollback()
        logger.info("Booking rejected", extra={**log_ctx, "code": exc.code})
        raise

    db.refresh(appointment)
    logger.info(
        "Booking created",
        extra=build_log_context(
            tenant_id=tenant_id,
            appointment_id=appointment.id,
            professional_id=professional_id,
            subscription_id=subscription_id,
            status=appointment.status,
        ),
    )
    return appointment


# =============================================================================
# Lifecycle
# =============================================================================

def transition_appointment(
    db: Session,
    tenant_id: UUID,
    appointment_id: UUID,
    new_status: AppointmentStatus | str,
    actor: Actor | None = None,
    reason: str | None = None,
    now: datetime | None = None,
) -> Appointment:
    """
    Move an appointment to a new status.

    Canceling a plan-credit booking gives its credit back in the same
    transaction.

    Raises:
        NotFoundError: appointment not in this tenant
        PermissionDeniedError: actor's role does not allow the change
        InvalidTransitionError: change not allowed from the current status
    """
    now = now or utcnow()
    try:
        new_status = AppointmentStatus(new_status)
    except ValueError:
        raise InvalidTransitionError(f"Unknown status {new_status}")

    try:
        appointment = _require_appointment(db, tenant_id, appointment_id, lock=True)
        previous = appointment.status
        _assert_can_transition(db, appointment, new_status, actor)
        _apply_transition(db, appointment, new_status, now, reason=reason)
        db.commit()
    except SchedulingError:
        db.rollback()
        raise

    db.refresh(appointment)
    logger.info(
        f"Appointment {previous} -> {appointment.status}",
        extra=build_log_context(
            tenant_id=tenant_id,
            user_id=actor.user_id if actor else None,
            appointment_id=appointment.id,
            status=appointment.status,
        ),
    )
    return appointment


def cancel_appointment(
    db: Session,
    tenant_id: UUID,
    appointment_id: UUID,
    actor: Actor | None = None,
    reason: str | None = None,
    now: datetime | None = None,
) -> Appointment:
    return transition_appointment(
        db, tenant_id, appointment_id, AppointmentStatus.CANCELED, actor=actor, reason=reason, now=now
    )


def settle_online_payment(
    db: Session,
    tenant_id: UUID,
    appointment_id: UUID,
    approved: bool,
    now: datetime | None = None,
) -> Appointment:
    """
    Apply a payment-gateway outcome to an ONLINE booking.

    Approved payments confirm a pending appointment; rejected ones cancel it,
    including one staff already confirmed. A callback for an already settled
    or failed payment changes nothing. Canceled or completed appointments
    refuse any outcome and keep their payment pending.

    Raises:
        InvalidTransitionError: not an online booking, or a terminal status
    """
    now = now or utcnow()
    try:
        appointment = _require_appointment(db, tenant_id, appointment_id, lock=True)
        if appointment.payment_method != PaymentMethod.ONLINE.value:
            raise InvalidTransitionError("Appointment was not booked with online payment")
        if appointment.payment_status in (PaymentStatus.SETTLED.value, PaymentStatus.FAILED.value):
            logger.info(
                "Duplicate payment settlement ignored",
                extra=build_log_context(
                    tenant_id=tenant_id,
                    appointment_id=appointment.id,
                    status=appointment.payment_status,
                ),
            )
            return appointment

        current = AppointmentStatus(appointment.status)
        if current.is_terminal:
            logger.warning(
                f"Payment outcome refused for {current.value} appointment",
                extra=build_log_context(
                    tenant_id=tenant_id,
                    appointment_id=appointment.id,
                    status=current.value,
                    code=InvalidTransitionError.code,
                ),
            )
            raise InvalidTransitionError(
                f"Cannot settle payment for a {current.value} appointment"
            )

        if approved:
            appointment.payment_status = PaymentStatus.SETTLED.value
            if current == AppointmentStatus.PENDING:
                _apply_transition(db, appointment, AppointmentStatus.CONFIRMED, now)
        else:
            appointment.payment_status = PaymentStatus.FAILED.value
            _apply_transition(
                db, appointment, AppointmentStatus.CANCELED, now, reason="Payment failed"
            )
        db.commit()
    except SchedulingError:
        db.rollback()
        raise

    db.refresh(appointment)
    logger.info(
        "Payment settlement applied",
        extra=build_log_context(
            tenant_id=tenant_id,
            appointment_id=appointment.id,
            status=appointment.status,
        ),
    )
    return appointment


def reschedule_appointment(
    db: Session,
    tenant_id: UUID,
    appointment_id: UUID,
    day: date,
    start_time: time,
    professional_id: UUID | None = None,
    actor: Actor | None = None,
    now: datetime | None = None,
) -> Appointment:
    """
    Move a pending or confirmed appointment to a new slot.

    professional_id=None keeps the current professional. The new slot goes
    through the same past and conflict checks as a booking, ignoring the
    appointment itself. Clients cannot reschedule; they cancel and book again.
    """
    now = now or utcnow()
    start_time = start_time.replace(tzinfo=None)
    try:
        appointment = _require_appointment(db, tenant_id, appointment_id, lock=True)
        if actor is not None and actor.role == Role.CLIENT:
            raise PermissionDeniedError("Clients cannot reschedule appointments")
        _assert_can_access(db, appointment, actor)
        if appointment.status not in RESCHEDULABLE_STATUSES:
            raise InvalidTransitionError(
                f"Cannot reschedule appointment with status {appointment.status}"
            )

        tenant = tenant_service.require_tenant(db, tenant_id)
        tz = get_timezone(tenant.timezone)
        if professional_id is not None:
            tenant_service.require_professional(db, tenant_id, professional_id)
        target_professional_id = professional_id or appointment.professional_id

        scheduled_at = _compose_start(day, start_time, tz, now)
        _lock_slot_day(db, tenant_id, target_professional_id, day)
        _assert_slot_free(
            db,
            tenant_id,
            day,
            start_time,
            target_professional_id,
            tz,
            now,
            exclude_appointment_id=appointment.id,
        )

        appointment.scheduled_at = scheduled_at
        appointment.professional_id = target_professional_id
        appointment_events.record_event(
            db, appointment, AppointmentEventType.RESCHEDULED, previous_status=appointment.status
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        raise SlotConflictError("Selected time is no longer available", code=SLOT_TAKEN)
    except SchedulingError:
        db.rollback()
        raise

    db.refresh(appointment)
    logger.info(
        "Appointment rescheduled",
        extra=build_log_context(
            tenant_id=tenant_id,
            appointment_id=appointment.id,
            professional_id=appointment.professional_id,
            status=appointment.status,
        ),
    )
    return appointment


def delete_appointments(
    db: Session,
    tenant_id: UUID,
    appointment_ids: list[UUID],
    actor: Actor | None = None,
) -> int:
    """
    Administrative bulk delete.

    Refuses the whole batch if any of the appointments is completed. Ids
    outside the tenant are ignored. Returns the number of deleted rows.
    """
    if actor is not None and actor.role != Role.ADMIN:
        raise PermissionDeniedError("Only admins can delete appointments")
    if not appointment_ids:
        return 0

    appointments = db.query(Appointment).filter(
        Appointment.tenant_id == tenant_id,
        Appointment.id.in_(set(appointment_ids)),
    ).all()
    completed = [a.id for a in appointments if a.status == AppointmentStatus.COMPLETED.value]
    if completed:
        raise BookingValidationError(
            "Completed appointments cannot be deleted",
            code=COMPLETED_NOT_DELETABLE,
        )

    for appointment in appointments:
        db.delete(appointment)
    db.commit()

    logger.info(
        f"Deleted {len(appointments)} appointment(s)",
        extra=build_log_context(tenant_id=tenant_id, user_id=actor.user_id if actor else None),
    )
    return len(appointments)


# =============================================================================
# Queries
# =============================================================================

def get_appointment(
    db: Session,
    tenant_id: UUID,
    appointment_id: UUID,
    actor: Actor | None = None,
) -> Appointment:
    appointment = _require_appointment(db, tenant_id, appointment_id)
    _assert_can_access(db, appointment, actor)
    return appointment


def list_appointments(
    db: Session,
    tenant_id: UUID,
    actor: Actor | None = None,
    day: date | None = None,
    status: AppointmentStatus | str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Appointment], int]:
    """
    List appointments visible to the actor, latest first.

    Admins see the whole tenant, staff the appointments of their own
    professional record, clients their own bookings.
    """
    query = db.query(Appointment).filter(Appointment.tenant_id == tenant_id)

    if actor is not None:
        if actor.role == Role.CLIENT:
            query = query.filter(Appointment.client_id == actor.user_id)
        elif actor.role == Role.STAFF:
            professional_id = _staff_professional_id(db, tenant_id, actor)
            if professional_id is None:
                return [], 0
            query = query.filter(Appointment.professional_id == professional_id)

    if status:
        query = query.filter(Appointment.status == AppointmentStatus(status).value)

    if day:
        tenant = tenant_service.require_tenant(db, tenant_id)
        tz = get_timezone(tenant.timezone)
        start_dt = combine_local(day, time.min, tz)
        end_dt = combine_local(day + timedelta(days=1), time.min, tz)
        query = query.filter(
            Appointment.scheduled_at >= start_dt,
            Appointment.scheduled_at < end_dt,
        )

    total = query.count()
    appointments = query.order_by(
        Appointment.scheduled_at.desc()
    ).offset(offset).limit(limit).all()

    return appointments, total
