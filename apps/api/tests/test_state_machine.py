"""Tests for appointment lifecycle: transitions, refunds, roles, settlement, reschedule and bulk delete."""

import uuid
from datetime import time, timezone

import pytest

from flexbook.db.enums import (
    AppointmentEventType,
    AppointmentStatus,
    PaymentGateway,
    PaymentMethod,
    PaymentStatus,
    Role,
)
from flexbook.db.models import Appointment, AppointmentEvent, AppointmentServiceLink
from flexbook.services import appointment_events, appointment_service
from flexbook.services.appointment_service import ALLOWED_TRANSITIONS, Actor, can_transition
from flexbook.services.errors import (
    BookingValidationError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    SlotConflictError,
)

from tests.conftest import NOW, THURSDAY, WEDNESDAY, _make_user, local_dt


def _admin(user):
    return Actor(user_id=user.id, role=Role.ADMIN)


def _book(db, tenant, client_user, services, **kwargs):
    params = {
        "day": THURSDAY,
        "start_time": time(10, 0),
        "payment_method": PaymentMethod.AT_LOCATION,
        "now": NOW,
    }
    params.update(kwargs)
    return appointment_service.create_booking(
        db,
        tenant_id=tenant.id,
        client_id=client_user.id,
        service_ids=[s.id for s in services],
        **params,
    )


# =============================================================================
# Transition table
# =============================================================================

def test_transition_table():
    assert can_transition(AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)
    assert can_transition(AppointmentStatus.PENDING, AppointmentStatus.CANCELED)
    assert can_transition(AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED)
    assert can_transition(AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELED)
    assert not can_transition(AppointmentStatus.PENDING, AppointmentStatus.COMPLETED)
    assert not ALLOWED_TRANSITIONS[AppointmentStatus.COMPLETED]
    assert not ALLOWED_TRANSITIONS[AppointmentStatus.CANCELED]


def test_confirm_then_complete(db, tenant, admin_user, services, make_appointment):
    appt = make_appointment(local_dt(THURSDAY, 10), services, status=AppointmentStatus.PENDING)

    appt = appointment_service.transition_appointment(
        db, tenant.id, appt.id, AppointmentStatus.CONFIRMED, actor=_admin(admin_user), now=NOW
    )
    assert appt.status == AppointmentStatus.CONFIRMED.value
    assert appt.confirmed_at == NOW

    appt = appointment_service.transition_appointment(
        db, tenant.id, appt.id, "completed", actor=_admin(admin_user), now=NOW
    )
    assert appt.status == AppointmentStatus.COMPLETED.value
    assert appt.completed_at == NOW


@pytest.mark.parametrize("terminal", [AppointmentStatus.COMPLETED, AppointmentStatus.CANCELED])
@pytest.mark.parametrize("target", list(AppointmentStatus))
def test_no_transition_out_of_terminal_states(db, tenant, admin_user, services, make_appointment, terminal, target):
    appt = make_appointment(local_dt(THURSDAY, 10), services, status=terminal)
    with pytest.raises(InvalidTransitionError):
        appointment_service.transition_appointment(
            db, tenant.id, appt.id, target, actor=_admin(admin_user), now=NOW
        )
    db.refresh(appt)
    assert appt.status == terminal.value


def test_pending_cannot_complete(db, tenant, admin_user, services, make_appointment):
    appt = make_appointment(local_dt(THURSDAY, 10), services, status=AppointmentStatus.PENDING)
    with pytest.raises(InvalidTransitionError):
        appointment_service.transition_appointment(
            db, tenant.id, appt.id, AppointmentStatus.COMPLETED, actor=_admin(admin_user), now=NOW
        )


def test_unknown_status_rejected(db, tenant, admin_user, services, make_appointment):
    appt = make_appointment(local_dt(THURSDAY, 10), services)
    with pytest.raises(InvalidTransitionError):
        appointment_service.transition_appointment(db, tenant.id, appt.id, "archived", actor=_admin(admin_user))


def test_transition_records_event(db, tenant, admin_user, services, make_appointment):
    appt = make_appointment(local_dt(THURSDAY, 10), services)
    appointment_service.cancel_appointment(db, tenant.id, appt.id, actor=_admin(admin_user), reason="Sick", now=NOW)

    events = db.query(AppointmentEvent).filter(AppointmentEvent.appointment_id == appt.id).all()
    assert [e.event_type for e in events] == [AppointmentEventType.STATUS_CHANGED.value]
    assert events[0].status == AppointmentStatus.CANCELED.value
    assert events[0].previous_status == AppointmentStatus.CONFIRMED.value


def test_transition_in_other_tenant_not_found(db, tenant, admin_user, services, make_appointment):
    appt = make_appointment(local_dt(THURSDAY, 10), services)
    with pytest.raises(NotFoundError):
        appointment_service.transition_appointment(
            db, uuid.uuid4(), appt.id, AppointmentStatus.CANCELED, actor=_admin(admin_user)
        )


# =============================================================================
# Credit refund
# =============================================================================

def test_cancel_plan_credit_booking_restores_one_credit(db, tenant, client_user, admin_user, services, subscription):
    appt = _book(db, tenant, client_user, services, payment_method=PaymentMethod.PLAN_CREDIT)
    db.refresh(subscription)
    assert subscription.credits_remaining == 1

    appointment_service.cancel_appointment(db, tenant.id, appt.id, actor=_admin(admin_user), now=NOW)
    db.refresh(subscription)
    assert subscription.credits_remaining == 2


def test_cancel_at_location_booking_leaves_subscription(db, tenant, client_user, admin_user, services, subscription):
    appt = _book(db, tenant, client_user, services)
    appointment_service.cancel_appointment(db, tenant.id, appt.id, actor=_admin(admin_user), now=NOW)
    db.refresh(subscription)
    assert subscription.credits_remaining == 2


def test_rejected_cancel_does_not_refund(db, tenant, client_user, admin_user, services, subscription):
    appt = _book(db, tenant, client_user, services, payment_method=PaymentMethod.PLAN_CREDIT)
    appointment_service.cancel_appointment(db, tenant.id, appt.id, actor=_admin(admin_user), now=NOW)

    with pytest.raises(InvalidTransitionError):
        appointment_service.cancel_appointment(db, tenant.id, appt.id, actor=_admin(admin_user), now=NOW)
    db.refresh(subscription)
    assert subscription.credits_remaining == 2


# =============================================================================
# Roles
# =============================================================================

def test_client_can_cancel_own_appointment(db, tenant, client_user, services, make_appointment):
    appt = make_appointment(local_dt(THURSDAY, 10), services)
    actor = Actor(user_id=client_user.id, role=Role.CLIENT)
    appt = appointment_service.cancel_appointment(db, tenant.id, appt.id, actor=actor, now=NOW)
    assert appt.status == AppointmentStatus.CANCELED.value


def test_client_cannot_cancel_someone_else(db, tenant, other_client, services, make_appointment):
    appt = make_appointment(local_dt(THURSDAY, 10), services)
    actor = Actor(user_id=other_client.id, role=Role.CLIENT)
    with pytest.raises(PermissionDeniedError):
        appointment_service.cancel_appointment(db, tenant.id, appt.id, actor=actor, now=NOW)


@pytest.mark.parametrize("target", [AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED])
def test_client_can_only_cancel(db, tenant, client_user, services, make_appointment, target):
    appt = make_appointment(local_dt(THURSDAY, 10), services, status=AppointmentStatus.PENDING)
    actor = Actor(user_id=client_user.id, role=Role.CLIENT)
    with pytest.raises(PermissionDeniedError):
        appointment_service.transition_appointment(db, tenant.id, appt.id, target, actor=actor, now=NOW)


def test_staff_completes_own_appointment(db, tenant, staff_user, professional, services, make_appointment):
    appt = make_appointment(local_dt(THURSDAY, 10), services, professional=professional)
    actor = Actor(user_id=staff_user.id, role=Role.STAFF)
    appt = appointment_service.transition_appointment(
        db, tenant.id, appt.id, AppointmentStatus.COMPLETED, actor=actor, now=NOW
    )
    assert appt.status == AppointmentStatus.COMPLETED.value


def test_staff_cannot_touch_other_professionals(
    db, tenant, staff_user, professional, other_professional, services, make_appointment
):
    appt = make_appointment(local_dt(THURSDAY, 10), services, professional=other_professional)
    actor = Actor(user_id=staff_user.id, role=Role.STAFF)
    with pytest.raises(PermissionDeniedError):
        appointment_service.transition_appointment(
            db, tenant.id, appt.id, AppointmentStatus.COMPLETED, actor=actor, now=NOW
        )


def test_system_caller_cannot_complete(db, tenant, services, make_appointment):
    appt = make_appointment(local_dt(THURSDAY, 10), services)
    with pytest.raises(PermissionDeniedError):
        appointment_service.transition_appointment(db, tenant.id, appt.id, AppointmentStatus.COMPLETED)


# =============================================================================
# Payment settlement
# =============================================================================

def _online(db, tenant, client_user, services):
    return _book(
        db, tenant, client_user, services,
        payment_method=PaymentMethod.ONLINE,
        gateway=PaymentGateway.STRIPE,
    )


def test_approved_payment_confirms(db, tenant, client_user, services):
    appt = _online(db, tenant, client_user, services)
    appt = appointment_service.settle_online_payment(db, tenant.id, appt.id, approved=True, now=NOW)
    assert appt.status == AppointmentStatus.CONFIRMED.value
    assert appt.payment_status == PaymentStatus.SETTLED.value


def test_rejected_payment_cancels(db, tenant, client_user, services):
    appt = _online(db, tenant, client_user, services)
    appt = appointment_service.settle_online_payment(db, tenant.id, appt.id, approved=False, now=NOW)
    assert appt.status == AppointmentStatus.CANCELED.value
    assert appt.payment_status == PaymentStatus.FAILED.value
    assert appt.cancellation_reason == "Payment failed"


def test_replayed_settlement_is_noop(db, tenant, client_user, services):
    appt = _online(db, tenant, client_user, services)
    appointment_service.settle_online_payment(db, tenant.id, appt.id, approved=True, now=NOW)
    appt = appointment_service.settle_online_payment(db, tenant.id, appt.id, approved=False, now=NOW)

    assert appt.status == AppointmentStatus.CONFIRMED.value
    assert appt.payment_status == PaymentStatus.SETTLED.value
    events = db.query(AppointmentEvent).filter(AppointmentEvent.appointment_id == appt.id).count()
    assert events == 2  # booked + confirmed


def test_settlement_for_non_online_booking_rejected(db, tenant, client_user, services):
    appt = _book(db, tenant, client_user, services)
    with pytest.raises(InvalidTransitionError):
        appointment_service.settle_online_payment(db, tenant.id, appt.id, approved=True, now=NOW)


@pytest.mark.parametrize("approved", [True, False])
def test_settlement_for_canceled_appointment_rejected(db, tenant, client_user, services, approved):
    appt = _online(db, tenant, client_user, services)
    appointment_service.cancel_appointment(db, tenant.id, appt.id, now=NOW)

    with pytest.raises(InvalidTransitionError):
        appointment_service.settle_online_payment(db, tenant.id, appt.id, approved=approved, now=NOW)

    db.refresh(appt)
    assert appt.status == AppointmentStatus.CANCELED.value
    assert appt.payment_status == PaymentStatus.PENDING.value


def test_approved_payment_on_staff_confirmed_booking(db, tenant, client_user, admin_user, services):
    appt = _online(db, tenant, client_user, services)
    appointment_service.transition_appointment(
        db, tenant.id, appt.id, AppointmentStatus.CONFIRMED, actor=_admin(admin_user), now=NOW
    )
    appt = appointment_service.settle_online_payment(db, tenant.id, appt.id, approved=True, now=NOW)

    assert appt.status == AppointmentStatus.CONFIRMED.value
    assert appt.payment_status == PaymentStatus.SETTLED.value


def test_rejected_payment_cancels_staff_confirmed_booking(db, tenant, client_user, admin_user, services):
    appt = _online(db, tenant, client_user, services)
    appointment_service.transition_appointment(
        db, tenant.id, appt.id, AppointmentStatus.CONFIRMED, actor=_admin(admin_user), now=NOW
    )
    appt = appointment_service.settle_online_payment(db, tenant.id, appt.id, approved=False, now=NOW)

    assert appt.status == AppointmentStatus.CANCELED.value
    assert appt.payment_status == PaymentStatus.FAILED.value
    assert appt.cancellation_reason == "Payment failed"


# =============================================================================
# Reschedule
# =============================================================================

def test_reschedule_to_free_slot(db, tenant, client_user, staff_user, professional, services):
    appt = _book(db, tenant, client_user, services, professional_id=professional.id)
    appt = appointment_service.reschedule_appointment(
        db, tenant.id, appt.id, THURSDAY, time(15, 30), actor=Actor(staff_user.id, Role.STAFF), now=NOW
    )
    assert appt.scheduled_at == local_dt(THURSDAY, 15, 30)
    assert appt.professional_id == professional.id

    events = db.query(AppointmentEvent).filter(
        AppointmentEvent.appointment_id == appt.id,
        AppointmentEvent.event_type == AppointmentEventType.RESCHEDULED.value,
    ).count()
    assert events == 1


def test_reschedule_onto_own_slot_is_allowed(db, tenant, client_user, professional, services):
    appt = _book(db, tenant, client_user, services, professional_id=professional.id)
    appt = appointment_service.reschedule_appointment(db, tenant.id, appt.id, THURSDAY, time(10, 0), now=NOW)
    assert appt.scheduled_at == local_dt(THURSDAY, 10)


def test_reschedule_onto_taken_slot_conflicts(db, tenant, client_user, professional, services, make_appointment):
    make_appointment(local_dt(THURSDAY, 11), services, professional=professional)
    appt = _book(db, tenant, client_user, services, professional_id=professional.id)
    with pytest.raises(SlotConflictError):
        appointment_service.reschedule_appointment(db, tenant.id, appt.id, THURSDAY, time(11, 0), now=NOW)
    db.refresh(appt)
    assert appt.scheduled_at == local_dt(THURSDAY, 10)


def test_reschedule_into_past_rejected(db, tenant, client_user, services):
    appt = _book(db, tenant, client_user, services)
    with pytest.raises(BookingValidationError) as exc:
        appointment_service.reschedule_appointment(db, tenant.id, appt.id, WEDNESDAY, time(7, 30), now=NOW)
    assert exc.value.code == "SLOT_IN_PAST"


def test_reschedule_completed_rejected(db, tenant, services, make_appointment):
    appt = make_appointment(local_dt(THURSDAY, 10), services, status=AppointmentStatus.COMPLETED)
    with pytest.raises(InvalidTransitionError):
        appointment_service.reschedule_appointment(db, tenant.id, appt.id, THURSDAY, time(12, 0), now=NOW)


def test_reschedule_to_other_professional(db, tenant, client_user, professional, other_professional, services):
    appt = _book(db, tenant, client_user, services, professional_id=professional.id)
    appt = appointment_service.reschedule_appointment(
        db, tenant.id, appt.id, THURSDAY, time(10, 0), professional_id=other_professional.id, now=NOW
    )
    assert appt.professional_id == other_professional.id


def test_client_cannot_reschedule_own_appointment(db, tenant, client_user, professional, services):
    appt = _book(db, tenant, client_user, services, professional_id=professional.id)
    with pytest.raises(PermissionDeniedError):
        appointment_service.reschedule_appointment(
            db, tenant.id, appt.id, THURSDAY, time(15, 30), actor=Actor(client_user.id, Role.CLIENT), now=NOW
        )
    db.refresh(appt)
    assert appt.scheduled_at == local_dt(THURSDAY, 10)


def test_staff_cannot_reschedule_other_professionals(
    db, tenant, client_user, staff_user, other_professional, services
):
    appt = _book(db, tenant, client_user, services, professional_id=other_professional.id)
    with pytest.raises(PermissionDeniedError):
        appointment_service.reschedule_appointment(
            db, tenant.id, appt.id, THURSDAY, time(15, 30), actor=Actor(staff_user.id, Role.STAFF), now=NOW
        )


def test_reschedule_with_zoned_time_still_checks_conflicts(
    db, tenant, client_user, professional, services, make_appointment
):
    make_appointment(local_dt(THURSDAY, 11), services, professional=professional)
    appt = _book(db, tenant, client_user, services, professional_id=professional.id)
    with pytest.raises(SlotConflictError):
        appointment_service.reschedule_appointment(
            db, tenant.id, appt.id, THURSDAY, time(11, 0, tzinfo=timezone.utc), now=NOW
        )


# =============================================================================
# Bulk delete
# =============================================================================

def test_bulk_delete_removes_appointments_and_children(db, tenant, admin_user, services, make_appointment):
    first = make_appointment(local_dt(THURSDAY, 10), services)
    second = make_appointment(local_dt(THURSDAY, 11), services, status=AppointmentStatus.CANCELED)
    appointment_events.record_event(db, first, AppointmentEventType.BOOKED)
    db.commit()

    deleted = appointment_service.delete_appointments(
        db, tenant.id, [first.id, second.id], actor=_admin(admin_user)
    )
    assert deleted == 2
    assert db.query(Appointment).count() == 0
    assert db.query(AppointmentServiceLink).count() == 0
    assert db.query(AppointmentEvent).count() == 0


def test_bulk_delete_refuses_completed(db, tenant, admin_user, services, make_appointment):
    pending = make_appointment(local_dt(THURSDAY, 10), services, status=AppointmentStatus.PENDING)
    completed = make_appointment(local_dt(THURSDAY, 11), services, status=AppointmentStatus.COMPLETED)

    with pytest.raises(BookingValidationError) as exc:
        appointment_service.delete_appointments(
            db, tenant.id, [pending.id, completed.id], actor=_admin(admin_user)
        )
    assert exc.value.code == "COMPLETED_NOT_DELETABLE"
    assert db.query(Appointment).count() == 2


def test_bulk_delete_admin_only(db, tenant, staff_user, services, make_appointment):
    appt = make_appointment(local_dt(THURSDAY, 10), services)
    with pytest.raises(PermissionDeniedError):
        appointment_service.delete_appointments(
            db, tenant.id, [appt.id], actor=Actor(staff_user.id, Role.STAFF)
        )


def test_bulk_delete_ignores_other_tenants(db, tenant, admin_user, services, make_appointment):
    appt = make_appointment(local_dt(THURSDAY, 10), services)
    deleted = appointment_service.delete_appointments(
        db, uuid.uuid4(), [appt.id], actor=_admin(admin_user)
    )
    assert deleted == 0
    assert db.query(Appointment).count() == 1


# =============================================================================
# Listing
# =============================================================================

def test_listing_is_role_scoped(
    db, tenant, admin_user, client_user, other_client, staff_user, professional, services, make_appointment
):
    make_appointment(local_dt(THURSDAY, 10), services, professional=professional)
    make_appointment(local_dt(THURSDAY, 11), services, client=other_client)
    make_appointment(local_dt(THURSDAY, 12), services, client=other_client, professional=professional)

    _, admin_total = appointment_service.list_appointments(db, tenant.id, actor=_admin(admin_user))
    _, client_total = appointment_service.list_appointments(db, tenant.id, actor=Actor(client_user.id, Role.CLIENT))
    _, staff_total = appointment_service.list_appointments(db, tenant.id, actor=Actor(staff_user.id, Role.STAFF))

    assert admin_total == 3
    assert client_total == 1
    assert staff_total == 2


def test_staff_without_professional_sees_nothing(db, tenant, services, make_appointment):
    unlinked = _make_user(db, tenant, Role.STAFF, "Sem Agenda")
    make_appointment(local_dt(THURSDAY, 10), services)
    items, total = appointment_service.list_appointments(db, tenant.id, actor=Actor(unlinked.id, Role.STAFF))
    assert items == []
    assert total == 0


def test_listing_filters_by_local_day_and_paginates(db, tenant, admin_user, services, make_appointment):
    for hour in (9, 10, 11):
        make_appointment(local_dt(THURSDAY, hour), services)
    make_appointment(local_dt(WEDNESDAY, 23), services)

    items, total = appointment_service.list_appointments(
        db, tenant.id, actor=_admin(admin_user), day=THURSDAY, limit=2, offset=0
    )
    assert total == 3
    assert [a.scheduled_at for a in items] == [local_dt(THURSDAY, 11), local_dt(THURSDAY, 10)]
