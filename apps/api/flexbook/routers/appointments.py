"""Appointments router - API endpoints for availability, booking and lifecycle.

Endpoints:
- Availability query for a date (optionally per professional)
- Booking creation
- Role-scoped listing and detail
- Status changes, reschedule and payment settlement
- Administrative bulk delete
"""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from flexbook.core.deps import get_current_session, get_db, require_roles
from flexbook.core.rate_limit import booking_limit, limiter
from flexbook.db.enums import Role
from flexbook.db.models import Appointment
from flexbook.schemas.appointment import (
    AppointmentListResponse,
    AppointmentRead,
    AppointmentReschedule,
    AppointmentServiceRead,
    AvailabilityResponse,
    BookingCreate,
    BulkDeleteRequest,
    BulkDeleteResponse,
    PaymentSettlement,
    StatusUpdate,
    parse_hhmm,
)
from flexbook.schemas.auth import UserSession
from flexbook.services import appointment_service, slot_service, tenant_service
from flexbook.services.appointment_service import Actor
from flexbook.services.errors import (
    BookingValidationError,
    InsufficientResourceError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    SchedulingError,
    SlotConflictError,
)
from flexbook.utils.pagination import PageRequest, page_request

router = APIRouter(prefix="/appointments", tags=["appointments"])


# =============================================================================
# Helper Functions
# =============================================================================

_ERROR_STATUS: list[tuple[type[SchedulingError], int]] = [
    (BookingValidationError, 400),
    (PermissionDeniedError, 403),
    (NotFoundError, 404),
    (SlotConflictError, 409),
    (InvalidTransitionError, 409),
    (InsufficientResourceError, 402),
]


def _http_error(exc: SchedulingError) -> HTTPException:
    """Translate a service error into an HTTP error with its code."""
    status_code = 400
    for error_type, code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            status_code = code
            break
    return HTTPException(status_code=status_code, detail={"code": exc.code, "message": exc.message})


def _actor(session: UserSession) -> Actor:
    return Actor(user_id=session.user_id, role=session.role)


def _appointment_to_read(appt: Appointment) -> AppointmentRead:
    """Convert Appointment model to read schema."""
    return AppointmentRead(
        id=appt.id,
        client_id=appt.client_id,
        client_name=appt.client.name if appt.client else None,
        professional_id=appt.professional_id,
        professional_name=appt.professional.name if appt.professional else None,
        location_id=appt.location_id,
        scheduled_at=appt.scheduled_at,
        status=appt.status,
        payment_method=appt.payment_method,
        payment_gateway=appt.payment_gateway,
        payment_status=appt.payment_status,
        subscription_id=appt.subscription_id,
        services=[
            AppointmentServiceRead(
                id=s.id,
                name=s.name,
                duration_minutes=s.duration_minutes,
                price=s.price,
            )
            for s in appt.services
        ],
        total_price=appt.total_price,
        total_duration_minutes=appt.total_duration_minutes,
        notes=appt.notes,
        confirmed_at=appt.confirmed_at,
        completed_at=appt.completed_at,
        canceled_at=appt.canceled_at,
        cancellation_reason=appt.cancellation_reason,
        created_at=appt.created_at,
        updated_at=appt.updated_at,
    )


# =============================================================================
# Availability
# =============================================================================

@router.get("/availability", response_model=AvailabilityResponse)
def get_availability(
    date: date = Query(..., description="Calendar date in the business timezone"),
    professional_id: UUID | None = Query(None),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Available start times. A hint only: booking re-checks the slot."""
    try:
        tenant = tenant_service.require_tenant(db, session.tenant_id)
        slots = slot_service.get_available_slots(
            db,
            session.tenant_id,
            date,
            professional_id=professional_id,
        )
    except SchedulingError as e:
        raise _http_error(e)

    return AvailabilityResponse(
        date=date,
        professional_id=professional_id,
        timezone=tenant.timezone,
        slots=[slot.strftime("%H:%M") for slot in slots],
    )


# =============================================================================
# Booking
# =============================================================================

@router.post("", response_model=AppointmentRead, status_code=201)
@limiter.limit(booking_limit)
def create_booking(
    request: Request,
    data: BookingCreate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Book an appointment. Clients always book for themselves."""
    if session.role == Role.CLIENT:
        client_id = session.user_id
    else:
        client_id = data.client_id or session.user_id

    try:
        appointment = appointment_service.create_booking(
            db,
            tenant_id=session.tenant_id,
            client_id=client_id,
            service_ids=data.service_ids,
            day=data.date,
            start_time=parse_hhmm(data.time),
            payment_method=data.payment_method,
            professional_id=data.professional_id,
            location_id=data.location_id,
            gateway=data.gateway,
            notes=data.notes,
        )
    except SchedulingError as e:
        raise _http_error(e)

    return _appointment_to_read(appointment)


# =============================================================================
# Listing
# =============================================================================

@router.get("", response_model=AppointmentListResponse)
def list_appointments(
    date: date | None = Query(None),
    status: str | None = Query(None),
    pagination: PageRequest = Depends(page_request),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """List appointments visible to the caller, latest first."""
    try:
        appointments, total = appointment_service.list_appointments(
            db,
            tenant_id=session.tenant_id,
            actor=_actor(session),
            day=date,
            status=status,
            limit=pagination.per_page,
            offset=pagination.offset,
        )
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown status '{status}'")
    except SchedulingError as e:
        raise _http_error(e)

    return AppointmentListResponse(
        items=[_appointment_to_read(a) for a in appointments],
        total=total,
        page=pagination.page,
        per_page=pagination.per_page,
        pages=pagination.page_count(total),
    )


@router.post("/bulk-delete", response_model=BulkDeleteResponse)
def bulk_delete_appointments(
    data: BulkDeleteRequest,
    session: UserSession = Depends(require_roles([Role.ADMIN])),
    db: Session = Depends(get_db),
):
    """Delete appointments. Refused when any of them is completed."""
    try:
        deleted = appointment_service.delete_appointments(
            db, session.tenant_id, data.ids, actor=_actor(session)
        )
    except SchedulingError as e:
        raise _http_error(e)
    return BulkDeleteResponse(deleted=deleted)


@router.get("/{appointment_id}", response_model=AppointmentRead)
def get_appointment(
    appointment_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    try:
        appointment = appointment_service.get_appointment(
            db, session.tenant_id, appointment_id, actor=_actor(session)
        )
    except SchedulingError as e:
        raise _http_error(e)
    return _appointment_to_read(appointment)


# =============================================================================
# Lifecycle
# =============================================================================

@router.patch("/{appointment_id}/status", response_model=AppointmentRead)
def update_status(
    appointment_id: UUID,
    data: StatusUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Confirm, complete or cancel an appointment."""
    try:
        appointment = appointment_service.transition_appointment(
            db,
            session.tenant_id,
            appointment_id,
            data.status,
            actor=_actor(session),
            reason=data.reason,
        )
    except SchedulingError as e:
        raise _http_error(e)
    return _appointment_to_read(appointment)


@router.patch("/{appointment_id}", response_model=AppointmentRead)
def reschedule_appointment(
    appointment_id: UUID,
    data: AppointmentReschedule,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Staff and admins move an appointment to another slot."""
    try:
        appointment = appointment_service.reschedule_appointment(
            db,
            session.tenant_id,
            appointment_id,
            day=data.date,
            start_time=parse_hhmm(data.time),
            professional_id=data.professional_id,
            actor=_actor(session),
        )
    except SchedulingError as e:
        raise _http_error(e)
    return _appointment_to_read(appointment)


@router.post(
    "/{appointment_id}/payment-settlement",
    response_model=AppointmentRead,
)
def settle_payment(
    appointment_id: UUID,
    data: PaymentSettlement,
    session: UserSession = Depends(require_roles([Role.ADMIN])),
    db: Session = Depends(get_db),
):
    """Settlement callback relayed by the payment layer."""
    try:
        appointment = appointment_service.settle_online_payment(
            db, session.tenant_id, appointment_id, approved=data.approved
        )
    except SchedulingError as e:
        raise _http_error(e)
    return _appointment_to_read(appointment)
