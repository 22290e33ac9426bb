from datetime import date
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from src.api.schemas.schemas import (
    AdminNotesRequest,
    AvailabilityRequest,
    AvailabilityResponse,
    BookingCreateRequest,
    BookingResponse,
    CancelRequest,
    OutboxEventResponse,
    PaymentStatusRequest,
    PriceBreakdownResponse,
)
from src.application.booking_service import BookingLifecycleManager
from src.domain.exceptions import (
    BookingAlreadyCancelledError,
    BookingEngineError,
    BookingNotFoundError,
    BookingValidationError,
    InvalidStateTransitionError,
    PrematureTransitionError,
    QuantityOutOfBoundsError,
    ResourceConflictError,
    StoreUnavailableError,
)
from src.domain.models import BookingFilters, ServiceCategory
from src.domain.state_machine import BookingStatus, PaymentStatus
from src.infrastructure.repositories.outbox_repository import OutboxEventPublisher


router = APIRouter()
logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type[BookingEngineError], int]] = [
    (BookingNotFoundError, status.HTTP_404_NOT_FOUND),
    (ResourceConflictError, status.HTTP_409_CONFLICT),
    (BookingAlreadyCancelledError, status.HTTP_409_CONFLICT),
    (InvalidStateTransitionError, status.HTTP_409_CONFLICT),
    (PrematureTransitionError, status.HTTP_409_CONFLICT),
    (QuantityOutOfBoundsError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (BookingValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (StoreUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def get_booking_manager(request: Request) -> BookingLifecycleManager:
    return request.app.state.booking_manager


def get_outbox(request: Request) -> OutboxEventPublisher:
    outbox = getattr(request.app.state, "outbox", None)
    if outbox is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Outbox is not configured",
        )
    return outbox


def _to_http_error(exc: BookingEngineError) -> HTTPException:
    status_code = next(
        (code for error_cls, code in _STATUS_BY_ERROR if isinstance(exc, error_cls)),
        status.HTTP_400_BAD_REQUEST,
    )
    detail: dict = {"code": exc.code, "message": str(exc)}

    if isinstance(exc, ResourceConflictError):
        detail["conflicting_booking_ids"] = exc.conflicting_booking_ids
    elif isinstance(exc, InvalidStateTransitionError):
        detail["from_status"] = exc.from_state
        detail["to_status"] = exc.to_state
    elif isinstance(exc, QuantityOutOfBoundsError):
        detail["line"] = exc.line
        detail["minimum"] = exc.minimum
        detail["maximum"] = exc.maximum
    elif isinstance(exc, BookingValidationError) and exc.field:
        detail["field"] = exc.field

    if status_code == status.HTTP_503_SERVICE_UNAVAILABLE:
        logger.warning("Request rejected, store degraded: %s", exc)
    return HTTPException(status_code=status_code, detail=detail)


@router.get("/health")
def health():
    return {"message": "Booking & Pricing Engine is running"}


# -----------------------------
# Bookings
# -----------------------------
@router.post(
    "/bookings",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_booking(
    request: BookingCreateRequest,
    manager: BookingLifecycleManager = Depends(get_booking_manager),
):
    try:
        booking = manager.create(request.to_domain())
    except BookingEngineError as exc:
        raise _to_http_error(exc) from exc

    return BookingResponse.from_domain(booking)


@router.get("/bookings", response_model=list[BookingResponse])
def list_bookings(
    status_filter: BookingStatus | None = None,
    payment_status: PaymentStatus | None = None,
    event_type: ServiceCategory | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    manager: BookingLifecycleManager = Depends(get_booking_manager),
):
    filters = BookingFilters(
        status=status_filter,
        payment_status=payment_status,
        event_type=event_type,
        date_from=date_from,
        date_to=date_to,
    )
    try:
        bookings = manager.list_bookings(filters)
    except BookingEngineError as exc:
        raise _to_http_error(exc) from exc

    return [BookingResponse.from_domain(booking) for booking in bookings]


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: str,
    manager: BookingLifecycleManager = Depends(get_booking_manager),
):
    try:
        booking = manager.get(booking_id)
    except BookingEngineError as exc:
        raise _to_http_error(exc) from exc

    return BookingResponse.from_domain(booking)


@router.post("/bookings/{booking_id}/confirm", response_model=BookingResponse)
def confirm_booking(
    booking_id: str,
    manager: BookingLifecycleManager = Depends(get_booking_manager),
):
    try:
        booking = manager.confirm(booking_id)
    except BookingEngineError as exc:
        raise _to_http_error(exc) from exc

    return BookingResponse.from_domain(booking)


@router.post("/bookings/{booking_id}/cancel", response_model=BookingResponse)
def cancel_booking(
    booking_id: str,
    request: CancelRequest | None = None,
    manager: BookingLifecycleManager = Depends(get_booking_manager),
):
    reason = request.reason if request else None
    try:
        booking = manager.cancel(booking_id, reason=reason)
    except BookingEngineError as exc:
        raise _to_http_error(exc) from exc

    return BookingResponse.from_domain(booking)


@router.patch("/bookings/{booking_id}/payment-status", response_model=BookingResponse)
def update_payment_status(
    booking_id: str,
    request: PaymentStatusRequest,
    manager: BookingLifecycleManager = Depends(get_booking_manager),
):
    try:
        booking = manager.transition_payment(booking_id, request.payment_status)
    except BookingEngineError as exc:
        raise _to_http_error(exc) from exc

    return BookingResponse.from_domain(booking)


@router.post("/bookings/{booking_id}/start", response_model=BookingResponse)
def start_booking(
    booking_id: str,
    manager: BookingLifecycleManager = Depends(get_booking_manager),
):
    try:
        booking = manager.mark_in_progress(booking_id)
    except BookingEngineError as exc:
        raise _to_http_error(exc) from exc

    return BookingResponse.from_domain(booking)


@router.post("/bookings/{booking_id}/complete", response_model=BookingResponse)
def complete_booking(
    booking_id: str,
    manager: BookingLifecycleManager = Depends(get_booking_manager),
):
    try:
        booking = manager.mark_completed(booking_id)
    except BookingEngineError as exc:
        raise _to_http_error(exc) from exc

    return BookingResponse.from_domain(booking)


@router.patch("/bookings/{booking_id}/admin-notes", response_model=BookingResponse)
def update_admin_notes(
    booking_id: str,
    request: AdminNotesRequest,
    manager: BookingLifecycleManager = Depends(get_booking_manager),
):
    try:
        booking = manager.update_admin_notes(booking_id, request.admin_notes)
    except BookingEngineError as exc:
        raise _to_http_error(exc) from exc

    return BookingResponse.from_domain(booking)


# -----------------------------
# Pricing / availability
# -----------------------------
@router.post("/pricing/quote", response_model=PriceBreakdownResponse)
def quote_price(
    request: BookingCreateRequest,
    manager: BookingLifecycleManager = Depends(get_booking_manager),
):
    try:
        pricing = manager.quote(request.to_domain())
    except BookingEngineError as exc:
        raise _to_http_error(exc) from exc

    return PriceBreakdownResponse.from_domain(pricing)


@router.post("/availability", response_model=AvailabilityResponse)
def check_availability(
    request: AvailabilityRequest,
    manager: BookingLifecycleManager = Depends(get_booking_manager),
):
    try:
        refs = [item.to_domain() for item in request.resources]
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"code": BookingValidationError.code, "message": str(exc)},
        ) from exc

    try:
        availability = manager.check_availability(refs)
    except BookingEngineError as exc:
        raise _to_http_error(exc) from exc

    return AvailabilityResponse(
        available=availability.is_available,
        conflicting_booking_ids=list(availability.conflicting_booking_ids),
    )


# -----------------------------
# Outbox
# -----------------------------
@router.get("/outbox/events", response_model=list[OutboxEventResponse])
def list_outbox_events(
    status_filter: str = "PENDING",
    limit: int = 50,
    outbox: OutboxEventPublisher = Depends(get_outbox),
):
    safe_limit = max(1, min(limit, 200))
    events = outbox.list_events(status=status_filter, limit=safe_limit)
    return [
        OutboxEventResponse(
            id=item.id,
            aggregate_type=item.aggregate_type,
            aggregate_id=item.aggregate_id,
            event_type=item.event_type,
            status=item.status,
            attempts=item.attempts,
            created_at=item.created_at.isoformat(),
        )
        for item in events
    ]


@router.post("/outbox/events/{event_id}/mark-published", response_model=OutboxEventResponse)
def mark_outbox_event_published(
    event_id: str,
    outbox: OutboxEventPublisher = Depends(get_outbox),
):
    item = outbox.mark_published(event_id)
    if not item:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Outbox event not found",
        )

    return OutboxEventResponse(
        id=item.id,
        aggregate_type=item.aggregate_type,
        aggregate_id=item.aggregate_id,
        event_type=item.event_type,
        status=item.status,
        attempts=item.attempts,
        created_at=item.created_at.isoformat(),
    )
