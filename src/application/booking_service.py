import logging
from contextlib import ExitStack
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Callable, Iterable
from uuid import uuid4

from src.application.availability import Availability, AvailabilityChecker
from src.application.interfaces import BookingStore, Catalog, EventPublisher
from src.domain.events import (
    BookingCancelled,
    BookingConfirmed,
    BookingCreated,
    DomainEvent,
    PaymentStatusChanged,
)
from src.domain.exceptions import (
    AdvanceBookingViolationError,
    BookingAlreadyCancelledError,
    BookingNotFoundError,
    BookingValidationError,
    PrematureTransitionError,
    QuantityOutOfBoundsError,
    ResourceConflictError,
)
from src.domain.models import (
    AddOnLine,
    AddOnSelection,
    Booking,
    BookingFilters,
    BookingRequest,
    CateringOrderLine,
    CateringSelection,
    EquipmentRentalLine,
    EquipmentSelection,
    EquipmentStatus,
    PackageLine,
    PriceBreakdown,
    ResourceRef,
    TimeWindow,
)
from src.domain.pricing import compute_price
from src.domain.state_machine import (
    BookingStateMachine,
    BookingStatus,
    PaymentStateMachine,
    PaymentStatus,
)
from src.domain.time_utils import utc_now

logger = logging.getLogger(__name__)


def booking_lock_key(booking_id: str) -> str:
    return f"booking:{booking_id}"


@dataclass
class _ResolvedLines:
    package: PackageLine
    add_ons: list[AddOnLine]
    equipment_rentals: list[EquipmentRentalLine]
    catering_orders: list[CateringOrderLine]

    def price(self, discount_amount: int) -> PriceBreakdown:
        return compute_price(
            self.package,
            self.add_ons,
            self.equipment_rentals,
            self.catering_orders,
            discount_amount,
        )


class BookingLifecycleManager:
    """
    Application service coordinating the booking workflow.

    Owns every Booking state change. Mutations of one booking are
    serialized through its booking lock; confirmation (and cancellation of
    a booking that holds a claim) also takes the locks of the resources
    involved, so the availability check and the claim it guards happen
    atomically with respect to other confirmations.
    """

    def __init__(
        self,
        store: BookingStore,
        catalog: Catalog,
        publisher: EventPublisher | None = None,
        *,
        clock: Callable[[], datetime] = utc_now,
        tz: tzinfo = timezone.utc,
        lock_timeout: float = 5.0,
        booking_number_prefix: str = "PH",
        id_factory: Callable[[], str] = lambda: str(uuid4()),
    ):
        self.store = store
        self.catalog = catalog
        self.publisher = publisher
        self.availability = AvailabilityChecker(store, catalog)
        self._clock = clock
        self._tz = tz
        self._lock_timeout = lock_timeout
        self._booking_number_prefix = booking_number_prefix
        self._id_factory = id_factory

    # -----------------------------
    # Queries
    # -----------------------------
    def get(self, booking_id: str) -> Booking:
        booking = self.store.get(booking_id)
        if booking is None:
            raise BookingNotFoundError(booking_id)
        return booking

    def list_bookings(self, filters: BookingFilters | None = None) -> list[Booking]:
        return self.store.list_bookings(filters)

    def quote(self, request: BookingRequest) -> PriceBreakdown:
        """Price a request against the current catalog without storing it."""
        self._validate_request(request)
        lines = self._resolve(
            request.package_id,
            request.add_ons,
            request.equipment_rentals,
            request.catering_orders,
        )
        return lines.price(request.discount_amount)

    def check_availability(
        self,
        resource_refs: Iterable[ResourceRef],
        window: TimeWindow | None = None,
    ) -> Availability:
        """Advisory check; the answer may be stale by the time it is used."""
        return self.availability.check_availability(resource_refs, window)

    # -----------------------------
    # Commands
    # -----------------------------
    def create(self, request: BookingRequest) -> Booking:
        self._validate_request(request)
        now = self._now()

        package = self.catalog.get_package(request.package_id)
        duration_hours = request.duration_hours or package.duration_hours
        if duration_hours <= 0:
            raise BookingValidationError("Duration must be positive", field="duration_hours")

        starts_at = datetime.combine(request.event_date, request.event_time, tzinfo=self._tz)
        lines = self._resolve(
            request.package_id,
            request.add_ons,
            request.equipment_rentals,
            request.catering_orders,
        )
        self._check_lead_times(starts_at, request.event_date, lines, now)
        pricing = lines.price(request.discount_amount)

        booking = Booking(
            id=self._id_factory(),
            booking_number=self._allocate_booking_number(now.year),
            client=request.client,
            event_type=request.event_type,
            event_date=request.event_date,
            event_time=request.event_time,
            starts_at=starts_at,
            duration_hours=duration_hours,
            location=request.location.strip(),
            package=lines.package,
            pricing=pricing,
            created_at=now,
            updated_at=now,
            add_ons=lines.add_ons,
            equipment_rentals=lines.equipment_rentals,
            catering_orders=lines.catering_orders,
            discount_amount=request.discount_amount,
            guest_count=request.guest_count,
            special_requests=request.special_requests,
            admin_notes=request.admin_notes,
        )
        self.store.add(booking)
        logger.info(
            "Created booking %s (%s) for %s, provisional price %s",
            booking.booking_number,
            booking.id,
            booking.starts_at.isoformat(),
            pricing.final_price,
        )

        self._publish(
            BookingCreated(
                booking_id=booking.id,
                occurred_at=now,
                booking_number=booking.booking_number,
                client_email=booking.client.email,
            )
        )
        return booking

    def confirm(self, booking_id: str) -> Booking:
        # Unlocked read only to learn which resources to lock; the booking's
        # line items (and therefore its resource keys) never change.
        booking = self.get(booking_id)
        keys = [booking_lock_key(booking_id), *booking.resource_keys()]

        with self.store.lock(keys, self._lock_timeout):
            booking = self.get(booking_id)

            if booking.status is BookingStatus.CANCELLED:
                raise BookingAlreadyCancelledError(booking_id)
            if booking.status is BookingStatus.CONFIRMED:
                # Publishers drop the repeat by its dedupe key.
                logger.info("Booking %s already confirmed; re-publishing confirmation", booking_id)
                self._publish(_confirmed_event(booking))
                return booking
            BookingStateMachine.validate_transition(booking.status, BookingStatus.CONFIRMED)

            now = self._now()
            lines = self._resolve(
                booking.package.package_id,
                [AddOnSelection(line.add_on_id, line.quantity) for line in booking.add_ons],
                [
                    EquipmentSelection(
                        equipment_id=line.equipment_id,
                        rental_start_date=line.rental_start_date,
                        rental_end_date=line.rental_end_date,
                        quantity=line.quantity,
                    )
                    for line in booking.equipment_rentals
                ],
                [
                    CateringSelection(line.catering_service_id, line.quantity)
                    for line in booking.catering_orders
                ],
            )
            self._check_lead_times(booking.starts_at, booking.event_date, lines, now)

            availability = self.availability.check_availability(
                booking.resource_refs(),
                exclude_booking_id=booking.id,
            )
            if not availability.is_available:
                logger.warning(
                    "Booking %s not confirmed; conflicts with %s",
                    booking_id,
                    list(availability.conflicting_booking_ids),
                )
                raise ResourceConflictError(booking_id, list(availability.conflicting_booking_ids))

            booking.package = lines.package
            booking.add_ons = lines.add_ons
            booking.equipment_rentals = lines.equipment_rentals
            booking.catering_orders = lines.catering_orders
            booking.pricing = lines.price(booking.discount_amount)
            booking.confirmed_at = now
            self._transition(booking, BookingStatus.CONFIRMED, now)
            self.store.update(booking)

        logger.info(
            "Confirmed booking %s at final price %s",
            booking.booking_number,
            booking.pricing.final_price,
        )
        self._publish(_confirmed_event(booking))
        return booking

    def cancel(self, booking_id: str, reason: str | None = None) -> Booking:
        with ExitStack() as stack:
            stack.enter_context(
                self.store.lock([booking_lock_key(booking_id)], self._lock_timeout)
            )
            booking = self.get(booking_id)
            previous = booking.status
            BookingStateMachine.validate_transition(previous, BookingStatus.CANCELLED)

            if booking.holds_claim:
                # Releasing a claim is ordered with confirmations on the same resources.
                stack.enter_context(
                    self.store.lock(booking.resource_keys(), self._lock_timeout)
                )

            now = self._now()
            booking.cancelled_at = now
            booking.cancellation_reason = reason
            self._transition(booking, BookingStatus.CANCELLED, now)
            self.store.update(booking)

        logger.info("Cancelled booking %s (was %s)", booking.booking_number, previous.value)
        self._publish(
            BookingCancelled(
                booking_id=booking.id,
                occurred_at=now,
                previous_status=previous.value,
                reason=reason,
            )
        )
        return booking

    def transition_payment(self, booking_id: str, new_status: PaymentStatus) -> Booking:
        with self.store.lock([booking_lock_key(booking_id)], self._lock_timeout):
            booking = self.get(booking_id)
            previous = booking.payment_status
            PaymentStateMachine.validate_transition(previous, new_status)

            now = self._now()
            booking.payment_status = new_status
            booking.updated_at = now
            self.store.update(booking)

        logger.info(
            "Payment status of booking %s: %s -> %s",
            booking.booking_number,
            previous.value,
            new_status.value,
        )
        self._publish(
            PaymentStatusChanged(
                booking_id=booking.id,
                occurred_at=now,
                from_status=previous.value,
                to_status=new_status.value,
            )
        )
        return booking

    def mark_in_progress(self, booking_id: str) -> Booking:
        with self.store.lock([booking_lock_key(booking_id)], self._lock_timeout):
            booking = self.get(booking_id)
            BookingStateMachine.validate_transition(booking.status, BookingStatus.IN_PROGRESS)

            now = self._now()
            if now < booking.starts_at:
                raise PrematureTransitionError(BookingStatus.IN_PROGRESS.value, booking.starts_at)

            self._transition(booking, BookingStatus.IN_PROGRESS, now)
            self.store.update(booking)
        return booking

    def mark_completed(self, booking_id: str) -> Booking:
        with self.store.lock([booking_lock_key(booking_id)], self._lock_timeout):
            booking = self.get(booking_id)
            BookingStateMachine.validate_transition(booking.status, BookingStatus.COMPLETED)

            now = self._now()
            if now < booking.ends_at:
                raise PrematureTransitionError(BookingStatus.COMPLETED.value, booking.ends_at)

            self._transition(booking, BookingStatus.COMPLETED, now)
            self.store.update(booking)
        return booking

    def update_admin_notes(self, booking_id: str, admin_notes: str | None) -> Booking:
        with self.store.lock([booking_lock_key(booking_id)], self._lock_timeout):
            booking = self.get(booking_id)
            booking.admin_notes = admin_notes
            booking.updated_at = self._now()
            self.store.update(booking)
        return booking

    # -----------------------------
    # Helpers
    # -----------------------------
    def _transition(self, booking: Booking, to_status: BookingStatus, now: datetime) -> None:
        BookingStateMachine.validate_transition(booking.status, to_status)
        logger.debug("Booking %s: %s -> %s", booking.id, booking.status.value, to_status.value)
        booking.status = to_status
        booking.updated_at = now

    def _now(self) -> datetime:
        return self._clock()

    def _publish(self, event: DomainEvent) -> None:
        if self.publisher is not None:
            self.publisher.publish(event)

    def _allocate_booking_number(self, year: int) -> str:
        sequence = self.store.next_booking_number(year)
        return f"{self._booking_number_prefix}-{year}-{sequence:03d}"

    def _validate_request(self, request: BookingRequest) -> None:
        if len(request.client.name.strip()) < 2:
            raise BookingValidationError(
                "Client name must be at least 2 characters", field="client.name"
            )
        if "@" not in request.client.email:
            raise BookingValidationError("Client email is invalid", field="client.email")
        if not request.location.strip():
            raise BookingValidationError("Location is required", field="location")
        if not request.package_id:
            raise BookingValidationError("Package is required", field="package_id")
        if request.duration_hours is not None and request.duration_hours <= 0:
            raise BookingValidationError("Duration must be positive", field="duration_hours")
        if request.guest_count is not None and request.guest_count < 1:
            raise BookingValidationError("Guest count must be at least 1", field="guest_count")
        if request.discount_amount < 0:
            raise BookingValidationError(
                "Discount amount cannot be negative", field="discount_amount"
            )
        for rental in request.equipment_rentals:
            if rental.rental_end_date < rental.rental_start_date:
                raise BookingValidationError(
                    f"Rental of {rental.equipment_id} ends before it starts",
                    field="equipment_rentals",
                )

    def _resolve(
        self,
        package_id: str,
        add_ons: Iterable[AddOnSelection],
        equipment_rentals: Iterable[EquipmentSelection],
        catering_orders: Iterable[CateringSelection],
    ) -> _ResolvedLines:
        """Look up current catalog prices for every selection."""
        package = self.catalog.get_package(package_id)
        if not package.is_active:
            raise BookingValidationError(f"Package {package_id} is not active", field="package_id")

        add_on_lines = []
        for selection in add_ons:
            add_on = self.catalog.get_add_on(selection.add_on_id)
            if not add_on.is_active:
                raise BookingValidationError(
                    f"Add-on {add_on.id} is not available", field="add_ons"
                )
            add_on_lines.append(
                AddOnLine(
                    add_on_id=add_on.id,
                    name=add_on.name,
                    unit_price=add_on.unit_price,
                    quantity=selection.quantity,
                )
            )

        rental_lines = []
        stock: dict[str, int] = {}
        for selection in equipment_rentals:
            equipment = self.catalog.get_equipment(selection.equipment_id)
            if equipment.status is not EquipmentStatus.AVAILABLE:
                raise BookingValidationError(
                    f"Equipment {equipment.id} is not available for rental",
                    field="equipment_rentals",
                )
            if selection.quantity > equipment.stock_quantity:
                raise QuantityOutOfBoundsError(
                    line=f"equipment {equipment.id}",
                    quantity=selection.quantity,
                    minimum=1,
                    maximum=equipment.stock_quantity,
                )
            stock[equipment.id] = equipment.stock_quantity
            rental_lines.append(
                EquipmentRentalLine(
                    equipment_id=equipment.id,
                    name=equipment.name,
                    quantity=selection.quantity,
                    rental_start_date=selection.rental_start_date,
                    rental_end_date=selection.rental_end_date,
                    daily_rate=equipment.daily_rate,
                    security_deposit=equipment.security_deposit,
                    advance_booking_days=equipment.advance_booking_days,
                )
            )
        for equipment_id, stock_quantity in stock.items():
            peak = _peak_units([line for line in rental_lines if line.equipment_id == equipment_id])
            if peak > stock_quantity:
                raise QuantityOutOfBoundsError(
                    line=f"equipment {equipment_id}",
                    quantity=peak,
                    minimum=1,
                    maximum=stock_quantity,
                )

        catering_lines = []
        for selection in catering_orders:
            service = self.catalog.get_catering_service(selection.catering_service_id)
            if not service.is_active:
                raise BookingValidationError(
                    f"Catering service {service.id} is not available", field="catering_orders"
                )
            catering_lines.append(
                CateringOrderLine(
                    catering_service_id=service.id,
                    name=service.name,
                    quantity=selection.quantity,
                    unit_price=service.unit_price,
                    min_order_quantity=service.min_order_quantity,
                    max_order_quantity=service.max_order_quantity,
                    advance_booking_days=service.advance_booking_days,
                )
            )

        return _ResolvedLines(
            package=PackageLine(
                package_id=package.id,
                name=package.name,
                base_price=package.base_price,
            ),
            add_ons=add_on_lines,
            equipment_rentals=rental_lines,
            catering_orders=catering_lines,
        )

    def _check_lead_times(
        self,
        starts_at: datetime,
        event_date: date,
        lines: _ResolvedLines,
        now: datetime,
    ) -> None:
        if starts_at <= now:
            raise BookingValidationError("Event date must be in the future", field="event_date")

        today = now.astimezone(self._tz).date()
        for rental in lines.equipment_rentals:
            earliest = today + timedelta(days=rental.advance_booking_days)
            if rental.rental_start_date < earliest:
                raise AdvanceBookingViolationError(
                    f"Equipment {rental.equipment_id} must be booked "
                    f"{rental.advance_booking_days} day(s) ahead; earliest start is {earliest}",
                    field="equipment_rentals",
                )
        for order in lines.catering_orders:
            earliest = today + timedelta(days=order.advance_booking_days)
            if event_date < earliest:
                raise AdvanceBookingViolationError(
                    f"Catering {order.catering_service_id} must be booked "
                    f"{order.advance_booking_days} day(s) ahead; earliest event date is {earliest}",
                    field="catering_orders",
                )


def _peak_units(rentals: list[EquipmentRentalLine]) -> int:
    # Rentals span whole days, so the peak falls on some line's first day.
    return max(
        sum(
            other.quantity
            for other in rentals
            if other.rental_start_date <= line.rental_start_date <= other.rental_end_date
        )
        for line in rentals
    )


def _confirmed_event(booking: Booking) -> BookingConfirmed:
    return BookingConfirmed(
        booking_id=booking.id,
        occurred_at=booking.confirmed_at,
        booking_number=booking.booking_number,
        final_price=booking.pricing.final_price,
    )
