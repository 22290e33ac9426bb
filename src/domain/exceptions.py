

class BookingEngineError(Exception):
    """
    Base exception for all domain-level errors
    inside the booking engine.
    """

    code = "BOOKING_ENGINE_ERROR"


class BookingValidationError(BookingEngineError):
    """Raised when a request is malformed or violates a field rule."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class AdvanceBookingViolationError(BookingValidationError):
    """Raised when a line item is booked inside its minimum lead time."""

    code = "ADVANCE_BOOKING_VIOLATION"


class CatalogItemNotFoundError(BookingValidationError):
    code = "CATALOG_ITEM_NOT_FOUND"

    def __init__(self, item_type: str, item_id: str):
        self.item_type = item_type
        self.item_id = item_id
        super().__init__(f"{item_type} '{item_id}' not found", field=item_type)


class QuantityOutOfBoundsError(BookingEngineError):
    """
    Raised when a line quantity falls outside the bounds
    declared by the catalog.
    """

    code = "QUANTITY_OUT_OF_BOUNDS"

    def __init__(
        self,
        line: str,
        quantity: int,
        minimum: int | None,
        maximum: int | None,
    ):
        self.line = line
        self.quantity = quantity
        self.minimum = minimum
        self.maximum = maximum

        message = (
            f"Quantity {quantity} for {line} is outside "
            f"[{minimum if minimum is not None else '-'}, "
            f"{maximum if maximum is not None else '-'}]"
        )
        super().__init__(message)


class ResourceConflictError(BookingEngineError):
    """Raised when a confirmation would double-claim a resource."""

    code = "RESOURCE_CONFLICT"

    def __init__(self, booking_id: str, conflicting_booking_ids: list[str]):
        self.booking_id = booking_id
        self.conflicting_booking_ids = list(conflicting_booking_ids)

        message = (
            f"Booking {booking_id} conflicts with "
            f"{', '.join(self.conflicting_booking_ids)}"
        )
        super().__init__(message)


class InvalidStateTransitionError(BookingEngineError):
    """
    Raised when an illegal booking state transition is attempted.
    """

    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state

        message = (
            f"Illegal state transition attempted: "
            f"{from_state} -> {to_state}"
        )
        super().__init__(message)


class PrematureTransitionError(BookingEngineError):
    """Raised when a time-gated transition is requested too early."""

    code = "PREMATURE_TRANSITION"

    def __init__(self, to_state: str, not_before):
        self.to_state = to_state
        self.not_before = not_before
        super().__init__(
            f"Cannot move to {to_state} before {not_before.isoformat()}"
        )


class BookingAlreadyCancelledError(BookingEngineError):
    code = "BOOKING_ALREADY_CANCELLED"

    def __init__(self, booking_id: str):
        self.booking_id = booking_id
        super().__init__(f"Booking {booking_id} is already cancelled")


class BookingNotFoundError(BookingEngineError):
    code = "BOOKING_NOT_FOUND"

    def __init__(self, booking_id: str):
        self.booking_id = booking_id
        super().__init__(f"Booking {booking_id} not found")


class StoreUnavailableError(BookingEngineError):
    """Raised when the backing store cannot serve the request."""

    code = "STORE_UNAVAILABLE"


class LockTimeoutError(StoreUnavailableError):
    """Raised when resource locks cannot be acquired within the budget."""

    code = "LOCK_TIMEOUT"

    def __init__(self, keys, timeout: float):
        self.keys = list(keys)
        self.timeout = timeout
        super().__init__(
            f"Timed out after {timeout:.1f}s waiting for locks: "
            f"{', '.join(self.keys)}"
        )
