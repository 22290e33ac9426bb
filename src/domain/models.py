"""Domain models for the catalog, line items and the Booking aggregate.

Catalog entries are frozen: the engine only reads them. A Booking is
mutable but only the lifecycle manager changes it; stores hand out copies.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum

from src.domain.state_machine import BookingStatus, PaymentStatus


class ServiceCategory(str, Enum):
    WEDDING = "WEDDING"
    CORPORATE = "CORPORATE"
    PERSONAL = "PERSONAL"
    EVENT = "EVENT"


class PackageType(str, Enum):
    PHOTOGRAPHY = "PHOTOGRAPHY"
    VIDEOGRAPHY = "VIDEOGRAPHY"
    BOTH = "BOTH"


class EquipmentStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    MAINTENANCE = "MAINTENANCE"
    RETIRED = "RETIRED"


class ResourceKind(str, Enum):
    PROVIDER_CALENDAR = "PROVIDER_CALENDAR"
    EQUIPMENT = "EQUIPMENT"


# There is one provider and one calendar.
DEFAULT_PROVIDER_ID = "default"


# -----------------------------
# Catalog
# -----------------------------
@dataclass(frozen=True)
class Package:
    id: str
    name: str
    service_category: ServiceCategory
    package_type: PackageType
    base_price: int
    duration_hours: int
    max_photos: int | None = None
    max_videos: int | None = None
    includes: tuple[str, ...] = ()
    is_customizable: bool = False
    is_active: bool = True


@dataclass(frozen=True)
class AddOn:
    id: str
    name: str
    unit_price: int
    description: str = ""
    is_active: bool = True


@dataclass(frozen=True)
class Equipment:
    id: str
    name: str
    daily_rate: int
    stock_quantity: int
    security_deposit: int = 0
    advance_booking_days: int = 0
    status: EquipmentStatus = EquipmentStatus.AVAILABLE


@dataclass(frozen=True)
class CateringService:
    id: str
    name: str
    base_price: int
    price_per_person: int | None = None
    min_order_quantity: int = 1
    max_order_quantity: int | None = None
    advance_booking_days: int = 0
    is_active: bool = True

    @property
    def unit_price(self) -> int:
        if self.price_per_person is not None:
            return self.price_per_person
        return self.base_price


# -----------------------------
# Time windows and resources
# -----------------------------
@dataclass(frozen=True)
class TimeWindow:
    """Half-open interval [start, end) of timezone-aware datetimes."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError("TimeWindow bounds must be timezone-aware")
        if self.end <= self.start:
            raise ValueError("TimeWindow end must be after start")

    @classmethod
    def for_days(cls, first_day: date, last_day: date) -> "TimeWindow":
        """Whole days, both ends inclusive."""
        start = datetime.combine(first_day, time.min, tzinfo=timezone.utc)
        end = datetime.combine(
            last_day + timedelta(days=1), time.min, tzinfo=timezone.utc
        )
        return cls(start=start, end=end)

    def overlaps(self, other: "TimeWindow") -> bool:
        return self.start < other.end and other.start < self.end


@dataclass(frozen=True)
class ResourceRef:
    """A claim request on a finite-capacity resource."""

    kind: ResourceKind
    resource_id: str
    quantity: int = 1
    window: TimeWindow | None = None

    @property
    def key(self) -> str:
        return f"{self.kind.value.lower()}:{self.resource_id}"


def provider_calendar_ref(window: TimeWindow | None = None) -> ResourceRef:
    return ResourceRef(
        kind=ResourceKind.PROVIDER_CALENDAR,
        resource_id=DEFAULT_PROVIDER_ID,
        window=window,
    )


# -----------------------------
# Line items
# -----------------------------
@dataclass(frozen=True)
class PackageLine:
    package_id: str
    name: str
    base_price: int


@dataclass(frozen=True)
class AddOnLine:
    add_on_id: str
    name: str
    unit_price: int
    quantity: int

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class EquipmentRentalLine:
    equipment_id: str
    name: str
    quantity: int
    rental_start_date: date
    rental_end_date: date
    daily_rate: int
    security_deposit: int = 0
    advance_booking_days: int = 0

    @property
    def rental_days(self) -> int:
        # Inclusive on both ends: a same-day rental is one day.
        return (self.rental_end_date - self.rental_start_date).days + 1

    @property
    def line_total(self) -> int:
        return self.daily_rate * self.rental_days * self.quantity

    @property
    def deposit_total(self) -> int:
        return self.security_deposit * self.quantity

    @property
    def window(self) -> TimeWindow:
        return TimeWindow.for_days(self.rental_start_date, self.rental_end_date)


@dataclass(frozen=True)
class CateringOrderLine:
    catering_service_id: str
    name: str
    quantity: int
    unit_price: int
    min_order_quantity: int = 1
    max_order_quantity: int | None = None
    advance_booking_days: int = 0

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class PriceBreakdown:
    base_price: int
    add_on_total: int
    rental_total: int
    catering_total: int
    discount_amount: int
    final_price: int
    security_deposit_total: int = 0

    @property
    def subtotal(self) -> int:
        return (
            self.base_price
            + self.add_on_total
            + self.rental_total
            + self.catering_total
        )


# -----------------------------
# Requests
# -----------------------------
@dataclass(frozen=True)
class ClientContact:
    name: str
    email: str
    phone: str | None = None


@dataclass(frozen=True)
class AddOnSelection:
    add_on_id: str
    quantity: int = 1


@dataclass(frozen=True)
class EquipmentSelection:
    equipment_id: str
    rental_start_date: date
    rental_end_date: date
    quantity: int = 1


@dataclass(frozen=True)
class CateringSelection:
    catering_service_id: str
    quantity: int


@dataclass(frozen=True)
class BookingRequest:
    client: ClientContact
    event_type: ServiceCategory
    event_date: date
    event_time: time
    location: str
    package_id: str
    duration_hours: int | None = None
    add_ons: tuple[AddOnSelection, ...] = ()
    equipment_rentals: tuple[EquipmentSelection, ...] = ()
    catering_orders: tuple[CateringSelection, ...] = ()
    discount_amount: int = 0
    guest_count: int | None = None
    special_requests: str | None = None
    admin_notes: str | None = None


@dataclass(frozen=True)
class BookingFilters:
    status: BookingStatus | None = None
    payment_status: PaymentStatus | None = None
    event_type: ServiceCategory | None = None
    date_from: date | None = None
    date_to: date | None = None


# -----------------------------
# Aggregate root
# -----------------------------
@dataclass
class Booking:
    id: str
    booking_number: str
    client: ClientContact
    event_type: ServiceCategory
    event_date: date
    event_time: time
    starts_at: datetime
    duration_hours: int
    location: str
    package: PackageLine
    pricing: PriceBreakdown
    created_at: datetime
    updated_at: datetime
    add_ons: list[AddOnLine] = field(default_factory=list)
    equipment_rentals: list[EquipmentRentalLine] = field(default_factory=list)
    catering_orders: list[CateringOrderLine] = field(default_factory=list)
    discount_amount: int = 0
    status: BookingStatus = BookingStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    guest_count: int | None = None
    special_requests: str | None = None
    admin_notes: str | None = None
    confirmed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None

    @property
    def ends_at(self) -> datetime:
        return self.starts_at + timedelta(hours=self.duration_hours)

    @property
    def event_window(self) -> TimeWindow:
        return TimeWindow(start=self.starts_at, end=self.ends_at)

    @property
    def holds_claim(self) -> bool:
        return self.status in (BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS)

    def resource_refs(self) -> list[ResourceRef]:
        """Every resource this booking claims once confirmed."""
        refs = [provider_calendar_ref(self.event_window)]
        for rental in self.equipment_rentals:
            refs.append(
                ResourceRef(
                    kind=ResourceKind.EQUIPMENT,
                    resource_id=rental.equipment_id,
                    quantity=rental.quantity,
                    window=rental.window,
                )
            )
        return refs

    def resource_keys(self) -> list[str]:
        return sorted({ref.key for ref in self.resource_refs()})

    def copy(self) -> "Booking":
        return replace(
            self,
            add_ons=list(self.add_ons),
            equipment_rentals=list(self.equipment_rentals),
            catering_orders=list(self.catering_orders),
        )
