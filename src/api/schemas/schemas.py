from datetime import date, datetime, time

from pydantic import AwareDatetime, BaseModel, Field

from src.domain.models import (
    AddOnSelection,
    Booking,
    BookingRequest,
    CateringSelection,
    ClientContact,
    EquipmentSelection,
    PriceBreakdown,
    ResourceKind,
    ResourceRef,
    ServiceCategory,
    TimeWindow,
)
from src.domain.state_machine import BookingStatus, PaymentStatus


# -----------------------------
# Requests
# -----------------------------
class ClientContactSchema(BaseModel):
    name: str = Field(min_length=2)
    email: str = Field(min_length=3)
    phone: str | None = None


class AddOnSelectionSchema(BaseModel):
    add_on_id: str
    quantity: int = Field(default=1, gt=0)


class EquipmentSelectionSchema(BaseModel):
    equipment_id: str
    rental_start_date: date
    rental_end_date: date
    quantity: int = Field(default=1, gt=0)


class CateringSelectionSchema(BaseModel):
    catering_service_id: str
    quantity: int = Field(gt=0)


class BookingCreateRequest(BaseModel):
    client: ClientContactSchema
    event_type: ServiceCategory
    event_date: date
    event_time: time
    location: str = Field(min_length=2)
    package_id: str
    duration_hours: int | None = Field(default=None, gt=0)
    add_ons: list[AddOnSelectionSchema] = []
    equipment_rentals: list[EquipmentSelectionSchema] = []
    catering_orders: list[CateringSelectionSchema] = []
    discount_amount: int = Field(default=0, ge=0)
    guest_count: int | None = Field(default=None, ge=1)
    special_requests: str | None = None
    admin_notes: str | None = None

    def to_domain(self) -> BookingRequest:
        return BookingRequest(
            client=ClientContact(**self.client.model_dump()),
            event_type=self.event_type,
            event_date=self.event_date,
            event_time=self.event_time,
            location=self.location,
            package_id=self.package_id,
            duration_hours=self.duration_hours,
            add_ons=tuple(AddOnSelection(**item.model_dump()) for item in self.add_ons),
            equipment_rentals=tuple(
                EquipmentSelection(**item.model_dump()) for item in self.equipment_rentals
            ),
            catering_orders=tuple(
                CateringSelection(**item.model_dump()) for item in self.catering_orders
            ),
            discount_amount=self.discount_amount,
            guest_count=self.guest_count,
            special_requests=self.special_requests,
            admin_notes=self.admin_notes,
        )


class CancelRequest(BaseModel):
    reason: str | None = None


class PaymentStatusRequest(BaseModel):
    payment_status: PaymentStatus


class AdminNotesRequest(BaseModel):
    admin_notes: str | None = None


class ResourceRefSchema(BaseModel):
    kind: ResourceKind
    resource_id: str = "default"
    quantity: int = Field(default=1, gt=0)
    start: AwareDatetime
    end: AwareDatetime

    def to_domain(self) -> ResourceRef:
        return ResourceRef(
            kind=self.kind,
            resource_id=self.resource_id,
            quantity=self.quantity,
            window=TimeWindow(start=self.start, end=self.end),
        )


class AvailabilityRequest(BaseModel):
    resources: list[ResourceRefSchema] = Field(min_length=1)


# -----------------------------
# Responses
# -----------------------------
class PriceBreakdownResponse(BaseModel):
    base_price: int
    add_on_total: int
    rental_total: int
    catering_total: int
    subtotal: int
    discount_amount: int
    final_price: int
    security_deposit_total: int

    @classmethod
    def from_domain(cls, pricing: PriceBreakdown) -> "PriceBreakdownResponse":
        return cls(
            base_price=pricing.base_price,
            add_on_total=pricing.add_on_total,
            rental_total=pricing.rental_total,
            catering_total=pricing.catering_total,
            subtotal=pricing.subtotal,
            discount_amount=pricing.discount_amount,
            final_price=pricing.final_price,
            security_deposit_total=pricing.security_deposit_total,
        )


class AddOnLineResponse(BaseModel):
    add_on_id: str
    name: str
    unit_price: int
    quantity: int
    line_total: int


class EquipmentRentalLineResponse(BaseModel):
    equipment_id: str
    name: str
    quantity: int
    rental_start_date: date
    rental_end_date: date
    rental_days: int
    daily_rate: int
    security_deposit: int
    line_total: int


class CateringOrderLineResponse(BaseModel):
    catering_service_id: str
    name: str
    quantity: int
    unit_price: int
    line_total: int


class BookingResponse(BaseModel):
    booking_id: str
    booking_number: str
    status: BookingStatus
    payment_status: PaymentStatus
    client: ClientContactSchema
    event_type: ServiceCategory
    event_date: date
    event_time: time
    starts_at: datetime
    ends_at: datetime
    duration_hours: int
    location: str
    package_id: str
    package_name: str
    add_ons: list[AddOnLineResponse]
    equipment_rentals: list[EquipmentRentalLineResponse]
    catering_orders: list[CateringOrderLineResponse]
    pricing: PriceBreakdownResponse
    guest_count: int | None = None
    special_requests: str | None = None
    admin_notes: str | None = None
    confirmed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, booking: Booking) -> "BookingResponse":
        return cls(
            booking_id=booking.id,
            booking_number=booking.booking_number,
            status=booking.status,
            payment_status=booking.payment_status,
            client=ClientContactSchema(
                name=booking.client.name,
                email=booking.client.email,
                phone=booking.client.phone,
            ),
            event_type=booking.event_type,
            event_date=booking.event_date,
            event_time=booking.event_time,
            starts_at=booking.starts_at,
            ends_at=booking.ends_at,
            duration_hours=booking.duration_hours,
            location=booking.location,
            package_id=booking.package.package_id,
            package_name=booking.package.name,
            add_ons=[
                AddOnLineResponse(
                    add_on_id=line.add_on_id,
                    name=line.name,
                    unit_price=line.unit_price,
                    quantity=line.quantity,
                    line_total=line.line_total,
                )
                for line in booking.add_ons
            ],
            equipment_rentals=[
                EquipmentRentalLineResponse(
                    equipment_id=line.equipment_id,
                    name=line.name,
                    quantity=line.quantity,
                    rental_start_date=line.rental_start_date,
                    rental_end_date=line.rental_end_date,
                    rental_days=line.rental_days,
                    daily_rate=line.daily_rate,
                    security_deposit=line.security_deposit,
                    line_total=line.line_total,
                )
                for line in booking.equipment_rentals
            ],
            catering_orders=[
                CateringOrderLineResponse(
                    catering_service_id=line.catering_service_id,
                    name=line.name,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    line_total=line.line_total,
                )
                for line in booking.catering_orders
            ],
            pricing=PriceBreakdownResponse.from_domain(booking.pricing),
            guest_count=booking.guest_count,
            special_requests=booking.special_requests,
            admin_notes=booking.admin_notes,
            confirmed_at=booking.confirmed_at,
            cancelled_at=booking.cancelled_at,
            cancellation_reason=booking.cancellation_reason,
            created_at=booking.created_at,
            updated_at=booking.updated_at,
        )


class AvailabilityResponse(BaseModel):
    available: bool
    conflicting_booking_ids: list[str]


class OutboxEventResponse(BaseModel):
    id: str
    aggregate_type: str
    aggregate_id: str
    event_type: str
    status: str
    attempts: int
    created_at: str
