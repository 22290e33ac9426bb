# src/infrastructure/db/models.py

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import date, datetime, time
from uuid import uuid4

from src.infrastructure.db.session import Base
from src.domain.models import EquipmentStatus, PackageType, ServiceCategory
from src.domain.state_machine import BookingStatus, PaymentStatus


# -----------------------------
# Catalog
# -----------------------------
class PackageRecord(Base):
    __tablename__ = "packages"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    service_category: Mapped[ServiceCategory] = mapped_column(
        Enum(ServiceCategory, name="service_category"),
        nullable=False,
    )
    package_type: Mapped[PackageType] = mapped_column(
        Enum(PackageType, name="package_type"),
        nullable=False,
    )
    base_price: Mapped[int] = mapped_column(Integer, nullable=False)
    duration_hours: Mapped[int] = mapped_column(Integer, nullable=False)
    max_photos: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_videos: Mapped[int | None] = mapped_column(Integer, nullable=True)
    includes: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    is_customizable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("base_price >= 0", name="ck_package_price_nonnegative"),
        CheckConstraint("duration_hours > 0", name="ck_package_duration_positive"),
    )


class AddOnRecord(Base):
    __tablename__ = "add_ons"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    unit_price: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("unit_price >= 0", name="ck_add_on_price_nonnegative"),
    )


class EquipmentRecord(Base):
    __tablename__ = "equipment"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    daily_rate: Mapped[int] = mapped_column(Integer, nullable=False)
    stock_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    security_deposit: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    advance_booking_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[EquipmentStatus] = mapped_column(
        Enum(EquipmentStatus, name="equipment_status"),
        nullable=False,
        default=EquipmentStatus.AVAILABLE,
    )

    __table_args__ = (
        CheckConstraint("daily_rate >= 0", name="ck_equipment_rate_nonnegative"),
        CheckConstraint("stock_quantity >= 0", name="ck_equipment_stock_nonnegative"),
    )


class CateringServiceRecord(Base):
    __tablename__ = "catering_services"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    base_price: Mapped[int] = mapped_column(Integer, nullable=False)
    price_per_person: Mapped[int | None] = mapped_column(Integer, nullable=True)
    min_order_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    max_order_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    advance_booking_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("min_order_quantity >= 1", name="ck_catering_min_positive"),
        CheckConstraint(
            "max_order_quantity IS NULL OR max_order_quantity >= min_order_quantity",
            name="ck_catering_max_gte_min",
        ),
    )


# -----------------------------
# Bookings
# -----------------------------
class BookingRecord(Base):
    """
    Booking table reflecting domain state.
    Domain controls transitions.
    DB stores current state safely.
    """

    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    booking_number: Mapped[str] = mapped_column(String(32), nullable=False)
    client_name: Mapped[str] = mapped_column(String(128), nullable=False)
    client_email: Mapped[str] = mapped_column(String(255), nullable=False)
    client_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    event_type: Mapped[ServiceCategory] = mapped_column(
        Enum(ServiceCategory, name="service_category"),
        nullable=False,
    )
    event_date: Mapped[date] = mapped_column(Date, nullable=False)
    event_time: Mapped[time] = mapped_column(Time, nullable=False)
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration_hours: Mapped[int] = mapped_column(Integer, nullable=False)
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    package_id: Mapped[str] = mapped_column(String(36), nullable=False)
    package_name: Mapped[str] = mapped_column(String(128), nullable=False)
    base_price: Mapped[int] = mapped_column(Integer, nullable=False)
    add_on_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rental_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    catering_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    discount_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    final_price: Mapped[int] = mapped_column(Integer, nullable=False)
    security_deposit_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, name="booking_status"),
        nullable=False,
        default=BookingStatus.PENDING,
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, name="payment_status"),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    guest_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    special_requests: Mapped[str | None] = mapped_column(Text, nullable=True)
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    add_ons: Mapped[list["BookingAddOnRecord"]] = relationship(
        cascade="all, delete-orphan",
        order_by="BookingAddOnRecord.position",
        lazy="selectin",
    )
    equipment_rentals: Mapped[list["BookingEquipmentRentalRecord"]] = relationship(
        cascade="all, delete-orphan",
        order_by="BookingEquipmentRentalRecord.position",
        lazy="selectin",
    )
    catering_orders: Mapped[list["BookingCateringOrderRecord"]] = relationship(
        cascade="all, delete-orphan",
        order_by="BookingCateringOrderRecord.position",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint(
            "booking_number",
            name="uq_booking_number",
        ),
        CheckConstraint(
            "duration_hours > 0",
            name="ck_duration_positive",
        ),
        CheckConstraint(
            "final_price >= 0",
            name="ck_final_price_nonnegative",
        ),
        CheckConstraint(
            "discount_amount >= 0",
            name="ck_discount_nonnegative",
        ),
    )


class BookingAddOnRecord(Base):
    __tablename__ = "booking_add_ons"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    booking_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    add_on_id: Mapped[str] = mapped_column(String(36), nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    unit_price: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_add_on_quantity_positive"),
    )


class BookingEquipmentRentalRecord(Base):
    __tablename__ = "booking_equipment_rentals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    booking_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    equipment_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    rental_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    rental_end_date: Mapped[date] = mapped_column(Date, nullable=False)
    window_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    window_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    daily_rate: Mapped[int] = mapped_column(Integer, nullable=False)
    security_deposit: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    advance_booking_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_rental_quantity_positive"),
        CheckConstraint(
            "rental_end_date >= rental_start_date",
            name="ck_rental_dates_ordered",
        ),
    )


class BookingCateringOrderRecord(Base):
    __tablename__ = "booking_catering_orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    booking_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    catering_service_id: Mapped[str] = mapped_column(String(36), nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[int] = mapped_column(Integer, nullable=False)
    min_order_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    max_order_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    advance_booking_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_catering_quantity_positive"),
    )


# -----------------------------
# Coordination
# -----------------------------
class ResourceLockRecord(Base):
    """One row per lock key; confirmations SELECT ... FOR UPDATE it."""

    __tablename__ = "resource_locks"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )


class BookingNumberSequence(Base):
    __tablename__ = "booking_number_sequences"

    year: Mapped[int] = mapped_column(Integer, primary_key=True)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class OutboxEvent(Base):
    __tablename__ = "outbox_events"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    aggregate_type: Mapped[str] = mapped_column(String(64), nullable=False)
    aggregate_id: Mapped[str] = mapped_column(String(36), nullable=False)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    dedupe_key: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="PENDING")
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("dedupe_key", name="uq_outbox_dedupe_key"),
    )
