# src/infrastructure/repositories/booking_repository.py

import logging
from contextlib import AbstractContextManager, contextmanager
from typing import Iterable, Iterator

from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError, OperationalError, TimeoutError as SQLAlchemyTimeoutError
from sqlalchemy.orm import Session, sessionmaker

from src.application.interfaces import BookingStore
from src.domain.exceptions import LockTimeoutError, StoreUnavailableError
from src.domain.models import (
    AddOnLine,
    Booking,
    BookingFilters,
    CateringOrderLine,
    ClientContact,
    EquipmentRentalLine,
    PackageLine,
    PriceBreakdown,
    ResourceKind,
    TimeWindow,
)
from src.domain.state_machine import ACTIVE_STATUSES
from src.domain.time_utils import ensure_utc
from src.infrastructure.db.models import (
    BookingAddOnRecord,
    BookingCateringOrderRecord,
    BookingEquipmentRentalRecord,
    BookingNumberSequence,
    BookingRecord,
    ResourceLockRecord,
)
from src.infrastructure.db.session import get_db_session
from src.infrastructure.locks import ResourceLockRegistry

logger = logging.getLogger(__name__)


class SqlAlchemyBookingStore(BookingStore):
    """
    Booking store on SQLAlchemy.

    Locks are two-level: a process-local lock per key, then a
    SELECT ... FOR UPDATE on the key's resource_locks row held until the
    scope exits, which serializes callers in other processes.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        locks: ResourceLockRegistry | None = None,
    ):
        self._session_factory = session_factory
        self._local_locks = locks or ResourceLockRegistry()

    # -----------------------------
    # CRUD
    # -----------------------------
    def add(self, booking: Booking) -> None:
        with self._session() as db:
            db.add(_to_record(booking))

    def get(self, booking_id: str) -> Booking | None:
        with self._session() as db:
            record = db.get(BookingRecord, booking_id)
            return _to_domain(record) if record else None

    def update(self, booking: Booking) -> None:
        with self._session() as db:
            record = db.get(BookingRecord, booking.id)
            if record is None:
                raise KeyError(booking.id)
            _apply(record, booking)

    def list_bookings(self, filters: BookingFilters | None = None) -> list[Booking]:
        filters = filters or BookingFilters()
        stmt = select(BookingRecord)

        if filters.status is not None:
            stmt = stmt.where(BookingRecord.status == filters.status)
        if filters.payment_status is not None:
            stmt = stmt.where(BookingRecord.payment_status == filters.payment_status)
        if filters.event_type is not None:
            stmt = stmt.where(BookingRecord.event_type == filters.event_type)
        if filters.date_from is not None:
            stmt = stmt.where(BookingRecord.event_date >= filters.date_from)
        if filters.date_to is not None:
            stmt = stmt.where(BookingRecord.event_date <= filters.date_to)

        stmt = stmt.order_by(BookingRecord.created_at.desc())
        with self._session() as db:
            return [_to_domain(record) for record in db.execute(stmt).scalars().all()]

    def find_active_by_resource_window(
        self, resource_key: str, window: TimeWindow
    ) -> list[Booking]:
        kind, resource_id = _parse_resource_key(resource_key)
        start, end = ensure_utc(window.start), ensure_utc(window.end)

        stmt = select(BookingRecord).where(BookingRecord.status.in_(ACTIVE_STATUSES))
        if kind is ResourceKind.PROVIDER_CALENDAR:
            stmt = stmt.where(BookingRecord.starts_at < end).where(BookingRecord.ends_at > start)
        else:
            claimed = (
                select(BookingEquipmentRentalRecord.booking_id)
                .where(BookingEquipmentRentalRecord.equipment_id == resource_id)
                .where(BookingEquipmentRentalRecord.window_start < end)
                .where(BookingEquipmentRentalRecord.window_end > start)
            )
            stmt = stmt.where(BookingRecord.id.in_(claimed))

        with self._session() as db:
            return [_to_domain(record) for record in db.execute(stmt).scalars().all()]

    def next_booking_number(self, year: int) -> int:
        with self._local_locks.acquire([f"booking_number:{year}"], timeout=5.0):
            try:
                return self._increment_sequence(year)
            except IntegrityError:
                # Another process inserted the first row for this year; it exists now.
                logger.info("Booking number sequence for %s created concurrently", year)
                return self._increment_sequence(year)

    def _increment_sequence(self, year: int) -> int:
        with self._session() as db:
            sequence = self._locked_sequence(db, year)
            if sequence is None:
                sequence = BookingNumberSequence(year=year, last_value=0)
                db.add(sequence)
            sequence.last_value += 1
            value = sequence.last_value
        return value

    def _locked_sequence(self, db: Session, year: int) -> BookingNumberSequence | None:
        stmt = (
            select(BookingNumberSequence)
            .where(BookingNumberSequence.year == year)
            .with_for_update()
        )
        return db.execute(stmt).scalar_one_or_none()

    # -----------------------------
    # Locking
    # -----------------------------
    def lock(self, keys: Iterable[str], timeout: float) -> AbstractContextManager:
        return self._lock_scope(sorted(set(keys)), timeout)

    @contextmanager
    def _lock_scope(self, keys: list[str], timeout: float) -> Iterator[None]:
        with self._local_locks.acquire(keys, timeout):
            self._ensure_lock_rows(keys)

            db = self._session_factory()
            try:
                self._lock_rows(db, keys, timeout)
                yield
                db.commit()
            except (OperationalError, SQLAlchemyTimeoutError) as exc:
                db.rollback()
                raise StoreUnavailableError("Booking store is unavailable") from exc
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

    def _ensure_lock_rows(self, keys: list[str]) -> None:
        try:
            with self._session() as db:
                existing = set(
                    db.execute(
                        select(ResourceLockRecord.key).where(ResourceLockRecord.key.in_(keys))
                    ).scalars()
                )
                for key in keys:
                    if key not in existing:
                        db.add(ResourceLockRecord(key=key))
        except IntegrityError:
            # Another process created the same rows first; they exist now.
            logger.debug("Lock rows for %s created concurrently", keys)

    def _lock_rows(self, db: Session, keys: list[str], timeout: float) -> None:
        try:
            if db.get_bind().dialect.name == "postgresql":
                db.execute(text(f"SET LOCAL lock_timeout = '{int(timeout * 1000)}ms'"))
            db.execute(
                select(ResourceLockRecord)
                .where(ResourceLockRecord.key.in_(keys))
                .order_by(ResourceLockRecord.key)
                .with_for_update()
            ).scalars().all()
        except (OperationalError, SQLAlchemyTimeoutError) as exc:
            logger.warning("Could not lock rows %s: %s", keys, exc)
            raise LockTimeoutError(keys, timeout) from exc

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with get_db_session(self._session_factory) as db:
                yield db
        except (OperationalError, SQLAlchemyTimeoutError) as exc:
            logger.warning("Booking store degraded: %s", exc)
            raise StoreUnavailableError("Booking store is unavailable") from exc


# -----------------------------
# Mapping
# -----------------------------
def _parse_resource_key(resource_key: str) -> tuple[ResourceKind, str]:
    prefix, _, resource_id = resource_key.partition(":")
    return ResourceKind(prefix.upper()), resource_id


def _to_record(booking: Booking) -> BookingRecord:
    record = BookingRecord(id=booking.id)
    _apply(record, booking)
    return record


def _apply(record: BookingRecord, booking: Booking) -> None:
    record.booking_number = booking.booking_number
    record.client_name = booking.client.name
    record.client_email = booking.client.email
    record.client_phone = booking.client.phone
    record.event_type = booking.event_type
    record.event_date = booking.event_date
    record.event_time = booking.event_time
    record.starts_at = ensure_utc(booking.starts_at)
    record.ends_at = ensure_utc(booking.ends_at)
    record.duration_hours = booking.duration_hours
    record.location = booking.location
    record.package_id = booking.package.package_id
    record.package_name = booking.package.name
    record.base_price = booking.pricing.base_price
    record.add_on_total = booking.pricing.add_on_total
    record.rental_total = booking.pricing.rental_total
    record.catering_total = booking.pricing.catering_total
    record.discount_amount = booking.discount_amount
    record.final_price = booking.pricing.final_price
    record.security_deposit_total = booking.pricing.security_deposit_total
    record.status = booking.status
    record.payment_status = booking.payment_status
    record.guest_count = booking.guest_count
    record.special_requests = booking.special_requests
    record.admin_notes = booking.admin_notes
    record.confirmed_at = ensure_utc(booking.confirmed_at) if booking.confirmed_at else None
    record.cancelled_at = ensure_utc(booking.cancelled_at) if booking.cancelled_at else None
    record.cancellation_reason = booking.cancellation_reason
    record.created_at = ensure_utc(booking.created_at)
    record.updated_at = ensure_utc(booking.updated_at)

    record.add_ons = [
        BookingAddOnRecord(
            position=position,
            add_on_id=line.add_on_id,
            name=line.name,
            unit_price=line.unit_price,
            quantity=line.quantity,
        )
        for position, line in enumerate(booking.add_ons)
    ]
    record.equipment_rentals = [
        BookingEquipmentRentalRecord(
            position=position,
            equipment_id=line.equipment_id,
            name=line.name,
            quantity=line.quantity,
            rental_start_date=line.rental_start_date,
            rental_end_date=line.rental_end_date,
            window_start=line.window.start,
            window_end=line.window.end,
            daily_rate=line.daily_rate,
            security_deposit=line.security_deposit,
            advance_booking_days=line.advance_booking_days,
        )
        for position, line in enumerate(booking.equipment_rentals)
    ]
    record.catering_orders = [
        BookingCateringOrderRecord(
            position=position,
            catering_service_id=line.catering_service_id,
            name=line.name,
            quantity=line.quantity,
            unit_price=line.unit_price,
            min_order_quantity=line.min_order_quantity,
            max_order_quantity=line.max_order_quantity,
            advance_booking_days=line.advance_booking_days,
        )
        for position, line in enumerate(booking.catering_orders)
    ]


def _to_domain(record: BookingRecord) -> Booking:
    return Booking(
        id=record.id,
        booking_number=record.booking_number,
        client=ClientContact(
            name=record.client_name,
            email=record.client_email,
            phone=record.client_phone,
        ),
        event_type=record.event_type,
        event_date=record.event_date,
        event_time=record.event_time,
        starts_at=ensure_utc(record.starts_at),
        duration_hours=record.duration_hours,
        location=record.location,
        package=PackageLine(
            package_id=record.package_id,
            name=record.package_name,
            base_price=record.base_price,
        ),
        pricing=PriceBreakdown(
            base_price=record.base_price,
            add_on_total=record.add_on_total,
            rental_total=record.rental_total,
            catering_total=record.catering_total,
            discount_amount=record.discount_amount,
            final_price=record.final_price,
            security_deposit_total=record.security_deposit_total,
        ),
        created_at=ensure_utc(record.created_at),
        updated_at=ensure_utc(record.updated_at),
        add_ons=[
            AddOnLine(
                add_on_id=line.add_on_id,
                name=line.name,
                unit_price=line.unit_price,
                quantity=line.quantity,
            )
            for line in record.add_ons
        ],
        equipment_rentals=[
            EquipmentRentalLine(
                equipment_id=line.equipment_id,
                name=line.name,
                quantity=line.quantity,
                rental_start_date=line.rental_start_date,
                rental_end_date=line.rental_end_date,
                daily_rate=line.daily_rate,
                security_deposit=line.security_deposit,
                advance_booking_days=line.advance_booking_days,
            )
            for line in record.equipment_rentals
        ],
        catering_orders=[
            CateringOrderLine(
                catering_service_id=line.catering_service_id,
                name=line.name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                min_order_quantity=line.min_order_quantity,
                max_order_quantity=line.max_order_quantity,
                advance_booking_days=line.advance_booking_days,
            )
            for line in record.catering_orders
        ],
        discount_amount=record.discount_amount,
        status=record.status,
        payment_status=record.payment_status,
        guest_count=record.guest_count,
        special_requests=record.special_requests,
        admin_notes=record.admin_notes,
        confirmed_at=ensure_utc(record.confirmed_at) if record.confirmed_at else None,
        cancelled_at=ensure_utc(record.cancelled_at) if record.cancelled_at else None,
        cancellation_reason=record.cancellation_reason,
    )
