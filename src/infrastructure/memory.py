"""In-memory store, catalog and event publisher.

Reference implementations used by the test suite and for running the API
without a database.
"""

import threading
from collections import defaultdict
from contextlib import AbstractContextManager
from typing import Iterable

from src.application.interfaces import BookingStore, Catalog
from src.domain.events import DomainEvent
from src.domain.exceptions import CatalogItemNotFoundError
from src.domain.models import (
    AddOn,
    Booking,
    BookingFilters,
    CateringService,
    Equipment,
    Package,
    TimeWindow,
)
from src.infrastructure.locks import ResourceLockRegistry


class InMemoryCatalog(Catalog):
    def __init__(
        self,
        packages: Iterable[Package] = (),
        add_ons: Iterable[AddOn] = (),
        equipment: Iterable[Equipment] = (),
        catering_services: Iterable[CateringService] = (),
    ) -> None:
        self._lock = threading.Lock()
        self._packages = {item.id: item for item in packages}
        self._add_ons = {item.id: item for item in add_ons}
        self._equipment = {item.id: item for item in equipment}
        self._catering = {item.id: item for item in catering_services}

    def get_package(self, package_id: str) -> Package:
        return self._lookup(self._packages, "package", package_id)

    def get_add_on(self, add_on_id: str) -> AddOn:
        return self._lookup(self._add_ons, "add_on", add_on_id)

    def get_equipment(self, equipment_id: str) -> Equipment:
        return self._lookup(self._equipment, "equipment", equipment_id)

    def get_catering_service(self, catering_service_id: str) -> CateringService:
        return self._lookup(self._catering, "catering_service", catering_service_id)

    def put(self, item) -> None:
        """Insert or replace a catalog entry, e.g. to change a price."""
        table = {
            Package: self._packages,
            AddOn: self._add_ons,
            Equipment: self._equipment,
            CateringService: self._catering,
        }[type(item)]
        with self._lock:
            table[item.id] = item

    def _lookup(self, table: dict, item_type: str, item_id: str):
        with self._lock:
            item = table.get(item_id)
        if item is None:
            raise CatalogItemNotFoundError(item_type, item_id)
        return item


class InMemoryBookingStore(BookingStore):
    def __init__(self, locks: ResourceLockRegistry | None = None) -> None:
        self._mutex = threading.RLock()
        self._bookings: dict[str, Booking] = {}
        self._sequences: dict[int, int] = defaultdict(int)
        self._locks = locks or ResourceLockRegistry()

    def add(self, booking: Booking) -> None:
        with self._mutex:
            if booking.id in self._bookings:
                raise ValueError(f"Booking {booking.id} already exists")
            self._bookings[booking.id] = booking.copy()

    def get(self, booking_id: str) -> Booking | None:
        with self._mutex:
            booking = self._bookings.get(booking_id)
            return booking.copy() if booking else None

    def update(self, booking: Booking) -> None:
        with self._mutex:
            if booking.id not in self._bookings:
                raise KeyError(booking.id)
            self._bookings[booking.id] = booking.copy()

    def list_bookings(self, filters: BookingFilters | None = None) -> list[Booking]:
        filters = filters or BookingFilters()
        with self._mutex:
            bookings = [b.copy() for b in self._bookings.values() if _matches(b, filters)]
        return sorted(bookings, key=lambda b: b.created_at, reverse=True)

    def find_active_by_resource_window(
        self, resource_key: str, window: TimeWindow
    ) -> list[Booking]:
        with self._mutex:
            return [
                booking.copy()
                for booking in self._bookings.values()
                if booking.holds_claim
                and any(
                    ref.key == resource_key and ref.window.overlaps(window)
                    for ref in booking.resource_refs()
                )
            ]

    def next_booking_number(self, year: int) -> int:
        with self._mutex:
            self._sequences[year] += 1
            return self._sequences[year]

    def lock(self, keys: Iterable[str], timeout: float) -> AbstractContextManager:
        return self._locks.acquire(keys, timeout)


class InMemoryEventPublisher:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.events: list[DomainEvent] = []

    def publish(self, event: DomainEvent) -> None:
        with self._lock:
            if any(seen.dedupe_key == event.dedupe_key for seen in self.events):
                return
            self.events.append(event)

    def of_type(self, event_cls) -> list[DomainEvent]:
        with self._lock:
            return [event for event in self.events if isinstance(event, event_cls)]


def _matches(booking: Booking, filters: BookingFilters) -> bool:
    if filters.status is not None and booking.status != filters.status:
        return False
    if filters.payment_status is not None and booking.payment_status != filters.payment_status:
        return False
    if filters.event_type is not None and booking.event_type != filters.event_type:
        return False
    if filters.date_from is not None and booking.event_date < filters.date_from:
        return False
    if filters.date_to is not None and booking.event_date > filters.date_to:
        return False
    return True
