"""Collaborator interfaces (repository pattern).

Stores and catalogs must be swappable and return domain models.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Iterable, Protocol

from src.domain.events import DomainEvent
from src.domain.models import (
    AddOn,
    Booking,
    BookingFilters,
    CateringService,
    Equipment,
    Package,
    TimeWindow,
)


class Catalog(ABC):
    """Read-only lookup of current catalog prices, stock and bounds."""

    @abstractmethod
    def get_package(self, package_id: str) -> Package:
        """Raises CatalogItemNotFoundError if the package does not exist."""
        ...

    @abstractmethod
    def get_add_on(self, add_on_id: str) -> AddOn:
        ...

    @abstractmethod
    def get_equipment(self, equipment_id: str) -> Equipment:
        ...

    @abstractmethod
    def get_catering_service(self, catering_service_id: str) -> CateringService:
        ...


class BookingStore(ABC):
    """Interface for booking persistence with resource-scoped locking."""

    @abstractmethod
    def add(self, booking: Booking) -> None:
        """Persist a new booking."""
        ...

    @abstractmethod
    def get(self, booking_id: str) -> Booking | None:
        """Return a copy of the booking, or None if not found."""
        ...

    @abstractmethod
    def update(self, booking: Booking) -> None:
        """Overwrite the stored booking with the given state."""
        ...

    @abstractmethod
    def list_bookings(self, filters: BookingFilters | None = None) -> list[Booking]:
        """Return matching bookings ordered by created_at descending."""
        ...

    @abstractmethod
    def find_active_by_resource_window(
        self, resource_key: str, window: TimeWindow
    ) -> list[Booking]:
        """
        Return CONFIRMED/IN_PROGRESS bookings claiming `resource_key`
        in a window overlapping `window`.

        Must reflect every confirm/cancel committed before the call.
        """
        ...

    @abstractmethod
    def next_booking_number(self, year: int) -> int:
        """Allocate the next per-year booking sequence number."""
        ...

    @abstractmethod
    def lock(self, keys: Iterable[str], timeout: float) -> AbstractContextManager:
        """
        Hold exclusive locks on `keys` for the duration of the block.

        Raises LockTimeoutError if the locks are not acquired in time.
        """
        ...


class EventPublisher(Protocol):
    def publish(self, event: DomainEvent) -> None:
        ...
