import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from src.application.interfaces import BookingStore, Catalog
from src.domain.exceptions import BookingValidationError, QuantityOutOfBoundsError
from src.domain.models import ResourceKind, ResourceRef, TimeWindow

logger = logging.getLogger(__name__)

PROVIDER_CALENDAR_CAPACITY = 1


@dataclass(frozen=True)
class Availability:
    conflicting_booking_ids: tuple[str, ...] = ()

    @property
    def is_available(self) -> bool:
        return not self.conflicting_booking_ids


@dataclass(frozen=True)
class _Usage:
    booking_id: str | None
    window: TimeWindow
    quantity: int


class AvailabilityChecker:
    """
    Decides whether resource claims fit next to the claims already held
    by CONFIRMED/IN_PROGRESS bookings.

    Callers that act on the answer must hold the store locks for the
    resources involved; the checker itself does not lock.
    """

    def __init__(self, store: BookingStore, catalog: Catalog):
        self._store = store
        self._catalog = catalog

    def check_availability(
        self,
        resource_refs: Iterable[ResourceRef],
        window: TimeWindow | None = None,
        exclude_booking_id: str | None = None,
    ) -> Availability:
        requested: dict[str, list[_Usage]] = defaultdict(list)
        capacities: dict[str, int] = {}

        for ref in resource_refs:
            ref_window = ref.window or window
            if ref_window is None:
                raise BookingValidationError(
                    f"No time window given for resource {ref.key}", field="window"
                )
            if ref.quantity <= 0:
                raise BookingValidationError(
                    f"Quantity for resource {ref.key} must be positive", field="quantity"
                )

            if ref.key not in capacities:
                capacities[ref.key] = self._capacity_for(ref)
            if ref.quantity > capacities[ref.key]:
                raise QuantityOutOfBoundsError(
                    line=ref.key, quantity=ref.quantity, minimum=1, maximum=capacities[ref.key]
                )
            requested[ref.key].append(
                _Usage(booking_id=None, window=ref_window, quantity=ref.quantity)
            )

        conflicts: set[str] = set()
        for key, lines in requested.items():
            span = TimeWindow(
                start=min(line.window.start for line in lines),
                end=max(line.window.end for line in lines),
            )
            usages = self._usages_for(key, span, exclude_booking_id)
            clashing = _over_capacity(key, lines, usages, capacities[key])
            if clashing:
                logger.info(
                    "Resource %s over capacity in %s - %s; clashing bookings: %s",
                    key,
                    span.start.isoformat(),
                    span.end.isoformat(),
                    sorted(clashing),
                )
            conflicts |= clashing

        return Availability(conflicting_booking_ids=tuple(sorted(conflicts)))

    def _capacity_for(self, ref: ResourceRef) -> int:
        if ref.kind is ResourceKind.PROVIDER_CALENDAR:
            return PROVIDER_CALENDAR_CAPACITY
        return self._catalog.get_equipment(ref.resource_id).stock_quantity

    def _usages_for(
        self,
        resource_key: str,
        window: TimeWindow,
        exclude_booking_id: str | None,
    ) -> list[_Usage]:
        usages = []
        for booking in self._store.find_active_by_resource_window(resource_key, window):
            if booking.id == exclude_booking_id or not booking.holds_claim:
                continue
            for claimed in booking.resource_refs():
                if claimed.key == resource_key and claimed.window.overlaps(window):
                    usages.append(
                        _Usage(
                            booking_id=booking.id,
                            window=claimed.window,
                            quantity=claimed.quantity,
                        )
                    )
        return usages


def _active_in(usages: list[_Usage], start: datetime, end: datetime) -> list[_Usage]:
    return [usage for usage in usages if usage.window.start < end and start < usage.window.end]


def _over_capacity(
    resource_key: str,
    requested: list[_Usage],
    usages: list[_Usage],
    capacity: int,
) -> set[str]:
    """
    Sweep the requested lines segment by segment. Where the requested
    load plus the existing load exceeds `capacity`, every booking active
    in that segment is reported. Requested lines that overlap each other
    count together; if they alone exceed `capacity` the request can never
    fit and is rejected outright.
    """
    boundaries: set[datetime] = set()
    for usage in (*requested, *usages):
        boundaries.update((usage.window.start, usage.window.end))

    ordered = sorted(boundaries)
    clashing: set[str] = set()
    for segment_start, segment_end in zip(ordered, ordered[1:]):
        wanted = sum(usage.quantity for usage in _active_in(requested, segment_start, segment_end))
        if not wanted:
            continue
        if wanted > capacity:
            raise QuantityOutOfBoundsError(
                line=resource_key, quantity=wanted, minimum=1, maximum=capacity
            )
        active = _active_in(usages, segment_start, segment_end)
        if wanted + sum(usage.quantity for usage in active) > capacity:
            clashing.update(usage.booking_id for usage in active)
    return clashing
