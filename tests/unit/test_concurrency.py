# tests/unit/test_concurrency.py

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import date

import pytest

from src.application.booking_service import BookingLifecycleManager
from src.domain.exceptions import (
    BookingAlreadyCancelledError,
    LockTimeoutError,
    ResourceConflictError,
    StoreUnavailableError,
)
from src.domain.models import EquipmentSelection
from src.domain.state_machine import BookingStatus
from src.infrastructure.memory import InMemoryBookingStore


class SlowAvailabilityStore(InMemoryBookingStore):
    """Widens the read-then-claim window so unsynchronized confirms would race."""

    def find_active_by_resource_window(self, resource_key, window):
        result = super().find_active_by_resource_window(resource_key, window)
        time.sleep(0.02)
        return result


def _confirm_outcome(manager, booking_id):
    try:
        return manager.confirm(booking_id).status
    except ResourceConflictError as exc:
        return exc


@pytest.mark.parametrize("contenders", [2, 8])
def test_concurrent_confirms_for_same_slot_admit_exactly_one(
    catalog, clock, booking_request, contenders
):
    store = SlowAvailabilityStore()
    manager = BookingLifecycleManager(store, catalog, clock=clock, lock_timeout=10.0)
    ids = [manager.create(booking_request()).id for _ in range(contenders)]

    with ThreadPoolExecutor(max_workers=contenders) as pool:
        outcomes = list(pool.map(lambda booking_id: _confirm_outcome(manager, booking_id), ids))

    winners = [
        booking_id for booking_id, outcome in zip(ids, outcomes) if outcome is BookingStatus.CONFIRMED
    ]
    conflicts = [outcome for outcome in outcomes if isinstance(outcome, ResourceConflictError)]

    assert len(winners) == 1
    assert len(conflicts) == contenders - 1
    assert all(exc.conflicting_booking_ids == winners for exc in conflicts)


def test_concurrent_confirms_respect_equipment_stock(catalog, clock, booking_request):
    store = SlowAvailabilityStore()
    manager = BookingLifecycleManager(store, catalog, clock=clock, lock_timeout=10.0)
    rental = (EquipmentSelection("eq-lighting", date(2025, 7, 20), date(2025, 7, 21)),)
    # Different event days keep the provider calendar out of the contest.
    ids = [
        manager.create(booking_request(event_date=date(2025, 7, day), equipment_rentals=rental)).id
        for day in (20, 21, 25)
    ]

    with ThreadPoolExecutor(max_workers=3) as pool:
        outcomes = list(pool.map(lambda booking_id: _confirm_outcome(manager, booking_id), ids))

    confirmed = [o for o in outcomes if o is BookingStatus.CONFIRMED]
    assert len(confirmed) == 2  # stock of two lighting kits
    assert sum(isinstance(o, ResourceConflictError) for o in outcomes) == 1


def test_confirm_and_cancel_on_same_booking_serialize(manager, booking_request):
    booking = manager.create(booking_request())
    results = {}

    def confirm():
        try:
            results["confirm"] = manager.confirm(booking.id).status
        except BookingAlreadyCancelledError as exc:
            results["confirm"] = exc

    def cancel():
        results["cancel"] = manager.cancel(booking.id, reason="race").status

    threads = [threading.Thread(target=confirm), threading.Thread(target=cancel)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results["cancel"] is BookingStatus.CANCELLED
    assert manager.get(booking.id).status is BookingStatus.CANCELLED
    assert results["confirm"] is BookingStatus.CONFIRMED or isinstance(
        results["confirm"], BookingAlreadyCancelledError
    )


def test_confirm_fails_fast_when_resource_lock_is_held(
    manager, store, catalog, clock, booking_request
):
    booking = manager.create(booking_request())
    impatient = BookingLifecycleManager(store, catalog, clock=clock, lock_timeout=0.05)

    with store.lock(["provider_calendar:default"], timeout=1.0):
        with pytest.raises(LockTimeoutError) as exc_info:
            impatient.confirm(booking.id)

    assert isinstance(exc_info.value, StoreUnavailableError)
    assert manager.get(booking.id).status is BookingStatus.PENDING


def test_unrelated_operations_do_not_wait_on_resource_locks(manager, store, booking_request):
    booking = manager.create(booking_request())

    with store.lock(["provider_calendar:default"], timeout=1.0):
        manager.update_admin_notes(booking.id, "call the venue")
        manager.create(booking_request())

    assert manager.get(booking.id).admin_notes == "call the venue"
