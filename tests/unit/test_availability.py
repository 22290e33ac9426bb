# tests/unit/test_availability.py

from datetime import date, datetime, time, timezone

import pytest

from src.domain.exceptions import (
    BookingValidationError,
    QuantityOutOfBoundsError,
    ResourceConflictError,
)
from src.domain.models import (
    EquipmentSelection,
    ResourceKind,
    ResourceRef,
    TimeWindow,
    provider_calendar_ref,
)
from src.domain.state_machine import BookingStatus


def _window(day: int, start_hour: int, end_hour: int) -> TimeWindow:
    return TimeWindow(
        start=datetime(2025, 7, day, start_hour, tzinfo=timezone.utc),
        end=datetime(2025, 7, day, end_hour, tzinfo=timezone.utc),
    )


def _lighting(first: date, last: date, quantity: int = 1) -> ResourceRef:
    return ResourceRef(
        kind=ResourceKind.EQUIPMENT,
        resource_id="eq-lighting",
        quantity=quantity,
        window=TimeWindow.for_days(first, last),
    )


def _confirmed(manager, booking_request, **overrides):
    booking = manager.create(booking_request(**overrides))
    return manager.confirm(booking.id)


def test_empty_calendar_is_available(manager):
    availability = manager.check_availability([provider_calendar_ref(_window(15, 9, 17))])

    assert availability.is_available
    assert availability.conflicting_booking_ids == ()


def test_overlapping_confirmed_booking_is_reported(manager, booking_request):
    confirmed = _confirmed(manager, booking_request)  # 14:00-22:00 on the 15th

    availability = manager.check_availability([provider_calendar_ref(_window(15, 20, 23))])

    assert not availability.is_available
    assert availability.conflicting_booking_ids == (confirmed.id,)


def test_back_to_back_windows_do_not_conflict(manager, booking_request):
    _confirmed(manager, booking_request)

    availability = manager.check_availability([provider_calendar_ref(_window(15, 22, 23))])

    assert availability.is_available


def test_pending_bookings_do_not_claim(manager, booking_request):
    manager.create(booking_request())

    assert manager.check_availability([provider_calendar_ref(_window(15, 14, 16))]).is_available


def test_cancelled_booking_releases_claim(manager, booking_request):
    confirmed = _confirmed(manager, booking_request)
    manager.cancel(confirmed.id, reason="client request")

    assert manager.check_availability([provider_calendar_ref(_window(15, 14, 16))]).is_available


def test_exclude_booking_ignores_own_claim(manager, booking_request):
    confirmed = _confirmed(manager, booking_request)

    availability = manager.availability.check_availability(
        [provider_calendar_ref(_window(15, 14, 16))],
        exclude_booking_id=confirmed.id,
    )

    assert availability.is_available


def test_equipment_is_pooled_by_stock(manager, booking_request):
    rental = EquipmentSelection("eq-lighting", date(2025, 7, 14), date(2025, 7, 16), quantity=1)
    first = _confirmed(
        manager,
        booking_request,
        event_date=date(2025, 7, 15),
        equipment_rentals=(rental,),
    )

    # One of two units taken: one more still fits, two do not.
    assert manager.check_availability(
        [_lighting(date(2025, 7, 16), date(2025, 7, 17))]
    ).is_available

    availability = manager.check_availability(
        [_lighting(date(2025, 7, 16), date(2025, 7, 17), quantity=2)]
    )
    assert availability.conflicting_booking_ids == (first.id,)


def test_only_bookings_in_the_saturated_segment_are_reported(manager, booking_request):
    # Two one-unit rentals on disjoint days; a two-unit request spanning both
    # clashes with each of them in its own segment.
    early = _confirmed(
        manager,
        booking_request,
        event_date=date(2025, 7, 10),
        equipment_rentals=(
            EquipmentSelection("eq-lighting", date(2025, 7, 10), date(2025, 7, 10)),
        ),
    )
    late = _confirmed(
        manager,
        booking_request,
        event_date=date(2025, 7, 12),
        equipment_rentals=(
            EquipmentSelection("eq-lighting", date(2025, 7, 12), date(2025, 7, 12)),
        ),
    )

    assert manager.check_availability(
        [_lighting(date(2025, 7, 10), date(2025, 7, 12))]
    ).is_available

    availability = manager.check_availability(
        [_lighting(date(2025, 7, 11), date(2025, 7, 12), quantity=2)]
    )
    assert availability.conflicting_booking_ids == (late.id,)
    assert early.id not in availability.conflicting_booking_ids


def test_request_above_stock_is_out_of_bounds(manager):
    with pytest.raises(QuantityOutOfBoundsError):
        manager.check_availability([_lighting(date(2025, 7, 1), date(2025, 7, 1), quantity=3)])


def test_requested_lines_for_one_resource_count_together(manager, booking_request):
    held = _confirmed(
        manager,
        booking_request,
        event_date=date(2025, 7, 20),
        equipment_rentals=(
            EquipmentSelection("eq-lighting", date(2025, 7, 20), date(2025, 7, 21)),
        ),
    )

    # Each line fits next to the held unit alone; together they need three on the 20th.
    availability = manager.check_availability(
        [
            _lighting(date(2025, 7, 20), date(2025, 7, 20)),
            _lighting(date(2025, 7, 20), date(2025, 7, 21)),
        ]
    )
    assert availability.conflicting_booking_ids == (held.id,)

    pending = manager.create(
        booking_request(
            event_date=date(2025, 7, 21),
            equipment_rentals=(
                EquipmentSelection("eq-lighting", date(2025, 7, 20), date(2025, 7, 20)),
                EquipmentSelection("eq-lighting", date(2025, 7, 20), date(2025, 7, 21)),
            ),
        )
    )
    with pytest.raises(ResourceConflictError) as exc_info:
        manager.confirm(pending.id)

    assert exc_info.value.conflicting_booking_ids == [held.id]
    assert manager.get(pending.id).status is BookingStatus.PENDING


def test_requested_lines_that_never_overlap_each_fit(manager, booking_request):
    _confirmed(
        manager,
        booking_request,
        event_date=date(2025, 7, 20),
        equipment_rentals=(
            EquipmentSelection("eq-lighting", date(2025, 7, 20), date(2025, 7, 20)),
        ),
    )

    assert manager.check_availability(
        [
            _lighting(date(2025, 7, 10), date(2025, 7, 10), quantity=2),
            _lighting(date(2025, 7, 20), date(2025, 7, 20), quantity=1),
        ]
    ).is_available


def test_overlapping_requested_lines_above_stock_are_out_of_bounds(manager):
    with pytest.raises(QuantityOutOfBoundsError) as exc_info:
        manager.check_availability(
            [
                _lighting(date(2025, 7, 1), date(2025, 7, 2), quantity=2),
                _lighting(date(2025, 7, 2), date(2025, 7, 3), quantity=1),
            ]
        )

    assert exc_info.value.quantity == 3


def test_ref_without_window_needs_shared_window(manager):
    with pytest.raises(BookingValidationError):
        manager.check_availability([provider_calendar_ref()])

    shared = _window(15, 9, 10)
    assert manager.check_availability([provider_calendar_ref()], window=shared).is_available


def test_time_window_rejects_naive_and_empty_bounds():
    with pytest.raises(ValueError):
        TimeWindow(start=datetime(2025, 7, 1, 9), end=datetime(2025, 7, 1, 10))
    with pytest.raises(ValueError):
        _window(1, 10, 10)


def test_day_window_covers_whole_days():
    window = TimeWindow.for_days(date(2025, 7, 14), date(2025, 7, 16))

    assert window.start == datetime.combine(date(2025, 7, 14), time.min, tzinfo=timezone.utc)
    assert window.end == datetime.combine(date(2025, 7, 17), time.min, tzinfo=timezone.utc)
