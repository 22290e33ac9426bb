# tests/unit/test_state_machine.py

import pytest

from src.domain.state_machine import (
    ACTIVE_STATUSES,
    BookingStateMachine,
    BookingStatus,
    PaymentStateMachine,
    PaymentStatus,
)
from src.domain.exceptions import InvalidStateTransitionError


# ---------------------
# VALID TRANSITIONS
# ---------------------

def test_valid_happy_path():
    assert BookingStateMachine.can_transition(
        BookingStatus.PENDING,
        BookingStatus.CONFIRMED,
    )

    assert BookingStateMachine.can_transition(
        BookingStatus.CONFIRMED,
        BookingStatus.IN_PROGRESS,
    )

    assert BookingStateMachine.can_transition(
        BookingStatus.IN_PROGRESS,
        BookingStatus.COMPLETED,
    )


@pytest.mark.parametrize("from_status", [BookingStatus.PENDING, BookingStatus.CONFIRMED])
def test_cancel_allowed_before_event_starts(from_status):
    assert BookingStateMachine.can_transition(from_status, BookingStatus.CANCELLED)


def test_payment_happy_path():
    assert PaymentStateMachine.can_transition(PaymentStatus.PENDING, PaymentStatus.PARTIAL)
    assert PaymentStateMachine.can_transition(PaymentStatus.PARTIAL, PaymentStatus.PAID)
    assert PaymentStateMachine.can_transition(PaymentStatus.PAID, PaymentStatus.REFUNDED)
    assert PaymentStateMachine.can_transition(PaymentStatus.PARTIAL, PaymentStatus.REFUNDED)


# ---------------------
# INVALID TRANSITIONS
# ---------------------

def test_cannot_skip_confirmation():
    with pytest.raises(InvalidStateTransitionError):
        BookingStateMachine.validate_transition(
            BookingStatus.PENDING,
            BookingStatus.IN_PROGRESS,
        )


def test_in_progress_cannot_be_cancelled():
    with pytest.raises(InvalidStateTransitionError):
        BookingStateMachine.validate_transition(
            BookingStatus.IN_PROGRESS,
            BookingStatus.CANCELLED,
        )


def test_terminal_state_completed():
    assert BookingStateMachine.is_terminal(BookingStatus.COMPLETED)

    with pytest.raises(InvalidStateTransitionError) as exc_info:
        BookingStateMachine.validate_transition(
            BookingStatus.COMPLETED,
            BookingStatus.CANCELLED,
        )
    assert exc_info.value.from_state == "COMPLETED"
    assert exc_info.value.to_state == "CANCELLED"


def test_terminal_state_cancelled():
    assert BookingStateMachine.is_terminal(BookingStatus.CANCELLED)
    assert BookingStateMachine.get_allowed_transitions(BookingStatus.CANCELLED) == set()


@pytest.mark.parametrize(
    "from_status, to_status",
    [
        (PaymentStatus.PENDING, PaymentStatus.PAID),
        (PaymentStatus.PENDING, PaymentStatus.REFUNDED),
        (PaymentStatus.PAID, PaymentStatus.PARTIAL),
        (PaymentStatus.REFUNDED, PaymentStatus.PAID),
        (PaymentStatus.PARTIAL, PaymentStatus.PENDING),
    ],
)
def test_illegal_payment_edges(from_status, to_status):
    with pytest.raises(InvalidStateTransitionError):
        PaymentStateMachine.validate_transition(from_status, to_status)


def test_refunded_is_terminal():
    assert PaymentStateMachine.is_terminal(PaymentStatus.REFUNDED)
    assert not PaymentStateMachine.is_terminal(PaymentStatus.PAID)


def test_active_statuses_hold_claims():
    assert ACTIVE_STATUSES == {BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS}


def test_invalid_type_guard():
    with pytest.raises(TypeError):
        BookingStateMachine.validate_transition(
            "PENDING",  # invalid type
            BookingStatus.CONFIRMED,
        )


def test_axes_do_not_mix():
    with pytest.raises(TypeError):
        PaymentStateMachine.can_transition(BookingStatus.PENDING, PaymentStatus.PARTIAL)
