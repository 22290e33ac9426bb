"""Booking domain events.

Handed to an EventPublisher after the state change is persisted. Delivery
(email, SMS) happens elsewhere.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, ClassVar, Dict


@dataclass(frozen=True)
class DomainEvent:
    event_type: ClassVar[str] = "DomainEvent"

    booking_id: str
    occurred_at: datetime

    @property
    def dedupe_key(self) -> str:
        return f"{self.event_type}:{self.booking_id}"

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        for key, value in payload.items():
            if isinstance(value, datetime):
                payload[key] = value.isoformat()
        payload["event_type"] = self.event_type
        return payload


@dataclass(frozen=True)
class BookingCreated(DomainEvent):
    """Fired after a booking is stored as PENDING."""

    event_type: ClassVar[str] = "BookingCreated"

    booking_number: str = ""
    client_email: str = ""


@dataclass(frozen=True)
class BookingConfirmed(DomainEvent):
    """Fired after a booking claims its resources."""

    event_type: ClassVar[str] = "BookingConfirmed"

    booking_number: str = ""
    final_price: int = 0


@dataclass(frozen=True)
class BookingCancelled(DomainEvent):
    event_type: ClassVar[str] = "BookingCancelled"

    previous_status: str = ""
    reason: str | None = None


@dataclass(frozen=True)
class PaymentStatusChanged(DomainEvent):
    event_type: ClassVar[str] = "PaymentStatusChanged"

    from_status: str = ""
    to_status: str = ""

    @property
    def dedupe_key(self) -> str:
        return f"{self.event_type}:{self.booking_id}:{self.to_status}"
