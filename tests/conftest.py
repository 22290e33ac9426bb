import os

# Importing src.* builds the module-level engine; keep it off Postgres.
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date, datetime, time, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from src.application.booking_service import BookingLifecycleManager
from src.domain.models import (
    AddOn,
    AddOnSelection,
    BookingRequest,
    CateringService,
    CateringSelection,
    ClientContact,
    Equipment,
    EquipmentSelection,
    Package,
    PackageType,
    ServiceCategory,
)
from src.infrastructure.memory import (
    InMemoryBookingStore,
    InMemoryCatalog,
    InMemoryEventPublisher,
)
from src.main import create_app


NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
EVENT_DATE = date(2025, 7, 15)
EVENT_TIME = time(14, 0)


class FrozenClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)

    def set(self, now: datetime) -> None:
        self.now = now


def make_catalog() -> InMemoryCatalog:
    return InMemoryCatalog(
        packages=[
            Package(
                id="pkg-wedding",
                name="Premium Wedding Package",
                service_category=ServiceCategory.WEDDING,
                package_type=PackageType.BOTH,
                base_price=5000,
                duration_hours=8,
                includes=("Two photographers", "Online gallery"),
            ),
            Package(
                id="pkg-portrait",
                name="Portrait Session",
                service_category=ServiceCategory.PERSONAL,
                package_type=PackageType.PHOTOGRAPHY,
                base_price=450,
                duration_hours=2,
            ),
        ],
        add_ons=[
            AddOn(id="addon-drone", name="Drone Photography", unit_price=500),
        ],
        equipment=[
            Equipment(
                id="eq-lighting",
                name="Studio Lighting Kit",
                daily_rate=2000,
                stock_quantity=2,
                security_deposit=300,
                advance_booking_days=2,
            ),
            Equipment(
                id="eq-booth",
                name="Photo Booth",
                daily_rate=400,
                stock_quantity=1,
            ),
        ],
        catering_services=[
            CateringService(
                id="cat-buffet",
                name="Buffet Dinner",
                base_price=0,
                price_per_person=50,
                min_order_quantity=10,
                max_order_quantity=100,
                advance_booking_days=7,
            ),
        ],
    )


def make_request(**overrides) -> BookingRequest:
    values = dict(
        client=ClientContact(name="Ada Lovelace", email="ada@example.com", phone="555-0100"),
        event_type=ServiceCategory.WEDDING,
        event_date=EVENT_DATE,
        event_time=EVENT_TIME,
        location="Grand Hall",
        package_id="pkg-wedding",
    )
    values.update(overrides)
    return BookingRequest(**values)


def full_request(**overrides) -> BookingRequest:
    """A request with one line of every kind."""
    values = dict(
        add_ons=(AddOnSelection("addon-drone", 1),),
        equipment_rentals=(
            EquipmentSelection(
                equipment_id="eq-lighting",
                rental_start_date=date(2025, 7, 14),
                rental_end_date=date(2025, 7, 16),
                quantity=1,
            ),
        ),
        catering_orders=(CateringSelection("cat-buffet", 40),),
    )
    values.update(overrides)
    return make_request(**values)


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def catalog():
    return make_catalog()


@pytest.fixture
def store():
    return InMemoryBookingStore()


@pytest.fixture
def publisher():
    return InMemoryEventPublisher()


@pytest.fixture
def manager(store, catalog, publisher, clock):
    return BookingLifecycleManager(
        store,
        catalog,
        publisher,
        clock=clock,
        lock_timeout=2.0,
    )


@pytest.fixture
def client(manager):
    app = create_app(booking_manager=manager)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def booking_request():
    return make_request


@pytest.fixture
def full_booking_request():
    return full_request
