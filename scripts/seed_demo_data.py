from sqlalchemy.orm import Session

from src.domain.models import EquipmentStatus, PackageType, ServiceCategory
from src.infrastructure.db.models import (
    AddOnRecord,
    CateringServiceRecord,
    EquipmentRecord,
    PackageRecord,
)
from src.infrastructure.db.session import SessionLocal


PACKAGES = [
    {
        "id": "pkg-premium-wedding",
        "name": "Premium Wedding Package",
        "service_category": ServiceCategory.WEDDING,
        "package_type": PackageType.BOTH,
        "base_price": 5000,
        "duration_hours": 8,
        "max_photos": 800,
        "max_videos": 2,
        "includes": ["Two photographers", "Highlight film", "Online gallery"],
        "is_customizable": True,
    },
    {
        "id": "pkg-corporate-half-day",
        "name": "Corporate Half Day",
        "service_category": ServiceCategory.CORPORATE,
        "package_type": PackageType.PHOTOGRAPHY,
        "base_price": 1800,
        "duration_hours": 4,
        "max_photos": 300,
        "max_videos": None,
        "includes": ["Headshots", "Event coverage"],
        "is_customizable": False,
    },
    {
        "id": "pkg-portrait-session",
        "name": "Portrait Session",
        "service_category": ServiceCategory.PERSONAL,
        "package_type": PackageType.PHOTOGRAPHY,
        "base_price": 450,
        "duration_hours": 2,
        "max_photos": 60,
        "max_videos": None,
        "includes": ["Retouched selects"],
        "is_customizable": False,
    },
]

ADD_ONS = [
    {
        "id": "addon-drone",
        "name": "Drone Photography",
        "unit_price": 500,
        "description": "Aerial stills and footage, weather permitting",
    },
    {
        "id": "addon-photo-album",
        "name": "Printed Photo Album",
        "unit_price": 350,
        "description": "40 page linen album",
    },
]

EQUIPMENT = [
    {
        "id": "eq-lighting-kit",
        "name": "Studio Lighting Kit",
        "daily_rate": 100,
        "stock_quantity": 3,
        "security_deposit": 250,
        "advance_booking_days": 2,
    },
    {
        "id": "eq-photo-booth",
        "name": "Photo Booth",
        "daily_rate": 400,
        "stock_quantity": 1,
        "security_deposit": 1000,
        "advance_booking_days": 7,
    },
]

CATERING_SERVICES = [
    {
        "id": "cat-buffet",
        "name": "Buffet Dinner",
        "base_price": 0,
        "price_per_person": 50,
        "min_order_quantity": 20,
        "max_order_quantity": 300,
        "advance_booking_days": 7,
    },
    {
        "id": "cat-dessert-table",
        "name": "Dessert Table",
        "base_price": 300,
        "price_per_person": None,
        "min_order_quantity": 1,
        "max_order_quantity": 2,
        "advance_booking_days": 3,
    },
]


def _upsert(db: Session, model, values: dict) -> None:
    existing = db.get(model, values["id"])
    if existing is None:
        db.add(model(**values))
        return
    for name, value in values.items():
        setattr(existing, name, value)


def seed_catalog(db: Session) -> None:
    for item in PACKAGES:
        _upsert(db, PackageRecord, {**item, "is_active": True})
    for item in ADD_ONS:
        _upsert(db, AddOnRecord, {**item, "is_active": True})
    for item in EQUIPMENT:
        _upsert(db, EquipmentRecord, {**item, "status": EquipmentStatus.AVAILABLE})
    for item in CATERING_SERVICES:
        _upsert(db, CateringServiceRecord, {**item, "is_active": True})


def main() -> None:
    db = SessionLocal()
    try:
        seed_catalog(db)
        db.commit()
        print(
            f"Seed complete: {len(PACKAGES)} packages, {len(ADD_ONS)} add-ons, "
            f"{len(EQUIPMENT)} equipment items, {len(CATERING_SERVICES)} catering services."
        )
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
