# src/infrastructure/repositories/catalog_repository.py

from sqlalchemy.orm import Session, sessionmaker

from src.application.interfaces import Catalog
from src.domain.exceptions import CatalogItemNotFoundError
from src.domain.models import AddOn, CateringService, Equipment, Package
from src.infrastructure.db.models import (
    AddOnRecord,
    CateringServiceRecord,
    EquipmentRecord,
    PackageRecord,
)
from src.infrastructure.db.session import get_db_session


class SqlAlchemyCatalog(Catalog):
    """Reads current catalog rows; each lookup is its own snapshot."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def get_package(self, package_id: str) -> Package:
        with get_db_session(self._session_factory) as db:
            record = self._require(db, PackageRecord, "package", package_id)
            return Package(
                id=record.id,
                name=record.name,
                service_category=record.service_category,
                package_type=record.package_type,
                base_price=record.base_price,
                duration_hours=record.duration_hours,
                max_photos=record.max_photos,
                max_videos=record.max_videos,
                includes=tuple(record.includes or ()),
                is_customizable=record.is_customizable,
                is_active=record.is_active,
            )

    def get_add_on(self, add_on_id: str) -> AddOn:
        with get_db_session(self._session_factory) as db:
            record = self._require(db, AddOnRecord, "add_on", add_on_id)
            return AddOn(
                id=record.id,
                name=record.name,
                unit_price=record.unit_price,
                description=record.description,
                is_active=record.is_active,
            )

    def get_equipment(self, equipment_id: str) -> Equipment:
        with get_db_session(self._session_factory) as db:
            record = self._require(db, EquipmentRecord, "equipment", equipment_id)
            return Equipment(
                id=record.id,
                name=record.name,
                daily_rate=record.daily_rate,
                stock_quantity=record.stock_quantity,
                security_deposit=record.security_deposit,
                advance_booking_days=record.advance_booking_days,
                status=record.status,
            )

    def get_catering_service(self, catering_service_id: str) -> CateringService:
        with get_db_session(self._session_factory) as db:
            record = self._require(
                db, CateringServiceRecord, "catering_service", catering_service_id
            )
            return CateringService(
                id=record.id,
                name=record.name,
                base_price=record.base_price,
                price_per_person=record.price_per_person,
                min_order_quantity=record.min_order_quantity,
                max_order_quantity=record.max_order_quantity,
                advance_booking_days=record.advance_booking_days,
                is_active=record.is_active,
            )

    @staticmethod
    def _require(db: Session, model, item_type: str, item_id: str):
        record = db.get(model, item_id)
        if record is None:
            raise CatalogItemNotFoundError(item_type, item_id)
        return record
