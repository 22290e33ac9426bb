import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from src.api.routes.routes import router
from src.application.booking_service import BookingLifecycleManager
from src.config import settings
from src.infrastructure.db.session import Base, SessionLocal, engine
from src.infrastructure.repositories.booking_repository import SqlAlchemyBookingStore
from src.infrastructure.repositories.catalog_repository import SqlAlchemyCatalog
from src.infrastructure.repositories.outbox_repository import OutboxEventPublisher

# Registers the table metadata on Base.
import src.infrastructure.db.models  # noqa: F401

logger = logging.getLogger(__name__)


def configure_logging(level: str = settings.log_level) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _wait_for_db() -> None:
    # Handles the common case where API starts before Postgres is ready.
    max_retries = settings.db_connect_max_retries
    retry_delay_seconds = settings.db_connect_retry_delay

    for attempt in range(1, max_retries + 1):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database is reachable.")
            return
        except OperationalError:
            if attempt == max_retries:
                logger.exception(
                    "Database not reachable after %s attempts. Check DATABASE_URL and Postgres status.",
                    max_retries,
                )
                raise
            logger.warning(
                "Database not ready (attempt %s/%s). Retrying in %.1f seconds...",
                attempt,
                max_retries,
                retry_delay_seconds,
            )
            time.sleep(retry_delay_seconds)


@asynccontextmanager
async def _database_lifespan(app: FastAPI) -> AsyncIterator[None]:
    _wait_for_db()
    Base.metadata.create_all(bind=engine)
    yield


def build_default_manager(outbox: OutboxEventPublisher) -> BookingLifecycleManager:
    return BookingLifecycleManager(
        store=SqlAlchemyBookingStore(SessionLocal),
        catalog=SqlAlchemyCatalog(SessionLocal),
        publisher=outbox,
        tz=settings.tz,
        lock_timeout=settings.lock_timeout_seconds,
        booking_number_prefix=settings.booking_number_prefix,
    )


def create_app(
    booking_manager: BookingLifecycleManager | None = None,
    outbox: OutboxEventPublisher | None = None,
) -> FastAPI:
    """
    Build the API. Without arguments the app runs on the configured
    database and waits for it on startup; callers that pass their own
    manager own its storage.
    """
    configure_logging()
    lifespan = None
    if booking_manager is None:
        outbox = outbox or OutboxEventPublisher(SessionLocal)
        booking_manager = build_default_manager(outbox)
        lifespan = _database_lifespan

    app = FastAPI(title="Booking & Pricing Engine", lifespan=lifespan)
    app.include_router(router)

    app.state.booking_manager = booking_manager
    app.state.outbox = outbox
    return app


app = create_app()
