from typing import Optional

from fastapi import Depends
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from app.core.auth import CurrentCustomer, get_current_customer
from app.core.config import get_settings
from app.services.assistant.scheduler import ExtractionScheduler
from app.services.assistant.service import SalesAssistantService
from app.services.assistant.store import SessionStateStore
from app.services.marketplace import MarketplaceBackend, get_marketplace_backend
from app.services.marketplace.catalog import CatalogCache

settings = get_settings()

engine = None
if settings.database_url:
    connect_args: dict[str, object] = {}

    if settings.database_url.startswith("sqlite"):
        # Sync DB work runs in FastAPI's threadpool, so the connection must be usable across threads.
        connect_args = {"check_same_thread": False, "timeout": 30}

    engine = create_engine(settings.database_url, pool_pre_ping=True, connect_args=connect_args)

    if settings.database_url.startswith("sqlite"):
        @event.listens_for(engine, "connect")
        def _set_sqlite_pragmas(dbapi_connection, _connection_record) -> None:  # type: ignore[no-untyped-def]
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA busy_timeout=30000")
            cursor.close()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine) if engine else None

# Process-wide; every request shares the same debounce timers and catalog snapshot.
_scheduler: Optional[ExtractionScheduler] = None
_catalog_cache: Optional[CatalogCache] = None


def get_session_factory() -> sessionmaker:
    if SessionLocal is None:
        raise RuntimeError("DATABASE_URL is not configured")
    return SessionLocal


def get_extraction_scheduler() -> ExtractionScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = ExtractionScheduler(get_settings().extraction_debounce_seconds)
    return _scheduler


def get_catalog_cache() -> CatalogCache:
    global _catalog_cache
    if _catalog_cache is None:
        _catalog_cache = CatalogCache(ttl_seconds=get_settings().catalog_cache_ttl_seconds)
    return _catalog_cache


def get_marketplace(customer: CurrentCustomer = Depends(get_current_customer)) -> MarketplaceBackend:
    return get_marketplace_backend(customer.access_token)


def get_assistant_service(
    backend: MarketplaceBackend = Depends(get_marketplace),
    session_factory: sessionmaker = Depends(get_session_factory),
    scheduler: ExtractionScheduler = Depends(get_extraction_scheduler),
    catalog_cache: CatalogCache = Depends(get_catalog_cache),
) -> SalesAssistantService:
    return SalesAssistantService(
        backend,
        store=SessionStateStore(session_factory),
        scheduler=scheduler,
        catalog_cache=catalog_cache,
        settings=get_settings(),
    )


async def shutdown_background_work() -> None:
    global _scheduler
    if _scheduler is not None:
        await _scheduler.aclose()
        _scheduler = None
