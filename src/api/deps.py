"""FastAPI dependency injection.

Clients are built once by the app lifespan and kept on ``app.state``;
requests only ever borrow them.
"""

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from src.config import Settings
from src.data.cache import PropertyCacheStore
from src.data.resolver import TaxSavingsService
from src.data.zillow import ZillowScraper


def create_session_factory(config: Settings) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    engine = create_async_engine(config.database_url, echo=config.debug)
    return engine, async_sessionmaker(engine, expire_on_commit=False)


def build_service(
    config: Settings, session_factory: async_sessionmaker[AsyncSession], scraper: ZillowScraper
) -> TaxSavingsService:
    store = PropertyCacheStore(
        session_factory,
        collection=config.cache_collection,
        ttl_days=config.cache_ttl_days,
        enabled=config.cache_enabled,
    )
    return TaxSavingsService(store, scraper, cache_enabled=config.cache_enabled)


def get_service(request: Request) -> TaxSavingsService:
    return request.app.state.service
