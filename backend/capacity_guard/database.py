from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from .config import Settings, get_settings


def engine_options(settings: Settings) -> dict[str, Any]:
    # Hook requests hold a connection for as long as they wait on the slot lock,
    # so a pool checkout that times out surfaces as StoreUnavailableError (503).
    return {
        "echo": settings.echo_sql,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_timeout": settings.db_pool_timeout_seconds,
    }


settings = get_settings()
engine = create_async_engine(settings.database_url, **engine_options(settings))
async_session = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
