from functools import lru_cache
from typing import AsyncIterator

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from .config import EventLimitConfig, get_settings
from .database import async_session
from .infrastructure.locks import InMemorySlotLockTable, MySqlNamedSlotLock, SlotLock
from .infrastructure.repositories import SqlAlchemyBookingStore
from .usecases.engine import CapacityEngine
from .utils.auth import decode_hook_token

_BEARER_CHALLENGE = {"WWW-Authenticate": "Bearer"}


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


async def get_hook_caller(authorization: str | None = Header(default=None)) -> str:
    if authorization is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
            headers=_BEARER_CHALLENGE,
        )
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Bearer token required",
            headers=_BEARER_CHALLENGE,
        )
    settings = get_settings()
    try:
        return decode_hook_token(token, secret=settings.hook_secret, algorithms=[settings.hook_algorithm])
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers=_BEARER_CHALLENGE,
        ) from exc


@lru_cache
def get_lock_table() -> InMemorySlotLockTable:
    return InMemorySlotLockTable()


def get_limit_config() -> EventLimitConfig:
    return EventLimitConfig.from_settings(get_settings())


async def get_booking_store(session: AsyncSession = Depends(get_session)) -> SqlAlchemyBookingStore:
    return SqlAlchemyBookingStore(session)


async def get_slot_lock(session: AsyncSession = Depends(get_session)) -> SlotLock:
    settings = get_settings()
    if settings.slot_lock_backend == "mysql":
        return MySqlNamedSlotLock(session, timeout_seconds=settings.slot_lock_timeout_seconds)
    return get_lock_table()


async def get_capacity_engine(
    store: SqlAlchemyBookingStore = Depends(get_booking_store),
    lock: SlotLock = Depends(get_slot_lock),
    config: EventLimitConfig = Depends(get_limit_config),
) -> CapacityEngine:
    return CapacityEngine.build(store, lock, config)
