from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Awaitable, Callable, Protocol, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import LockAcquisitionError, StoreUnavailableError
from ..domain.scope import SlotScope

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SlotLock(Protocol):
    def hold(self, scope: SlotScope) -> AsyncContextManager[None]: ...


async def with_lock(lock: SlotLock, scope: SlotScope, fn: Callable[[], Awaitable[T]]) -> T:
    """Run ``fn`` while holding the lock for ``scope``."""
    async with lock.hold(scope):
        return await fn()


class InMemorySlotLockTable:
    """
    Process-local lock table keyed by slot scope.

    Each scope gets its own ``asyncio.Lock``; entries are dropped once nobody
    holds or waits on them, so the table only grows with concurrent scopes.
    Only valid while every enforcing request runs in this process.
    """

    def __init__(self) -> None:
        self._locks: dict[SlotScope, asyncio.Lock] = {}
        self._users: dict[SlotScope, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def is_locked(self, scope: SlotScope) -> bool:
        lock = self._locks.get(scope)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, scope: SlotScope) -> AsyncIterator[None]:
        lock = self._locks.get(scope)
        if lock is None:
            lock = self._locks[scope] = asyncio.Lock()
        self._users[scope] = self._users.get(scope, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[scope] -= 1
            if self._users[scope] == 0:
                del self._users[scope]
                del self._locks[scope]


class MySqlNamedSlotLock:
    """Cluster-wide slot lock backed by MySQL GET_LOCK on the session's connection."""

    def __init__(self, session: AsyncSession, *, timeout_seconds: int = 10, prefix: str = "slotcap") -> None:
        self.session = session
        self.timeout_seconds = timeout_seconds
        self.prefix = prefix

    @asynccontextmanager
    async def hold(self, scope: SlotScope) -> AsyncIterator[None]:
        name = scope.lock_name(self.prefix)
        try:
            acquired = await self.session.scalar(
                text("SELECT GET_LOCK(:name, :timeout)"),
                {"name": name, "timeout": self.timeout_seconds},
            )
        except (OperationalError, InterfaceError) as exc:
            raise StoreUnavailableError("could not request slot lock") from exc
        if acquired != 1:
            logger.warning("slot lock %s not acquired (result=%r)", name, acquired)
            raise LockAcquisitionError(f"could not acquire slot lock {name}")
        try:
            yield
        finally:
            try:
                await self.session.execute(text("SELECT RELEASE_LOCK(:name)"), {"name": name})
            except (OperationalError, InterfaceError):
                # MySQL frees named locks when the connection closes.
                logger.warning("failed to release slot lock %s", name, exc_info=True)
