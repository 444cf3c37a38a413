from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, Mapping

from sqlalchemy import select
from sqlalchemy.exc import InterfaceError, OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import StoreUnavailableError
from ..domain.repositories import BookingRef, BookingStore
from ..domain.scope import SlotScope
from ..models import ACTIVE_STATUSES, CUSTOM_FIELDS_META_KEY, Booking, BookingMeta, BookingStatus

logger = logging.getLogger(__name__)

_UNAVAILABLE = (OperationalError, InterfaceError, PoolTimeoutError)


@contextmanager
def _store_errors(action: str) -> Iterator[None]:
    try:
        yield
    except _UNAVAILABLE as exc:
        logger.warning("booking store unavailable during %s: %s", action, exc)
        raise StoreUnavailableError(f"booking store unavailable during {action}") from exc


def _decode_fields(raw: str | None, booking_id: int) -> Mapping[str, Any]:
    if not raw:
        return {}
    try:
        decoded = json.loads(raw)
    except ValueError:
        logger.warning("booking %s has malformed custom fields", booking_id)
        return {}
    return decoded if isinstance(decoded, dict) else {}


class SqlAlchemyBookingStore(BookingStore):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_by_scope(
        self,
        scope: SlotScope,
        exclude_id: int | None = None,
        *,
        for_update: bool = True,
    ) -> list[BookingRef]:
        stmt = (
            select(Booking.id)
            .where(
                Booking.event_id == scope.event_id,
                Booking.start_time == scope.slot_start,
                Booking.status.in_(ACTIVE_STATUSES),
            )
            .order_by(Booking.id)
        )
        if for_update:
            # Locking read so the statuses seen are the latest committed ones.
            stmt = stmt.with_for_update()
        if exclude_id is not None:
            stmt = stmt.where(Booking.id != exclude_id)
        with _store_errors("scope query"):
            rows = await self.session.scalars(stmt)
            return [BookingRef(id=int(booking_id)) for booking_id in rows.all()]

    async def current_status(self, booking_id: int) -> BookingStatus | None:
        """Latest committed status of one booking, read with a row lock."""
        stmt = select(Booking.status).where(Booking.id == booking_id).with_for_update()
        with _store_errors("status lookup"):
            result = await self.session.scalar(stmt)
        return BookingStatus(result) if result is not None else None

    async def get_fields(self, booking_id: int) -> Mapping[str, Any] | None:
        stmt = (
            select(Booking.id, BookingMeta.value)
            .outerjoin(
                BookingMeta,
                (BookingMeta.booking_id == Booking.id) & (BookingMeta.meta_key == CUSTOM_FIELDS_META_KEY),
            )
            .where(Booking.id == booking_id)
        )
        with _store_errors("field lookup"):
            row = (await self.session.execute(stmt)).first()
        if row is None:
            return None
        return _decode_fields(row[1], booking_id)

    async def get(self, booking_id: int) -> Booking | None:
        with _store_errors("booking lookup"):
            result = await self.session.get(Booking, booking_id)
        return result if isinstance(result, Booking) else None

    async def save(self, booking: Booking) -> Booking:
        booking.updated_at = datetime.now(timezone.utc).replace(tzinfo=None)
        with _store_errors("status write"):
            self.session.add(booking)
            await self.session.flush()
        return booking
