import asyncio
from datetime import datetime
from typing import Any, Callable, Mapping

import pytest
from capacity_guard.config import EventLimitConfig
from capacity_guard.domain.repositories import BookingRef
from capacity_guard.domain.scope import SlotScope
from capacity_guard.infrastructure.locks import InMemorySlotLockTable
from capacity_guard.models import ACTIVE_STATUSES, Booking, BookingStatus
from capacity_guard.usecases.engine import CapacityEngine

SLOT_START = datetime(2026, 11, 7, 10, 0, 0)


class FakeBookingStore:
    """In-memory booking store. Every call yields to the loop so concurrent tasks interleave."""

    def __init__(self) -> None:
        self.bookings: dict[int, Booking] = {}
        self.fields: dict[int, dict[str, Any]] = {}
        self.vanished: set[int] = set()
        self.fail_with: Exception | None = None
        self.find_calls: list[tuple[SlotScope, int | None]] = []
        self.locking_finds: list[bool] = []
        self.saved: list[int] = []
        # Hand out a fresh Booking per get(), like separate ORM sessions do.
        self.detached_reads = False

    def add(self, booking: Booking, fields: Mapping[str, Any] | None = None) -> Booking:
        self.bookings[booking.id] = booking
        self.fields[booking.id] = dict(fields or {})
        return booking

    async def _tick(self) -> None:
        await asyncio.sleep(0)
        if self.fail_with is not None:
            raise self.fail_with

    async def find_by_scope(
        self, scope: SlotScope, exclude_id: int | None = None, *, for_update: bool = True
    ) -> list[BookingRef]:
        self.find_calls.append((scope, exclude_id))
        self.locking_finds.append(for_update)
        await self._tick()
        return [
            BookingRef(id=b.id)
            for b in sorted(self.bookings.values(), key=lambda b: b.id)
            if b.event_id == scope.event_id
            and b.start_time == scope.slot_start
            and b.status in ACTIVE_STATUSES
            and b.id != exclude_id
        ]

    async def get_fields(self, booking_id: int) -> Mapping[str, Any] | None:
        await self._tick()
        if booking_id in self.vanished or booking_id not in self.bookings:
            return None
        return self.fields.get(booking_id, {})

    async def get(self, booking_id: int) -> Booking | None:
        await self._tick()
        booking = self.bookings.get(booking_id)
        if booking is None or not self.detached_reads:
            return booking
        return build_booking(
            booking.id,
            event_id=booking.event_id,
            event_type=booking.event_type,
            start_time=booking.start_time,
            status=booking.status,
        )

    async def current_status(self, booking_id: int) -> BookingStatus | None:
        await self._tick()
        booking = self.bookings.get(booking_id)
        return BookingStatus(booking.status) if booking is not None else None

    async def save(self, booking: Booking) -> Booking:
        await self._tick()
        self.bookings[booking.id] = booking
        self.saved.append(booking.id)
        return booking


def build_booking(
    booking_id: int,
    *,
    event_id: int = 8,
    event_type: str = "group",
    start_time: datetime = SLOT_START,
    status: BookingStatus = BookingStatus.SCHEDULED,
) -> Booking:
    return Booking(
        id=booking_id,
        event_id=event_id,
        event_type=event_type,
        start_time=start_time,
        status=status,
        created_at=start_time,
        updated_at=start_time,
    )


@pytest.fixture
def slot_start() -> datetime:
    return SLOT_START


@pytest.fixture
def limit_config() -> EventLimitConfig:
    return EventLimitConfig(enforced_event_ids=frozenset({8}), ceiling=10, field_token="number_of_children")


@pytest.fixture
def store() -> FakeBookingStore:
    return FakeBookingStore()


@pytest.fixture
def lock_table() -> InMemorySlotLockTable:
    return InMemorySlotLockTable()


@pytest.fixture
def engine(store: FakeBookingStore, lock_table: InMemorySlotLockTable, limit_config: EventLimitConfig) -> CapacityEngine:
    return CapacityEngine.build(store, lock_table, limit_config)


@pytest.fixture
def add_booking(store: FakeBookingStore) -> Callable[..., Booking]:
    def _add(booking_id: int, children: Any = None, **kwargs: Any) -> Booking:
        fields = {} if children is None else {"number_of_children": children}
        return store.add(build_booking(booking_id, **kwargs), fields)

    return _add
