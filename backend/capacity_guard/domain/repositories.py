from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Protocol

from ..models import Booking, BookingStatus
from .scope import SlotScope


@dataclass(frozen=True)
class BookingRef:
    id: int


class BookingStore(Protocol):
    async def find_by_scope(
        self,
        scope: SlotScope,
        exclude_id: int | None = None,
        *,
        for_update: bool = True,
    ) -> list[BookingRef]: ...

    async def get_fields(self, booking_id: int) -> Mapping[str, Any] | None: ...

    async def get(self, booking_id: int) -> Booking | None: ...

    async def current_status(self, booking_id: int) -> BookingStatus | None: ...

    async def save(self, booking: Booking) -> Booking: ...
