from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .usecases.hooks import SlotCapacity
from .utils.time import to_utc_naive


class BookingCreateHook(BaseModel):
    event_id: int
    event_type: Optional[str] = None
    slot_start: Optional[datetime] = None

    @field_validator("slot_start")
    @classmethod
    def _normalize_slot_start(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_utc_naive(value) if value is not None else None


class HookRejection(BaseModel):
    message: str


class CapacityExceededRejection(HookRejection):
    ceiling: int
    remaining: int
    attempted: int


class SlotCapacityRead(BaseModel):
    event_id: int
    slot_start: datetime
    enforced: bool
    ceiling: Optional[int] = None
    used: Optional[int] = Field(default=None, ge=0)
    remaining: Optional[int] = None

    @classmethod
    def from_usecase(cls, capacity: SlotCapacity) -> "SlotCapacityRead":
        return cls(
            event_id=capacity.event_id,
            slot_start=capacity.slot_start,
            enforced=capacity.enforced,
            ceiling=capacity.ceiling,
            used=capacity.used,
            remaining=capacity.remaining,
        )
