from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from ..deps import get_capacity_engine, get_hook_caller
from ..domain.errors import StoreUnavailableError
from ..schemas import SlotCapacityRead
from ..usecases import hooks as hook_usecase
from ..usecases.engine import CapacityEngine
from ..utils.time import to_utc_naive

router = APIRouter(prefix="/events", tags=["slots"], dependencies=[Depends(get_hook_caller)])


@router.get("/{event_id}/slots/capacity", response_model=SlotCapacityRead)
async def get_slot_capacity(
    event_id: int = Path(..., ge=1),
    slot_start: datetime = Query(..., description="Slot start (ISO 8601); naive values are UTC"),
    event_type: str = Query(default="group"),
    engine: CapacityEngine = Depends(get_capacity_engine),
) -> SlotCapacityRead:
    try:
        capacity = await hook_usecase.slot_capacity(
            engine,
            event_id=event_id,
            slot_start=to_utc_naive(slot_start),
            event_type=event_type,
        )
    except StoreUnavailableError:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="booking store unavailable")
    return SlotCapacityRead.from_usecase(capacity)
