from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..domain.errors import AdmissionRejectedError, CapacityExceededError
from ..domain.repositories import BookingStore
from ..domain.scope import SlotScope
from ..models import Booking
from .admission import BookingRequest
from .engine import CapacityEngine


@dataclass(frozen=True)
class SlotCapacity:
    event_id: int
    slot_start: datetime
    enforced: bool
    ceiling: int | None
    used: int | None
    remaining: int | None


async def before_create(
    engine: CapacityEngine,
    *,
    event_type: str | None,
    event_id: int,
    slot_start: datetime | None,
    message: str,
) -> None:
    decision = await engine.admission.check(
        BookingRequest(event_type=event_type, event_id=event_id, slot_start=slot_start)
    )
    if not decision.admitted:
        raise AdmissionRejectedError(message)


async def after_meta_update(
    engine: CapacityEngine,
    store: BookingStore,
    *,
    booking_id: int,
    message_template: str,
) -> Booking | None:
    """
    Reconcile a persisted booking. Returns the booking (None if it is gone) when
    it is kept; raises ``CapacityExceededError`` after cancelling it otherwise.
    """
    booking = await store.get(booking_id)
    if booking is None:
        return None
    status_from = booking.status
    decision = await engine.reconciliation.reconcile(booking)
    if decision.kept or decision.report is None:
        return booking
    report = decision.report
    raise CapacityExceededError(
        report,
        message_template.format(ceiling=report.ceiling),
        scope=SlotScope(event_id=booking.event_id, slot_start=booking.start_time),
        status_from=status_from,
    )


async def slot_capacity(
    engine: CapacityEngine,
    *,
    event_id: int,
    slot_start: datetime,
    event_type: str = "group",
) -> SlotCapacity:
    """Read-only view of a slot's usage; takes neither the slot lock nor row locks."""
    if not engine.scope_filter.in_scope(event_type, event_id):
        return SlotCapacity(
            event_id=event_id,
            slot_start=slot_start,
            enforced=False,
            ceiling=None,
            used=None,
            remaining=None,
        )
    scope = SlotScope(event_id=event_id, slot_start=slot_start)
    used = await engine.aggregator.aggregate(scope, for_update=False)
    ceiling = engine.config.ceiling_for(event_id)
    return SlotCapacity(
        event_id=event_id,
        slot_start=slot_start,
        enforced=True,
        ceiling=ceiling,
        used=used,
        remaining=max(ceiling - used, 0),
    )
