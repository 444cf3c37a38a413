from __future__ import annotations

import logging
from typing import Any, Mapping

from ..config import EventLimitConfig
from ..domain.extraction import extract_sub_resource_count
from ..domain.repositories import BookingStore
from ..domain.scope import EventScopeFilter, SlotScope
from ..domain.services import ReconciliationDecision, decide_reconciliation
from ..infrastructure.locks import SlotLock
from ..models import Booking, BookingStatus
from .aggregation import SlotAggregator

logger = logging.getLogger(__name__)


class ReconciliationGate:
    """
    Authoritative capacity check, run once a booking's custom fields are stored.

    Only at this point is the booking's own count known, so this is where an
    overflowing booking gets cancelled. The status write happens while the slot
    lock is still held.
    """

    def __init__(
        self,
        scope_filter: EventScopeFilter,
        aggregator: SlotAggregator,
        store: BookingStore,
        lock: SlotLock,
        config: EventLimitConfig,
    ) -> None:
        self.scope_filter = scope_filter
        self.aggregator = aggregator
        self.store = store
        self.lock = lock
        self.config = config

    async def reconcile(
        self,
        booking: Booking,
        fields: Mapping[str, Any] | None = None,
    ) -> ReconciliationDecision:
        if not self.scope_filter.in_scope(booking.event_type, booking.event_id) or booking.start_time is None:
            return ReconciliationDecision.keep()
        if booking.status == BookingStatus.CANCELLED:
            return ReconciliationDecision.keep()

        if fields is None:
            fields = await self.store.get_fields(booking.id)
        own_count = extract_sub_resource_count(fields, self.config.field_token)
        if own_count <= 0:
            return ReconciliationDecision.keep()

        scope = SlotScope(event_id=int(booking.event_id), slot_start=booking.start_time)
        ceiling = self.config.ceiling_for(scope.event_id)
        async with self.lock.hold(scope):
            # Another request may have cancelled this booking while we waited; our
            # copy of the row is stale, so re-read it.
            current = await self.store.current_status(booking.id)
            if current is None:
                return ReconciliationDecision.keep()
            if current == BookingStatus.CANCELLED:
                booking.status = current
                return ReconciliationDecision.keep()

            others_total = await self.aggregator.aggregate(scope, exclude_booking_id=booking.id)
            decision = decide_reconciliation(others_total, own_count, ceiling=ceiling)
            if not decision.kept:
                status_from = booking.status
                booking.status = BookingStatus.CANCELLED
                try:
                    await self.store.save(booking)
                except Exception:
                    booking.status = status_from
                    raise

        logger.info(
            "reconciliation booking=%s event=%s start=%s own=%s others=%s ceiling=%s kept=%s",
            booking.id,
            scope.event_id,
            scope.slot_start,
            own_count,
            others_total,
            ceiling,
            decision.kept,
        )
        return decision
