from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from ..config import EventLimitConfig
from ..domain.scope import EventScopeFilter, SlotScope
from ..domain.services import AdmissionDecision, decide_admission
from ..infrastructure.locks import SlotLock
from .aggregation import SlotAggregator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingRequest:
    """A booking about to be created; it has no id or custom fields yet."""

    event_type: str | None
    event_id: int
    slot_start: datetime | None


class AdmissionGate:
    def __init__(
        self,
        scope_filter: EventScopeFilter,
        aggregator: SlotAggregator,
        lock: SlotLock,
        config: EventLimitConfig,
    ) -> None:
        self.scope_filter = scope_filter
        self.aggregator = aggregator
        self.lock = lock
        self.config = config

    async def check(self, request: BookingRequest) -> AdmissionDecision:
        if not self.scope_filter.in_scope(request.event_type, request.event_id) or request.slot_start is None:
            return AdmissionDecision.admit()

        scope = SlotScope(event_id=int(request.event_id), slot_start=request.slot_start)
        ceiling = self.config.ceiling_for(scope.event_id)
        async with self.lock.hold(scope):
            existing = await self.aggregator.aggregate(scope)
        decision = decide_admission(existing, ceiling=ceiling)
        logger.info(
            "admission event=%s start=%s existing=%s ceiling=%s admitted=%s",
            scope.event_id,
            scope.slot_start,
            existing,
            ceiling,
            decision.admitted,
        )
        return decision
