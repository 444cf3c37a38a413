from __future__ import annotations

from dataclasses import dataclass

from ..config import EventLimitConfig
from ..domain.repositories import BookingStore
from ..domain.scope import EventScopeFilter
from ..infrastructure.locks import SlotLock
from .admission import AdmissionGate
from .aggregation import SlotAggregator
from .reconciliation import ReconciliationGate


@dataclass(frozen=True)
class CapacityEngine:
    config: EventLimitConfig
    scope_filter: EventScopeFilter
    aggregator: SlotAggregator
    admission: AdmissionGate
    reconciliation: ReconciliationGate

    @classmethod
    def build(cls, store: BookingStore, lock: SlotLock, config: EventLimitConfig) -> "CapacityEngine":
        scope_filter = EventScopeFilter(config)
        aggregator = SlotAggregator(store, config)
        return cls(
            config=config,
            scope_filter=scope_filter,
            aggregator=aggregator,
            admission=AdmissionGate(scope_filter, aggregator, lock, config),
            reconciliation=ReconciliationGate(scope_filter, aggregator, store, lock, config),
        )
