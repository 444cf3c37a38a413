from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..config import EventLimitConfig

GROUP_EVENT_TYPE = "group"


@dataclass(frozen=True)
class SlotScope:
    event_id: int
    slot_start: datetime

    def lock_name(self, prefix: str) -> str:
        return f"{prefix}:{self.event_id}:{self.slot_start:%Y%m%d%H%M%S}"


class EventScopeFilter:
    def __init__(self, config: EventLimitConfig) -> None:
        self.config = config

    def in_scope(self, event_type: str | None, event_id: Any) -> bool:
        if event_type != GROUP_EVENT_TYPE:
            return False
        try:
            return int(event_id) in self.config.enforced_event_ids
        except (TypeError, ValueError):
            return False
