import logging

from ..config import EventLimitConfig
from ..domain.extraction import extract_sub_resource_count
from ..domain.repositories import BookingStore
from ..domain.scope import SlotScope

logger = logging.getLogger(__name__)


class SlotAggregator:
    def __init__(self, store: BookingStore, config: EventLimitConfig) -> None:
        self.store = store
        self.config = config

    async def aggregate(
        self,
        scope: SlotScope,
        exclude_booking_id: int | None = None,
        *,
        for_update: bool = True,
    ) -> int:
        """
        Sum the sub-resource counts of every active booking in ``scope``.

        Bookings that vanish between the scope query and the field lookup are
        skipped. Store faults propagate as ``StoreUnavailableError``. Pass
        ``for_update=False`` for reads that must not take row locks.
        """
        refs = await self.store.find_by_scope(scope, exclude_booking_id, for_update=for_update)
        total = 0
        for ref in refs:
            fields = await self.store.get_fields(ref.id)
            if fields is None:
                logger.debug("booking %s disappeared during aggregation", ref.id)
                continue
            count = extract_sub_resource_count(fields, self.config.field_token)
            logger.debug("booking %s contributes %s", ref.id, count)
            total += count
        logger.debug(
            "aggregate for event=%s start=%s exclude=%s is %s",
            scope.event_id,
            scope.slot_start,
            exclude_booking_id,
            total,
        )
        return total
