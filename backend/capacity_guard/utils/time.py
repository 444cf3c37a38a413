from datetime import datetime, timezone


def to_utc_naive(dt: datetime) -> datetime:
    """Normalize a slot start to the naive UTC form stored in ``bookings.start_time``.

    Naive input is taken to be UTC already. Sub-second precision is dropped so
    the same slot always maps to the same scope key.
    """
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0)
