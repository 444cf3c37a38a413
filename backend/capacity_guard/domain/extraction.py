from __future__ import annotations

import logging
import math
import re
from collections.abc import Mapping
from typing import Any

logger = logging.getLogger(__name__)

_LEADING_NUMBER = re.compile(r"^\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)")


def coerce_count(value: Any) -> int:
    """Truncate a loosely typed scalar to an int; anything non-numeric becomes 0."""
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return 0
        return int(value)
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8", errors="ignore")
    if isinstance(value, str):
        match = _LEADING_NUMBER.match(value)
        if match is None:
            return 0
        try:
            return coerce_count(float(match.group(1)))
        except (OverflowError, ValueError):
            return 0
    return 0


def extract_sub_resource_count(fields: Mapping[str, Any] | None, token: str) -> int:
    """
    Return the count stored under the first key containing ``token``.

    Keys are matched case-insensitively in the mapping's own order. Labels are
    never consulted. Missing, empty or malformed input yields 0, and the result
    is never negative.
    """
    if not isinstance(fields, Mapping) or not fields:
        logger.debug("no custom fields to inspect")
        return 0

    needle = token.lower()
    for key, value in fields.items():
        if needle in str(key).lower():
            logger.debug("matched count field key=%r raw=%r", key, value)
            return max(0, coerce_count(value))

    logger.debug("no count field matched token=%r", needle)
    return 0
