from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from .request_context import get_request_id

AuditAction = Literal[
    "booking.admission_rejected",
    "booking.capacity_cancelled",
]

_audit_logger = logging.getLogger("audit")
_audit_logger.setLevel(logging.INFO)
if not _audit_logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    _audit_logger.addHandler(handler)
_audit_logger.propagate = False


def _to_jsonable(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    if hasattr(value, "value"):
        return str(value.value)
    return value


def emit_audit_log(
    *,
    action: AuditAction,
    event_id: int,
    slot_start: Optional[datetime],
    booking_id: Optional[int] = None,
    status_from: Optional[str] = None,
    status_to: Optional[str] = None,
    ceiling: Optional[int] = None,
    remaining: Optional[int] = None,
    attempted: Optional[int] = None,
    caller: Optional[str] = None,
    message: Optional[str] = None,
) -> None:
    """Emit structured JSON audit log. Raises RuntimeError if logging fails."""
    payload: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": "info",
        "action": action,
        "request_id": get_request_id(),
        "caller": caller,
        "booking_id": booking_id,
        "event_id": event_id,
        "slot_start": _to_jsonable(slot_start),
        "status_from": _to_jsonable(status_from),
        "status_to": _to_jsonable(status_to),
        "ceiling": ceiling,
        "remaining": remaining,
        "attempted": attempted,
        "message": message,
    }

    # Drop None values to keep the log compact.
    compact_payload = {k: v for k, v in payload.items() if v is not None}
    try:
        _audit_logger.info(json.dumps(compact_payload, ensure_ascii=True))
    except Exception as exc:
        raise RuntimeError("failed to emit audit log") from exc
