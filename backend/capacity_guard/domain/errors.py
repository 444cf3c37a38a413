from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .scope import SlotScope
    from .services import CapacityReport


class CapacityGuardError(Exception):
    """Base class for capacity enforcement errors."""


class AdmissionRejectedError(CapacityGuardError):
    """The slot was already at or over its ceiling before the booking was created."""


class CapacityExceededError(CapacityGuardError):
    """The booking pushed its slot over the ceiling and has been cancelled."""

    def __init__(
        self,
        report: "CapacityReport",
        message: str,
        *,
        scope: "SlotScope",
        status_from: str | None = None,
    ) -> None:
        super().__init__(message)
        self.report = report
        self.message = message
        self.scope = scope
        self.status_from = status_from


class StoreUnavailableError(CapacityGuardError):
    """The booking store could not be read or written."""


class LockAcquisitionError(CapacityGuardError):
    """The slot lock could not be obtained for this request."""
