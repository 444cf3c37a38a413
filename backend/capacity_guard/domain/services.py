from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CapacityReport:
    ceiling: int
    remaining: int
    attempted: int


@dataclass(frozen=True)
class AdmissionDecision:
    admitted: bool
    reason: str | None = None

    @classmethod
    def admit(cls) -> "AdmissionDecision":
        return cls(admitted=True)

    @classmethod
    def reject(cls, reason: str) -> "AdmissionDecision":
        return cls(admitted=False, reason=reason)


@dataclass(frozen=True)
class ReconciliationDecision:
    kept: bool
    report: CapacityReport | None = None

    @classmethod
    def keep(cls) -> "ReconciliationDecision":
        return cls(kept=True)

    @classmethod
    def cancel(cls, report: CapacityReport) -> "ReconciliationDecision":
        return cls(kept=False, report=report)


def decide_admission(existing_total: int, *, ceiling: int) -> AdmissionDecision:
    """
    Pure admission rule: the new request's own count is not known yet, so only
    a slot that is already saturated can be turned away here.
    """
    if existing_total >= ceiling:
        return AdmissionDecision.reject("scope is full")
    return AdmissionDecision.admit()


def decide_reconciliation(others_total: int, own_count: int, *, ceiling: int) -> ReconciliationDecision:
    """Pure reconciliation rule. Returns a cancel decision with its report when the slot overflows."""
    if others_total + own_count > ceiling:
        return ReconciliationDecision.cancel(
            CapacityReport(
                ceiling=ceiling,
                remaining=max(0, ceiling - others_total),
                attempted=own_count,
            )
        )
    return ReconciliationDecision.keep()
