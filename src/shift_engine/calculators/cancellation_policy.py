"""Cancellation penalty table.

Penalties depend only on how long before the scheduled shift start the
cancellation happens. Rules are scanned from the highest threshold down and
the first rule whose threshold is met wins; anything under the lowest
threshold, including cancellations after the start, falls to the no-show row.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

PENALTY_TABLE_VERSION = "2024-01"


@dataclass(frozen=True)
class PenaltyRule:
    """One row of the penalty table."""

    threshold_hours: Decimal | None  # None = catch-all row
    amount: Decimal
    label: str


@dataclass(frozen=True)
class PenaltyAssessment:
    """Result of evaluating the penalty table for one cancellation."""

    amount: Decimal
    label: str
    hours_before_start: Decimal
    prior_cancellation_count: int
    table_version: str = PENALTY_TABLE_VERSION

    @property
    def is_penalized(self) -> bool:
        return self.amount > 0


PENALTY_RULES: tuple[PenaltyRule, ...] = (
    PenaltyRule(Decimal("48"), Decimal("0"), "> 48 Hours (No Penalty)"),
    PenaltyRule(Decimal("24"), Decimal("5"), "> 24 Hours"),
    PenaltyRule(Decimal("12"), Decimal("10"), "> 12 Hours"),
    PenaltyRule(Decimal("6"), Decimal("15"), "> 6 Hours"),
    PenaltyRule(None, Decimal("50"), "< 6 Hours / No-show"),
)

NO_SHOW_RULE = PENALTY_RULES[-1]


def hours_between(start: datetime, end: datetime) -> Decimal:
    """Signed hours from ``start`` to ``end``."""
    seconds = Decimal(str((end - start).total_seconds()))
    return seconds / Decimal("3600")


def penalty_for(
    shift_start: datetime,
    cancelled_at: datetime,
    prior_cancellation_count: int = 0,
) -> PenaltyAssessment:
    """Assess the penalty for cancelling a booking.

    ``prior_cancellation_count`` is carried into the assessment for audit;
    it does not change the amount.
    """
    if prior_cancellation_count < 0:
        raise ValueError("prior_cancellation_count cannot be negative")

    hours = hours_between(cancelled_at, shift_start)

    for rule in PENALTY_RULES:
        if rule.threshold_hours is not None and hours >= rule.threshold_hours:
            return PenaltyAssessment(
                amount=rule.amount,
                label=rule.label,
                hours_before_start=hours,
                prior_cancellation_count=prior_cancellation_count,
            )

    return PenaltyAssessment(
        amount=NO_SHOW_RULE.amount,
        label=NO_SHOW_RULE.label,
        hours_before_start=hours,
        prior_cancellation_count=prior_cancellation_count,
    )


def penalty_table() -> list[dict[str, str | None]]:
    """The rules in display form, highest threshold first."""
    return [
        {
            "threshold_hours": str(rule.threshold_hours) if rule.threshold_hours is not None else None,
            "penalty": str(rule.amount),
            "label": rule.label,
        }
        for rule in PENALTY_RULES
    ]
