"""Shift duration and wage computation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal

from shift_engine.models.enums import BreakType, RateType

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class ShiftWage:
    """Derived wage figures for one shift definition."""

    duration_hours: Decimal
    paid_hours: Decimal
    total_wage: Decimal


def shift_duration_hours(start: time, end: time) -> Decimal:
    """Hours between two wall-clock times, wrapping past midnight."""
    anchor = date(2000, 1, 1)
    start_dt = datetime.combine(anchor, start)
    end_dt = datetime.combine(anchor, end)
    if end_dt <= start_dt:
        end_dt += timedelta(days=1)
    seconds = Decimal(str((end_dt - start_dt).total_seconds()))
    return (seconds / Decimal("3600")).quantize(CENTS, rounding=ROUND_HALF_UP)


def calculate_shift_wage(
    start: time,
    end: time,
    pay_rate: Decimal,
    rate_type: str = RateType.HOURLY.value,
    break_hours: Decimal = Decimal("0"),
    break_type: str = BreakType.UNPAID.value,
) -> ShiftWage:
    """Compute duration and total wage for a shift.

    Hourly shifts pay for the duration minus unpaid break time; flat-rate
    shifts pay the rate once regardless of hours.
    """
    if pay_rate < 0:
        raise ValueError("pay_rate cannot be negative")
    if break_hours < 0:
        raise ValueError("break_hours cannot be negative")

    duration = shift_duration_hours(start, end)
    if break_hours > duration:
        raise ValueError("break_hours cannot exceed the shift duration")

    paid_hours = duration
    if BreakType(break_type) == BreakType.UNPAID:
        paid_hours = duration - break_hours

    if RateType(rate_type) == RateType.FLAT:
        total = pay_rate
    else:
        total = pay_rate * paid_hours

    return ShiftWage(
        duration_hours=duration,
        paid_hours=paid_hours,
        total_wage=total.quantize(CENTS, rounding=ROUND_HALF_UP),
    )


def earned_amount(total_wage: Decimal, applied_as_standby: bool, standby_bonus: Decimal) -> Decimal:
    """Amount earned on completion; standby bookings receive a bonus."""
    amount = total_wage + (standby_bonus if applied_as_standby else Decimal("0"))
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)
