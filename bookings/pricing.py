# ==================== BOOKINGS/PRICING.PY ====================
"""Tiered price calculation for a booking window.

The duration is rounded up to whole hours and then split greedily into
30-day months, days and leftover hours, each billed at the space's rate for
that unit. A tier is only used when the space has a non-zero rate for it;
an empty or zero day or month rate means the space does not offer that tier.
Greedy decomposition is the pricing policy, not an optimiser: with unusual rate
tables (e.g. a daily rate cheaper per hour than the monthly rate) another
split could be cheaper, and that is accepted.
"""
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP

from utils.exceptions import InvalidInput

HOURS_PER_DAY = 24
HOURS_PER_MONTH = 720  # 30-day month

ONE_HOUR = timedelta(hours=1)
CENTS = Decimal('0.01')


@dataclass(frozen=True)
class PriceBreakdown:
    total_hours: int
    months: int
    days: int
    hours: int
    total: Decimal

    @property
    def display_total(self):
        """Total rounded to cents, for presentation only"""
        return self.total.quantize(CENTS, rounding=ROUND_HALF_UP)


def billable_hours(start, end):
    """Whole hours in [start, end); partial hours round up"""
    if start >= end:
        raise InvalidInput('End time must be after start time')
    hours, remainder = divmod(end - start, ONE_HOUR)
    return hours + (1 if remainder else 0)


def compute_price(space, start, end):
    total_hours = billable_hours(start, end)
    remaining = total_hours
    total = Decimal('0')
    months = days = 0

    if space.price_per_month and remaining >= HOURS_PER_MONTH:
        months = remaining // HOURS_PER_MONTH
        total += months * Decimal(space.price_per_month)
        remaining -= months * HOURS_PER_MONTH

    if space.price_per_day and remaining >= HOURS_PER_DAY:
        days = remaining // HOURS_PER_DAY
        total += days * Decimal(space.price_per_day)
        remaining -= days * HOURS_PER_DAY

    total += remaining * Decimal(space.price_per_hour)

    return PriceBreakdown(
        total_hours=total_hours,
        months=months,
        days=days,
        hours=remaining,
        total=total,
    )
