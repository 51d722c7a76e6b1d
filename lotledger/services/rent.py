"""Storage rent calculation.

Everything here is a pure function of its arguments: the schedule is passed
in as an ordered tuple of tiers instead of being looked up, so golden values
can be pinned in tests without a database.
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

from lotledger.models.storage import StorageLot
from lotledger.services.errors import RateScheduleMissingError

CENT = Decimal("0.01")


@dataclass(frozen=True)
class RateTier:
    threshold_days: int
    period_days: int
    rate_per_unit: Decimal


RateSchedule = tuple[RateTier, ...]


@dataclass(frozen=True)
class BillingStatus:
    days_stored: int
    tier: RateTier
    periods_elapsed: int
    accrued_rent: Decimal
    next_billing_date: date | None


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def build_rate_schedule(tiers: Iterable[RateTier]) -> RateSchedule:
    ordered = sorted(tiers, key=lambda tier: tier.threshold_days)
    seen: set[int] = set()
    for tier in ordered:
        if tier.threshold_days < 1 or tier.period_days < 1:
            raise ValueError("Tier threshold and period must be at least one day")
        if Decimal(tier.rate_per_unit) < 0:
            raise ValueError("Tier rate cannot be negative")
        if tier.threshold_days in seen:
            raise ValueError(f"Duplicate tier threshold: {tier.threshold_days}")
        seen.add(tier.threshold_days)
    return tuple(ordered)


def days_stored(start_date: date, as_of: date) -> int:
    # Both the start day and the as-of day count.
    return max(1, (as_of - start_date).days + 1)


def select_tier(schedule: RateSchedule, days: int) -> RateTier:
    applicable = [tier for tier in schedule if tier.threshold_days <= days]
    if not applicable:
        raise RateScheduleMissingError(f"No rate tier applies to a storage duration of {days} days")
    return max(applicable, key=lambda tier: tier.threshold_days)


def periods_elapsed(days: int, period_days: int) -> int:
    # Partial periods are billed in full.
    return math.ceil(days / period_days)


def rent_for_quantity(start_date: date, quantity: int, as_of: date, schedule: RateSchedule) -> Decimal:
    days = days_stored(start_date, as_of)
    tier = select_tier(schedule, days)
    amount = Decimal(tier.rate_per_unit) * Decimal(quantity) * Decimal(periods_elapsed(days, tier.period_days))
    return quantize_money(amount)


def compute_rent(lot: StorageLot, as_of: date, schedule: RateSchedule) -> Decimal:
    """Rent for the whole quantity the lot was opened with, as of ``as_of``."""
    return rent_for_quantity(lot.storage_start_date, lot.bags_stored, as_of, schedule)


def billing_status(lot: StorageLot, as_of: date, schedule: RateSchedule) -> BillingStatus:
    end = lot.storage_end_date or as_of
    days = days_stored(lot.storage_start_date, end)
    tier = select_tier(schedule, days)
    periods = periods_elapsed(days, tier.period_days)
    accrued = rent_for_quantity(lot.storage_start_date, lot.bags_remaining, end, schedule)

    next_billing_date = None
    if lot.storage_end_date is None and lot.bags_remaining > 0:
        next_billing_date = lot.storage_start_date + timedelta(days=periods * tier.period_days)
    return BillingStatus(
        days_stored=days,
        tier=tier,
        periods_elapsed=periods,
        accrued_rent=accrued,
        next_billing_date=next_billing_date,
    )
