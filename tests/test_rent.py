from datetime import date
from decimal import Decimal

import pytest

from lotledger.models.storage import StorageLot
from lotledger.services.errors import RateScheduleMissingError
from lotledger.services.rent import (
    RateTier,
    billing_status,
    build_rate_schedule,
    compute_rent,
    days_stored,
    periods_elapsed,
    select_tier,
)

SCHEDULE = build_rate_schedule(
    [
        RateTier(threshold_days=91, period_days=30, rate_per_unit=Decimal("15.00")),
        RateTier(threshold_days=1, period_days=30, rate_per_unit=Decimal("10.00")),
    ]
)


def _lot(quantity: int = 100, remaining: int | None = None, start: date = date(2026, 1, 1), end: date | None = None):
    return StorageLot(
        id=1,
        bags_stored=quantity,
        bags_remaining=quantity if remaining is None else remaining,
        storage_start_date=start,
        storage_end_date=end,
        total_rent_billed=Decimal("0.00"),
        revision=1,
    )


def test_schedule_is_sorted_by_threshold():
    assert [tier.threshold_days for tier in SCHEDULE] == [1, 91]


def test_schedule_rejects_duplicate_thresholds():
    with pytest.raises(ValueError):
        build_rate_schedule(
            [
                RateTier(threshold_days=1, period_days=30, rate_per_unit=Decimal("10")),
                RateTier(threshold_days=1, period_days=60, rate_per_unit=Decimal("12")),
            ]
        )


def test_schedule_rejects_zero_period():
    with pytest.raises(ValueError):
        build_rate_schedule([RateTier(threshold_days=1, period_days=0, rate_per_unit=Decimal("10"))])


def test_days_are_counted_inclusively():
    assert days_stored(date(2026, 1, 1), date(2026, 1, 1)) == 1
    assert days_stored(date(2026, 1, 1), date(2026, 1, 30)) == 30
    assert days_stored(date(2026, 1, 10), date(2026, 1, 1)) == 1


def test_partial_period_is_billed_in_full():
    assert periods_elapsed(1, 30) == 1
    assert periods_elapsed(30, 30) == 1
    assert periods_elapsed(31, 30) == 2


def test_tier_boundary_switches_on_threshold_day():
    assert select_tier(SCHEDULE, 90).threshold_days == 1
    assert select_tier(SCHEDULE, 91).threshold_days == 91


def test_missing_tier_for_short_duration_raises():
    schedule = build_rate_schedule([RateTier(threshold_days=5, period_days=30, rate_per_unit=Decimal("10"))])
    with pytest.raises(RateScheduleMissingError):
        select_tier(schedule, 3)


def test_compute_rent_on_period_boundary():
    lot = _lot()
    assert compute_rent(lot, date(2026, 1, 30), SCHEDULE) == Decimal("1000.00")
    assert compute_rent(lot, date(2026, 1, 31), SCHEDULE) == Decimal("2000.00")


def test_compute_rent_uses_higher_tier_for_long_storage():
    lot = _lot()
    # 90 days: first tier, three periods.
    assert compute_rent(lot, date(2026, 3, 31), SCHEDULE) == Decimal("3000.00")
    # 91 days: second tier, four periods.
    assert compute_rent(lot, date(2026, 4, 1), SCHEDULE) == Decimal("6000.00")


def test_compute_rent_bills_original_quantity_and_is_deterministic():
    lot = _lot(quantity=100, remaining=40)
    first = compute_rent(lot, date(2026, 2, 15), SCHEDULE)
    second = compute_rent(lot, date(2026, 2, 15), SCHEDULE)
    assert first == second == Decimal("2000.00")
    assert lot.bags_remaining == 40


def test_rent_rounds_half_up_to_cents():
    schedule = build_rate_schedule([RateTier(threshold_days=1, period_days=30, rate_per_unit=Decimal("0.125"))])
    assert compute_rent(_lot(quantity=1), date(2026, 1, 1), schedule) == Decimal("0.13")


def test_billing_status_for_open_lot():
    status = billing_status(_lot(remaining=60), date(2026, 1, 10), SCHEDULE)
    assert status.days_stored == 10
    assert status.periods_elapsed == 1
    assert status.accrued_rent == Decimal("600.00")
    assert status.next_billing_date == date(2026, 1, 31)


def test_billing_status_for_closed_lot_stops_at_end_date():
    lot = _lot(remaining=0, end=date(2026, 1, 20))
    status = billing_status(lot, date(2026, 6, 1), SCHEDULE)
    assert status.days_stored == 20
    assert status.accrued_rent == Decimal("0.00")
    assert status.next_billing_date is None
