from datetime import date
from decimal import Decimal

import pytest

from lotledger.models.storage import StorageLot
from lotledger.services.allocation import AllocationLine, allocate
from lotledger.services.errors import ConcurrencyConflictError
from lotledger.services.rent import RateTier, build_rate_schedule
from lotledger.services.settlement import LotState, line_rent, lot_state, settle

SCHEDULE = build_rate_schedule([RateTier(threshold_days=1, period_days=30, rate_per_unit=Decimal("10.00"))])
WITHDRAWN_ON = date(2026, 1, 20)


def _lot(lot_id: int, start: date, quantity: int):
    return StorageLot(
        id=lot_id,
        bags_stored=quantity,
        bags_remaining=quantity,
        storage_start_date=start,
        total_rent_billed=Decimal("0.00"),
        revision=1,
    )


def test_settle_debits_bills_and_bumps_revision():
    a = _lot(1, date(2026, 1, 1), 100)
    b = _lot(2, date(2026, 1, 5), 50)
    plan = allocate([a, b], 120)

    result = settle(plan, {1: a, 2: b}, WITHDRAWN_ON, SCHEDULE)

    assert a.bags_remaining == 0
    assert b.bags_remaining == 30
    assert a.revision == 2 and b.revision == 2
    # Whole-lot rent is 1000 for A and 500 for B; B is billed for 20 of 50 bags.
    assert a.total_rent_billed == Decimal("1000.00")
    assert b.total_rent_billed == Decimal("200.00")
    assert result.total_rent == Decimal("1200.00")
    assert [line.rent_charged for line in result.lines] == [Decimal("1000.00"), Decimal("200.00")]


def test_fully_drained_lot_closes_on_withdrawal_date():
    a = _lot(1, date(2026, 1, 1), 100)
    b = _lot(2, date(2026, 1, 5), 50)

    settle(allocate([a, b], 120), {1: a, 2: b}, WITHDRAWN_ON, SCHEDULE)

    assert a.storage_end_date == WITHDRAWN_ON
    assert lot_state(a) == LotState.CLOSED
    assert b.storage_end_date is None
    assert lot_state(b) == LotState.PARTIALLY_WITHDRAWN


def test_replayed_plan_is_rejected():
    a = _lot(1, date(2026, 1, 1), 100)
    plan = allocate([a], 40)
    settle(plan, {1: a}, WITHDRAWN_ON, SCHEDULE)

    with pytest.raises(ConcurrencyConflictError):
        settle(plan, {1: a}, WITHDRAWN_ON, SCHEDULE)

    assert a.bags_remaining == 60
    assert a.total_rent_billed == Decimal("400.00")


def test_stale_line_rejects_whole_plan_before_any_change():
    a = _lot(1, date(2026, 1, 1), 100)
    b = _lot(2, date(2026, 1, 5), 50)
    plan = allocate([a, b], 120)
    b.revision = 5

    with pytest.raises(ConcurrencyConflictError):
        settle(plan, {1: a, 2: b}, WITHDRAWN_ON, SCHEDULE)

    assert (a.bags_remaining, a.revision, a.total_rent_billed) == (100, 1, Decimal("0.00"))
    assert b.bags_remaining == 50


def test_missing_lot_is_a_conflict():
    plan = [AllocationLine(lot_id=9, quantity_taken=1, lot_revision=1)]

    with pytest.raises(ConcurrencyConflictError):
        settle(plan, {}, WITHDRAWN_ON, SCHEDULE)


def test_duplicate_lot_in_plan_is_rejected():
    a = _lot(1, date(2026, 1, 1), 100)
    plan = [
        AllocationLine(lot_id=1, quantity_taken=10, lot_revision=1),
        AllocationLine(lot_id=1, quantity_taken=10, lot_revision=1),
    ]

    with pytest.raises(ValueError):
        settle(plan, {1: a}, WITHDRAWN_ON, SCHEDULE)


def test_line_rent_is_proportional_to_quantity_taken():
    lot = _lot(1, date(2026, 1, 1), 3)

    assert line_rent(lot, 1, WITHDRAWN_ON, SCHEDULE) == Decimal("10.00")
    assert line_rent(lot, 2, WITHDRAWN_ON, SCHEDULE) == Decimal("20.00")


def test_lot_state_transitions():
    lot = _lot(1, date(2026, 1, 1), 10)
    assert lot_state(lot) == LotState.OPEN
    lot.bags_remaining = 4
    assert lot_state(lot) == LotState.PARTIALLY_WITHDRAWN
    lot.bags_remaining = 0
    assert lot_state(lot) == LotState.CLOSED
