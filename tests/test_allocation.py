from datetime import date

import pytest

from lotledger.models.storage import StorageLot
from lotledger.services.allocation import allocate
from lotledger.services.errors import InsufficientSupplyError


def _lot(lot_id: int, start: date, remaining: int, *, revision: int = 1, end: date | None = None):
    return StorageLot(
        id=lot_id,
        bags_stored=max(remaining, 1),
        bags_remaining=remaining,
        storage_start_date=start,
        storage_end_date=end,
        revision=revision,
    )


def test_oldest_lot_is_drained_first():
    lots = [_lot(2, date(2026, 1, 5), 50), _lot(1, date(2026, 1, 1), 100)]

    lines = allocate(lots, 120)

    assert [(line.lot_id, line.quantity_taken) for line in lines] == [(1, 100), (2, 20)]


def test_same_start_date_breaks_tie_on_lot_id():
    lots = [_lot(7, date(2026, 1, 1), 10), _lot(3, date(2026, 1, 1), 10)]

    lines = allocate(lots, 15)

    assert [(line.lot_id, line.quantity_taken) for line in lines] == [(3, 10), (7, 5)]


def test_exact_fit_uses_a_single_lot():
    lines = allocate([_lot(1, date(2026, 1, 1), 100), _lot(2, date(2026, 2, 1), 50)], 100)

    assert [(line.lot_id, line.quantity_taken) for line in lines] == [(1, 100)]


def test_lines_carry_the_planned_revision():
    lines = allocate([_lot(1, date(2026, 1, 1), 10, revision=4)], 5)

    assert lines[0].lot_revision == 4


def test_insufficient_supply_plans_nothing():
    lots = [_lot(1, date(2026, 1, 1), 100), _lot(2, date(2026, 1, 5), 50)]

    with pytest.raises(InsufficientSupplyError) as excinfo:
        allocate(lots, 151)

    assert excinfo.value.requested == 151
    assert excinfo.value.available == 150
    assert str(excinfo.value) == "Requested 151 bags, but only 150 are available."
    assert [lot.bags_remaining for lot in lots] == [100, 50]


def test_closed_and_empty_lots_are_skipped():
    lots = [
        _lot(1, date(2026, 1, 1), 0),
        _lot(2, date(2026, 1, 2), 30, end=date(2026, 2, 1)),
        _lot(3, date(2026, 1, 3), 30),
    ]

    lines = allocate(lots, 30)

    assert [(line.lot_id, line.quantity_taken) for line in lines] == [(3, 30)]


@pytest.mark.parametrize("quantity", [0, -5])
def test_non_positive_request_is_rejected(quantity):
    with pytest.raises(ValueError):
        allocate([_lot(1, date(2026, 1, 1), 10)], quantity)


def test_allocate_does_not_mutate_lots():
    lots = [_lot(1, date(2026, 1, 1), 100)]

    allocate(lots, 60)

    assert lots[0].bags_remaining == 100
    assert lots[0].revision == 1
