import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from enum import Enum

from lotledger.models.storage import StorageLot
from lotledger.services.allocation import AllocationLine
from lotledger.services.errors import ConcurrencyConflictError
from lotledger.services.rent import RateSchedule, compute_rent, quantize_money

logger = logging.getLogger(__name__)


class LotState(str, Enum):
    OPEN = "open"
    PARTIALLY_WITHDRAWN = "partially_withdrawn"
    CLOSED = "closed"


def lot_state(lot: StorageLot) -> LotState:
    if lot.storage_end_date is not None or lot.bags_remaining == 0:
        return LotState.CLOSED
    if lot.bags_remaining < lot.bags_stored:
        return LotState.PARTIALLY_WITHDRAWN
    return LotState.OPEN


@dataclass(frozen=True)
class SettlementResult:
    total_rent: Decimal
    lines: list[AllocationLine]
    updated_lots: list[StorageLot]


def line_rent(lot: StorageLot, quantity_taken: int, as_of: date, schedule: RateSchedule) -> Decimal:
    full_rent = compute_rent(lot, as_of, schedule)
    return quantize_money(full_rent * Decimal(quantity_taken) / Decimal(lot.bags_stored))


def _check_line(line: AllocationLine, lot: StorageLot | None) -> StorageLot:
    if lot is None:
        raise ConcurrencyConflictError(f"Lot {line.lot_id} is no longer available")
    if lot.deleted_at is not None or lot_state(lot) == LotState.CLOSED:
        raise ConcurrencyConflictError(f"Lot {lot.id} is already closed")
    if lot.revision != line.lot_revision:
        raise ConcurrencyConflictError(
            f"Lot {lot.id} changed since the withdrawal was planned "
            f"(revision {line.lot_revision} -> {lot.revision})"
        )
    if line.quantity_taken <= 0 or line.quantity_taken > lot.bags_remaining:
        raise ConcurrencyConflictError(f"Lot {lot.id} cannot supply {line.quantity_taken} bags")
    return lot


def settle(
    allocation_lines: Sequence[AllocationLine],
    lots: Mapping[int, StorageLot],
    as_of: date,
    schedule: RateSchedule,
) -> SettlementResult:
    """Bill and debit the lots named by an allocation plan.

    Every line is checked against the lot revision it was planned on before
    any lot is changed, so a stale or replayed plan is rejected whole.
    """
    if len({line.lot_id for line in allocation_lines}) != len(allocation_lines):
        raise ValueError("An allocation plan may debit each lot only once")
    checked = [(line, _check_line(line, lots.get(line.lot_id))) for line in allocation_lines]
    priced = [(line, lot, line_rent(lot, line.quantity_taken, as_of, schedule)) for line, lot in checked]

    settled_lines: list[AllocationLine] = []
    updated_lots: list[StorageLot] = []
    total_rent = Decimal("0.00")
    for line, lot, rent in priced:
        lot.bags_remaining = int(lot.bags_remaining) - line.quantity_taken
        lot.total_rent_billed = quantize_money(Decimal(lot.total_rent_billed or 0) + rent)
        lot.revision = lot.revision + 1
        if lot.bags_remaining == 0:
            lot.storage_end_date = as_of
        total_rent += rent
        settled_lines.append(replace(line, rent_charged=rent))
        updated_lots.append(lot)
        logger.info(
            "Settled lot %s: took %s bags, %s left, rent %s",
            lot.id,
            line.quantity_taken,
            lot.bags_remaining,
            rent,
        )

    return SettlementResult(total_rent=quantize_money(total_rent), lines=settled_lines, updated_lots=updated_lots)
