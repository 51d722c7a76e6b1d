from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from lotledger.models.storage import StorageLot
from lotledger.services.errors import InsufficientSupplyError


@dataclass(frozen=True)
class AllocationLine:
    lot_id: int
    quantity_taken: int
    lot_revision: int
    rent_charged: Decimal = Decimal("0.00")


def fifo_key(lot: StorageLot) -> tuple:
    return (lot.storage_start_date, lot.id)


def fifo_order(lots: Iterable[StorageLot]) -> list[StorageLot]:
    return sorted(lots, key=fifo_key)


def is_open(lot: StorageLot) -> bool:
    return lot.storage_end_date is None and lot.deleted_at is None and lot.bags_remaining > 0


def allocate(open_lots: Iterable[StorageLot], requested_quantity: int) -> list[AllocationLine]:
    """Plan a withdrawal oldest lot first without touching any lot.

    Either every requested bag is covered and the full plan is returned, or
    InsufficientSupplyError is raised and nothing is planned.
    """
    if requested_quantity <= 0:
        raise ValueError("Requested quantity must be positive")

    candidates = [lot for lot in fifo_order(open_lots) if is_open(lot)]
    available = sum(int(lot.bags_remaining) for lot in candidates)
    if requested_quantity > available:
        raise InsufficientSupplyError(requested_quantity, available)

    remaining = requested_quantity
    lines: list[AllocationLine] = []
    for lot in candidates:
        if remaining == 0:
            break
        taken = min(int(lot.bags_remaining), remaining)
        lines.append(AllocationLine(lot_id=lot.id, quantity_taken=taken, lot_revision=lot.revision))
        remaining -= taken
    return lines
