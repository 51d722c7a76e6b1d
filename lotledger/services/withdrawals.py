"""Withdrawal processing: plan with FIFO, then settle inside one transaction.

The open-lot read, the allocation decision and the balance writes share one
transaction. Rows are locked with ``SELECT ... FOR UPDATE`` where the
database supports it, and every lot UPDATE is guarded by its revision, so a
concurrent writer surfaces as ConcurrencyConflictError instead of a lost
update.
"""

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from lotledger.core.config import settings
from lotledger.models.storage import Withdrawal, WithdrawalLine
from lotledger.models.warehouse import Warehouse
from lotledger.services.allocation import AllocationLine, allocate
from lotledger.services.errors import ConcurrencyConflictError, NotFoundError
from lotledger.services.lot_store import get_open_lots, get_warehouse, load_rate_schedule
from lotledger.services.settlement import line_rent, settle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WithdrawalRequest:
    warehouse_id: int
    customer_id: int
    commodity_id: int
    quantity: int
    withdrawn_on: date
    lot_ids: Sequence[int] | None = None
    note: str | None = None
    requested_at: datetime = field(default_factory=datetime.utcnow)


@dataclass(frozen=True)
class SettlementPreview:
    lines: list[AllocationLine]
    total_rent: Decimal
    bags_available: int


@contextmanager
def ledger_transaction(db: Session) -> Iterator[Session]:
    try:
        yield db
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        logger.warning("Lot revision conflict, transaction rolled back: %s", exc)
        raise ConcurrencyConflictError("Storage lots were modified concurrently; retry the request") from exc
    except OperationalError as exc:
        db.rollback()
        if _is_lock_failure(exc):
            logger.warning("Lot lock not acquired, transaction rolled back: %s", exc)
            raise ConcurrencyConflictError("Storage lots are locked by another request; retry the request") from exc
        raise
    except IntegrityError as exc:
        db.rollback()
        if _is_invoice_collision(exc):
            logger.warning("Invoice number taken by a concurrent withdrawal, transaction rolled back: %s", exc)
            raise ConcurrencyConflictError("Another withdrawal was recorded at the same time; retry the request") from exc
        raise
    except Exception:
        db.rollback()
        raise


def _is_lock_failure(exc: OperationalError) -> bool:
    message = str(exc.orig).lower() if exc.orig is not None else str(exc).lower()
    return any(marker in message for marker in ("deadlock", "could not obtain lock", "lock timeout", "database is locked"))


def _is_invoice_collision(exc: IntegrityError) -> bool:
    message = str(exc.orig) if exc.orig is not None else str(exc)
    return "invoice_number" in message


def _next_invoice_number(warehouse: Warehouse) -> str:
    number = int(warehouse.next_outflow_number or 1)
    warehouse.next_outflow_number = number + 1
    return f"{settings.invoice_prefix}-{warehouse.code}-{number:05d}"


def _plan(db: Session, request: WithdrawalRequest, *, lock: bool):
    lots = get_open_lots(
        db,
        warehouse_id=request.warehouse_id,
        customer_id=request.customer_id,
        commodity_id=request.commodity_id,
        lot_ids=request.lot_ids,
        as_of=request.withdrawn_on,
        lock=lock,
    )
    if request.lot_ids is not None:
        missing = set(request.lot_ids) - {lot.id for lot in lots}
        if missing:
            raise NotFoundError(f"Open lots not found: {', '.join(str(lot_id) for lot_id in sorted(missing))}")
    lines = allocate(lots, request.quantity)
    return lots, lines


def preview_withdrawal(db: Session, request: WithdrawalRequest) -> SettlementPreview:
    """Price a withdrawal without changing any lot."""
    get_warehouse(db, request.warehouse_id)
    schedule = load_rate_schedule(db, request.warehouse_id)
    lots, lines = _plan(db, request, lock=False)
    by_id = {lot.id: lot for lot in lots}
    priced = [
        AllocationLine(
            lot_id=line.lot_id,
            quantity_taken=line.quantity_taken,
            lot_revision=line.lot_revision,
            rent_charged=line_rent(by_id[line.lot_id], line.quantity_taken, request.withdrawn_on, schedule),
        )
        for line in lines
    ]
    return SettlementPreview(
        lines=priced,
        total_rent=sum((line.rent_charged for line in priced), Decimal("0.00")),
        bags_available=sum(int(lot.bags_remaining) for lot in lots),
    )


def process_withdrawal(db: Session, request: WithdrawalRequest) -> Withdrawal:
    with ledger_transaction(db):
        warehouse = get_warehouse(db, request.warehouse_id, lock=True)
        if not warehouse.is_active:
            raise NotFoundError("Warehouse not found")
        schedule = load_rate_schedule(db, request.warehouse_id)
        lots, lines = _plan(db, request, lock=True)
        result = settle(lines, {lot.id: lot for lot in lots}, request.withdrawn_on, schedule)

        withdrawal = Withdrawal(
            warehouse_id=request.warehouse_id,
            customer_id=request.customer_id,
            commodity_id=request.commodity_id,
            invoice_number=_next_invoice_number(warehouse),
            bags_withdrawn=request.quantity,
            total_rent=result.total_rent,
            withdrawn_on=request.withdrawn_on,
            requested_at=request.requested_at,
            note=request.note.strip() if request.note else None,
        )
        db.add(withdrawal)
        db.flush()
        for line in result.lines:
            db.add(
                WithdrawalLine(
                    withdrawal_id=withdrawal.id,
                    lot_id=line.lot_id,
                    quantity_taken=line.quantity_taken,
                    rent_charged=line.rent_charged,
                )
            )
        db.flush()

    logger.info(
        "Withdrawal %s settled: %s bags across %s lots, rent %s",
        withdrawal.invoice_number,
        request.quantity,
        len(result.lines),
        result.total_rent,
    )
    return withdrawal
