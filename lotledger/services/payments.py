import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from lotledger.models.storage import Payment, StorageLot
from lotledger.services.errors import LotStateError, OverpaymentError
from lotledger.services.lot_store import get_customer
from lotledger.services.rent import quantize_money
from lotledger.services.withdrawals import ledger_transaction

logger = logging.getLogger(__name__)

TOLERANCE = Decimal("0.01")


@dataclass(frozen=True)
class DueRecord:
    lot_id: int
    storage_start_date: date
    billed: Decimal
    paid: Decimal

    @property
    def due(self) -> Decimal:
        return max(Decimal("0.00"), self.billed - self.paid)


@dataclass(frozen=True)
class PaymentAllocation:
    lot_id: int
    amount: Decimal
    remaining_due: Decimal


@dataclass(frozen=True)
class PaymentPlan:
    allocations: list[PaymentAllocation]
    unallocated: Decimal


def allocate_payment_fifo(records: Sequence[DueRecord], amount: Decimal) -> PaymentPlan:
    """Spread a payment over outstanding dues, oldest lot first."""
    remaining = quantize_money(Decimal(amount))
    allocations: list[PaymentAllocation] = []
    for record in sorted(records, key=lambda item: (item.storage_start_date, item.lot_id)):
        applied = min(remaining, record.due) if remaining > 0 else Decimal("0.00")
        allocations.append(
            PaymentAllocation(
                lot_id=record.lot_id,
                amount=applied,
                remaining_due=record.due - applied,
            )
        )
        remaining -= applied
    return PaymentPlan(allocations=allocations, unallocated=remaining)


def paid_by_lot(db: Session, lot_ids: Sequence[int]) -> dict[int, Decimal]:
    if not lot_ids:
        return {}
    rows = db.execute(
        select(Payment.lot_id, func.coalesce(func.sum(Payment.amount), 0))
        .where(Payment.lot_id.in_(list(lot_ids)), Payment.deleted_at.is_(None))
        .group_by(Payment.lot_id)
    ).all()
    return {lot_id: quantize_money(Decimal(str(total))) for lot_id, total in rows}


def lot_dues(db: Session, *, warehouse_id: int, customer_id: int, lock: bool = False) -> list[DueRecord]:
    """Outstanding rent per lot, oldest first.

    With ``lock=True`` the customer's lots are locked and re-read, so payments
    for the same customer are applied one at a time against current dues.
    """
    get_customer(db, customer_id, warehouse_id=warehouse_id)
    query = (
        select(StorageLot)
        .where(
            StorageLot.warehouse_id == warehouse_id,
            StorageLot.customer_id == customer_id,
            StorageLot.deleted_at.is_(None),
        )
        .order_by(StorageLot.storage_start_date.asc(), StorageLot.id.asc())
    )
    if lock:
        query = query.with_for_update().execution_options(populate_existing=True)
    lots = db.scalars(query).all()
    paid = paid_by_lot(db, [lot.id for lot in lots])
    records = [
        DueRecord(
            lot_id=lot.id,
            storage_start_date=lot.storage_start_date,
            billed=Decimal(lot.total_rent_billed),
            paid=paid.get(lot.id, Decimal("0.00")),
        )
        for lot in lots
    ]
    return [record for record in records if record.due > 0]


def record_bulk_payment(
    db: Session,
    *,
    warehouse_id: int,
    customer_id: int,
    amount: Decimal,
    paid_on: date,
    method: str = "cash",
    note: str | None = None,
) -> list[Payment]:
    with ledger_transaction(db):
        records = lot_dues(db, warehouse_id=warehouse_id, customer_id=customer_id, lock=True)
        plan = allocate_payment_fifo(records, amount)
        if plan.unallocated > TOLERANCE:
            total_due = sum((record.due for record in records), Decimal("0.00"))
            raise OverpaymentError(quantize_money(Decimal(amount)), total_due)

        payments = [
            Payment(
                warehouse_id=warehouse_id,
                customer_id=customer_id,
                lot_id=allocation.lot_id,
                amount=allocation.amount,
                paid_on=paid_on,
                method=method,
                note=note.strip() if note else None,
            )
            for allocation in plan.allocations
            if allocation.amount > 0
        ]
        db.add_all(payments)
        db.flush()

    logger.info(
        "Recorded payment of %s for customer %s across %s lots",
        amount,
        customer_id,
        len(payments),
    )
    return payments


def void_payment(db: Session, payment: Payment) -> Payment:
    if payment.deleted_at is not None:
        raise LotStateError("Payment is already voided")
    with ledger_transaction(db):
        payment.deleted_at = datetime.utcnow()
    logger.info("Voided payment %s", payment.id)
    return payment
