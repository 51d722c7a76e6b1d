"""Read-only views over lots and settlement history for statements."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from lotledger.models.storage import Payment, StorageLot, Withdrawal, WithdrawalLine
from lotledger.models.warehouse import Customer
from lotledger.services.lot_store import load_rate_schedule
from lotledger.services.payments import paid_by_lot
from lotledger.services.rent import billing_status, quantize_money
from lotledger.services.settlement import LotState, lot_state


@dataclass(frozen=True)
class StatementLine:
    withdrawal_id: int
    invoice_number: str
    withdrawn_on: date
    quantity_taken: int
    rent_charged: Decimal


@dataclass(frozen=True)
class StatementLot:
    lot_id: int
    commodity_id: int
    storage_start_date: date
    storage_end_date: date | None
    bags_stored: int
    bags_remaining: int
    state: LotState
    rent_billed: Decimal
    paid: Decimal
    due: Decimal
    accrued_rent: Decimal
    next_billing_date: date | None
    withdrawals: list[StatementLine]


@dataclass(frozen=True)
class CustomerStatement:
    customer_id: int
    as_of: date
    lots: list[StatementLot]
    total_billed: Decimal
    total_paid: Decimal
    total_due: Decimal
    total_accrued: Decimal


@dataclass(frozen=True)
class WarehouseSummary:
    warehouse_id: int
    open_lots: int
    bags_in_storage: int
    rent_billed: Decimal
    rent_collected: Decimal


def _lines_by_lot(db: Session, lot_ids: list[int]) -> dict[int, list[StatementLine]]:
    grouped: dict[int, list[StatementLine]] = {lot_id: [] for lot_id in lot_ids}
    if not lot_ids:
        return grouped
    rows = db.execute(
        select(WithdrawalLine, Withdrawal)
        .join(Withdrawal, Withdrawal.id == WithdrawalLine.withdrawal_id)
        .where(WithdrawalLine.lot_id.in_(lot_ids))
        .order_by(Withdrawal.withdrawn_on.asc(), Withdrawal.id.asc())
    ).all()
    for line, withdrawal in rows:
        grouped[line.lot_id].append(
            StatementLine(
                withdrawal_id=withdrawal.id,
                invoice_number=withdrawal.invoice_number,
                withdrawn_on=withdrawal.withdrawn_on,
                quantity_taken=line.quantity_taken,
                rent_charged=Decimal(line.rent_charged),
            )
        )
    return grouped


def customer_statement(db: Session, customer: Customer, as_of: date) -> CustomerStatement:
    schedule = load_rate_schedule(db, customer.warehouse_id)
    lots = db.scalars(
        select(StorageLot)
        .where(StorageLot.customer_id == customer.id, StorageLot.deleted_at.is_(None))
        .order_by(StorageLot.storage_start_date.asc(), StorageLot.id.asc())
    ).all()
    lot_ids = [lot.id for lot in lots]
    paid = paid_by_lot(db, lot_ids)
    history = _lines_by_lot(db, lot_ids)

    entries: list[StatementLot] = []
    for lot in lots:
        status = billing_status(lot, as_of, schedule)
        billed = Decimal(lot.total_rent_billed)
        lot_paid = paid.get(lot.id, Decimal("0.00"))
        entries.append(
            StatementLot(
                lot_id=lot.id,
                commodity_id=lot.commodity_id,
                storage_start_date=lot.storage_start_date,
                storage_end_date=lot.storage_end_date,
                bags_stored=lot.bags_stored,
                bags_remaining=lot.bags_remaining,
                state=lot_state(lot),
                rent_billed=billed,
                paid=lot_paid,
                due=max(Decimal("0.00"), billed - lot_paid),
                accrued_rent=status.accrued_rent,
                next_billing_date=status.next_billing_date,
                withdrawals=history[lot.id],
            )
        )

    zero = Decimal("0.00")
    return CustomerStatement(
        customer_id=customer.id,
        as_of=as_of,
        lots=entries,
        total_billed=sum((entry.rent_billed for entry in entries), zero),
        total_paid=sum((entry.paid for entry in entries), zero),
        total_due=sum((entry.due for entry in entries), zero),
        total_accrued=sum((entry.accrued_rent for entry in entries), zero),
    )


def warehouse_summary(db: Session, warehouse_id: int) -> WarehouseSummary:
    open_count, bags = db.execute(
        select(func.count(StorageLot.id), func.coalesce(func.sum(StorageLot.bags_remaining), 0)).where(
            StorageLot.warehouse_id == warehouse_id,
            StorageLot.storage_end_date.is_(None),
            StorageLot.deleted_at.is_(None),
            StorageLot.bags_remaining > 0,
        )
    ).one()
    billed = db.scalar(
        select(func.coalesce(func.sum(StorageLot.total_rent_billed), 0)).where(
            StorageLot.warehouse_id == warehouse_id,
            StorageLot.deleted_at.is_(None),
        )
    )
    collected = db.scalar(
        select(func.coalesce(func.sum(Payment.amount), 0)).where(
            Payment.warehouse_id == warehouse_id,
            Payment.deleted_at.is_(None),
        )
    )
    return WarehouseSummary(
        warehouse_id=warehouse_id,
        open_lots=int(open_count),
        bags_in_storage=int(bags),
        rent_billed=quantize_money(Decimal(str(billed))),
        rent_collected=quantize_money(Decimal(str(collected))),
    )
