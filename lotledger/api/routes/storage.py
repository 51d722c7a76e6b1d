import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from lotledger.api.deps import get_active_warehouse, get_warehouse_or_404
from lotledger.db.database import get_db
from lotledger.models.storage import Payment, StorageLot, Withdrawal, WithdrawalLine
from lotledger.models.warehouse import Warehouse
from lotledger.schemas.ledger import (
    AllocationLineOut,
    BulkPaymentCreate,
    CustomerStatementOut,
    LotCreate,
    LotOut,
    LotRentOut,
    PaymentOut,
    WarehouseSummaryOut,
    WithdrawalCreate,
    WithdrawalOut,
    WithdrawalPreviewOut,
)
from lotledger.services.lot_store import (
    create_lot,
    get_commodity,
    get_customer,
    get_lot,
    load_rate_schedule,
    soft_delete_lot,
)
from lotledger.services.notifications import send_withdrawal_receipt
from lotledger.services.payments import record_bulk_payment, void_payment
from lotledger.services.rent import billing_status
from lotledger.services.reporting import customer_statement, warehouse_summary
from lotledger.services.settlement import LotState, lot_state
from lotledger.services.withdrawals import WithdrawalRequest, preview_withdrawal, process_withdrawal

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/warehouses/{warehouse_id}", tags=["Storage"])


def _lot_out(lot: StorageLot) -> LotOut:
    return LotOut(
        id=lot.id,
        warehouse_id=lot.warehouse_id,
        customer_id=lot.customer_id,
        commodity_id=lot.commodity_id,
        bags_stored=lot.bags_stored,
        bags_remaining=lot.bags_remaining,
        storage_start_date=lot.storage_start_date,
        storage_end_date=lot.storage_end_date,
        location=lot.location,
        note=lot.note,
        total_rent_billed=lot.total_rent_billed,
        state=lot_state(lot),
        deleted_at=lot.deleted_at,
        created_at=lot.created_at,
    )


def _withdrawal_out(db: Session, withdrawal: Withdrawal, receipt_sent: bool | None = None) -> WithdrawalOut:
    lines = db.scalars(
        select(WithdrawalLine).where(WithdrawalLine.withdrawal_id == withdrawal.id).order_by(WithdrawalLine.id.asc())
    ).all()
    return WithdrawalOut(
        id=withdrawal.id,
        warehouse_id=withdrawal.warehouse_id,
        customer_id=withdrawal.customer_id,
        commodity_id=withdrawal.commodity_id,
        invoice_number=withdrawal.invoice_number,
        bags_withdrawn=withdrawal.bags_withdrawn,
        total_rent=withdrawal.total_rent,
        withdrawn_on=withdrawal.withdrawn_on,
        requested_at=withdrawal.requested_at,
        note=withdrawal.note,
        lines=[
            AllocationLineOut(lot_id=line.lot_id, quantity_taken=line.quantity_taken, rent_charged=line.rent_charged)
            for line in lines
        ],
        receipt_sent=receipt_sent,
    )


def _withdrawal_request(warehouse: Warehouse, payload: WithdrawalCreate) -> WithdrawalRequest:
    return WithdrawalRequest(
        warehouse_id=warehouse.id,
        customer_id=payload.customer_id,
        commodity_id=payload.commodity_id,
        quantity=payload.quantity,
        withdrawn_on=payload.withdrawn_on,
        lot_ids=tuple(payload.lot_ids) if payload.lot_ids else None,
        note=payload.note,
    )


@router.post("/lots", response_model=LotOut, status_code=status.HTTP_201_CREATED)
def create_storage_lot(
    payload: LotCreate,
    warehouse: Warehouse = Depends(get_active_warehouse),
    db: Session = Depends(get_db),
):
    lot = create_lot(
        db,
        warehouse_id=warehouse.id,
        customer_id=payload.customer_id,
        commodity_id=payload.commodity_id,
        quantity=payload.quantity,
        start_date=payload.storage_start_date,
        location=payload.location,
        note=payload.note,
    )
    db.commit()
    db.refresh(lot)
    return _lot_out(lot)


@router.get("/lots", response_model=list[LotOut])
def list_storage_lots(
    customer_id: int | None = Query(default=None),
    commodity_id: int | None = Query(default=None),
    state: LotState | None = Query(default=None),
    include_deleted: bool = Query(default=False),
    warehouse: Warehouse = Depends(get_warehouse_or_404),
    db: Session = Depends(get_db),
):
    query = (
        select(StorageLot)
        .where(StorageLot.warehouse_id == warehouse.id)
        .order_by(StorageLot.storage_start_date.asc(), StorageLot.id.asc())
    )
    if customer_id is not None:
        query = query.where(StorageLot.customer_id == customer_id)
    if commodity_id is not None:
        query = query.where(StorageLot.commodity_id == commodity_id)
    if not include_deleted:
        query = query.where(StorageLot.deleted_at.is_(None))
    lots = [_lot_out(lot) for lot in db.scalars(query).all()]
    if state is not None:
        lots = [lot for lot in lots if lot.state == state]
    return lots


@router.get("/lots/{lot_id}", response_model=LotOut)
def get_storage_lot(
    lot_id: int,
    warehouse: Warehouse = Depends(get_warehouse_or_404),
    db: Session = Depends(get_db),
):
    return _lot_out(get_lot(db, lot_id, warehouse_id=warehouse.id))


@router.get("/lots/{lot_id}/rent", response_model=LotRentOut)
def get_lot_rent(
    lot_id: int,
    as_of: date | None = Query(default=None),
    warehouse: Warehouse = Depends(get_warehouse_or_404),
    db: Session = Depends(get_db),
):
    lot = get_lot(db, lot_id, warehouse_id=warehouse.id)
    effective_as_of = as_of or date.today()
    if effective_as_of < lot.storage_start_date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="as_of is before the lot was stored")
    schedule = load_rate_schedule(db, warehouse.id)
    billing = billing_status(lot, effective_as_of, schedule)
    return LotRentOut(
        lot_id=lot.id,
        as_of=effective_as_of,
        days_stored=billing.days_stored,
        threshold_days=billing.tier.threshold_days,
        period_days=billing.tier.period_days,
        rate_per_unit=billing.tier.rate_per_unit,
        periods_elapsed=billing.periods_elapsed,
        accrued_rent=billing.accrued_rent,
        next_billing_date=billing.next_billing_date,
    )


@router.delete("/lots/{lot_id}", response_model=LotOut)
def delete_storage_lot(
    lot_id: int,
    warehouse: Warehouse = Depends(get_warehouse_or_404),
    db: Session = Depends(get_db),
):
    lot = soft_delete_lot(db, get_lot(db, lot_id, warehouse_id=warehouse.id))
    db.commit()
    db.refresh(lot)
    return _lot_out(lot)


@router.post("/withdrawals/preview", response_model=WithdrawalPreviewOut)
def preview_storage_withdrawal(
    payload: WithdrawalCreate,
    warehouse: Warehouse = Depends(get_active_warehouse),
    db: Session = Depends(get_db),
):
    preview = preview_withdrawal(db, _withdrawal_request(warehouse, payload))
    return WithdrawalPreviewOut(
        bags_requested=payload.quantity,
        bags_available=preview.bags_available,
        total_rent=preview.total_rent,
        lines=[
            AllocationLineOut(lot_id=line.lot_id, quantity_taken=line.quantity_taken, rent_charged=line.rent_charged)
            for line in preview.lines
        ],
    )


@router.post("/withdrawals", response_model=WithdrawalOut, status_code=status.HTTP_201_CREATED)
def create_withdrawal(
    payload: WithdrawalCreate,
    warehouse: Warehouse = Depends(get_active_warehouse),
    db: Session = Depends(get_db),
):
    withdrawal = process_withdrawal(db, _withdrawal_request(warehouse, payload))
    db.refresh(withdrawal)
    out = _withdrawal_out(db, withdrawal)
    if not payload.send_receipt:
        return out

    customer = get_customer(db, withdrawal.customer_id, warehouse_id=warehouse.id)
    commodity = get_commodity(db, withdrawal.commodity_id, warehouse_id=warehouse.id)
    lines = list(
        db.scalars(
            select(WithdrawalLine)
            .where(WithdrawalLine.withdrawal_id == withdrawal.id)
            .order_by(WithdrawalLine.id.asc())
        ).all()
    )
    sent = send_withdrawal_receipt(
        withdrawal,
        lines,
        warehouse=warehouse,
        customer=customer,
        commodity=commodity,
    )
    return out.model_copy(update={"receipt_sent": sent})


@router.get("/withdrawals", response_model=list[WithdrawalOut])
def list_withdrawals(
    customer_id: int | None = Query(default=None),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    warehouse: Warehouse = Depends(get_warehouse_or_404),
    db: Session = Depends(get_db),
):
    query = (
        select(Withdrawal)
        .where(Withdrawal.warehouse_id == warehouse.id)
        .order_by(Withdrawal.withdrawn_on.desc(), Withdrawal.id.desc())
        .limit(limit)
    )
    if customer_id is not None:
        query = query.where(Withdrawal.customer_id == customer_id)
    if date_from is not None:
        query = query.where(Withdrawal.withdrawn_on >= date_from)
    if date_to is not None:
        query = query.where(Withdrawal.withdrawn_on <= date_to)
    return [_withdrawal_out(db, withdrawal) for withdrawal in db.scalars(query).all()]


@router.get("/withdrawals/{withdrawal_id}", response_model=WithdrawalOut)
def get_withdrawal(
    withdrawal_id: int,
    warehouse: Warehouse = Depends(get_warehouse_or_404),
    db: Session = Depends(get_db),
):
    withdrawal = db.get(Withdrawal, withdrawal_id)
    if not withdrawal or withdrawal.warehouse_id != warehouse.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Withdrawal not found")
    return _withdrawal_out(db, withdrawal)


@router.post(
    "/customers/{customer_id}/payments",
    response_model=list[PaymentOut],
    status_code=status.HTTP_201_CREATED,
)
def create_bulk_payment(
    customer_id: int,
    payload: BulkPaymentCreate,
    warehouse: Warehouse = Depends(get_active_warehouse),
    db: Session = Depends(get_db),
):
    payments = record_bulk_payment(
        db,
        warehouse_id=warehouse.id,
        customer_id=customer_id,
        amount=payload.amount,
        paid_on=payload.paid_on,
        method=payload.method,
        note=payload.note,
    )
    for payment in payments:
        db.refresh(payment)
    return payments


@router.get("/payments", response_model=list[PaymentOut])
def list_payments(
    customer_id: int | None = Query(default=None),
    lot_id: int | None = Query(default=None),
    include_voided: bool = Query(default=False),
    warehouse: Warehouse = Depends(get_warehouse_or_404),
    db: Session = Depends(get_db),
):
    query = (
        select(Payment)
        .where(Payment.warehouse_id == warehouse.id)
        .order_by(Payment.paid_on.desc(), Payment.id.desc())
    )
    if customer_id is not None:
        query = query.where(Payment.customer_id == customer_id)
    if lot_id is not None:
        query = query.where(Payment.lot_id == lot_id)
    if not include_voided:
        query = query.where(Payment.deleted_at.is_(None))
    return list(db.scalars(query).all())


@router.delete("/payments/{payment_id}", response_model=PaymentOut)
def void_customer_payment(
    payment_id: int,
    warehouse: Warehouse = Depends(get_warehouse_or_404),
    db: Session = Depends(get_db),
):
    payment = db.get(Payment, payment_id)
    if not payment or payment.warehouse_id != warehouse.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment not found")
    void_payment(db, payment)
    db.refresh(payment)
    return payment


@router.get("/customers/{customer_id}/statement", response_model=CustomerStatementOut)
def get_customer_statement(
    customer_id: int,
    as_of: date | None = Query(default=None),
    warehouse: Warehouse = Depends(get_warehouse_or_404),
    db: Session = Depends(get_db),
):
    customer = get_customer(db, customer_id, warehouse_id=warehouse.id)
    return customer_statement(db, customer, as_of or date.today())


@router.get("/summary", response_model=WarehouseSummaryOut)
def get_warehouse_summary(
    warehouse: Warehouse = Depends(get_warehouse_or_404),
    db: Session = Depends(get_db),
):
    return warehouse_summary(db, warehouse.id)
