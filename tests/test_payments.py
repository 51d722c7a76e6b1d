from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from lotledger.models.storage import Payment
from lotledger.services.errors import LotStateError, OverpaymentError
from lotledger.services.payments import (
    DueRecord,
    allocate_payment_fifo,
    lot_dues,
    record_bulk_payment,
    void_payment,
)
from lotledger.services.withdrawals import WithdrawalRequest, process_withdrawal


def test_fifo_spreads_payment_oldest_first():
    records = [
        DueRecord(lot_id=2, storage_start_date=date(2026, 1, 5), billed=Decimal("200.00"), paid=Decimal("0.00")),
        DueRecord(lot_id=1, storage_start_date=date(2026, 1, 1), billed=Decimal("1000.00"), paid=Decimal("0.00")),
    ]

    plan = allocate_payment_fifo(records, Decimal("1100.00"))

    assert [(item.lot_id, item.amount, item.remaining_due) for item in plan.allocations] == [
        (1, Decimal("1000.00"), Decimal("0.00")),
        (2, Decimal("100.00"), Decimal("100.00")),
    ]
    assert plan.unallocated == Decimal("0.00")


def test_fifo_reports_unallocated_excess():
    records = [DueRecord(lot_id=1, storage_start_date=date(2026, 1, 1), billed=Decimal("50.00"), paid=Decimal("20.00"))]

    plan = allocate_payment_fifo(records, Decimal("40.00"))

    assert plan.allocations[0].amount == Decimal("30.00")
    assert plan.unallocated == Decimal("10.00")


def test_lot_dues_lists_billed_lots(db, warehouse, customer, billed_lots):
    a, b = billed_lots

    dues = lot_dues(db, warehouse_id=warehouse.id, customer_id=customer.id)

    assert [(record.lot_id, record.due) for record in dues] == [(a.id, Decimal("1000.00")), (b.id, Decimal("200.00"))]


def test_bulk_payment_creates_one_payment_per_lot(db, warehouse, customer, billed_lots):
    a, b = billed_lots

    payments = record_bulk_payment(
        db,
        warehouse_id=warehouse.id,
        customer_id=customer.id,
        amount=Decimal("1100.00"),
        paid_on=date(2026, 1, 21),
        method="upi",
    )

    assert [(payment.lot_id, Decimal(payment.amount)) for payment in payments] == [
        (a.id, Decimal("1000.00")),
        (b.id, Decimal("100.00")),
    ]
    remaining = lot_dues(db, warehouse_id=warehouse.id, customer_id=customer.id)
    assert [(record.lot_id, record.due) for record in remaining] == [(b.id, Decimal("100.00"))]


def test_overpayment_is_rejected_whole(db, warehouse, customer, billed_lots):
    with pytest.raises(OverpaymentError) as excinfo:
        record_bulk_payment(
            db,
            warehouse_id=warehouse.id,
            customer_id=customer.id,
            amount=Decimal("1300.00"),
            paid_on=date(2026, 1, 21),
        )

    assert excinfo.value.total_due == Decimal("1200.00")
    assert db.scalar(select(func.count(Payment.id))) == 0


def test_voided_payment_restores_due(db, warehouse, customer, billed_lots):
    a, _ = billed_lots
    (payment,) = record_bulk_payment(
        db,
        warehouse_id=warehouse.id,
        customer_id=customer.id,
        amount=Decimal("400.00"),
        paid_on=date(2026, 1, 21),
    )

    void_payment(db, payment)

    dues = lot_dues(db, warehouse_id=warehouse.id, customer_id=customer.id)
    assert dues[0].lot_id == a.id
    assert dues[0].due == Decimal("1000.00")
    with pytest.raises(LotStateError):
        void_payment(db, payment)


def test_second_payment_sees_the_first_one(db, other_db, warehouse, customer, billed_lots):
    lot_dues(other_db, warehouse_id=warehouse.id, customer_id=customer.id)

    record_bulk_payment(
        db,
        warehouse_id=warehouse.id,
        customer_id=customer.id,
        amount=Decimal("1200.00"),
        paid_on=date(2026, 1, 21),
    )
    with pytest.raises(OverpaymentError):
        record_bulk_payment(
            other_db,
            warehouse_id=warehouse.id,
            customer_id=customer.id,
            amount=Decimal("1200.00"),
            paid_on=date(2026, 1, 21),
        )

    assert Decimal(str(db.scalar(select(func.sum(Payment.amount))))) == Decimal("1200.00")


def test_payment_uses_rent_billed_by_another_session(db, other_db, warehouse, customer, commodity, billed_lots):
    _, newer = billed_lots
    lot_dues(other_db, warehouse_id=warehouse.id, customer_id=customer.id)
    # The last 30 bags leave, billing another 300.00 on the newer lot.
    process_withdrawal(
        db,
        WithdrawalRequest(
            warehouse_id=warehouse.id,
            customer_id=customer.id,
            commodity_id=commodity.id,
            quantity=30,
            withdrawn_on=date(2026, 1, 20),
        ),
    )

    payments = record_bulk_payment(
        other_db,
        warehouse_id=warehouse.id,
        customer_id=customer.id,
        amount=Decimal("1500.00"),
        paid_on=date(2026, 1, 21),
    )

    assert [Decimal(payment.amount) for payment in payments] == [Decimal("1000.00"), Decimal("500.00")]
    assert payments[1].lot_id == newer.id
