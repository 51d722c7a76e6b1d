import logging
from collections.abc import Iterable, Sequence
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from lotledger.core.config import settings
from lotledger.models.storage import StorageLot, WithdrawalLine
from lotledger.models.warehouse import Commodity, Customer, RateTier as RateTierRow, Warehouse
from lotledger.services.errors import LotStateError, NotFoundError, RateScheduleMissingError
from lotledger.services.rent import RateSchedule, RateTier, build_rate_schedule

logger = logging.getLogger(__name__)


def get_warehouse(db: Session, warehouse_id: int, *, lock: bool = False) -> Warehouse:
    query = select(Warehouse).where(Warehouse.id == warehouse_id)
    if lock:
        # The locked row overwrites whatever copy the session already holds.
        query = query.with_for_update().execution_options(populate_existing=True)
    warehouse = db.scalar(query)
    if not warehouse:
        raise NotFoundError("Warehouse not found")
    return warehouse


def get_customer(db: Session, customer_id: int, *, warehouse_id: int) -> Customer:
    customer = db.get(Customer, customer_id)
    if not customer or customer.warehouse_id != warehouse_id:
        raise NotFoundError("Customer not found")
    return customer


def get_commodity(db: Session, commodity_id: int, *, warehouse_id: int) -> Commodity:
    commodity = db.get(Commodity, commodity_id)
    if not commodity or commodity.warehouse_id != warehouse_id:
        raise NotFoundError("Commodity not found")
    return commodity


def _check_references(db: Session, *, warehouse_id: int, customer_id: int, commodity_id: int) -> None:
    get_warehouse(db, warehouse_id)
    get_customer(db, customer_id, warehouse_id=warehouse_id)
    get_commodity(db, commodity_id, warehouse_id=warehouse_id)


def create_lot(
    db: Session,
    *,
    warehouse_id: int,
    customer_id: int,
    commodity_id: int,
    quantity: int,
    start_date: date,
    location: str | None = None,
    note: str | None = None,
) -> StorageLot:
    if quantity <= 0:
        raise ValueError("Lot quantity must be positive")

    warehouse = get_warehouse(db, warehouse_id)
    if not warehouse.is_active:
        raise NotFoundError("Warehouse not found")
    customer = get_customer(db, customer_id, warehouse_id=warehouse_id)
    if not customer.is_active:
        raise NotFoundError("Customer not found")
    commodity = get_commodity(db, commodity_id, warehouse_id=warehouse_id)
    if not commodity.is_active:
        raise NotFoundError("Commodity not found")

    lot = StorageLot(
        warehouse_id=warehouse_id,
        customer_id=customer_id,
        commodity_id=commodity_id,
        bags_stored=quantity,
        bags_remaining=quantity,
        storage_start_date=start_date,
        location=location.strip() if location else None,
        note=note.strip() if note else None,
        total_rent_billed=Decimal("0.00"),
        revision=1,
    )
    db.add(lot)
    db.flush()
    logger.info(
        "Created lot %s for customer %s (%s bags from %s)",
        lot.id,
        customer_id,
        quantity,
        start_date.isoformat(),
    )
    return lot


def get_open_lots(
    db: Session,
    *,
    warehouse_id: int,
    customer_id: int,
    commodity_id: int,
    lot_ids: Sequence[int] | None = None,
    as_of: date | None = None,
    lock: bool = False,
) -> list[StorageLot]:
    """Open lots for one customer and commodity, oldest first.

    Ties on the start date go to the lower lot id so the order is total.
    """
    _check_references(db, warehouse_id=warehouse_id, customer_id=customer_id, commodity_id=commodity_id)

    query = (
        select(StorageLot)
        .where(
            StorageLot.warehouse_id == warehouse_id,
            StorageLot.customer_id == customer_id,
            StorageLot.commodity_id == commodity_id,
            StorageLot.storage_end_date.is_(None),
            StorageLot.deleted_at.is_(None),
            StorageLot.bags_remaining > 0,
        )
        .order_by(StorageLot.storage_start_date.asc(), StorageLot.id.asc())
    )
    if lot_ids is not None:
        query = query.where(StorageLot.id.in_(list(lot_ids)))
    if as_of is not None:
        query = query.where(StorageLot.storage_start_date <= as_of)
    if lock:
        query = query.with_for_update().execution_options(populate_existing=True)
    return list(db.scalars(query).all())


def get_lot(db: Session, lot_id: int, *, warehouse_id: int) -> StorageLot:
    lot = db.get(StorageLot, lot_id)
    if not lot or lot.warehouse_id != warehouse_id:
        raise NotFoundError("Storage lot not found")
    return lot


def soft_delete_lot(db: Session, lot: StorageLot) -> StorageLot:
    if lot.deleted_at is not None:
        raise LotStateError("Storage lot is already deleted")
    withdrawn = db.scalar(select(func.count(WithdrawalLine.id)).where(WithdrawalLine.lot_id == lot.id))
    if withdrawn or lot.bags_remaining != lot.bags_stored:
        raise LotStateError("Cannot delete a lot that has withdrawals against it")
    lot.deleted_at = datetime.utcnow()
    lot.revision = lot.revision + 1
    db.flush()
    logger.info("Soft-deleted lot %s", lot.id)
    return lot


def load_rate_schedule(db: Session, warehouse_id: int) -> RateSchedule:
    rows = db.scalars(
        select(RateTierRow)
        .where(RateTierRow.warehouse_id == warehouse_id)
        .order_by(RateTierRow.threshold_days.asc())
    ).all()
    if not rows:
        raise RateScheduleMissingError(f"No rate schedule configured for warehouse {warehouse_id}")
    return build_rate_schedule(
        RateTier(
            threshold_days=row.threshold_days,
            period_days=row.period_days,
            rate_per_unit=Decimal(row.rate_per_unit),
        )
        for row in rows
    )


def default_rate_tiers() -> list[RateTier]:
    return [
        RateTier(threshold_days=threshold, period_days=period, rate_per_unit=Decimal(rate))
        for threshold, period, rate in settings.default_rate_tiers
    ]


def replace_rate_tiers(db: Session, warehouse_id: int, tiers: Iterable[RateTier]) -> list[RateTierRow]:
    schedule = build_rate_schedule(tiers)
    db.execute(delete(RateTierRow).where(RateTierRow.warehouse_id == warehouse_id))
    rows = [
        RateTierRow(
            warehouse_id=warehouse_id,
            threshold_days=tier.threshold_days,
            period_days=tier.period_days,
            rate_per_unit=Decimal(tier.rate_per_unit),
        )
        for tier in schedule
    ]
    db.add_all(rows)
    db.flush()
    return rows
