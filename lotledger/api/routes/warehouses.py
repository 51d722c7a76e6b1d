import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lotledger.api.deps import get_active_warehouse, get_warehouse_or_404
from lotledger.db.database import get_db
from lotledger.models.warehouse import Commodity, Customer, RateTier, Warehouse
from lotledger.schemas.ledger import (
    CommodityCreate,
    CommodityOut,
    CustomerCreate,
    CustomerOut,
    CustomerUpdate,
    RateScheduleUpdate,
    RateTierOut,
    WarehouseCreate,
    WarehouseOut,
    WarehouseUpdate,
)
from lotledger.services import rent
from lotledger.services.lot_store import default_rate_tiers, replace_rate_tiers

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/warehouses", tags=["Warehouses"])


@router.post("", response_model=WarehouseOut, status_code=status.HTTP_201_CREATED)
def create_warehouse(payload: WarehouseCreate, db: Session = Depends(get_db)):
    warehouse = Warehouse(
        code=payload.code.strip().upper(),
        name=payload.name.strip(),
        location=payload.location.strip() if payload.location else None,
    )
    db.add(warehouse)
    try:
        db.flush()
        if payload.seed_default_rates:
            replace_rate_tiers(db, warehouse.id, default_rate_tiers())
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Warehouse code already exists") from exc
    db.refresh(warehouse)
    logger.info("Created warehouse %s (%s)", warehouse.id, warehouse.code)
    return warehouse


@router.get("", response_model=list[WarehouseOut])
def list_warehouses(
    include_inactive: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    query = select(Warehouse).order_by(Warehouse.name.asc())
    if not include_inactive:
        query = query.where(Warehouse.is_active.is_(True))
    return list(db.scalars(query).all())


@router.patch("/{warehouse_id}", response_model=WarehouseOut)
def update_warehouse(
    payload: WarehouseUpdate,
    warehouse: Warehouse = Depends(get_warehouse_or_404),
    db: Session = Depends(get_db),
):
    if payload.code is not None:
        warehouse.code = payload.code.strip().upper()
    if payload.name is not None:
        warehouse.name = payload.name.strip()
    if payload.location is not None:
        warehouse.location = payload.location.strip() or None
    if payload.is_active is not None:
        warehouse.is_active = payload.is_active
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Warehouse code already exists") from exc
    db.refresh(warehouse)
    return warehouse


@router.delete("/{warehouse_id}", response_model=WarehouseOut)
def archive_warehouse(
    warehouse: Warehouse = Depends(get_warehouse_or_404),
    db: Session = Depends(get_db),
):
    warehouse.is_active = False
    db.commit()
    db.refresh(warehouse)
    return warehouse


@router.post("/{warehouse_id}/activate", response_model=WarehouseOut)
def activate_warehouse(
    warehouse: Warehouse = Depends(get_warehouse_or_404),
    db: Session = Depends(get_db),
):
    warehouse.is_active = True
    db.commit()
    db.refresh(warehouse)
    return warehouse


@router.get("/{warehouse_id}/rate-tiers", response_model=list[RateTierOut])
def list_rate_tiers(
    warehouse: Warehouse = Depends(get_warehouse_or_404),
    db: Session = Depends(get_db),
):
    return list(
        db.scalars(
            select(RateTier)
            .where(RateTier.warehouse_id == warehouse.id)
            .order_by(RateTier.threshold_days.asc())
        ).all()
    )


@router.put("/{warehouse_id}/rate-tiers", response_model=list[RateTierOut])
def replace_warehouse_rate_tiers(
    payload: RateScheduleUpdate,
    warehouse: Warehouse = Depends(get_warehouse_or_404),
    db: Session = Depends(get_db),
):
    tiers = [
        rent.RateTier(
            threshold_days=tier.threshold_days,
            period_days=tier.period_days,
            rate_per_unit=tier.rate_per_unit,
        )
        for tier in payload.tiers
    ]
    try:
        rows = replace_rate_tiers(db, warehouse.id, tiers)
    except ValueError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    db.commit()
    for row in rows:
        db.refresh(row)
    logger.info("Replaced rate schedule for warehouse %s with %s tiers", warehouse.id, len(rows))
    return rows


@router.post("/{warehouse_id}/customers", response_model=CustomerOut, status_code=status.HTTP_201_CREATED)
def create_customer(
    payload: CustomerCreate,
    warehouse: Warehouse = Depends(get_active_warehouse),
    db: Session = Depends(get_db),
):
    customer = Customer(
        warehouse_id=warehouse.id,
        name=payload.name.strip(),
        phone=payload.phone.strip() if payload.phone else None,
        email=payload.email.strip().lower() if payload.email else None,
        village=payload.village.strip() if payload.village else None,
    )
    db.add(customer)
    db.commit()
    db.refresh(customer)
    return customer


@router.get("/{warehouse_id}/customers", response_model=list[CustomerOut])
def list_customers(
    q: str | None = Query(default=None, max_length=80),
    include_inactive: bool = Query(default=False),
    warehouse: Warehouse = Depends(get_warehouse_or_404),
    db: Session = Depends(get_db),
):
    query = select(Customer).where(Customer.warehouse_id == warehouse.id).order_by(Customer.name.asc())
    if not include_inactive:
        query = query.where(Customer.is_active.is_(True))
    if q:
        pattern = f"%{q.strip()}%"
        query = query.where(Customer.name.ilike(pattern) | Customer.phone.ilike(pattern))
    return list(db.scalars(query).all())


def _get_customer_or_404(db: Session, warehouse: Warehouse, customer_id: int) -> Customer:
    customer = db.get(Customer, customer_id)
    if not customer or customer.warehouse_id != warehouse.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    return customer


@router.patch("/{warehouse_id}/customers/{customer_id}", response_model=CustomerOut)
def update_customer(
    customer_id: int,
    payload: CustomerUpdate,
    warehouse: Warehouse = Depends(get_warehouse_or_404),
    db: Session = Depends(get_db),
):
    customer = _get_customer_or_404(db, warehouse, customer_id)
    if payload.name is not None:
        customer.name = payload.name.strip()
    if payload.phone is not None:
        customer.phone = payload.phone.strip() or None
    if payload.email is not None:
        customer.email = payload.email.strip().lower() or None
    if payload.village is not None:
        customer.village = payload.village.strip() or None
    if payload.is_active is not None:
        customer.is_active = payload.is_active
    db.commit()
    db.refresh(customer)
    return customer


@router.delete("/{warehouse_id}/customers/{customer_id}", response_model=CustomerOut)
def archive_customer(
    customer_id: int,
    warehouse: Warehouse = Depends(get_warehouse_or_404),
    db: Session = Depends(get_db),
):
    customer = _get_customer_or_404(db, warehouse, customer_id)
    customer.is_active = False
    db.commit()
    db.refresh(customer)
    return customer


@router.post("/{warehouse_id}/commodities", response_model=CommodityOut, status_code=status.HTTP_201_CREATED)
def create_commodity(
    payload: CommodityCreate,
    warehouse: Warehouse = Depends(get_active_warehouse),
    db: Session = Depends(get_db),
):
    commodity = Commodity(warehouse_id=warehouse.id, name=payload.name.strip(), unit=payload.unit)
    db.add(commodity)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Commodity already exists for this warehouse",
        ) from exc
    db.refresh(commodity)
    return commodity


@router.get("/{warehouse_id}/commodities", response_model=list[CommodityOut])
def list_commodities(
    warehouse: Warehouse = Depends(get_warehouse_or_404),
    db: Session = Depends(get_db),
):
    return list(
        db.scalars(
            select(Commodity)
            .where(Commodity.warehouse_id == warehouse.id, Commodity.is_active.is_(True))
            .order_by(Commodity.name.asc())
        ).all()
    )
