"""
Pytest fixtures for ledger tests.

Every test gets a fresh in-memory SQLite schema. The environment is pointed at
it before the package is imported so the engine binds to SQLite.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["EMAIL_PROVIDER"] = "console"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from collections.abc import Callable, Generator
from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

import lotledger.models  # noqa: F401
from lotledger.db.database import Base, SessionLocal, engine, get_db
from lotledger.main import app
from lotledger.models.storage import StorageLot
from lotledger.models.warehouse import Commodity, Customer, Warehouse
from lotledger.services.lot_store import create_lot, replace_rate_tiers
from lotledger.services.rent import RateTier
from lotledger.services.withdrawals import WithdrawalRequest, process_withdrawal

# 10 per bag per 30-day period, 15 per bag per period from day 91 on.
TEST_TIERS = [
    RateTier(threshold_days=1, period_days=30, rate_per_unit=Decimal("10.00")),
    RateTier(threshold_days=91, period_days=30, rate_per_unit=Decimal("15.00")),
]


@pytest.fixture
def db() -> Generator[Session, None, None]:
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def warehouse(db: Session) -> Warehouse:
    row = Warehouse(code="WH1", name="Main Cold Store", location="Ward 4")
    db.add(row)
    db.flush()
    replace_rate_tiers(db, row.id, TEST_TIERS)
    db.commit()
    return row


@pytest.fixture
def customer(db: Session, warehouse: Warehouse) -> Customer:
    row = Customer(warehouse_id=warehouse.id, name="Ramesh Kumar", phone="9800000001", email="ramesh@example.com")
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def commodity(db: Session, warehouse: Warehouse) -> Commodity:
    row = Commodity(warehouse_id=warehouse.id, name="Potato", unit="bag")
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def make_lot(
    db: Session,
    warehouse: Warehouse,
    customer: Customer,
    commodity: Commodity,
) -> Callable[..., StorageLot]:
    def factory(quantity: int, start_date: date, **overrides) -> StorageLot:
        lot = create_lot(
            db,
            warehouse_id=overrides.get("warehouse_id", warehouse.id),
            customer_id=overrides.get("customer_id", customer.id),
            commodity_id=overrides.get("commodity_id", commodity.id),
            quantity=quantity,
            start_date=start_date,
        )
        db.commit()
        return lot

    return factory


@pytest.fixture
def client(db: Session) -> Generator[TestClient, None, None]:
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def billed_lots(
    db: Session,
    warehouse: Warehouse,
    customer: Customer,
    commodity: Commodity,
    make_lot: Callable[..., StorageLot],
) -> tuple[StorageLot, StorageLot]:
    """Lots of 100 and 50 bags after a 120-bag withdrawal on 2026-01-20.

    The older lot is closed with 1000.00 billed; the newer one keeps 30 bags
    with 200.00 billed.
    """
    older = make_lot(100, date(2026, 1, 1))
    newer = make_lot(50, date(2026, 1, 5))
    process_withdrawal(
        db,
        WithdrawalRequest(
            warehouse_id=warehouse.id,
            customer_id=customer.id,
            commodity_id=commodity.id,
            quantity=120,
            withdrawn_on=date(2026, 1, 20),
        ),
    )
    return older, newer


@pytest.fixture
def other_db(db: Session) -> Generator[Session, None, None]:
    """A second session on the same database, standing in for a concurrent request."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
