from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from lotledger.db.database import Base


class StorageLot(Base):
    __tablename__ = "storage_lots"
    __table_args__ = (
        CheckConstraint("bags_stored > 0", name="ck_storage_lots_bags_stored_positive"),
        CheckConstraint("bags_remaining >= 0", name="ck_storage_lots_bags_remaining_non_negative"),
        CheckConstraint("bags_remaining <= bags_stored", name="ck_storage_lots_bags_remaining_bounded"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    warehouse_id: Mapped[int] = mapped_column(
        ForeignKey("warehouses.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    customer_id: Mapped[int] = mapped_column(
        ForeignKey("customers.id", ondelete="RESTRICT"),
        index=True,
        nullable=False,
    )
    commodity_id: Mapped[int] = mapped_column(
        ForeignKey("commodities.id", ondelete="RESTRICT"),
        index=True,
        nullable=False,
    )
    bags_stored: Mapped[int] = mapped_column(Integer, nullable=False)
    bags_remaining: Mapped[int] = mapped_column(Integer, nullable=False)
    storage_start_date: Mapped[date] = mapped_column(Date, index=True, nullable=False)
    storage_end_date: Mapped[date | None] = mapped_column(Date, index=True, nullable=True)
    location: Mapped[str | None] = mapped_column(String(120), nullable=True)
    note: Mapped[str | None] = mapped_column(String(255), nullable=True)
    total_rent_billed: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0.00"), nullable=False)
    revision: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, index=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    # The application bumps ``revision`` itself; UPDATEs are issued with
    # ``WHERE revision = <loaded value>`` and raise StaleDataError on a miss.
    __mapper_args__ = {"version_id_col": revision, "version_id_generator": False}


class Withdrawal(Base):
    __tablename__ = "withdrawals"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    warehouse_id: Mapped[int] = mapped_column(
        ForeignKey("warehouses.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    customer_id: Mapped[int] = mapped_column(
        ForeignKey("customers.id", ondelete="RESTRICT"),
        index=True,
        nullable=False,
    )
    commodity_id: Mapped[int] = mapped_column(
        ForeignKey("commodities.id", ondelete="RESTRICT"),
        index=True,
        nullable=False,
    )
    invoice_number: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    bags_withdrawn: Mapped[int] = mapped_column(Integer, nullable=False)
    total_rent: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    withdrawn_on: Mapped[date] = mapped_column(Date, index=True, nullable=False)
    requested_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    note: Mapped[str | None] = mapped_column(String(255), nullable=True)


class WithdrawalLine(Base):
    __tablename__ = "withdrawal_lines"
    __table_args__ = (CheckConstraint("quantity_taken > 0", name="ck_withdrawal_lines_quantity_positive"),)

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    withdrawal_id: Mapped[int] = mapped_column(
        ForeignKey("withdrawals.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    lot_id: Mapped[int] = mapped_column(
        ForeignKey("storage_lots.id", ondelete="RESTRICT"),
        index=True,
        nullable=False,
    )
    quantity_taken: Mapped[int] = mapped_column(Integer, nullable=False)
    rent_charged: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (CheckConstraint("amount > 0", name="ck_payments_amount_positive"),)

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    warehouse_id: Mapped[int] = mapped_column(
        ForeignKey("warehouses.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    customer_id: Mapped[int] = mapped_column(
        ForeignKey("customers.id", ondelete="RESTRICT"),
        index=True,
        nullable=False,
    )
    lot_id: Mapped[int] = mapped_column(
        ForeignKey("storage_lots.id", ondelete="RESTRICT"),
        index=True,
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    paid_on: Mapped[date] = mapped_column(Date, index=True, nullable=False)
    method: Mapped[str] = mapped_column(String(24), default="cash", nullable=False)
    note: Mapped[str | None] = mapped_column(String(255), nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, index=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
