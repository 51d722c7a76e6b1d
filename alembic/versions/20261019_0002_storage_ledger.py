"""storage ledger

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19 09:30:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261019_0002"
down_revision: Union[str, Sequence[str], None] = "20261019_0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "storage_lots",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("warehouse_id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("commodity_id", sa.Integer(), nullable=False),
        sa.Column("bags_stored", sa.Integer(), nullable=False),
        sa.Column("bags_remaining", sa.Integer(), nullable=False),
        sa.Column("storage_start_date", sa.Date(), nullable=False),
        sa.Column("storage_end_date", sa.Date(), nullable=True),
        sa.Column("location", sa.String(length=120), nullable=True),
        sa.Column("note", sa.String(length=255), nullable=True),
        sa.Column("total_rent_billed", sa.Numeric(precision=14, scale=2), nullable=False, server_default="0"),
        sa.Column("revision", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("bags_stored > 0", name="ck_storage_lots_bags_stored_positive"),
        sa.CheckConstraint("bags_remaining >= 0", name="ck_storage_lots_bags_remaining_non_negative"),
        sa.CheckConstraint("bags_remaining <= bags_stored", name="ck_storage_lots_bags_remaining_bounded"),
        sa.ForeignKeyConstraint(["warehouse_id"], ["warehouses.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["commodity_id"], ["commodities.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_storage_lots_id"), "storage_lots", ["id"], unique=False)
    op.create_index(op.f("ix_storage_lots_warehouse_id"), "storage_lots", ["warehouse_id"], unique=False)
    op.create_index(op.f("ix_storage_lots_customer_id"), "storage_lots", ["customer_id"], unique=False)
    op.create_index(op.f("ix_storage_lots_commodity_id"), "storage_lots", ["commodity_id"], unique=False)
    op.create_index(op.f("ix_storage_lots_storage_start_date"), "storage_lots", ["storage_start_date"], unique=False)
    op.create_index(op.f("ix_storage_lots_storage_end_date"), "storage_lots", ["storage_end_date"], unique=False)
    op.create_index(op.f("ix_storage_lots_deleted_at"), "storage_lots", ["deleted_at"], unique=False)

    op.create_table(
        "withdrawals",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("warehouse_id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("commodity_id", sa.Integer(), nullable=False),
        sa.Column("invoice_number", sa.String(length=64), nullable=False),
        sa.Column("bags_withdrawn", sa.Integer(), nullable=False),
        sa.Column("total_rent", sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column("withdrawn_on", sa.Date(), nullable=False),
        sa.Column("requested_at", sa.DateTime(), nullable=False),
        sa.Column("note", sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(["warehouse_id"], ["warehouses.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["commodity_id"], ["commodities.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_withdrawals_id"), "withdrawals", ["id"], unique=False)
    op.create_index(op.f("ix_withdrawals_warehouse_id"), "withdrawals", ["warehouse_id"], unique=False)
    op.create_index(op.f("ix_withdrawals_customer_id"), "withdrawals", ["customer_id"], unique=False)
    op.create_index(op.f("ix_withdrawals_commodity_id"), "withdrawals", ["commodity_id"], unique=False)
    op.create_index(op.f("ix_withdrawals_invoice_number"), "withdrawals", ["invoice_number"], unique=True)
    op.create_index(op.f("ix_withdrawals_withdrawn_on"), "withdrawals", ["withdrawn_on"], unique=False)

    op.create_table(
        "withdrawal_lines",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("withdrawal_id", sa.Integer(), nullable=False),
        sa.Column("lot_id", sa.Integer(), nullable=False),
        sa.Column("quantity_taken", sa.Integer(), nullable=False),
        sa.Column("rent_charged", sa.Numeric(precision=14, scale=2), nullable=False),
        sa.CheckConstraint("quantity_taken > 0", name="ck_withdrawal_lines_quantity_positive"),
        sa.ForeignKeyConstraint(["withdrawal_id"], ["withdrawals.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["lot_id"], ["storage_lots.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_withdrawal_lines_id"), "withdrawal_lines", ["id"], unique=False)
    op.create_index(op.f("ix_withdrawal_lines_withdrawal_id"), "withdrawal_lines", ["withdrawal_id"], unique=False)
    op.create_index(op.f("ix_withdrawal_lines_lot_id"), "withdrawal_lines", ["lot_id"], unique=False)

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("warehouse_id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("lot_id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column("paid_on", sa.Date(), nullable=False),
        sa.Column("method", sa.String(length=24), nullable=False, server_default="cash"),
        sa.Column("note", sa.String(length=255), nullable=True),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
        sa.ForeignKeyConstraint(["warehouse_id"], ["warehouses.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["lot_id"], ["storage_lots.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_payments_id"), "payments", ["id"], unique=False)
    op.create_index(op.f("ix_payments_warehouse_id"), "payments", ["warehouse_id"], unique=False)
    op.create_index(op.f("ix_payments_customer_id"), "payments", ["customer_id"], unique=False)
    op.create_index(op.f("ix_payments_lot_id"), "payments", ["lot_id"], unique=False)
    op.create_index(op.f("ix_payments_paid_on"), "payments", ["paid_on"], unique=False)
    op.create_index(op.f("ix_payments_deleted_at"), "payments", ["deleted_at"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_payments_deleted_at"), table_name="payments")
    op.drop_index(op.f("ix_payments_paid_on"), table_name="payments")
    op.drop_index(op.f("ix_payments_lot_id"), table_name="payments")
    op.drop_index(op.f("ix_payments_customer_id"), table_name="payments")
    op.drop_index(op.f("ix_payments_warehouse_id"), table_name="payments")
    op.drop_index(op.f("ix_payments_id"), table_name="payments")
    op.drop_table("payments")

    op.drop_index(op.f("ix_withdrawal_lines_lot_id"), table_name="withdrawal_lines")
    op.drop_index(op.f("ix_withdrawal_lines_withdrawal_id"), table_name="withdrawal_lines")
    op.drop_index(op.f("ix_withdrawal_lines_id"), table_name="withdrawal_lines")
    op.drop_table("withdrawal_lines")

    op.drop_index(op.f("ix_withdrawals_withdrawn_on"), table_name="withdrawals")
    op.drop_index(op.f("ix_withdrawals_invoice_number"), table_name="withdrawals")
    op.drop_index(op.f("ix_withdrawals_commodity_id"), table_name="withdrawals")
    op.drop_index(op.f("ix_withdrawals_customer_id"), table_name="withdrawals")
    op.drop_index(op.f("ix_withdrawals_warehouse_id"), table_name="withdrawals")
    op.drop_index(op.f("ix_withdrawals_id"), table_name="withdrawals")
    op.drop_table("withdrawals")

    op.drop_index(op.f("ix_storage_lots_deleted_at"), table_name="storage_lots")
    op.drop_index(op.f("ix_storage_lots_storage_end_date"), table_name="storage_lots")
    op.drop_index(op.f("ix_storage_lots_storage_start_date"), table_name="storage_lots")
    op.drop_index(op.f("ix_storage_lots_commodity_id"), table_name="storage_lots")
    op.drop_index(op.f("ix_storage_lots_customer_id"), table_name="storage_lots")
    op.drop_index(op.f("ix_storage_lots_warehouse_id"), table_name="storage_lots")
    op.drop_index(op.f("ix_storage_lots_id"), table_name="storage_lots")
    op.drop_table("storage_lots")
