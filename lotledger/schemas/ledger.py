from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from lotledger.services.settlement import LotState

CommodityUnit = Literal["bag", "sack", "crate", "kg", "quintal"]
PaymentMethod = Literal["cash", "upi", "bank_transfer", "cheque"]


class WarehouseCreate(BaseModel):
    code: str = Field(min_length=2, max_length=64)
    name: str = Field(min_length=2, max_length=120)
    location: str | None = Field(default=None, max_length=255)
    seed_default_rates: bool = True


class WarehouseUpdate(BaseModel):
    code: str | None = Field(default=None, min_length=2, max_length=64)
    name: str | None = Field(default=None, min_length=2, max_length=120)
    location: str | None = Field(default=None, max_length=255)
    is_active: bool | None = None


class WarehouseOut(BaseModel):
    id: int
    code: str
    name: str
    location: str | None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class RateTierIn(BaseModel):
    threshold_days: int = Field(ge=1)
    period_days: int = Field(ge=1)
    rate_per_unit: Decimal = Field(ge=0)


class RateScheduleUpdate(BaseModel):
    tiers: list[RateTierIn] = Field(min_length=1)

    @field_validator("tiers")
    @classmethod
    def unique_thresholds(cls, value: list[RateTierIn]) -> list[RateTierIn]:
        thresholds = [tier.threshold_days for tier in value]
        if len(thresholds) != len(set(thresholds)):
            raise ValueError("Tier thresholds must be unique")
        return value


class RateTierOut(BaseModel):
    id: int
    warehouse_id: int
    threshold_days: int
    period_days: int
    rate_per_unit: Decimal

    model_config = {"from_attributes": True}


class CustomerCreate(BaseModel):
    name: str = Field(min_length=2, max_length=160)
    phone: str | None = Field(default=None, max_length=32)
    email: str | None = Field(default=None, max_length=320, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    village: str | None = Field(default=None, max_length=120)


class CustomerUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=160)
    phone: str | None = Field(default=None, max_length=32)
    email: str | None = Field(default=None, max_length=320, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    village: str | None = Field(default=None, max_length=120)
    is_active: bool | None = None


class CustomerOut(BaseModel):
    id: int
    warehouse_id: int
    name: str
    phone: str | None
    email: str | None
    village: str | None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class CommodityCreate(BaseModel):
    name: str = Field(min_length=2, max_length=120)
    unit: CommodityUnit = "bag"


class CommodityOut(BaseModel):
    id: int
    warehouse_id: int
    name: str
    unit: CommodityUnit
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class LotCreate(BaseModel):
    customer_id: int
    commodity_id: int
    quantity: int = Field(gt=0)
    storage_start_date: date
    location: str | None = Field(default=None, max_length=120)
    note: str | None = Field(default=None, max_length=255)


class LotOut(BaseModel):
    id: int
    warehouse_id: int
    customer_id: int
    commodity_id: int
    bags_stored: int
    bags_remaining: int
    storage_start_date: date
    storage_end_date: date | None
    location: str | None
    note: str | None
    total_rent_billed: Decimal
    state: LotState
    deleted_at: datetime | None
    created_at: datetime


class LotRentOut(BaseModel):
    lot_id: int
    as_of: date
    days_stored: int
    threshold_days: int
    period_days: int
    rate_per_unit: Decimal
    periods_elapsed: int
    accrued_rent: Decimal
    next_billing_date: date | None


class WithdrawalCreate(BaseModel):
    customer_id: int
    commodity_id: int
    quantity: int = Field(gt=0)
    withdrawn_on: date
    lot_ids: list[int] | None = Field(default=None, min_length=1)
    note: str | None = Field(default=None, max_length=255)
    send_receipt: bool = False


class AllocationLineOut(BaseModel):
    lot_id: int
    quantity_taken: int
    rent_charged: Decimal


class WithdrawalPreviewOut(BaseModel):
    bags_requested: int
    bags_available: int
    total_rent: Decimal
    lines: list[AllocationLineOut]


class WithdrawalOut(BaseModel):
    id: int
    warehouse_id: int
    customer_id: int
    commodity_id: int
    invoice_number: str
    bags_withdrawn: int
    total_rent: Decimal
    withdrawn_on: date
    requested_at: datetime
    note: str | None
    lines: list[AllocationLineOut]
    receipt_sent: bool | None = None


class BulkPaymentCreate(BaseModel):
    amount: Decimal = Field(gt=0)
    paid_on: date
    method: PaymentMethod = "cash"
    note: str | None = Field(default=None, max_length=255)


class PaymentOut(BaseModel):
    id: int
    warehouse_id: int
    customer_id: int
    lot_id: int
    amount: Decimal
    paid_on: date
    method: str
    note: str | None
    deleted_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class StatementLineOut(BaseModel):
    withdrawal_id: int
    invoice_number: str
    withdrawn_on: date
    quantity_taken: int
    rent_charged: Decimal

    model_config = {"from_attributes": True}


class StatementLotOut(BaseModel):
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
    withdrawals: list[StatementLineOut]

    model_config = {"from_attributes": True}


class CustomerStatementOut(BaseModel):
    customer_id: int
    as_of: date
    lots: list[StatementLotOut]
    total_billed: Decimal
    total_paid: Decimal
    total_due: Decimal
    total_accrued: Decimal

    model_config = {"from_attributes": True}


class WarehouseSummaryOut(BaseModel):
    warehouse_id: int
    open_lots: int
    bags_in_storage: int
    rent_billed: Decimal
    rent_collected: Decimal

    model_config = {"from_attributes": True}
