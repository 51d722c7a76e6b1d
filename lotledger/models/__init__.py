from lotledger.models.storage import Payment, StorageLot, Withdrawal, WithdrawalLine
from lotledger.models.warehouse import Commodity, Customer, RateTier, Warehouse

__all__ = [
    "Commodity",
    "Customer",
    "Payment",
    "RateTier",
    "StorageLot",
    "Warehouse",
    "Withdrawal",
    "WithdrawalLine",
]
