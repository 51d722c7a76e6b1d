"""Typed failures raised by the ledger services.

Each error carries a stable ``code`` so the HTTP layer can surface it
without string matching. None of them are swallowed inside the services.
"""

from decimal import Decimal


class LedgerError(Exception):
    code = "ledger_error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFoundError(LedgerError):
    """Unknown or foreign customer, commodity, warehouse or lot reference."""

    code = "not_found"


class InsufficientSupplyError(LedgerError):
    """Requested quantity exceeds the open balance. Shown to the user as is."""

    code = "insufficient_supply"

    def __init__(self, requested: int, available: int):
        super().__init__(f"Requested {requested} bags, but only {available} are available.")
        self.requested = requested
        self.available = available


class ConcurrencyConflictError(LedgerError):
    """Lot balances changed under the caller. Retry from a fresh read."""

    code = "concurrency_conflict"


class RateScheduleMissingError(LedgerError):
    code = "rate_schedule_missing"


class LotStateError(LedgerError):
    code = "invalid_lot_state"


class OverpaymentError(LedgerError):
    code = "overpayment"

    def __init__(self, amount: Decimal, total_due: Decimal):
        super().__init__(f"Payment amount ({amount}) exceeds total dues ({total_due}).")
        self.amount = amount
        self.total_due = total_due
