"""Budget ledger package."""

from every_rand.ledger.budget_ledger import (
    ITEMS_COLLECTION,
    BudgetLedger,
    ConfirmationRequired,
    InvalidFieldError,
    ItemNotFoundError,
    LedgerBusyError,
    LedgerError,
    LoadFailed,
    NoActiveSessionError,
    OwnershipError,
    RolloverFailed,
    WriteFailed,
)
from every_rand.ledger.rollover import (
    RolloverUpdate,
    carries_over,
    compute_rollover,
    rollover_surplus,
)

__all__ = [
    "ITEMS_COLLECTION",
    "BudgetLedger",
    "ConfirmationRequired",
    "InvalidFieldError",
    "ItemNotFoundError",
    "LedgerBusyError",
    "LedgerError",
    "LoadFailed",
    "NoActiveSessionError",
    "OwnershipError",
    "RolloverFailed",
    "RolloverUpdate",
    "WriteFailed",
    "carries_over",
    "compute_rollover",
    "rollover_surplus",
]
