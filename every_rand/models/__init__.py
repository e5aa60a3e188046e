"""
Data Models Package

This package contains all Pydantic models used in Every Rand.
All data flowing through the system must conform to these schemas.
"""

from every_rand.models.budget import (
    DEFAULT_CATEGORIES,
    ROLLOVER_GROUPS,
    ZERO,
    BudgetSnapshot,
    EditableField,
    LineItem,
    LineItemDraft,
    LineItemType,
    coerce_amount,
    default_group_for,
    default_line_items,
)
from every_rand.models.account import (
    Account,
    Session,
    normalise_email,
)

__all__ = [
    # Budget models
    "DEFAULT_CATEGORIES",
    "ROLLOVER_GROUPS",
    "ZERO",
    "BudgetSnapshot",
    "EditableField",
    "LineItem",
    "LineItemDraft",
    "LineItemType",
    "coerce_amount",
    "default_group_for",
    "default_line_items",
    # Account models
    "Account",
    "Session",
    "normalise_email",
]
