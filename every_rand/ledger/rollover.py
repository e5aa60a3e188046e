"""
Month Rollover

Moving to a new month resets every category's actuals. Categories in a
rollover group (Savings, Investment by default) that finished the month
with money left over start the new month with that surplus as their
planned amount. Everything else keeps its planned amount.

This module only computes the new values. Writing them is the ledger's job.
"""

from decimal import Decimal
from typing import Iterable

from pydantic import BaseModel, ConfigDict

from every_rand.models.budget import ROLLOVER_GROUPS, ZERO, LineItem


class RolloverUpdate(BaseModel):
    """New planned/spent values for one line item."""
    model_config = ConfigDict(frozen=True)

    item_id: str
    planned_amount: Decimal
    spent_amount: Decimal = ZERO

    def to_fields(self) -> dict[str, str]:
        """Store fields for this update."""
        return {
            "plannedAmount": str(self.planned_amount),
            "spentAmount": str(self.spent_amount),
        }


def carries_over(item: LineItem, groups: frozenset[str] = ROLLOVER_GROUPS) -> bool:
    """Whether the item's group rolls its surplus forward."""
    return item.category_group in groups


def rollover_surplus(item: LineItem, groups: frozenset[str] = ROLLOVER_GROUPS) -> Decimal:
    """Surplus that would become next month's planned amount, or 0."""
    if carries_over(item, groups) and item.remaining > 0:
        return item.remaining
    return ZERO


def next_month(item: LineItem, groups: frozenset[str] = ROLLOVER_GROUPS) -> RolloverUpdate:
    surplus = rollover_surplus(item, groups)
    planned = surplus if surplus > 0 else item.planned_amount
    return RolloverUpdate(item_id=item.id, planned_amount=planned, spent_amount=ZERO)


def compute_rollover(
    items: Iterable[LineItem],
    groups: frozenset[str] = ROLLOVER_GROUPS,
) -> list[RolloverUpdate]:
    """New-month values for every item, in the given order."""
    return [next_month(item, groups) for item in items]
