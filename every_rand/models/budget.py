"""
Core Budget Models for Every Rand

These models define the schemas for all budget data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Coerce user-entered amounts into safe, non-negative decimals
3. Map between Python attribute names and stored document keys
4. Derive the zero-based budget totals

DESIGN DECISION: Documents in the store use camelCase keys (plannedAmount,
ownerId, ...). The models expose snake_case attributes and convert at the
storage boundary with an alias generator.
"""

from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any, Iterable, Optional

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
)
from pydantic.alias_generators import to_camel


# =============================================================================
# AMOUNTS
# =============================================================================

ZERO = Decimal("0.00")
CENTS = Decimal("0.01")

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def coerce_amount(raw: Any) -> Decimal:
    """
    Turn user or store input into a finite, non-negative amount.

    Anything that does not parse as a number becomes 0. Negative numbers
    clamp to 0. The result is rounded to cents.
    """
    if raw is None or isinstance(raw, bool):
        return ZERO
    if isinstance(raw, Decimal):
        value = raw
    else:
        text = str(raw).strip().replace(" ", "")
        if not text:
            return ZERO
        try:
            value = Decimal(text)
        except (InvalidOperation, ValueError):
            return ZERO

    if not value.is_finite() or value <= 0:
        return ZERO
    try:
        return value.quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # More digits than the decimal context can hold
        return ZERO


Amount = Annotated[Decimal, BeforeValidator(coerce_amount)]


# =============================================================================
# ENUMS
# =============================================================================

class LineItemType(str, Enum):
    """Which side of the budget a line item sits on."""
    INCOME = "income"
    EXPENSE = "expense"


class EditableField(str, Enum):
    """
    Fields a user may edit directly on an existing line item.

    spentAmount is display-only; only the month rollover resets it.
    """
    PLANNED_AMOUNT = "plannedAmount"


# Groups whose unspent surplus carries into next month
ROLLOVER_GROUPS = frozenset({"Savings", "Investment"})

DEFAULT_INCOME_GROUP = "Income"
DEFAULT_EXPENSE_GROUP = "General"


def default_group_for(item_type: LineItemType) -> str:
    """Category group used when a new item is added without one."""
    if item_type == LineItemType.INCOME:
        return DEFAULT_INCOME_GROUP
    return DEFAULT_EXPENSE_GROUP


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# LINE ITEMS
# =============================================================================

class LineItemDraft(BaseModel):
    """
    A line item that has not been written to the store yet.

    The store assigns the ID; until then the item only exists as a draft.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Category name shown to the user"
    )
    type: LineItemType = Field(
        ...,
        description="Income or expense"
    )
    category_group: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Group label, e.g. Savings or Housing"
    )
    planned_amount: Amount = Field(
        default=ZERO,
        description="Budgeted figure for the month"
    )
    spent_amount: Amount = Field(
        default=ZERO,
        description="Actual figure for the month"
    )
    owner_id: str = Field(
        ...,
        min_length=1,
        description="ID of the owning account"
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        description="Creation timestamp, used for display ordering"
    )

    @field_validator('created_at')
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC so ordering comparisons never fail."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_serializer('created_at', when_used='json')
    def serialize_created_at(self, v: datetime) -> str:
        # Fixed width, so the store can order by plain text comparison
        return v.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)

    def to_document(self) -> dict[str, Any]:
        """Convert to the key/value document written to the store."""
        return self.model_dump(mode="json", by_alias=True, exclude={"id"})


class LineItem(LineItemDraft):
    """
    A stored budget category for the current month.

    The ID and owner never change once assigned.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Store-assigned identifier"
    )

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "LineItem":
        """Build a LineItem from a store record (which includes its ID)."""
        return cls.model_validate(document)

    @classmethod
    def from_draft(cls, draft: LineItemDraft, item_id: str) -> "LineItem":
        return cls(id=item_id, **draft.model_dump())

    @property
    def remaining(self) -> Decimal:
        """Planned minus spent (negative when overspent)."""
        return self.planned_amount - self.spent_amount


# =============================================================================
# DERIVED TOTALS
# =============================================================================

class BudgetSnapshot(BaseModel):
    """
    Zero-based totals over a set of line items.

    Never stored; always recomputed from the current items.
    """
    model_config = ConfigDict(frozen=True)

    total_income: Decimal = ZERO
    total_expenses: Decimal = ZERO

    @property
    def left_to_budget(self) -> Decimal:
        return self.total_income - self.total_expenses

    @property
    def is_balanced(self) -> bool:
        """True once every rand of income has been given a job."""
        return self.left_to_budget == 0

    @classmethod
    def from_items(cls, items: Iterable[LineItem]) -> "BudgetSnapshot":
        income = ZERO
        expenses = ZERO
        for item in items:
            if item.type == LineItemType.INCOME:
                income += item.planned_amount
            else:
                expenses += item.planned_amount
        return cls(total_income=income, total_expenses=expenses)


# =============================================================================
# DEFAULT CATEGORIES
# =============================================================================

# Seeded for a brand-new owner: (name, type, group, planned, spent)
DEFAULT_CATEGORIES: tuple[tuple[str, LineItemType, str, str, str], ...] = (
    ("Salary (Net)", LineItemType.INCOME, "Income", "25000", "25000"),
    ("Rent / Bond", LineItemType.EXPENSE, "Housing", "8500", "8500"),
    ("Groceries (Checkers/Shoprite)", LineItemType.EXPENSE, "Food", "4000", "2500"),
    ("R15k Emergency Fund", LineItemType.EXPENSE, "Savings", "1500", "0"),
    ("Black Tax / Family Support", LineItemType.EXPENSE, "Giving", "1000", "1000"),
)


def default_line_items(
    owner_id: str,
    now: Optional[datetime] = None,
) -> list[LineItemDraft]:
    """
    Build the default category drafts for a new owner.

    Timestamps increase by one microsecond per item so the seeded order
    is preserved by createdAt ordering.
    """
    now = now or utc_now()
    return [
        LineItemDraft(
            name=name,
            type=item_type,
            category_group=group,
            planned_amount=planned,
            spent_amount=spent,
            owner_id=owner_id,
            created_at=now + timedelta(microseconds=offset),
        )
        for offset, (name, item_type, group, planned, spent) in enumerate(DEFAULT_CATEGORIES)
    ]
