"""
Tests for Every Rand models

Test strategy:
1. Unit tests for the models and amount coercion
2. Ledger flows run against the in-memory store (see test_ledger.py)
3. No real Google API calls in tests (fakes stand in for gspread)
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from pydantic import ValidationError

from every_rand.models import (
    DEFAULT_CATEGORIES,
    Account,
    BudgetSnapshot,
    LineItem,
    LineItemDraft,
    LineItemType,
    coerce_amount,
    default_group_for,
    default_line_items,
)


def make_item(item_type=LineItemType.EXPENSE, planned="0", spent="0", **kwargs):
    fields = {
        "id": "item-1",
        "name": "Groceries",
        "type": item_type,
        "category_group": "Food",
        "planned_amount": planned,
        "spent_amount": spent,
        "owner_id": "owner-1",
    }
    fields.update(kwargs)
    return LineItem(**fields)


class TestCoerceAmount:
    """Tests for turning raw input into amounts."""

    def test_plain_number_string(self):
        assert coerce_amount("1500") == Decimal("1500.00")

    def test_non_numeric_becomes_zero(self):
        """Text that is not a number never raises."""
        assert coerce_amount("abc") == Decimal("0")
        assert coerce_amount("") == Decimal("0")
        assert coerce_amount(None) == Decimal("0")

    def test_negative_clamps_to_zero(self):
        assert coerce_amount("-250") == Decimal("0")
        assert coerce_amount(-1) == Decimal("0")

    def test_not_finite_becomes_zero(self):
        assert coerce_amount("NaN") == Decimal("0")
        assert coerce_amount(float("inf")) == Decimal("0")

    def test_rounds_half_up_to_cents(self):
        assert coerce_amount("10.005") == Decimal("10.01")
        assert coerce_amount(Decimal("3.14159")) == Decimal("3.14")

    def test_spaces_between_digits_are_ignored(self):
        assert coerce_amount(" 25 000 ") == Decimal("25000.00")

    def test_bool_is_not_an_amount(self):
        assert coerce_amount(True) == Decimal("0")

    def test_float_input(self):
        assert coerce_amount(99.5) == Decimal("99.50")


class TestLineItemModels:
    """Tests for line item drafts and stored items."""

    def test_draft_defaults(self):
        draft = LineItemDraft(
            name="  Netflix  ",
            type=LineItemType.EXPENSE,
            category_group="Entertainment",
            owner_id="owner-1",
        )
        assert draft.name == "Netflix"
        assert draft.planned_amount == Decimal("0")
        assert draft.spent_amount == Decimal("0")
        assert draft.created_at.tzinfo is not None

    def test_draft_rejects_empty_name(self):
        with pytest.raises(ValidationError):
            LineItemDraft(
                name="   ",
                type=LineItemType.EXPENSE,
                category_group="General",
                owner_id="owner-1",
            )

    def test_draft_rejects_unknown_type(self):
        with pytest.raises(ValidationError):
            LineItemDraft(
                name="Bonus",
                type="windfall",
                category_group="Income",
                owner_id="owner-1",
            )

    def test_amount_fields_coerce(self):
        item = make_item(planned="abc", spent="-5")
        assert item.planned_amount == Decimal("0")
        assert item.spent_amount == Decimal("0")

    def test_to_document_uses_camel_case_keys(self):
        draft = LineItemDraft(
            name="Rent",
            type=LineItemType.EXPENSE,
            category_group="Housing",
            planned_amount="8500",
            owner_id="owner-1",
            created_at=datetime(2026, 3, 1, 8, 30, tzinfo=timezone.utc),
        )
        document = draft.to_document()

        assert document == {
            "name": "Rent",
            "type": "expense",
            "categoryGroup": "Housing",
            "plannedAmount": "8500.00",
            "spentAmount": "0.00",
            "ownerId": "owner-1",
            "createdAt": "2026-03-01T08:30:00.000000Z",
        }

    def test_from_document_parses_text_values(self):
        """Documents read back from Sheets hold every value as text."""
        item = LineItem.from_document({
            "id": "abc123",
            "name": "Salary (Net)",
            "type": "income",
            "categoryGroup": "Income",
            "plannedAmount": "25000.00",
            "spentAmount": "25000.00",
            "ownerId": "owner-1",
            "createdAt": "2026-03-01T08:30:00.000001Z",
        })
        assert item.id == "abc123"
        assert item.type == LineItemType.INCOME
        assert item.planned_amount == Decimal("25000.00")
        assert item.created_at == datetime(2026, 3, 1, 8, 30, 0, 1, tzinfo=timezone.utc)

    def test_from_document_missing_amounts_default_to_zero(self):
        item = LineItem.from_document({
            "id": "abc123",
            "name": "Petrol",
            "type": "expense",
            "categoryGroup": "Transport",
            "ownerId": "owner-1",
        })
        assert item.planned_amount == Decimal("0")
        assert item.spent_amount == Decimal("0")

    def test_created_at_text_orders_chronologically(self):
        """Serialized timestamps compare as text in time order."""
        base = datetime(2026, 3, 1, 8, 30, tzinfo=timezone.utc)
        texts = [
            make_item(created_at=base + timedelta(microseconds=offset)).to_document()["createdAt"]
            for offset in (0, 1, 10, 1_000_000)
        ]
        assert texts == sorted(texts)

    def test_naive_created_at_is_treated_as_utc(self):
        item = make_item(created_at=datetime(2026, 3, 1, 8, 30))
        assert item.created_at.tzinfo == timezone.utc

    def test_line_item_is_frozen(self):
        item = make_item()
        with pytest.raises(ValidationError):
            item.planned_amount = Decimal("5")

    def test_remaining(self):
        assert make_item(planned="1500", spent="1000").remaining == Decimal("500.00")
        assert make_item(planned="1500", spent="1600").remaining == Decimal("-100.00")

    def test_default_groups(self):
        assert default_group_for(LineItemType.INCOME) == "Income"
        assert default_group_for(LineItemType.EXPENSE) == "General"


class TestBudgetSnapshot:
    """Tests for the zero-based totals."""

    def test_empty_ledger_is_balanced(self):
        snapshot = BudgetSnapshot.from_items([])
        assert snapshot.left_to_budget == Decimal("0")
        assert snapshot.is_balanced

    def test_totals_use_planned_amounts_only(self):
        items = [
            make_item(LineItemType.INCOME, planned="25000", spent="0", id="a"),
            make_item(planned="8500", spent="9999", id="b"),
            make_item(planned="4000", spent="2500", id="c"),
        ]
        snapshot = BudgetSnapshot.from_items(items)
        assert snapshot.total_income == Decimal("25000.00")
        assert snapshot.total_expenses == Decimal("12500.00")
        assert snapshot.left_to_budget == Decimal("12500.00")
        assert not snapshot.is_balanced

    def test_over_budget_is_negative(self):
        items = [
            make_item(LineItemType.INCOME, planned="1000", id="a"),
            make_item(planned="1200", id="b"),
        ]
        assert BudgetSnapshot.from_items(items).left_to_budget == Decimal("-200.00")


class TestDefaultCategories:
    """Tests for the categories seeded for a new owner."""

    def test_five_defaults_in_order(self):
        drafts = default_line_items("owner-1")
        assert [d.name for d in drafts] == [c[0] for c in DEFAULT_CATEGORIES]
        assert len(drafts) == 5
        assert all(d.owner_id == "owner-1" for d in drafts)

    def test_default_values(self):
        drafts = {d.name: d for d in default_line_items("owner-1")}

        salary = drafts["Salary (Net)"]
        assert salary.type == LineItemType.INCOME
        assert salary.planned_amount == Decimal("25000")

        fund = drafts["R15k Emergency Fund"]
        assert fund.category_group == "Savings"
        assert fund.planned_amount == Decimal("1500")
        assert fund.spent_amount == Decimal("0")

    def test_default_left_to_budget(self):
        items = [
            LineItem.from_draft(draft, f"id-{idx}")
            for idx, draft in enumerate(default_line_items("owner-1"))
        ]
        assert BudgetSnapshot.from_items(items).left_to_budget == Decimal("10000.00")

    def test_timestamps_strictly_increase(self):
        now = datetime(2026, 3, 1, tzinfo=timezone.utc)
        drafts = default_line_items("owner-1", now=now)
        stamps = [d.created_at for d in drafts]
        assert stamps[0] == now
        assert stamps == sorted(stamps)
        assert len(set(stamps)) == len(stamps)


class TestAccountModel:
    """Tests for stored accounts."""

    def test_email_is_normalised(self):
        account = Account(id="acc-1", email="  Thandi@Example.COM ", password_hash="x")
        assert account.email == "thandi@example.com"

    def test_from_document_reads_camel_case(self):
        account = Account.from_document({
            "id": "acc-1",
            "email": "thandi@example.com",
            "passwordHash": "$argon2id$...",
            "createdAt": "2026-03-01T08:30:00+00:00",
        })
        assert account.password_hash == "$argon2id$..."
