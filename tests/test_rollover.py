"""Tests for the month rollover calculation."""

from decimal import Decimal

from every_rand.ledger import RolloverUpdate, carries_over, compute_rollover, rollover_surplus
from every_rand.models import LineItem, LineItemType


def make_item(item_id, group, planned, spent, item_type=LineItemType.EXPENSE):
    return LineItem(
        id=item_id,
        name=f"{group} item",
        type=item_type,
        category_group=group,
        planned_amount=planned,
        spent_amount=spent,
        owner_id="owner-1",
    )


class TestRolloverSurplus:
    """Tests for which items carry money forward."""

    def test_savings_surplus_carries_over(self):
        item = make_item("a", "Savings", "1500", "1000")
        assert carries_over(item)
        assert rollover_surplus(item) == Decimal("500.00")

    def test_investment_is_a_rollover_group(self):
        item = make_item("a", "Investment", "2000", "500")
        assert rollover_surplus(item) == Decimal("1500.00")

    def test_overspent_savings_has_no_surplus(self):
        assert rollover_surplus(make_item("a", "Savings", "1500", "1600")) == Decimal("0")

    def test_fully_spent_savings_has_no_surplus(self):
        assert rollover_surplus(make_item("a", "Savings", "1500", "1500")) == Decimal("0")

    def test_other_groups_never_carry_over(self):
        item = make_item("a", "Food", "4000", "2500")
        assert not carries_over(item)
        assert rollover_surplus(item) == Decimal("0")

    def test_group_match_is_exact(self):
        assert not carries_over(make_item("a", "savings", "100", "0"))

    def test_custom_groups(self):
        item = make_item("a", "Holiday", "800", "300")
        assert rollover_surplus(item, frozenset({"Holiday"})) == Decimal("500.00")
        assert rollover_surplus(item) == Decimal("0")


class TestComputeRollover:
    """Tests for the new-month values."""

    def test_examples(self):
        items = [
            make_item("savings", "Savings", "1500", "1000"),
            make_item("housing", "Housing", "8500", "8500"),
            make_item("overspent", "Savings", "1500", "1600"),
            make_item("salary", "Income", "25000", "25000", LineItemType.INCOME),
        ]
        updates = {u.item_id: u for u in compute_rollover(items)}

        assert updates["savings"].planned_amount == Decimal("500.00")
        assert updates["housing"].planned_amount == Decimal("8500.00")
        assert updates["overspent"].planned_amount == Decimal("1500.00")
        assert updates["salary"].planned_amount == Decimal("25000.00")
        assert all(u.spent_amount == Decimal("0") for u in updates.values())

    def test_keeps_item_order(self):
        items = [make_item(str(i), "Food", "10", "0") for i in range(4)]
        assert [u.item_id for u in compute_rollover(items)] == ["0", "1", "2", "3"]

    def test_empty(self):
        assert compute_rollover([]) == []

    def test_update_fields_use_document_keys(self):
        update = RolloverUpdate(item_id="a", planned_amount=Decimal("500.00"))
        assert update.to_fields() == {"plannedAmount": "500.00", "spentAmount": "0.00"}
