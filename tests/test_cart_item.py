"""
Tests for CartItem
"""

from decimal import Decimal

import pytest

from shopcart.cart import Buyable, CartItem, Condition
from shopcart.errors import ValidationError


class TestCartItem:
    """Tests for CartItem creation and validation."""

    def test_create_cart_item(self, make_item):
        """Test creating a cart item."""
        item = make_item(quantity=2, unit_price="299.00", name="ChatGPT Plus")

        assert item.product_ref == "P1"
        assert item.quantity == 2
        assert item.unit_price == Decimal("299.00")
        assert item.added_at != ""
        assert len(item.key) == 32

    def test_float_price_is_converted_via_str(self):
        """Test floats do not leak binary precision into prices."""
        item = CartItem.create("P1", 1, 0.1)
        assert item.unit_price == Decimal("0.1")

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, "2", True])
    def test_invalid_quantity(self, quantity):
        with pytest.raises(ValidationError):
            CartItem.create("P1", quantity, "1.00")

    def test_negative_price(self):
        with pytest.raises(ValidationError):
            CartItem.create("P1", 1, "-0.01")

    def test_zero_price_allowed(self):
        assert CartItem.create("P1", 1, "0").subtotal() == Decimal("0")

    def test_empty_product_ref(self):
        with pytest.raises(ValidationError):
            CartItem.create("", 1, "1.00")

    def test_cart_target_condition_rejected(self, make_item):
        """Test only item-target conditions can be attached to an item."""
        item = make_item()
        with pytest.raises(ValidationError):
            item.add_condition(Condition.parse("SALE", "-10%", target="total"))
        assert item.conditions == []


class TestItemIdentity:
    """Tests for identity keys."""

    def test_same_ref_and_attributes_share_key(self, make_item):
        a = make_item(attributes={"size": "L", "color": "red"})
        b = make_item(attributes={"color": "red", "size": "L"}, quantity=3)
        assert a.key == b.key

    def test_attributes_distinguish_lines(self, make_item):
        assert make_item(attributes={"size": "L"}).key != make_item(attributes={"size": "M"}).key

    def test_product_ref_distinguishes_lines(self, make_item):
        assert make_item("P1").key != make_item("P2").key

    def test_key_is_stable_across_quantity_changes(self, make_item):
        item = make_item(attributes={"size": "L"})
        assert item.with_quantity(7).key == item.key

    def test_attribute_values_are_opaque(self, make_item):
        """Test arbitrary values are stored untouched."""
        payload = {"gift": {"to": "Ann", "wrap": True}, "engraving": None}
        item = make_item(attributes=payload)
        assert item.attributes == payload


class TestItemQuantity:

    def test_with_quantity_returns_new_item(self, make_item):
        item = make_item(quantity=1)
        updated = item.with_quantity(5)
        assert updated is not item
        assert updated.quantity == 5
        assert item.quantity == 1

    def test_with_quantity_keeps_conditions_independent(self, make_item):
        item = make_item()
        item.add_condition(Condition.parse("SALE", "-10%", target="item"))
        updated = item.with_quantity(2)
        updated.remove_condition("SALE")
        assert [c.name for c in item.conditions] == ["SALE"]

    def test_with_quantity_rejects_zero(self, make_item):
        with pytest.raises(ValidationError):
            make_item().with_quantity(0)


class TestItemTotals:
    """Tests for item subtotal and total."""

    def test_subtotal(self, make_item):
        assert make_item(quantity=3, unit_price="10.25").subtotal() == Decimal("30.75")

    def test_total_without_conditions(self, make_item):
        assert make_item(quantity=3, unit_price="10.25").total() == Decimal("30.75")

    def test_total_with_conditions_in_priority_order(self, make_item):
        """Test item conditions run by ascending priority."""
        item = make_item(quantity=2, unit_price="50.00")
        item.add_condition(Condition.parse("OFF5", "-5", target="item", priority=2))
        item.add_condition(Condition.parse("SALE", "-10%", target="item", priority=1))
        # 100 * 0.9 - 5
        assert item.total() == Decimal("85.00")
        assert item.subtotal() == Decimal("100.00")

    def test_total_floored_at_zero(self, make_item):
        item = make_item(quantity=1, unit_price="10.00")
        item.add_condition(Condition.parse("FREE", "-25", target="item"))
        assert item.total() == Decimal("0")

    def test_remove_unknown_condition_is_noop(self, make_item):
        item = make_item()
        item.add_condition(Condition.parse("SALE", "-10%", target="item"))
        item.remove_condition("missing")
        assert [c.name for c in item.conditions] == ["SALE"]

    def test_add_condition_with_same_name_replaces(self, make_item):
        item = make_item(unit_price="100.00")
        item.add_condition(Condition.parse("SALE", "-10%", target="item"))
        item.add_condition(Condition.parse("SALE", "-20%", target="item"))
        assert len(item.conditions) == 1
        assert item.total() == Decimal("80.00")


class TestBuyable:

    def test_from_buyable(self, product):
        item = CartItem.from_buyable(product, quantity=2, attributes={"plan": "monthly"})
        assert item.product_ref == "P1"
        assert item.name == "ChatGPT Plus"
        assert item.unit_price == Decimal("10.00")
        assert item.subtotal() == Decimal("20.00")

    def test_to_dict_snapshot(self, make_item):
        data = make_item(quantity=2).to_dict()
        assert data["product_ref"] == "P1"
        assert data["subtotal"] == "20.00"
        assert data["total"] == "20.00"
        assert data["conditions"] == []


class Subscription(Buyable):
    """Explicit Buyable subclass."""

    def identifier(self) -> str:
        return "SUB-1"

    def price(self) -> Decimal:
        return Decimal("9.99")

    def name(self) -> str:
        return "Monthly plan"


class TestBuyableSubclass:

    def test_buyable_is_abstract(self):
        with pytest.raises(TypeError):
            Buyable()

    def test_from_buyable_subclass(self):
        item = CartItem.from_buyable(Subscription(), quantity=3)
        assert item.product_ref == "SUB-1"
        assert item.total() == Decimal("29.97")


class TestKeyDerivation:

    def test_key_follows_attributes(self, make_item):
        """Test the identity key is always derived from current attributes."""
        item = make_item(attributes={"size": "M"})
        item.attributes["size"] = "L"
        assert item.key == make_item(attributes={"size": "L"}).key
