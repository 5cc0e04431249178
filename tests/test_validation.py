"""Tests for item validation and normalization."""

from datetime import datetime

import pytest

from menubox.schemas.items import CanonicalItem, ServingOption
from menubox.services.menu_import import validate_item, validate_items


def _wine(**fields) -> CanonicalItem:
    fields.setdefault("name", "House Red")
    fields.setdefault("wine_style", "still")
    return CanonicalItem(item_type="wine", **fields)


def test_out_of_range_vintage_is_cleared_and_item_kept():
    wine = _wine(name="Time Traveller", wine_vintage=3000, price=40.0)

    report = validate_items([wine])

    assert report.items == [wine]
    assert wine.wine_vintage is None
    max_year = datetime.now().year + 5
    assert report.item_warnings[wine.id] == [f"Vintage 3000 is outside 1800-{max_year} and was cleared"]
    assert report.warnings == [f'"Time Traveller": Vintage 3000 is outside 1800-{max_year} and was cleared']


def test_nameless_item_is_dropped():
    items = [CanonicalItem(name="Soup", source_index=0), CanonicalItem(name="  ", source_index=1)]

    report = validate_items(items)

    assert [item.name for item in report.items] == ["Soup"]
    assert report.dropped == 1
    assert report.warnings == ["Item at position 2 has no name and was dropped"]


def test_validate_item_returns_none_for_missing_name():
    assert validate_item(CanonicalItem(name="")) is None


def test_category_is_title_cased_and_defaulted():
    first = CanonicalItem(name="Soup", category="STARTERS and soups")
    second = CanonicalItem(name="Bread", category="  ")

    validate_items([first, second])

    assert first.category == "Starters And Soups"
    assert second.category == "Uncategorized"


def test_long_fields_are_truncated():
    item = CanonicalItem(name="N" * 250, description="d" * 600)

    warnings = validate_item(item)

    assert len(item.name) == 200
    assert len(item.description) == 500
    assert "Name exceeds 200 characters and was truncated" in warnings
    assert "Description exceeds 500 characters and was truncated" in warnings


@pytest.mark.parametrize(
    "price,expected,warning",
    [
        (-8.5, 8.5, "Negative price -8.5 converted to 8.5"),
        (12_500.0, 12_500.0, "Price 12500.0 seems unusually high"),
        (float("nan"), None, "Price is not a finite number and was removed"),
    ],
)
def test_price_rules(price, expected, warning):
    item = CanonicalItem(name="Dish", price=price)

    warnings = validate_item(item)

    assert item.price == expected
    assert warning in warnings


def test_unknown_item_type_defaults_to_food():
    item = CanonicalItem(name="Gift Card", item_type="voucher")

    assert validate_item(item) == ["Invalid item type 'voucher', defaulted to 'food'"]
    assert item.item_type == "food"


def test_allergen_aliases_and_unknowns():
    item = CanonicalItem(name="Cheese Board", allergens=["Milk", "dairy", "tree nuts", "celery"])

    warnings = validate_item(item)

    assert item.allergens == ["dairy", "nuts"]
    assert warnings == ["Unknown allergen 'celery' was removed"]


def test_ingredient_limits():
    item = CanonicalItem(name="Everything Bagel", ingredients=[f"seed {i}" for i in range(35)] + ["x" * 150])

    warnings = validate_item(item)

    assert len(item.ingredients) == 30
    assert warnings[0] == "Too many ingredients (36); kept the first 30"


class TestWineRules:
    def test_missing_style_becomes_other(self):
        wine = _wine(wine_style=None, price=30.0)

        warnings = validate_item(wine)

        assert wine.wine_style == "other"
        assert warnings == ["Wine style is required for wine items, set to 'other'"]

    def test_style_aliases(self):
        wine = _wine(wine_style="port", price=12.0)

        assert validate_item(wine) == []
        assert wine.wine_style == "fortified"

    def test_invalid_style(self):
        wine = _wine(wine_style="orange", price=12.0)

        assert validate_item(wine) == ["Invalid wine style 'orange', set to 'other'"]
        assert wine.wine_style == "other"

    def test_cheap_wine_is_flagged(self):
        wine = _wine(price=3.0)

        assert validate_item(wine) == ["Wine price 3.0 seems unusually low"]

    def test_list_limits(self):
        wine = _wine(
            price=50.0,
            wine_grape_varieties=[f"Grape {i}" for i in range(12)],
            serving_options=[ServingOption(size=f"{i}ml", price=float(i)) for i in range(11)],
            wine_pairings=["a", "b", "c", "d", "e"],
        )

        warnings = validate_item(wine)

        assert len(wine.wine_grape_varieties) == 10
        assert len(wine.serving_options) == 10
        assert wine.wine_pairings == ["a", "b", "c", "d"]
        assert "Too many grape varieties; kept the first 10" in warnings
        assert "Too many serving options; kept the first 10" in warnings


class TestCrossFieldRules:
    def test_vegan_implies_vegetarian(self):
        item = CanonicalItem(name="Falafel", is_vegan=True, ingredients=["chickpeas"])

        warnings = validate_item(item)

        assert item.is_vegetarian is True
        assert warnings == ["Vegan items are vegetarian; vegetarian flag set"]

    def test_vegan_with_animal_ingredients_is_flagged(self):
        item = CanonicalItem(name="Mac", is_vegan=True, is_vegetarian=True, ingredients=["pasta", "cheese", "butter"])

        warnings = validate_item(item)

        assert warnings == ["Marked vegan but contains non-vegan ingredients: cheese, butter"]
        # Flag is reported, not corrected
        assert item.is_vegan is True

    def test_wine_attributes_on_non_wine(self):
        item = CanonicalItem(name="Sangria", item_type="beverage", wine_region="Rioja")

        assert validate_item(item) == ["Item has wine attributes but is not marked as wine"]
