"""Business-rule validation and normalization of canonical items.

Every rule violation is a warning: the item is corrected (truncated,
coerced, cleared) and kept. The single exception is an item without a name,
which is dropped from the output entirely.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime

from menubox.schemas.items import ALLERGENS, ITEM_KINDS, WINE_STYLES, CanonicalItem, ItemKind, WineStyle

from .constants import (
    KNOWN_WINE_REGIONS,
    MAX_CATEGORY_LENGTH,
    MAX_DESCRIPTION_LENGTH,
    MAX_GRAPE_VARIETIES,
    MAX_INGREDIENT_LENGTH,
    MAX_INGREDIENTS,
    MAX_NAME_LENGTH,
    MAX_PAIRINGS,
    MAX_PRODUCER_LENGTH,
    MAX_REASONABLE_PRICE,
    MAX_REGION_LENGTH,
    MAX_SERVING_OPTIONS,
    MIN_REASONABLE_WINE_PRICE,
    MIN_VINTAGE,
    NON_VEGAN_KEYWORDS,
    WINE_STYLE_ALIASES,
)
from .converters import normalize_category

logger = logging.getLogger(__name__)

# Common allergen spellings -> allergen vocabulary
ALLERGEN_ALIASES: dict[str, str] = {
    "milk": "dairy",
    "lactose": "dairy",
    "wheat": "gluten",
    "nut": "nuts",
    "tree nuts": "nuts",
    "tree nut": "nuts",
    "peanut": "nuts",
    "peanuts": "nuts",
    "fish": "seafood",
    "shellfish": "seafood",
    "crustaceans": "seafood",
    "egg": "eggs",
    "soya": "soy",
}


def max_vintage() -> int:
    return datetime.now().year + 5


@dataclass
class ValidationReport:
    """Validated items plus the warnings raised while validating them."""

    items: list[CanonicalItem] = field(default_factory=list)
    item_warnings: dict[str, list[str]] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    dropped: int = 0


def _truncate(value: str | None, limit: int, label: str, warnings: list[str]) -> str | None:
    if value is not None and len(value) > limit:
        warnings.append(f"{label} exceeds {limit} characters and was truncated")
        return value[:limit]
    return value


def _validate_price(item: CanonicalItem, warnings: list[str]) -> None:
    if item.price is None:
        return
    if not math.isfinite(item.price):
        warnings.append("Price is not a finite number and was removed")
        item.price = None
        return
    if item.price < 0:
        warnings.append(f"Negative price {item.price} converted to {abs(item.price)}")
        item.price = abs(item.price)
    if item.price > MAX_REASONABLE_PRICE:
        warnings.append(f"Price {item.price} seems unusually high")
    item.price = round(item.price, 2)


def _validate_ingredients(item: CanonicalItem, warnings: list[str]) -> None:
    if len(item.ingredients) > MAX_INGREDIENTS:
        warnings.append(f"Too many ingredients ({len(item.ingredients)}); kept the first {MAX_INGREDIENTS}")
        item.ingredients = item.ingredients[:MAX_INGREDIENTS]
    trimmed = []
    for ingredient in item.ingredients:
        if len(ingredient) > MAX_INGREDIENT_LENGTH:
            warnings.append(f"Ingredient '{ingredient[:30]}...' exceeds {MAX_INGREDIENT_LENGTH} characters and was truncated")
            ingredient = ingredient[:MAX_INGREDIENT_LENGTH]
        trimmed.append(ingredient)
    item.ingredients = trimmed


def _validate_allergens(item: CanonicalItem, warnings: list[str]) -> None:
    allergens: list[str] = []
    for raw in item.allergens:
        allergen = ALLERGEN_ALIASES.get(raw.strip().lower(), raw.strip().lower())
        if allergen not in ALLERGENS:
            warnings.append(f"Unknown allergen '{raw}' was removed")
            continue
        if allergen not in allergens:
            allergens.append(allergen)
    item.allergens = allergens


def _validate_wine(item: CanonicalItem, warnings: list[str]) -> None:
    style = WINE_STYLE_ALIASES.get(item.wine_style, item.wine_style) if item.wine_style else None
    if style not in WINE_STYLES:
        if item.wine_style:
            warnings.append(f"Invalid wine style '{item.wine_style}', set to 'other'")
        else:
            warnings.append("Wine style is required for wine items, set to 'other'")
        style = WineStyle.OTHER.value
    item.wine_style = style

    if item.wine_vintage is not None and not MIN_VINTAGE <= item.wine_vintage <= max_vintage():
        warnings.append(f"Vintage {item.wine_vintage} is outside {MIN_VINTAGE}-{max_vintage()} and was cleared")
        item.wine_vintage = None

    if len(item.wine_grape_varieties) > MAX_GRAPE_VARIETIES:
        warnings.append(f"Too many grape varieties; kept the first {MAX_GRAPE_VARIETIES}")
        item.wine_grape_varieties = item.wine_grape_varieties[:MAX_GRAPE_VARIETIES]
    if len(item.serving_options) > MAX_SERVING_OPTIONS:
        warnings.append(f"Too many serving options; kept the first {MAX_SERVING_OPTIONS}")
        item.serving_options = item.serving_options[:MAX_SERVING_OPTIONS]
    if len(item.wine_pairings) > MAX_PAIRINGS:
        item.wine_pairings = item.wine_pairings[:MAX_PAIRINGS]

    item.wine_producer = _truncate(item.wine_producer, MAX_PRODUCER_LENGTH, "Producer", warnings)
    item.wine_region = _truncate(item.wine_region, MAX_REGION_LENGTH, "Region", warnings)

    if item.price is not None and item.price < MIN_REASONABLE_WINE_PRICE:
        warnings.append(f"Wine price {item.price} seems unusually low")


def _has_wine_like_attributes(item: CanonicalItem) -> bool:
    if item.has_wine_attributes():
        return True
    region = (item.wine_region or "").lower()
    return any(known in region for known in KNOWN_WINE_REGIONS)


def _validate_cross_fields(item: CanonicalItem, warnings: list[str]) -> None:
    if item.is_vegan and not item.is_vegetarian:
        warnings.append("Vegan items are vegetarian; vegetarian flag set")
        item.is_vegetarian = True

    if not item.is_wine and _has_wine_like_attributes(item):
        warnings.append("Item has wine attributes but is not marked as wine")

    if item.is_vegan:
        text = " ".join(item.ingredients).lower()
        found = [keyword for keyword in NON_VEGAN_KEYWORDS if keyword in text]
        if found:
            warnings.append(f"Marked vegan but contains non-vegan ingredients: {', '.join(found)}")


def validate_item(item: CanonicalItem) -> list[str] | None:
    """Validate and normalize one item in place.

    Returns:
        The warnings raised for the item, or None if it must be dropped
        because it has no name.
    """
    name = (item.name or "").strip()
    if not name:
        return None

    warnings: list[str] = []
    item.name = _truncate(name, MAX_NAME_LENGTH, "Name", warnings)
    item.description = _truncate(item.description, MAX_DESCRIPTION_LENGTH, "Description", warnings)
    item.category = _truncate(normalize_category(item.category), MAX_CATEGORY_LENGTH, "Category", warnings)

    _validate_price(item, warnings)

    if item.item_type not in ITEM_KINDS:
        warnings.append(f"Invalid item type '{item.item_type}', defaulted to 'food'")
        item.item_type = ItemKind.FOOD.value

    _validate_ingredients(item, warnings)
    _validate_allergens(item, warnings)

    if item.is_wine:
        _validate_wine(item, warnings)

    _validate_cross_fields(item, warnings)
    return warnings


def validate_items(items: list[CanonicalItem]) -> ValidationReport:
    """Validate a document's items, keeping their order.

    Item warnings are also collected into ``warnings`` prefixed with the
    item name.
    """
    report = ValidationReport()
    for item in items:
        item_warnings = validate_item(item)
        if item_warnings is None:
            report.dropped += 1
            report.warnings.append(f"Item at position {(item.source_index or 0) + 1} has no name and was dropped")
            continue
        report.items.append(item)
        report.item_warnings[item.id] = item_warnings
        report.warnings.extend(f'"{item.name}": {w}' for w in item_warnings)

    if report.dropped:
        logger.info("Dropped %d unnamed items during validation", report.dropped)
    return report
