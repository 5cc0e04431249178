"""Canonical menu item model shared by every parser and the enrichment layer."""

import uuid
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ItemKind(str, Enum):
    """Kind of a menu item."""

    FOOD = "food"
    BEVERAGE = "beverage"
    WINE = "wine"


class WineStyle(str, Enum):
    """Style of a wine item."""

    STILL = "still"
    SPARKLING = "sparkling"
    CHAMPAGNE = "champagne"
    DESSERT = "dessert"
    FORTIFIED = "fortified"
    OTHER = "other"


ITEM_KINDS: tuple[str, ...] = tuple(kind.value for kind in ItemKind)
WINE_STYLES: tuple[str, ...] = tuple(style.value for style in WineStyle)
ALLERGENS: tuple[str, ...] = ("dairy", "gluten", "nuts", "seafood", "eggs", "soy", "sesame")


class ServingOption(BaseModel):
    """A size/price pair, e.g. a glass or a bottle of wine."""

    size: str
    price: float | None = None


class CanonicalItem(BaseModel):
    """Format-agnostic representation of one menu entry.

    Parsers build these loosely (fields may still hold out-of-range values);
    the validator is responsible for enforcing limits and vocabularies.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    source_index: int | None = None

    name: str = ""
    description: str | None = None
    price: float | None = None
    category: str = "Uncategorized"
    item_type: str = ItemKind.FOOD.value
    ingredients: list[str] = Field(default_factory=list)
    allergens: list[str] = Field(default_factory=list)

    # Dietary flags
    is_vegan: bool = False
    is_vegetarian: bool = False
    is_gluten_free: bool = False
    is_dairy_free: bool = False

    # Wine-specific fields
    wine_style: str | None = None
    wine_producer: str | None = None
    wine_region: str | None = None
    wine_grape_varieties: list[str] = Field(default_factory=list)
    wine_vintage: int | None = None
    serving_options: list[ServingOption] = Field(default_factory=list)
    wine_pairings: list[str] = Field(default_factory=list)

    @property
    def is_wine(self) -> bool:
        """Whether the item is tagged as wine."""
        return self.item_type == ItemKind.WINE.value

    def has_wine_attributes(self) -> bool:
        """Whether the item carries any wine-only attribute."""
        return bool(
            self.wine_style
            or self.wine_grape_varieties
            or self.wine_vintage
            or self.wine_producer
            or self.wine_region
        )

    def text_blob(self) -> str:
        """Lower-cased name, category, description and ingredients for keyword scans."""
        parts = [self.name, self.category, self.description or "", " ".join(self.ingredients)]
        return " ".join(p for p in parts if p).lower()


def canonical_item_from_dict(data: dict[str, Any]) -> CanonicalItem:
    """Build a CanonicalItem from an already-normalized dict, dropping unknown keys."""
    known = {k: v for k, v in data.items() if k in CanonicalItem.model_fields}
    return CanonicalItem(**known)
