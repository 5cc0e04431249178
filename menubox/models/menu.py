"""Menu and MenuItem document models for the restaurant catalog."""

from datetime import datetime, timezone
from typing import Optional

from beanie import Document, Indexed, PydanticObjectId
from pydantic import BaseModel, Field


class ServingOptionEntry(BaseModel):
    """Embedded subdocument for a wine serving size and its price."""

    size: str
    price: float


class Menu(Document):
    """A named menu belonging to a restaurant."""

    restaurant_id: Indexed(str)
    name: str
    description: Optional[str] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "menus"

    def __repr__(self) -> str:
        return f"<Menu(id={self.id}, name={self.name})>"


class MenuItem(Document):
    """A catalog item on a menu."""

    restaurant_id: str
    menu_id: PydanticObjectId
    item_name: str
    item_price: Optional[float] = None
    item_type: str = "food"
    item_category: str = "Uncategorized"
    description: Optional[str] = None
    item_ingredients: list[str] = Field(default_factory=list)
    allergens: list[str] = Field(default_factory=list)

    is_gluten_free: bool = False
    is_vegan: bool = False
    is_vegetarian: bool = False
    is_dairy_free: bool = False

    # Wine-only attributes
    wine_style: Optional[str] = None
    wine_producer: Optional[str] = None
    wine_grape_variety: list[str] = Field(default_factory=list)
    wine_vintage: Optional[int] = None
    wine_region: Optional[str] = None
    serving_options: list[ServingOptionEntry] = Field(default_factory=list)
    wine_pairings: list[str] = Field(default_factory=list)

    is_active: bool = True
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "menu_items"
        indexes = [
            "menu_id",
            [("restaurant_id", 1), ("item_name", 1)],
            [("restaurant_id", 1), ("menu_id", 1), ("is_active", 1)],
        ]

    def __repr__(self) -> str:
        return f"<MenuItem(id={self.id}, item_name={self.item_name})>"
