"""Common parser contract and record-to-item conversion."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, ClassVar, Iterator

from menubox.schemas.items import WINE_STYLES, CanonicalItem

from ..constants import DEFAULT_CATEGORY, MAX_REASONABLE_PRICE, MIN_VINTAGE, WINE_STYLE_ALIASES
from ..converters import (
    clean_text,
    parse_boolean,
    parse_int,
    parse_list,
    parse_price,
    parse_serving_options,
)

logger = logging.getLogger(__name__)


@dataclass
class ParseOutcome:
    """Items and diagnostics produced by one parser run.

    Unpacks as ``items, warnings`` so callers can treat every parser as
    ``parse(path) -> (items, warnings)``.
    """

    items: list[CanonicalItem]
    warnings: list[str] = field(default_factory=list)
    menu_name: str = ""
    source_format: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    def __iter__(self) -> Iterator[Any]:
        yield self.items
        yield self.warnings


def record_to_item(record: dict[str, Any], index: int) -> CanonicalItem | None:
    """Convert a record keyed by canonical field names into an item.

    Args:
        record: Raw values keyed by canonical field name.
        index: Position of the record in the source document.

    Returns:
        The item, or None when the record has no usable name.
    """
    name = clean_text(record.get("name"))
    if not name:
        return None

    item_type = clean_text(record.get("item_type"))
    wine_style = clean_text(record.get("wine_style"))

    return CanonicalItem(
        source_index=index,
        name=name,
        description=clean_text(record.get("description")),
        price=parse_price(record.get("price")),
        category=clean_text(record.get("category")) or DEFAULT_CATEGORY,
        item_type=item_type.lower() if item_type else "food",
        ingredients=parse_list(record.get("ingredients")),
        allergens=[a.lower() for a in parse_list(record.get("allergens"))],
        is_vegan=bool(parse_boolean(record.get("is_vegan"))),
        is_vegetarian=bool(parse_boolean(record.get("is_vegetarian"))),
        is_gluten_free=bool(parse_boolean(record.get("is_gluten_free"))),
        is_dairy_free=bool(parse_boolean(record.get("is_dairy_free"))),
        wine_style=wine_style.lower() if wine_style else None,
        wine_producer=clean_text(record.get("wine_producer")),
        wine_region=clean_text(record.get("wine_region")),
        wine_grape_varieties=parse_list(record.get("wine_grape_varieties")),
        wine_vintage=parse_int(record.get("wine_vintage")),
        serving_options=parse_serving_options(record.get("serving_options")),
        wine_pairings=parse_list(record.get("wine_pairings")),
    )


class MenuParser:
    """Base class for structured menu parsers.

    Subclasses implement ``parse``; this class provides the shared mapping
    of canonical-field records onto CanonicalItem and the tabular price and
    wine-consistency post-pass.
    """

    source_format: ClassVar[str] = ""

    def parse(self, path: Path, original_file_name: str | None = None) -> ParseOutcome:
        raise NotImplementedError

    def build_item(self, record: dict[str, Any], index: int) -> CanonicalItem | None:
        return record_to_item(record, index)


def missing_name_warning(position: int, label: str = "Row") -> str:
    """Positional warning for a record dropped because it has no name."""
    return f"{label} {position}: missing item name, row skipped"


def apply_price_and_wine_checks(items: list[CanonicalItem], warnings: list[str]) -> None:
    """Tabular post-pass: clamp negative prices and flag suspicious wine data.

    Negative prices are made positive, absurd prices are flagged but kept,
    wine vintages outside 1800..current+2 and unknown wine styles are
    flagged. Wine style synonyms ("red", "port") are mapped onto the
    canonical style set. Mutates ``items`` in place.
    """
    max_vintage = datetime.now().year + 2
    for item in items:
        if item.price is not None and item.price < 0:
            warnings.append(f'"{item.name}": negative price {item.price} converted to {abs(item.price)}')
            item.price = abs(item.price)
        if item.price is not None and item.price > MAX_REASONABLE_PRICE:
            warnings.append(f'"{item.name}": unusually high price {item.price}')

        if not item.is_wine:
            continue
        if item.wine_vintage is not None and not MIN_VINTAGE <= item.wine_vintage <= max_vintage:
            warnings.append(f'"{item.name}": vintage {item.wine_vintage} looks unrealistic')
        if item.wine_style:
            style = WINE_STYLE_ALIASES.get(item.wine_style, item.wine_style)
            if style not in WINE_STYLES:
                warnings.append(f'"{item.name}": unknown wine style "{item.wine_style}"')
            item.wine_style = style
