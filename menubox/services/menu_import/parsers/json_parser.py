"""Structured document (.json) menu parser."""

import json
import logging
from pathlib import Path
from typing import Any

from ..converters import extract_menu_name
from ..errors import ParseError
from ..field_mapping import apply_mapping, build_column_mapping
from .base import MenuParser, ParseOutcome, apply_price_and_wine_checks, missing_name_warning

logger = logging.getLogger(__name__)

# Fields that must be arrays in a well-formed document
_ARRAY_FIELDS = ("ingredients", "wine_grape_varieties", "allergens", "wine_pairings")


def _locate_items(data: Any) -> tuple[list[Any], str | None, str]:
    """Find the item list inside the accepted document shapes.

    Accepted shapes: ``{"menu": {"name", "items"}}``, ``{"items": [...]}``,
    ``{"menuItems": [...]}`` and a bare list.

    Returns:
        Tuple of (items, menu name if present, structure label).
    """
    if isinstance(data, list):
        return data, None, "array"
    if not isinstance(data, dict):
        raise ParseError("JSON document must be an object or an array of items")

    menu = data.get("menu")
    if isinstance(menu, dict) and isinstance(menu.get("items"), list):
        return menu["items"], menu.get("name") or menu.get("menuName"), "menu_object"
    if isinstance(data.get("items"), list):
        return data["items"], data.get("menuName") or data.get("name"), "items_object"
    if isinstance(data.get("menuItems"), list):
        return data["menuItems"], data.get("menuName") or data.get("name"), "menu_items_object"

    raise ParseError(
        "JSON document must contain 'menu.items', 'items' or 'menuItems', or be an array"
    )


class JsonMenuParser(MenuParser):
    """Parses JSON menus, coercing scalar array fields with a warning."""

    source_format = "json"

    def parse(self, path: Path, original_file_name: str | None = None) -> ParseOutcome:
        file_name = original_file_name or path.name
        try:
            with open(path, encoding="utf-8-sig") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ParseError(f"Invalid JSON format: {e}", file_name=file_name) from e
        except (OSError, UnicodeDecodeError) as e:
            raise ParseError(f"Failed to read JSON file: {e}", file_name=file_name) from e

        raw_items, menu_name, structure = _locate_items(data)

        items = []
        warnings: list[str] = []
        schema_valid = True
        for i, raw in enumerate(raw_items):
            position = i + 1
            if not isinstance(raw, dict):
                warnings.append(f"Item {position}: expected an object, got {type(raw).__name__}")
                schema_valid = False
                continue

            mapping = build_column_mapping(list(raw.keys()))
            record = apply_mapping(raw, mapping)

            for field in _ARRAY_FIELDS:
                value = record.get(field)
                if value is not None and not isinstance(value, list):
                    warnings.append(f"Item {position}: '{mapping[field]}' should be an array, converted")
                    schema_valid = False
            serving = record.get("serving_options")
            if serving is not None and not isinstance(serving, list):
                warnings.append(f"Item {position}: '{mapping['serving_options']}' should be an array")
                schema_valid = False

            item = self.build_item(record, index=i)
            if item is None:
                warnings.append(missing_name_warning(position, label="Item"))
                schema_valid = False
                continue
            items.append(item)

        apply_price_and_wine_checks(items, warnings)
        logger.info("Parsed %d items from %s (%s)", len(items), file_name, structure)

        return ParseOutcome(
            items=items,
            warnings=warnings,
            menu_name=str(menu_name).strip() if menu_name else extract_menu_name(file_name),
            source_format=self.source_format,
            metadata={
                "structure": structure,
                "schema_valid": schema_valid,
                "total_items": len(raw_items),
            },
        )
