"""Word-processing (.docx) menu parser using line-oriented heuristics."""

import logging
import re
from pathlib import Path
from typing import Any

from docx import Document

from ..converters import extract_menu_name, parse_list
from ..errors import ParseError
from .base import MenuParser, ParseOutcome, apply_price_and_wine_checks

logger = logging.getLogger(__name__)

_SEPARATOR_HEADER = re.compile(r"^(={2,}|-{2,}|\*{2,})")
_CAPS_HEADER = re.compile(r"^[A-Z\s&']{3,}$")
_KEYWORD_HEADER = re.compile(
    r"\b(appetizers?|starters?|entr[eé]es?|mains?|desserts?|wines?|beverages?|drinks?)\b",
    re.IGNORECASE,
)
_MAX_HEADER_LENGTH = 50

# "Name - $12.99 desc", "Name ($12.99) desc", "Name | $12.99 desc", "Name $12.99 desc"
_ITEM_PATTERNS = (
    re.compile(r"^(.+?)\s*[-–—]\s*\$?(\d+\.?\d*)\s*(.*)$"),
    re.compile(r"^(.+?)\s*\(\s*\$?(\d+\.?\d*)\s*\)\s*(.*)$"),
    re.compile(r"^(.+?)\s*[|]\s*\$?(\d+\.?\d*)\s*(.*)$"),
    re.compile(r"^(.+?)\s*\$(\d+\.?\d*)\s*(.*)$"),
)

_INGREDIENTS = re.compile(r"ingredients?:\s*(.+?)(?:\||$)", re.IGNORECASE)
_ALLERGENS = re.compile(r"allergens?:\s*(.+?)(?:\||$)", re.IGNORECASE)
_VEGAN = re.compile(r"\bvegan:\s*yes", re.IGNORECASE)
_VEGETARIAN = re.compile(r"vegetarian:\s*yes", re.IGNORECASE)
_GLUTEN_FREE = re.compile(r"gluten[- ]free:\s*yes", re.IGNORECASE)
_PRODUCER = re.compile(r"producer:\s*(.+?)(?:\||$)", re.IGNORECASE)
_VINTAGE = re.compile(r"vintage:\s*(\d{4})", re.IGNORECASE)
_REGION = re.compile(r"region:\s*(.+?)(?:\||$)", re.IGNORECASE)
_GRAPES = re.compile(r"grape\s*variet(?:y|ies):\s*(.+?)(?:\||$)", re.IGNORECASE)
_DESCRIPTION_PRICE = re.compile(r"\$(\d+\.?\d*)")

# Section names that mark a wine list; "dessert" and "sweet" also head food sections
_WINE_SECTION = re.compile(
    r"\b(reds?|whites?|ros[eé]s?|sparkling|bubbles|champagnes?|prosecco|cava|fortified|ports?|sherry|sherries)\b",
    re.IGNORECASE,
)

# Keyword buckets used when an item has no section; first bucket that hits wins
CATEGORY_BUCKETS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Appetizers", ("salad", "soup", "appetizer", "starter", "bruschetta")),
    ("Main Courses", ("steak", "chicken", "fish", "pasta", "burger", "salmon")),
    ("Desserts", ("dessert", "cake", "ice cream", "chocolate", "tart")),
    ("Wine", ("wine", "chardonnay", "pinot", "cabernet", "merlot", "champagne")),
    ("Beverages", ("beer", "cocktail", "martini", "whiskey", "vodka")),
)


def infer_category(item_name: str) -> str:
    """Infer a category from keywords in an item name."""
    lowered = item_name.lower()
    for category, keywords in CATEGORY_BUCKETS:
        if any(keyword in lowered for keyword in keywords):
            return category
    return "Uncategorized"


def _item_kind_for_category(category: str | None) -> str:
    lowered = (category or "").lower()
    if "wine" in lowered or _WINE_SECTION.search(lowered):
        return "wine"
    if any(word in lowered for word in ("beverage", "drink", "cocktail", "beer")):
        return "beverage"
    return "food"


def match_item_line(line: str) -> dict[str, Any] | None:
    """Match a "name <separator> price [description]" line."""
    for pattern in _ITEM_PATTERNS:
        match = pattern.match(line)
        if match:
            name = match.group(1).strip()
            if not name:
                continue
            return {
                "name": name,
                "price": float(match.group(2)),
                "description": match.group(3).strip() or None,
            }
    return None


def is_section_header(line: str) -> bool:
    """Whether a line introduces a new menu section.

    Decorative separators and ALL-CAPS lines are always headers. A short
    line mentioning a section keyword is a header only when it is not an
    item line and carries no "label:" metadata.
    """
    if _SEPARATOR_HEADER.match(line) or _CAPS_HEADER.match(line):
        return True
    if len(line) > _MAX_HEADER_LENGTH or ":" in line:
        return False
    return bool(_KEYWORD_HEADER.search(line)) and match_item_line(line) is None


def section_name(line: str) -> str:
    return re.sub(r"[=\-*]", "", line).strip()


def parse_additional_info(line: str) -> dict[str, Any]:
    """Read continuation metadata (ingredients:, producer:, ...) from a line.

    Lines without any recognized label become a description when they are
    longer than 10 characters and contain no colon.
    """
    info: dict[str, Any] = {}
    if match := _INGREDIENTS.search(line):
        info["ingredients"] = parse_list(match.group(1))
    if match := _ALLERGENS.search(line):
        info["allergens"] = [a.lower() for a in parse_list(match.group(1))]
    if _VEGAN.search(line):
        info["is_vegan"] = True
    if _VEGETARIAN.search(line):
        info["is_vegetarian"] = True
    if _GLUTEN_FREE.search(line):
        info["is_gluten_free"] = True
    if match := _PRODUCER.search(line):
        info["wine_producer"] = match.group(1).strip()
    if match := _VINTAGE.search(line):
        info["wine_vintage"] = int(match.group(1))
    if match := _REGION.search(line):
        info["wine_region"] = match.group(1).strip()
    if match := _GRAPES.search(line):
        info["wine_grape_varieties"] = parse_list(match.group(1))

    if not info and len(line) > 10 and ":" not in line:
        info["description"] = line
    return info


def _document_lines(path: Path) -> list[str]:
    """Paragraph and table-cell text of a .docx document, one entry per line."""
    document = Document(str(path))
    lines: list[str] = []
    for paragraph in document.paragraphs:
        lines.extend(paragraph.text.splitlines())
    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                lines.append(" | ".join(cells))
    return [line.strip() for line in lines if line.strip()]


class WordMenuParser(MenuParser):
    """Segments a word-processing document into sections, items and metadata."""

    source_format = "word"

    def parse(self, path: Path, original_file_name: str | None = None) -> ParseOutcome:
        file_name = original_file_name or path.name
        try:
            lines = _document_lines(path)
        except Exception as e:
            raise ParseError(f"Failed to read Word document: {e}", file_name=file_name) from e

        records = self.segment(lines)
        items = []
        warnings: list[str] = []
        for i, record in enumerate(records):
            self._apply_word_intelligence(record)
            item = self.build_item(record, index=i)
            if item is not None:
                items.append(item)

        apply_price_and_wine_checks(items, warnings)

        sections = sorted({item.category for item in items})
        item_lines = sum(1 for line in lines if match_item_line(line))
        logger.info("Parsed %d items from %s across %d sections", len(items), file_name, len(sections))

        return ParseOutcome(
            items=items,
            warnings=warnings,
            menu_name=extract_menu_name(file_name),
            source_format=self.source_format,
            metadata={
                "document_structure": {
                    "sections": sections,
                    "total_lines": len(lines),
                    "item_lines": item_lines,
                    "has_clear_structure": len(sections) > 1,
                },
            },
        )

    def segment(self, lines: list[str]) -> list[dict[str, Any]]:
        """Group document lines into item records keyed by canonical field."""
        records: list[dict[str, Any]] = []
        current: dict[str, Any] | None = None
        current_section: str | None = None

        for line in lines:
            if is_section_header(line):
                current_section = section_name(line) or current_section
                continue

            matched = match_item_line(line)
            if matched:
                if current:
                    records.append(current)
                current = {**matched, "category": current_section}
                continue

            if current is None:
                continue

            info = parse_additional_info(line)
            description = info.pop("description", None)
            current.update(info)
            if description and not current.get("description"):
                current["description"] = description

        if current:
            records.append(current)
        return records

    @staticmethod
    def _apply_word_intelligence(record: dict[str, Any]) -> None:
        """Fill price from description, infer category and item kind, tidy the name."""
        description = record.get("description")
        if not record.get("price") and description:
            match = _DESCRIPTION_PRICE.search(description)
            if match:
                record["price"] = float(match.group(1))
                record["description"] = _DESCRIPTION_PRICE.sub("", description).strip() or None

        name = re.sub(r"\s{2,}", " ", record.get("name") or "").strip()
        record["name"] = name

        if not record.get("category") or record["category"] == "Uncategorized":
            record["category"] = infer_category(name)
        record["item_type"] = _item_kind_for_category(record["category"])
