"""Header/key normalization and column mapping onto canonical item fields."""

import re
from typing import Any

from .constants import FIELD_SYNONYMS

_PUNCTUATION = re.compile(r"[^\w\s$]")
_WHITESPACE = re.compile(r"\s+")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def normalize_header(header: Any) -> str:
    """Normalize a column header or JSON key for synonym lookup.

    Splits camelCase, lower-cases, strips punctuation (except ``$``),
    collapses whitespace and joins words with underscores, so "Gluten-Free",
    "gluten free" and "glutenFree" all become ``gluten_free``.
    """
    if header is None:
        return ""
    text = _CAMEL_BOUNDARY.sub(" ", str(header).strip()).lower()
    text = text.replace("-", " ")
    text = _PUNCTUATION.sub("", text)
    text = _WHITESPACE.sub(" ", text).strip()
    return text.replace(" ", "_")


def match_field(header: Any) -> str | None:
    """Resolve a single header to its canonical field, or None if unmatched."""
    normalized = normalize_header(header)
    if not normalized:
        return None
    for field, synonyms in FIELD_SYNONYMS.items():
        if normalized in synonyms:
            return field
    return None


def build_column_mapping(headers: list[Any]) -> dict[str, Any]:
    """Map canonical fields to the header that supplies them.

    Headers are resolved first-match-wins; once a field has a source column,
    later headers resolving to the same field are ignored. Unmatched headers
    are dropped.

    Args:
        headers: Column headers (or JSON keys) in document order.

    Returns:
        Dict of canonical field name -> original header.
    """
    mapping: dict[str, Any] = {}
    for header in headers:
        field = match_field(header)
        if field is not None and field not in mapping:
            mapping[field] = header
    return mapping


def apply_mapping(record: dict[str, Any], mapping: dict[str, Any]) -> dict[str, Any]:
    """Project a raw record onto canonical field names using a column mapping."""
    return {field: record.get(header) for field, header in mapping.items()}
