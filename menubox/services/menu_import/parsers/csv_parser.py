"""Delimited text (.csv) menu parser."""

import csv
import io
import logging
from pathlib import Path
from typing import Any

from ..constants import MAX_ROWS
from ..converters import extract_menu_name, fix_encoding_issues
from ..errors import ParseError
from ..field_mapping import apply_mapping, build_column_mapping
from .base import MenuParser, ParseOutcome, apply_price_and_wine_checks, missing_name_warning

logger = logging.getLogger(__name__)

_DELIMITERS = ",;\t|"


def _decode(content: bytes) -> tuple[str, str]:
    """Decode CSV bytes, trying UTF-8 (BOM aware) first, then Latin-1."""
    for encoding in ("utf-8-sig", "latin-1"):
        try:
            return content.decode(encoding), encoding
        except UnicodeDecodeError:
            continue
    # latin-1 accepts every byte sequence, so this is unreachable in practice
    raise ParseError("CSV file could not be decoded")


def _detect_delimiter(sample: str) -> str:
    """Guess the delimiter from the first lines, defaulting to a comma."""
    try:
        return csv.Sniffer().sniff(sample, delimiters=_DELIMITERS).delimiter
    except csv.Error:
        return ","


def _strip_quotes(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().strip("\"'").strip()
    return value


class CsvMenuParser(MenuParser):
    """Parses comma/semicolon/tab/pipe separated menus with a header row."""

    source_format = "csv"

    def parse(self, path: Path, original_file_name: str | None = None) -> ParseOutcome:
        file_name = original_file_name or path.name
        try:
            content = path.read_bytes()
        except OSError as e:
            raise ParseError(f"Failed to read CSV file: {e}", file_name=file_name) from e

        text, encoding = _decode(content)
        text = fix_encoding_issues(text)
        delimiter = _detect_delimiter(text[:2048])

        reader = csv.DictReader(io.StringIO(text), delimiter=delimiter)
        if not reader.fieldnames:
            raise ParseError("CSV file has no headers", file_name=file_name)

        headers = [_strip_quotes(h) or "" for h in reader.fieldnames]
        reader.fieldnames = headers
        mapping = build_column_mapping([h for h in headers if h])
        if "name" not in mapping:
            raise ParseError(
                "CSV file must have a 'name' or 'item' column for menu items",
                file_name=file_name,
                headers=headers,
            )

        items = []
        warnings: list[str] = []
        for i, row in enumerate(reader):
            if i >= MAX_ROWS:
                warnings.append(f"Only the first {MAX_ROWS} rows were imported")
                break
            values = {h: v for h, v in row.items() if h}
            if not any(v and str(v).strip() for v in values.values()):
                continue
            record = apply_mapping(values, mapping)
            record["name"] = _strip_quotes(record.get("name"))
            item = self.build_item(record, index=i)
            if item is None:
                warnings.append(missing_name_warning(i + 2))
                continue
            items.append(item)

        apply_price_and_wine_checks(items, warnings)
        logger.info("Parsed %d items from %s (delimiter %r, %s)", len(items), file_name, delimiter, encoding)

        return ParseOutcome(
            items=items,
            warnings=warnings,
            menu_name=extract_menu_name(file_name),
            source_format=self.source_format,
            metadata={
                "headers": headers,
                "delimiter": delimiter,
                "encoding": encoding,
                "column_mapping": mapping,
            },
        )
