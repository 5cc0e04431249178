"""Format detection and the structured parser registry."""

from pathlib import Path

from ..constants import FORMAT_BY_EXTENSION
from ..errors import UnsupportedFormatError
from .base import (
    MenuParser,
    ParseOutcome,
    apply_price_and_wine_checks,
    missing_name_warning,
    record_to_item,
)
from .csv_parser import CsvMenuParser
from .excel import ExcelMenuParser
from .json_parser import JsonMenuParser
from .word import WordMenuParser

# Source format -> parser class. PDF documents have no structured parser;
# they go through text extraction and the AI orchestrator instead.
PARSERS: dict[str, type[MenuParser]] = {
    "excel": ExcelMenuParser,
    "csv": CsvMenuParser,
    "json": JsonMenuParser,
    "word": WordMenuParser,
}


def detect_format(file_name: str) -> str:
    """Resolve a file name to its source format by extension.

    Args:
        file_name: Original file name (only the extension is inspected).

    Returns:
        One of ``excel``, ``csv``, ``json``, ``word`` or ``pdf``.

    Raises:
        UnsupportedFormatError: If the extension is not on the allow-list.
    """
    extension = Path(file_name).suffix.lower().lstrip(".")
    source_format = FORMAT_BY_EXTENSION.get(extension)
    if source_format is None:
        supported = ", ".join(f".{ext}" for ext in FORMAT_BY_EXTENSION)
        raise UnsupportedFormatError(
            f"Unsupported file type: .{extension or '?'}. Supported types: {supported}",
            file_name=file_name,
            extension=extension,
        )
    return source_format


def get_parser(source_format: str) -> MenuParser:
    """Instantiate the structured parser for a source format."""
    try:
        return PARSERS[source_format]()
    except KeyError:
        raise UnsupportedFormatError(
            f"No structured parser for format '{source_format}'",
            source_format=source_format,
        ) from None


__all__ = [
    "PARSERS",
    "detect_format",
    "get_parser",
    # Parser implementations
    "MenuParser",
    "ExcelMenuParser",
    "CsvMenuParser",
    "JsonMenuParser",
    "WordMenuParser",
    # Shared helpers
    "ParseOutcome",
    "apply_price_and_wine_checks",
    "missing_name_warning",
    "record_to_item",
]
