"""Spreadsheet (.xlsx/.xls) menu parser."""

import logging
from pathlib import Path
from typing import Any

from openpyxl import load_workbook

from ..constants import MAX_ROWS
from ..converters import extract_menu_name
from ..errors import ParseError
from ..field_mapping import apply_mapping, build_column_mapping
from .base import MenuParser, ParseOutcome, apply_price_and_wine_checks, missing_name_warning

logger = logging.getLogger(__name__)


def _read_xlsx(path: Path) -> tuple[str, list[tuple[Any, ...]], list[str]]:
    """Read the first worksheet of an .xlsx workbook.

    Uses openpyxl read_only mode and iterates rows lazily.

    Returns:
        Tuple of (sheet name, rows as value tuples, all sheet names).
    """
    wb = load_workbook(filename=str(path), read_only=True, data_only=True)
    try:
        ws = wb.worksheets[0] if wb.worksheets else None
        if ws is None:
            raise ParseError("Excel file has no worksheets")
        rows: list[tuple[Any, ...]] = []
        for i, row_values in enumerate(ws.iter_rows(values_only=True)):
            if i > MAX_ROWS:
                break
            rows.append(tuple(row_values))
        return ws.title, rows, list(wb.sheetnames)
    finally:
        wb.close()


def _read_xls(path: Path) -> tuple[str, list[tuple[Any, ...]], list[str]]:
    """Read the first worksheet of a legacy .xls workbook with xlrd."""
    import xlrd

    book = xlrd.open_workbook(str(path))
    try:
        if book.nsheets == 0:
            raise ParseError("Excel file has no worksheets")
        sheet = book.sheet_by_index(0)
        rows = [tuple(sheet.row_values(i)) for i in range(min(sheet.nrows, MAX_ROWS + 1))]
        return sheet.name, rows, list(book.sheet_names())
    finally:
        book.release_resources()


class ExcelMenuParser(MenuParser):
    """Parses the first worksheet of a workbook; the first row holds headers."""

    source_format = "excel"

    def parse(self, path: Path, original_file_name: str | None = None) -> ParseOutcome:
        file_name = original_file_name or path.name
        try:
            if Path(file_name).suffix.lower() == ".xls" or path.suffix.lower() == ".xls":
                sheet_name, rows, sheet_names = _read_xls(path)
            else:
                sheet_name, rows, sheet_names = _read_xlsx(path)
        except ParseError:
            raise
        except Exception as e:
            raise ParseError(f"Failed to parse Excel file: {e}", file_name=file_name) from e

        if not rows:
            raise ParseError("Excel file is empty or has no data", file_name=file_name)

        headers = [str(h).strip() if h is not None else "" for h in rows[0]]
        mapping = build_column_mapping([h for h in headers if h])
        if "name" not in mapping:
            raise ParseError(
                "Excel file must have a 'name' or 'item' column for menu items",
                file_name=file_name,
                headers=headers,
            )

        items = []
        warnings: list[str] = []
        for i, values in enumerate(rows[1:]):
            if all(v is None or str(v).strip() == "" for v in values):
                continue
            record = {h: values[j] if j < len(values) else None for j, h in enumerate(headers) if h}
            item = self.build_item(apply_mapping(record, mapping), index=i)
            if item is None:
                # Header is sheet row 1, so data row i sits on row i + 2
                warnings.append(missing_name_warning(i + 2))
                continue
            items.append(item)

        apply_price_and_wine_checks(items, warnings)
        logger.info("Parsed %d items from worksheet '%s' of %s", len(items), sheet_name, file_name)

        return ParseOutcome(
            items=items,
            warnings=warnings,
            menu_name=extract_menu_name(file_name, sheet_name),
            source_format=self.source_format,
            metadata={
                "worksheet_name": sheet_name,
                "sheet_names": sheet_names,
                "headers": headers,
                "total_rows": len(rows) - 1,
                "column_mapping": mapping,
            },
        )
