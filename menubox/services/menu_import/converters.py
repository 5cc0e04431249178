"""Value coercion helpers shared by every menu parser."""

import math
import re
from pathlib import Path
from typing import Any

from menubox.schemas.items import ServingOption

from .constants import BOOLEAN_FALSE, BOOLEAN_TRUE, CURRENCY_SYMBOLS, DEFAULT_CATEGORY, ENCODING_FIXES

_CURRENCY = re.compile(f"[{re.escape(CURRENCY_SYMBOLS)}]")
_NUMBER = re.compile(r"\d[\d.,]*|\.\d+")
_THOUSANDS = re.compile(r",(\d{3})(?=\D|$)")
_DECIMAL_COMMA = re.compile(r",(\d{1,2})$")
_LIST_SPLIT = re.compile(r"[,;|]")
_SERVING_PAIR = re.compile(r"^(.*?)\s*[:=@]\s*(.+)$")


def parse_price(value: Any) -> float | None:
    """Normalize a price value to a float rounded to two decimals.

    Currency symbols are stripped, thousands separators removed and a
    trailing decimal comma converted ("12,99" -> 12.99). A minus sign directly
    before the number, or accounting parentheses around it, make the result
    negative. Text holding more than one number, such as a range
    ("12.99 - 14.99") or a glass/bottle pair ("$12/48"), is ambiguous and
    resolves to None, as does anything else that cannot be read as a price.

    Args:
        value: Raw cell/field value (number or string).

    Returns:
        Price rounded to 2 decimals, or None if unparsable.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        if math.isnan(value) or math.isinf(value):
            return None
        return round(float(value), 2)

    text = _CURRENCY.sub("", str(value)).strip()
    numbers = list(_NUMBER.finditer(text))
    if len(numbers) != 1:
        return None
    match = numbers[0]

    prefix = text[: match.start()].replace(" ", "")
    suffix = text[match.end() :].strip()
    negative = prefix == "-" or (prefix == "(" and suffix.startswith(")"))

    cleaned = match.group().rstrip(".,")
    cleaned = _THOUSANDS.sub(r"\1", cleaned)
    cleaned = _DECIMAL_COMMA.sub(r".\1", cleaned)
    cleaned = cleaned.replace(",", "")

    # Keep only the last dot as decimal separator ("1.234.50" -> "1234.50")
    if cleaned.count(".") > 1:
        head, _, tail = cleaned.rpartition(".")
        cleaned = head.replace(".", "") + "." + tail

    try:
        number = round(float(cleaned), 2)
    except ValueError:
        return None

    return -number if negative and number else number


def format_price(price: float | None, symbol: str = "$") -> str:
    """Render a price the way menus print it, e.g. ``$1,234.50``."""
    if price is None:
        return ""
    sign = "-" if price < 0 else ""
    return f"{sign}{symbol}{abs(price):,.2f}"


def parse_boolean(value: Any) -> bool | None:
    """Read a yes/no style value; unknown values resolve to None (unset)."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if not text:
        return None
    if text in BOOLEAN_TRUE:
        return True
    if text in BOOLEAN_FALSE:
        return False
    return None


def parse_list(value: Any) -> list[str]:
    """Read a list field from a native list or a comma/semicolon/pipe string."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if v is not None and str(v).strip()]
    text = str(value).strip()
    if not text:
        return []
    return [part.strip() for part in _LIST_SPLIT.split(text) if part.strip()]


def parse_int(value: Any) -> int | None:
    """Coerce a value to int, accepting "2019" and 2019.0; None if not numeric."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return int(number)


def parse_serving_options(value: Any) -> list[ServingOption]:
    """Read serving options from dicts or "size: price" pairs.

    Accepts a list of ``{"size": ..., "price": ...}`` dicts or a delimited
    string such as ``"Glass: $12 | Bottle: $48"``. Entries without a size are
    ignored.
    """
    if value is None or value == "":
        return []

    entries: list[Any]
    if isinstance(value, list):
        entries = value
    elif isinstance(value, dict):
        entries = [value]
    else:
        entries = _LIST_SPLIT.split(str(value))

    options: list[ServingOption] = []
    for entry in entries:
        if isinstance(entry, dict):
            size = str(entry.get("size") or "").strip()
            price = parse_price(entry.get("price"))
        else:
            match = _SERVING_PAIR.match(str(entry).strip())
            if match:
                size, price = match.group(1).strip(), parse_price(match.group(2))
            else:
                size, price = str(entry).strip(), None
        if size:
            options.append(ServingOption(size=size, price=price))
    return options


def clean_text(value: Any) -> str | None:
    """Stringify and trim a value, turning control whitespace into spaces."""
    if value is None:
        return None
    text = re.sub(r"[\r\n\t]+", " ", str(value)).strip()
    return text or None


def fix_encoding_issues(text: str) -> str:
    """Repair UTF-8 text that was mis-decoded as a single-byte encoding."""
    for broken, fixed in ENCODING_FIXES.items():
        text = text.replace(broken, fixed)
    return text


def normalize_category(category: Any) -> str:
    """Title-case a category name, defaulting to "Uncategorized"."""
    if category is None or not str(category).strip():
        return DEFAULT_CATEGORY
    words = str(category).strip().lower().split()
    return " ".join(word[:1].upper() + word[1:] for word in words)


def extract_menu_name(file_name: str, sheet_name: str | None = None) -> str:
    """Derive a menu name from the uploaded file name (and worksheet).

    A non-default worksheet name is appended ("Drinks - Wines"); otherwise
    separators are replaced with spaces and the stem is title-cased.
    """
    base = Path(file_name).stem
    if sheet_name and sheet_name not in ("Sheet", "Sheet1", "Worksheet"):
        return f"{base} - {sheet_name}"
    spaced = re.sub(r"[-_]", " ", base)
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), spaced)
