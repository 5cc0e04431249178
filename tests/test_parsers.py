"""Unit tests for format detection, field mapping, value coercion and parsers."""

import json
from pathlib import Path

import pytest
from docx import Document

from conftest import make_csv, make_xlsx
from menubox.services.menu_import import (
    ParseError,
    UnsupportedFormatError,
    build_column_mapping,
    detect_format,
    get_parser,
    normalize_category,
    normalize_header,
    parse_boolean,
    parse_list,
    parse_price,
)
from menubox.services.menu_import.converters import (
    extract_menu_name,
    fix_encoding_issues,
    format_price,
    parse_serving_options,
)
from menubox.services.menu_import.parsers import (
    CsvMenuParser,
    ExcelMenuParser,
    JsonMenuParser,
    WordMenuParser,
)
from menubox.services.menu_import.parsers.word import infer_category, is_section_header, match_item_line


# =============================================================================
# Format detection
# =============================================================================


@pytest.mark.parametrize(
    "file_name,expected",
    [
        ("menu.xlsx", "excel"),
        ("legacy.XLS", "excel"),
        ("menu.csv", "csv"),
        ("menu.json", "json"),
        ("menu.docx", "word"),
        ("Wine List.pdf", "pdf"),
    ],
)
def test_detect_format(file_name: str, expected: str) -> None:
    assert detect_format(file_name) == expected


def test_detect_format_rejects_unknown_extension() -> None:
    with pytest.raises(UnsupportedFormatError, match="Unsupported file type: .txt"):
        detect_format("menu.txt")


def test_get_parser_returns_instance() -> None:
    assert isinstance(get_parser("csv"), CsvMenuParser)
    with pytest.raises(UnsupportedFormatError):
        get_parser("pdf")


# =============================================================================
# Field mapping
# =============================================================================


def test_normalize_header_variants() -> None:
    assert normalize_header("Gluten-Free") == "gluten_free"
    assert normalize_header("gluten free") == "gluten_free"
    assert normalize_header("glutenFree") == "gluten_free"
    assert normalize_header("  Item Name ") == "item_name"
    assert normalize_header(None) == ""


def test_build_column_mapping_synonyms() -> None:
    mapping = build_column_mapping(["Dish", "Cost", "Section", "Details", "GF", "Winery", "Year"])
    assert mapping == {
        "name": "Dish",
        "price": "Cost",
        "category": "Section",
        "description": "Details",
        "is_gluten_free": "GF",
        "wine_producer": "Winery",
        "wine_vintage": "Year",
    }


def test_build_column_mapping_first_match_wins() -> None:
    """A second header resolving to an already mapped field is ignored."""
    mapping = build_column_mapping(["Name", "Item", "Price"])
    assert mapping["name"] == "Name"
    assert "Item" not in mapping.values()


def test_build_column_mapping_drops_unmatched() -> None:
    mapping = build_column_mapping(["Name", "Internal SKU"])
    assert mapping == {"name": "Name"}


# =============================================================================
# Converters
# =============================================================================


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("$12.99", 12.99),
        ("£8", 8.0),
        ("€ 12,50", 12.5),
        ("$1,234.50", 1234.5),
        ("1.234.50", 1234.5),
        ("-$5.00", -5.0),
        ("(7.25)", -7.25),
        (14, 14.0),
        (9.999, 10.0),
        ("12.99 USD", 12.99),
        ("Price: $9.50", 9.5),
        (".75", 0.75),
        ("12.99 - 14.99", None),
        ("12-15", None),
        ("$12/48", None),
        ("Glass 12 / Bottle 48", None),
        ("market price", None),
        ("", None),
        (None, None),
        (True, None),
    ],
)
def test_parse_price(raw, expected) -> None:
    assert parse_price(raw) == expected


@pytest.mark.parametrize("raw", ["$12.99", "£1,250.00", "€ 7,5", "¥980", "-$3.10", "₹ 450"])
def test_parse_price_is_idempotent_through_format(raw: str) -> None:
    parsed = parse_price(raw)
    assert parse_price(format_price(parsed)) == parsed


def test_parse_boolean() -> None:
    assert parse_boolean("Yes") is True
    assert parse_boolean("n") is False
    assert parse_boolean(1) is True
    assert parse_boolean("maybe") is None
    assert parse_boolean(None) is None


def test_parse_list() -> None:
    assert parse_list("tomato, basil; mozzarella | olive oil") == ["tomato", "basil", "mozzarella", "olive oil"]
    assert parse_list(["a", None, " ", "b"]) == ["a", "b"]
    assert parse_list(None) == []


def test_parse_serving_options() -> None:
    options = parse_serving_options("Glass: $12 | Bottle: $48")
    assert [(o.size, o.price) for o in options] == [("Glass", 12.0), ("Bottle", 48.0)]

    options = parse_serving_options([{"size": "175ml", "price": "9.50"}, {"price": 3}])
    assert [(o.size, o.price) for o in options] == [("175ml", 9.5)]


def test_normalize_category() -> None:
    assert normalize_category("main COURSES") == "Main Courses"
    assert normalize_category("") == "Uncategorized"
    assert normalize_category(None) == "Uncategorized"


def test_extract_menu_name() -> None:
    assert extract_menu_name("summer_dinner-menu.xlsx") == "Summer Dinner Menu"
    assert extract_menu_name("drinks.xlsx", "Wines") == "drinks - Wines"
    assert extract_menu_name("drinks.xlsx", "Sheet1") == "Drinks"


def test_fix_encoding_issues() -> None:
    assert fix_encoding_issues("CafÃ© â€œspecialâ€\x9d") == 'Café "special"'


# =============================================================================
# CSV parser
# =============================================================================


def _write(tmp_path: Path, name: str, content: bytes) -> Path:
    path = tmp_path / name
    path.write_bytes(content)
    return path


def test_csv_parser_well_formed_rows(tmp_path: Path) -> None:
    """N well-formed rows produce N items and no dropped-row warnings."""
    content = make_csv(
        ["Item Name", "Price", "Category", "Ingredients", "Vegan"],
        [
            ["Bruschetta", "$9.50", "Starters", "bread, tomato, basil", "yes"],
            ["Margherita Pizza", "14", "Mains", "dough, tomato, mozzarella", "no"],
            ["Sorbet", "6.00", "Desserts", "lemon, sugar", "yes"],
        ],
    )
    items, warnings = CsvMenuParser().parse(_write(tmp_path, "dinner.csv", content))

    assert [item.name for item in items] == ["Bruschetta", "Margherita Pizza", "Sorbet"]
    assert items[0].price == 9.5
    assert items[0].ingredients == ["bread", "tomato", "basil"]
    assert items[0].is_vegan is True
    assert items[1].is_vegan is False
    assert not any("missing item name" in w for w in warnings)


def test_csv_parser_drops_row_without_name(tmp_path: Path) -> None:
    content = make_csv(
        ["name", "price", "category"],
        [["Caesar Salad", 12.99, "Appetizers"], ["", 99, "X"], ["Grilled Salmon", 24.99, "Main Courses"]],
    )
    outcome = CsvMenuParser().parse(_write(tmp_path, "menu.csv", content))

    assert [item.name for item in outcome.items] == ["Caesar Salad", "Grilled Salmon"]
    assert outcome.warnings == ["Row 3: missing item name, row skipped"]
    assert outcome.source_format == "csv"
    assert outcome.metadata["delimiter"] == ","


def test_csv_parser_semicolon_and_latin1(tmp_path: Path) -> None:
    content = "Name;Price;Category\nCrème brûlée;8,50;Desserts\nÎle flottante;7,00;Desserts\n".encode("latin-1")
    outcome = CsvMenuParser().parse(_write(tmp_path, "desserts.csv", content))

    assert outcome.items[0].name == "Crème brûlée"
    assert outcome.items[0].price == 8.5
    assert outcome.metadata["delimiter"] == ";"
    assert outcome.metadata["encoding"] == "latin-1"


def test_csv_parser_requires_name_column(tmp_path: Path) -> None:
    content = make_csv(["Price", "Category"], [["12", "Mains"]])
    with pytest.raises(ParseError, match="'name' or 'item' column"):
        CsvMenuParser().parse(_write(tmp_path, "menu.csv", content))


def test_csv_parser_clamps_negative_price(tmp_path: Path) -> None:
    content = make_csv(["name", "price"], [["Refund Soup", "-4.50"]])
    items, warnings = CsvMenuParser().parse(_write(tmp_path, "menu.csv", content))

    assert items[0].price == 4.5
    assert any("negative price" in w for w in warnings)


# =============================================================================
# Excel parser
# =============================================================================


def test_excel_parser_reads_first_sheet(tmp_path: Path) -> None:
    content = make_xlsx(
        ["Name", "Price", "Item Type", "Style", "Vintage", "Region"],
        [
            ["Chablis Premier Cru", 68, "wine", "white", 2020, "Burgundy"],
            [None, None, None, None, None, None],
            ["House Red", "$32", "wine", "red", "2021", None],
        ],
        title="Wines",
    )
    outcome = ExcelMenuParser().parse(_write(tmp_path, "drinks.xlsx", content))

    assert [item.name for item in outcome.items] == ["Chablis Premier Cru", "House Red"]
    chablis, house_red = outcome.items
    assert chablis.item_type == "wine"
    assert chablis.wine_style == "still"
    assert house_red.price == 32.0
    assert house_red.wine_vintage == 2021
    assert chablis.wine_vintage == 2020
    assert chablis.wine_region == "Burgundy"
    assert outcome.menu_name == "drinks - Wines"
    assert outcome.metadata["worksheet_name"] == "Wines"


def test_excel_parser_missing_name_warning_uses_sheet_row(tmp_path: Path) -> None:
    content = make_xlsx(["Name", "Price"], [["Soup", 6], [None, 7]])
    items, warnings = ExcelMenuParser().parse(_write(tmp_path, "menu.xlsx", content))

    assert [item.name for item in items] == ["Soup"]
    assert warnings == ["Row 3: missing item name, row skipped"]


def test_excel_parser_wine_style_alias(tmp_path: Path) -> None:
    content = make_xlsx(["Name", "Item Type", "Wine Style"], [["Tawny", "wine", "port"]])
    items, _ = ExcelMenuParser().parse(_write(tmp_path, "menu.xlsx", content))

    assert items[0].item_type == "wine"
    assert items[0].wine_style == "fortified"


def test_excel_parser_corrupt_file(tmp_path: Path) -> None:
    with pytest.raises(ParseError, match="Failed to parse Excel file"):
        ExcelMenuParser().parse(_write(tmp_path, "broken.xlsx", b"not a workbook"))


# =============================================================================
# JSON parser
# =============================================================================


@pytest.mark.parametrize(
    "document,structure",
    [
        ({"menu": {"name": "Lunch", "items": [{"name": "Soup"}]}}, "menu_object"),
        ({"items": [{"name": "Soup"}]}, "items_object"),
        ({"menuItems": [{"itemName": "Soup"}]}, "menu_items_object"),
        ([{"dish": "Soup"}], "array"),
    ],
)
def test_json_parser_accepted_shapes(tmp_path: Path, document, structure: str) -> None:
    path = _write(tmp_path, "menu.json", json.dumps(document).encode())
    outcome = JsonMenuParser().parse(path)

    assert [item.name for item in outcome.items] == ["Soup"]
    assert outcome.metadata["structure"] == structure


def test_json_parser_coerces_scalar_arrays(tmp_path: Path) -> None:
    document = {"items": [{"name": "Pesto Pasta", "ingredients": "pasta, basil, pine nuts", "price": "15"}]}
    outcome = JsonMenuParser().parse(_write(tmp_path, "menu.json", json.dumps(document).encode()))

    assert outcome.items[0].ingredients == ["pasta", "basil", "pine nuts"]
    assert outcome.items[0].price == 15.0
    assert outcome.warnings == ["Item 1: 'ingredients' should be an array, converted"]
    assert outcome.metadata["schema_valid"] is False


def test_json_parser_menu_name_from_document(tmp_path: Path) -> None:
    document = {"menu": {"name": "Brunch", "items": [{"name": "Eggs Benedict"}, {"price": 4}]}}
    outcome = JsonMenuParser().parse(_write(tmp_path, "x.json", json.dumps(document).encode()))

    assert outcome.menu_name == "Brunch"
    assert outcome.warnings == ["Item 2: missing item name, row skipped"]


def test_json_parser_invalid_json(tmp_path: Path) -> None:
    with pytest.raises(ParseError, match="Invalid JSON format"):
        JsonMenuParser().parse(_write(tmp_path, "menu.json", b"{not json"))


def test_json_parser_unrecognized_structure(tmp_path: Path) -> None:
    with pytest.raises(ParseError, match="must contain"):
        JsonMenuParser().parse(_write(tmp_path, "menu.json", b'{"dishes": []}'))


# =============================================================================
# Word parser
# =============================================================================


def test_word_line_helpers() -> None:
    assert match_item_line("Caesar Salad - $12.99 Crisp romaine") == {
        "name": "Caesar Salad",
        "price": 12.99,
        "description": "Crisp romaine",
    }
    assert match_item_line("Tiramisu ($8)")["price"] == 8.0
    assert match_item_line("Just a sentence") is None

    assert is_section_header("APPETIZERS")
    assert is_section_header("== Mains ==")
    assert is_section_header("Desserts")
    assert not is_section_header("Desserts - $9")
    assert infer_category("Ribeye Steak") == "Main Courses"


def test_word_parser_sections_and_metadata(tmp_path: Path) -> None:
    document = Document()
    for line in (
        "STARTERS",
        "Tomato Soup - $7.50 Slow roasted tomatoes",
        "Ingredients: tomato, cream, basil",
        "WINES",
        "Chablis Premier Cru | $68",
        "Producer: Domaine Laroche | Vintage: 2020 | Region: Burgundy",
    ):
        document.add_paragraph(line)
    path = tmp_path / "dinner.docx"
    document.save(str(path))

    outcome = WordMenuParser().parse(path)
    soup, chablis = outcome.items

    assert soup.name == "Tomato Soup"
    assert soup.price == 7.5
    assert soup.category == "STARTERS"
    assert soup.ingredients == ["tomato", "cream", "basil"]
    assert soup.item_type == "food"

    assert chablis.item_type == "wine"
    assert chablis.wine_producer == "Domaine Laroche"
    assert chablis.wine_vintage == 2020
    assert chablis.wine_region == "Burgundy"
    assert outcome.metadata["document_structure"]["has_clear_structure"] is True


def test_word_parser_wine_style_sections(tmp_path: Path) -> None:
    document = Document()
    for line in (
        "SPARKLING",
        "Prosecco Brut - $11",
        "RED",
        "Malbec Reserva - $48",
        "CHAMPAGNE",
        "Blanc de Blancs - $95",
        "DESSERTS",
        "Chocolate Tart - $9",
    ):
        document.add_paragraph(line)
    path = tmp_path / "list.docx"
    document.save(str(path))

    items, _ = WordMenuParser().parse(path)

    assert [(i.name, i.category, i.item_type) for i in items] == [
        ("Prosecco Brut", "SPARKLING", "wine"),
        ("Malbec Reserva", "RED", "wine"),
        ("Blanc de Blancs", "CHAMPAGNE", "wine"),
        ("Chocolate Tart", "DESSERTS", "food"),
    ]


def test_word_parser_price_from_description(tmp_path: Path) -> None:
    document = Document()
    document.add_paragraph("Ribeye Steak - 0 dry aged $34")
    path = tmp_path / "menu.docx"
    document.save(str(path))

    items, _ = WordMenuParser().parse(path)
    assert items[0].name == "Ribeye Steak"
    assert items[0].price == 34.0
    assert items[0].description == "dry aged"
    assert items[0].category == "Main Courses"


def test_word_parser_unreadable_file(tmp_path: Path) -> None:
    with pytest.raises(ParseError, match="Failed to read Word document"):
        WordMenuParser().parse(_write(tmp_path, "menu.docx", b"garbage"))
