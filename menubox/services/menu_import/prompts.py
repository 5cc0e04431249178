"""Instructions and the tool contract used for AI menu extraction."""

from typing import Any

EXTRACTION_TOOL_NAME = "extract_menu_data"

SYSTEM_PROMPT = """You are an assistant specialized in parsing restaurant menu data from unstructured text.
The user provides text extracted from a menu document (typically a PDF).

You MUST use the extract_menu_data tool to return your answer. If you cannot use the tool,
reply with the same structure as a single JSON object and nothing else.

Extract:
1. menu_name: the overall name of the menu (e.g. "Dinner Menu", "Wine List"). If the text has
   no name, base it on the original filename.
2. menu_items: every item on the menu. Classify item_type carefully:
   - "wine": any wine-based item (still, sparkling, champagne, dessert, fortified), wine by the
     glass or bottle, items with producers, regions, vintages or ml serving sizes.
   - "beverage": cocktails and mixed drinks (even with wine in them), beer, spirits, soft drinks,
     coffee and tea. When unsure between wine and a mixed drink, use "beverage".
   - "food": everything else.

For every item provide item_name, item_price (number or null), item_type, item_category
(infer the menu section when it is not explicit), item_ingredients (list), and is_gluten_free,
is_vegan, is_vegetarian (true only when the text says so).

For wine items also provide:
- wine_style: one of "still", "sparkling", "champagne", "dessert", "fortified", "other".
- wine_producer and wine_region when mentioned.
- wine_grape_variety: grape varieties stated in the text, or ones you are confident about from
  the wine's name, region or producer (e.g. "Chablis Premier Cru" -> ["Chardonnay"],
  "Barolo" -> ["Nebbiolo"], "Rioja Reserva" -> ["Tempranillo"]). Leave empty when unsure.
- wine_vintage as a number when mentioned.
- wine_serving_options: list of {size, price} (e.g. 175ml glass, bottle).
- wine_pairings: 2-4 food items that appear on THIS menu and pair well with the wine.
"""

WINE_LIST_INSTRUCTIONS = """
WINE LIST DETECTED:
This is a wine list with sections such as SPARKLING, WHITE, RED and ROSE. Entries usually read
[VINTAGE] [WINE NAME], [PRODUCER] [REGION], [COUNTRY] [GLASS PRICE] [BOTTLE PRICE].
- Preserve producer names exactly as written.
- When two prices are listed, the first is usually the glass and the second the bottle.
- NV means non-vintage; leave wine_vintage empty.
- Use section headers to decide wine_style.
"""

# Escalating directives, indexed by attempt number
_ATTEMPT_DIRECTIVES: dict[int, tuple[str, str]] = {
    1: (
        "Parse the following menu data and extract it using the extract_menu_data tool.",
        "Please call the extract_menu_data tool with the parsed menu information.",
    ),
    2: (
        "You have a tool called extract_menu_data available. You must use it to parse this menu data.",
        "Call the extract_menu_data tool now. Do not answer in prose.",
    ),
    3: (
        "Your ONLY permitted response is a single call to the extract_menu_data tool.",
        "Respond with the extract_menu_data tool call and nothing else. If you cannot, respond "
        "with one JSON object containing menu_name and menu_items and no other text.",
    ),
}


def build_prompt(text: str, file_name: str | None, wine: bool, attempt: int) -> str:
    """Build the user message for an extraction attempt.

    Later attempts use firmer directives; attempts past the last defined
    strategy reuse the strictest one.
    """
    opening, closing = _ATTEMPT_DIRECTIVES.get(attempt, _ATTEMPT_DIRECTIVES[max(_ATTEMPT_DIRECTIVES)])
    body = f"Original Filename: {file_name or 'Unknown'}"
    if wine:
        body += f"\n{WINE_LIST_INSTRUCTIONS}"
    return f"{opening}\n\n{body}\n\nInput Text to Parse:\n{text}\n\n{closing}"


def _string_list(description: str) -> dict[str, Any]:
    return {"type": "array", "items": {"type": "string"}, "description": description}


EXTRACTION_TOOL: dict[str, Any] = {
    "name": EXTRACTION_TOOL_NAME,
    "description": "Extracts structured menu data from raw menu text.",
    "input_schema": {
        "type": "object",
        "properties": {
            "menu_name": {
                "type": "string",
                "description": "Overall name of the menu. Use the original filename if not found in the text.",
            },
            "menu_items": {
                "type": "array",
                "description": "All items found on the menu.",
                "items": {
                    "type": "object",
                    "properties": {
                        "item_name": {"type": "string"},
                        "item_price": {"type": ["number", "null"]},
                        "item_type": {"type": "string", "enum": ["food", "beverage", "wine"]},
                        "item_category": {"type": "string"},
                        "item_ingredients": _string_list("Ingredients listed for the item."),
                        "is_gluten_free": {"type": "boolean"},
                        "is_vegan": {"type": "boolean"},
                        "is_vegetarian": {"type": "boolean"},
                        "wine_style": {
                            "type": "string",
                            "enum": ["still", "sparkling", "champagne", "dessert", "fortified", "other"],
                        },
                        "wine_producer": {"type": "string"},
                        "wine_grape_variety": _string_list("Grape varieties of the wine."),
                        "wine_vintage": {"type": ["integer", "null"]},
                        "wine_region": {"type": "string"},
                        "wine_serving_options": {
                            "type": "array",
                            "items": {
                                "type": "object",
                                "properties": {
                                    "size": {"type": "string"},
                                    "price": {"type": ["number", "null"]},
                                },
                                "required": ["size"],
                            },
                        },
                        "wine_pairings": _string_list("Food items from this menu that pair with the wine."),
                    },
                    "required": [
                        "item_name",
                        "item_type",
                        "item_category",
                        "item_ingredients",
                        "is_gluten_free",
                        "is_vegan",
                        "is_vegetarian",
                    ],
                },
            },
        },
        "required": ["menu_name", "menu_items"],
    },
}
