"""Constants for the menu import pipeline."""

# File extension -> internal source format identifier
FORMAT_BY_EXTENSION: dict[str, str] = {
    "xlsx": "excel",
    "xls": "excel",
    "csv": "csv",
    "json": "json",
    "docx": "word",
    "pdf": "pdf",
}

# Items above this count are finalized through a queued job
ASYNC_IMPORT_THRESHOLD = 50

# Maximum data rows read from one structured document
MAX_ROWS = 5000

# Global (file-level) errors surfaced on a preview
MAX_GLOBAL_ERRORS = 10

# Characters of extracted PDF text echoed back on a preview
MAX_PREVIEW_TEXT_LENGTH = 20_000

# Field length and size limits
MAX_NAME_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 500
MAX_CATEGORY_LENGTH = 100
MAX_INGREDIENTS = 30
MAX_INGREDIENT_LENGTH = 100
MAX_GRAPE_VARIETIES = 10
MAX_SERVING_OPTIONS = 10
MAX_PAIRINGS = 4
MAX_PRODUCER_LENGTH = 200
MAX_REGION_LENGTH = 200
MAX_REASONABLE_PRICE = 10_000
MIN_REASONABLE_WINE_PRICE = 5
MIN_VINTAGE = 1800

DEFAULT_CATEGORY = "Uncategorized"

# Canonical field -> header synonyms. Order is the matching priority:
# a header is assigned to the first field whose synonym set contains it.
FIELD_SYNONYMS: dict[str, tuple[str, ...]] = {
    "name": ("name", "item", "item_name", "dish", "dish_name", "menu_item", "product", "food_item"),
    "price": ("price", "cost", "amount", "$", "usd", "eur", "gbp", "dollars", "euro", "item_price"),
    "category": (
        "category",
        "section",
        "type",
        "menu_section",
        "course",
        "group",
        "classification",
        "item_category",
    ),
    "description": ("description", "desc", "details", "info", "information", "about"),
    "ingredients": (
        "ingredients",
        "ingredient_list",
        "contains",
        "made_with",
        "includes",
        "components",
        "item_ingredients",
    ),
    "allergens": (
        "allergens",
        "allergen_info",
        "allergies",
        "allergen_warning",
        "contains_allergens",
        "allergy_info",
    ),
    "item_type": ("item_type", "type", "kind", "food_type", "product_type", "menu_type"),
    "is_vegan": ("vegan", "is_vegan", "v", "vegan_friendly", "plant_based"),
    "is_vegetarian": ("vegetarian", "is_vegetarian", "veg", "vegetarian_friendly", "veggie"),
    "is_gluten_free": ("gluten_free", "is_gluten_free", "glutenfree", "gf", "gluten_friendly", "no_gluten"),
    "is_dairy_free": ("dairy_free", "is_dairy_free", "dairyfree", "df", "lactose_free", "no_dairy"),
    "wine_style": ("wine_style", "style", "wine_type", "type_of_wine", "classification"),
    "wine_grape_varieties": (
        "grape_variety",
        "grape",
        "varietal",
        "grapes",
        "varieties",
        "grape_type",
        "wine_grape",
        "wine_grape_variety",
        "wine_grape_varieties",
    ),
    "wine_vintage": ("vintage", "year", "harvest_year", "wine_year", "wine_vintage"),
    "wine_region": ("region", "appellation", "area", "origin", "wine_region", "location", "terroir"),
    "wine_producer": (
        "producer",
        "winery",
        "maker",
        "brand",
        "estate",
        "vineyard",
        "chateau",
        "domaine",
        "wine_producer",
    ),
    "serving_options": (
        "serving_options",
        "sizes",
        "options",
        "portions",
        "servings",
        "size_options",
        "wine_serving_options",
    ),
    "wine_pairings": (
        "pairings",
        "pairs_with",
        "food_pairings",
        "goes_with",
        "matches",
        "complements",
        "wine_pairings",
    ),
}

# Currency symbols stripped from price strings
CURRENCY_SYMBOLS = "$£€¥₹₽¢"

BOOLEAN_TRUE = frozenset({"true", "yes", "1", "y", "on"})
BOOLEAN_FALSE = frozenset({"false", "no", "0", "n", "off"})

# UTF-8 text that was decoded as Windows-1252/Latin-1 -> intended character
ENCODING_FIXES: dict[str, str] = {
    "Ã¡": "á",
    "Ã©": "é",
    "Ã\xad": "í",
    "Ã³": "ó",
    "Ãº": "ú",
    "Ã±": "ñ",
    "Ã¢": "â",
    "Ã§": "ç",
    "â€™": "'",
    "â€œ": '"',
    "â€\x9d": '"',
    "â€¦": "...",
}

# Recognized wine regions (lower case) used by cross-field checks
KNOWN_WINE_REGIONS: tuple[str, ...] = (
    "bordeaux",
    "burgundy",
    "champagne",
    "rhone",
    "loire",
    "alsace",
    "tuscany",
    "piedmont",
    "veneto",
    "rioja",
    "ribera del duero",
    "napa",
    "sonoma",
    "willamette",
    "barossa",
    "hunter valley",
    "marlborough",
    "mendoza",
    "douro",
    "mosel",
    "rheingau",
)

# Ingredient keywords incompatible with a vegan claim
NON_VEGAN_KEYWORDS: tuple[str, ...] = (
    "meat",
    "beef",
    "chicken",
    "pork",
    "lamb",
    "fish",
    "salmon",
    "tuna",
    "cheese",
    "milk",
    "cream",
    "butter",
    "yogurt",
    "egg",
    "honey",
    "bacon",
    "ham",
    "sausage",
    "prosciutto",
    "pancetta",
    "duck",
    "turkey",
)

# Wine style synonyms found in source documents -> canonical style
WINE_STYLE_ALIASES: dict[str, str] = {
    "still": "still",
    "red": "still",
    "white": "still",
    "rose": "still",
    "rosé": "still",
    "sparkling": "sparkling",
    "prosecco": "sparkling",
    "cava": "sparkling",
    "champagne": "champagne",
    "dessert": "dessert",
    "sweet": "dessert",
    "fortified": "fortified",
    "port": "fortified",
    "sherry": "fortified",
    "other": "other",
}
