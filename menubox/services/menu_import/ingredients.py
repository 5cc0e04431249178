"""Ingredient cleaning, categorization and core/non-core classification."""

import re

from menubox.schemas.enrichment import IngredientAnalysis

from .allergens import definite_allergens_for

# Freshness/preparation descriptors and cooking methods removed by cleaning
DESCRIPTORS: tuple[str, ...] = (
    "fresh",
    "dried",
    "chopped",
    "diced",
    "sliced",
    "minced",
    "grated",
    "organic",
    "local",
    "wild",
    "free-range",
)
COOKING_METHODS: tuple[str, ...] = (
    "grilled",
    "roasted",
    "sautéed",
    "sauteed",
    "braised",
    "steamed",
    "fried",
    "baked",
)

MEAT: tuple[str, ...] = (
    "chicken",
    "beef",
    "pork",
    "lamb",
    "duck",
    "turkey",
    "veal",
    "bacon",
    "ham",
    "sausage",
    "prosciutto",
    "chorizo",
    "steak",
)
SEAFOOD: tuple[str, ...] = (
    "salmon",
    "tuna",
    "cod",
    "halibut",
    "shrimp",
    "prawn",
    "crab",
    "lobster",
    "scallop",
    "mussel",
    "clam",
    "oyster",
    "anchov",
    "fish",
)
PLANT_PROTEIN: tuple[str, ...] = ("tofu", "tempeh", "seitan", "beans", "lentils", "chickpeas")

# Checked in order; the first category with a matching keyword wins
CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("seafood", SEAFOOD),
    ("protein", MEAT + PLANT_PROTEIN),
    (
        "nut",
        (
            "almond",
            "walnut",
            "pecan",
            "cashew",
            "hazelnut",
            "pistachio",
            "pine nut",
            "macadamia",
            "peanut",
            "sesame seed",
            "sunflower seed",
            "pumpkin seed",
        ),
    ),
    (
        "dairy",
        (
            "cheese",
            "parmesan",
            "mozzarella",
            "cheddar",
            "brie",
            "feta",
            "ricotta",
            "gorgonzola",
            "gruyere",
            "cream",
            "crème fraîche",
            "milk",
            "butter",
            "ghee",
            "yogurt",
            "mascarpone",
        ),
    ),
    (
        "grain",
        (
            "wheat",
            "flour",
            "bread",
            "pasta",
            "noodle",
            "couscous",
            "bulgur",
            "rice",
            "risotto",
            "quinoa",
            "barley",
            "oats",
            "corn",
            "polenta",
        ),
    ),
    (
        "vegetable",
        (
            "onion",
            "garlic",
            "shallot",
            "leek",
            "chives",
            "spinach",
            "arugula",
            "rocket",
            "lettuce",
            "kale",
            "chard",
            "tomato",
            "pepper",
            "eggplant",
            "aubergine",
            "carrot",
            "potato",
            "beet",
            "turnip",
            "radish",
            "broccoli",
            "cauliflower",
            "cabbage",
            "brussels sprout",
            "mushroom",
            "zucchini",
        ),
    ),
    (
        "spice",
        ("salt", "oregano", "basil", "thyme", "rosemary", "paprika", "cumin", "coriander", "chili"),
    ),
    ("oil", ("olive oil", "vegetable oil", "canola oil", "sesame oil", "truffle oil", " oil")),
    (
        "fruit",
        ("apple", "lemon", "lime", "orange", "berry", "grape", "cherry", "peach", "pear", "fig", "mango"),
    ),
)

NON_CORE_KEYWORDS: tuple[str, ...] = (
    "garnish",
    "sprinkle",
    "drizzle",
    "dash",
    "pinch",
    "touch",
    "salt",
    "pepper",
    "parsley",
    "chives",
    "lemon zest",
    "microgreens",
)

_STRIP_WORDS = re.compile(
    r"\b(?:" + "|".join(re.escape(w) for w in DESCRIPTORS + COOKING_METHODS) + r")\b",
    re.IGNORECASE,
)


def clean_ingredient_name(ingredient: str) -> str:
    """Lower-case an ingredient and strip descriptors and cooking methods.

    Falls back to the original text when cleaning would leave nothing, so
    "fresh" stays "fresh" while "Fresh Basil" becomes "basil".
    """
    cleaned = _STRIP_WORDS.sub("", ingredient.lower())
    cleaned = re.sub(r"\s+", " ", cleaned).strip(" ,-")
    return cleaned or ingredient.strip()


def categorize_ingredient(ingredient: str) -> str:
    """Assign an ingredient to the first matching keyword category."""
    text = f" {ingredient.lower()}"
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return category
    return "other"


def is_core_ingredient(ingredient: str) -> bool:
    """Whether an ingredient is a main component rather than garnish or seasoning.

    Garnish/seasoning keywords and single-word spices are non-core;
    everything else defaults to core.
    """
    text = ingredient.lower().strip()
    if any(keyword in text for keyword in NON_CORE_KEYWORDS):
        return False
    if " " not in text and categorize_ingredient(text) == "spice":
        return False
    return True


def contains_keyword(text: str, keywords: tuple[str, ...]) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)


def analyze_ingredients(ingredients: list[str]) -> list[IngredientAnalysis]:
    """Clean, categorize and classify every non-blank ingredient."""
    analyses = []
    for raw in ingredients:
        if not raw or not raw.strip():
            continue
        clean_name = clean_ingredient_name(raw)
        analyses.append(
            IngredientAnalysis(
                name=raw.strip(),
                clean_name=clean_name,
                category=categorize_ingredient(clean_name),
                is_core=is_core_ingredient(raw),
                allergen_risk=definite_allergens_for(raw),
            )
        )
    return analyses


def enhanced_ingredient_list(analyses: list[IngredientAnalysis], original: list[str]) -> list[str]:
    """Cleaned names of the core ingredients, or the original list if none are core."""
    core = [a.clean_name for a in analyses if a.is_core]
    return core or list(original)
