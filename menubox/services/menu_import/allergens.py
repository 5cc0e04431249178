"""Tiered allergen detection over ingredient text and dish names.

Each allergen has three keyword tiers: "definite" (the allergen-bearing
ingredient itself), "likely" (preparations strongly associated with it) and
"possible" (dishes that sometimes contain it). The tables are heuristics;
some dishes intentionally appear under several allergens.
"""

from menubox.schemas.enrichment import AllergenFinding

TIERS: tuple[str, ...] = ("definite", "likely", "possible")

ALLERGEN_RULES: dict[str, dict[str, tuple[str, ...]]] = {
    "dairy": {
        "definite": (
            "cheese",
            "cream",
            "butter",
            "milk",
            "yogurt",
            "mascarpone",
            "ricotta",
            "mozzarella",
            "parmesan",
            "cheddar",
            "brie",
            "feta",
            "goat cheese",
        ),
        "likely": ("alfredo", "carbonara", "bechamel", "hollandaise", "ranch", "blue cheese"),
        "possible": ("caesar dressing", "pesto", "gnocchi", "bread"),
    },
    "gluten": {
        "definite": (
            "wheat",
            "flour",
            "bread",
            "pasta",
            "noodles",
            "couscous",
            "bulgur",
            "seitan",
            "beer",
        ),
        "likely": ("breaded", "crusted", "dumplings", "gnocchi", "roux"),
        "possible": ("soy sauce", "teriyaki sauce", "malt vinegar"),
    },
    "nuts": {
        "definite": (
            "almonds",
            "walnuts",
            "pecans",
            "peanuts",
            "cashews",
            "hazelnuts",
            "pistachios",
            "pine nuts",
            "macadamia",
        ),
        "likely": ("nut oil", "almond flour", "walnut oil", "peanut oil"),
        "possible": ("pesto", "thai curry", "satay sauce", "granola"),
    },
    "seafood": {
        "definite": (
            "fish",
            "salmon",
            "tuna",
            "cod",
            "halibut",
            "shrimp",
            "crab",
            "lobster",
            "scallops",
            "mussels",
            "clams",
            "oysters",
            "anchovies",
        ),
        "likely": ("fish sauce", "worcestershire sauce", "seafood stock"),
        "possible": ("caesar dressing", "caesar"),
    },
    "eggs": {
        "definite": ("egg", "eggs", "mayonnaise", "aioli"),
        "likely": ("hollandaise", "carbonara", "custard", "meringue"),
        "possible": ("brioche", "fresh pasta"),
    },
    "soy": {
        "definite": ("soy sauce", "tofu", "tempeh", "miso", "edamame"),
        "likely": ("teriyaki sauce",),
        "possible": ("vegetable oil",),
    },
    "sesame": {
        "definite": ("sesame seeds", "sesame oil", "tahini"),
        "likely": ("hummus",),
        "possible": ("bagel",),
    },
}

_REASONS = {
    "definite": "Contains {trigger}",
    "likely": "Likely contains {allergen} due to {trigger}",
    "possible": "May contain {allergen} ({trigger} often contains {allergen})",
}


def definite_allergens_for(text: str) -> list[str]:
    """Allergens whose definite-tier keywords appear in a single ingredient."""
    lowered = text.lower()
    return [
        allergen
        for allergen, rules in ALLERGEN_RULES.items()
        if any(trigger in lowered for trigger in rules["definite"])
    ]


def detect_allergens(ingredients: list[str], dish_name: str = "") -> list[AllergenFinding]:
    """Scan ingredients and dish name for allergens.

    For each allergen only the highest tier with a hit is reported, with the
    first matching keyword of that tier as its source.

    Args:
        ingredients: Raw ingredient strings.
        dish_name: Item name, scanned together with the ingredients.

    Returns:
        One finding per detected allergen, in the fixed allergen order.
    """
    search_text = " ".join([*ingredients, dish_name]).lower()
    findings: list[AllergenFinding] = []
    for allergen, rules in ALLERGEN_RULES.items():
        for tier in TIERS:
            trigger = next((t for t in rules[tier] if t in search_text), None)
            if trigger is None:
                continue
            findings.append(
                AllergenFinding(
                    allergen=allergen,
                    confidence=tier,
                    source=trigger,
                    reason=_REASONS[tier].format(trigger=trigger, allergen=allergen),
                )
            )
            break
    return findings


def allergen_tags(findings: list[AllergenFinding]) -> list[str]:
    """Allergens confident enough to tag on the item (definite and likely tiers)."""
    return [f.allergen for f in findings if f.confidence in ("definite", "likely")]


def definite_set(findings: list[AllergenFinding]) -> set[str]:
    return {f.allergen for f in findings if f.confidence == "definite"}
