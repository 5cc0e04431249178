"""Food pairing suggestions for wines, drawn from the same menu."""

from menubox.schemas.items import CanonicalItem

from .constants import MAX_PAIRINGS
from .wine_intelligence import wine_colour

# Wine colour -> keywords that make a dish a good match
PAIRING_KEYWORDS: dict[str, tuple[str, ...]] = {
    "red": ("beef", "steak", "lamb", "duck", "venison", "red meat", "grilled", "ribeye", "burger", "mushroom"),
    "white": ("fish", "seafood", "salmon", "cod", "chicken", "poultry", "salad", "pasta", "risotto", "shrimp"),
    "sparkling": ("appetizer", "starter", "oyster", "cheese", "fried", "canape", "light", "caviar"),
    "dessert": ("dessert", "cake", "tart", "chocolate", "cheese", "fruit", "pudding"),
    "unknown": ("cheese", "charcuterie"),
}

# Wine colour -> keywords that make a dish a poor match
DISQUALIFIERS: dict[str, tuple[str, ...]] = {
    "red": ("oyster", "sashimi", "ceviche", "dessert"),
    "white": ("steak", "venison", "chocolate"),
    "sparkling": ("steak", "stew"),
    "dessert": ("steak", "salad", "oyster"),
    "unknown": (),
}

DISQUALIFIER_PENALTY = 2


def _dish_text(food: CanonicalItem) -> str:
    return " ".join([food.name, food.category, *food.ingredients]).lower()


def score_pairing(colour: str, food: CanonicalItem) -> int:
    """Keyword hits for the wine colour minus a penalty per disqualifier."""
    text = _dish_text(food)
    score = sum(1 for keyword in PAIRING_KEYWORDS.get(colour, ()) if keyword in text)
    penalty = sum(DISQUALIFIER_PENALTY for keyword in DISQUALIFIERS.get(colour, ()) if keyword in text)
    return score - penalty


def suggest_pairings(
    wine: CanonicalItem,
    foods: list[CanonicalItem],
    grape_varieties: list[str] | None = None,
) -> list[str]:
    """Suggest dishes from the same document for a wine.

    Dishes are ranked by score (ties keep menu order) and only positively
    scored ones are kept, up to four. ``grape_varieties`` overrides the
    wine's own varieties when deciding its colour.
    """
    grapes = wine.wine_grape_varieties if grape_varieties is None else grape_varieties
    colour = wine_colour(grapes, wine.name, wine.wine_style)
    scored = [(score_pairing(colour, food), i, food.name) for i, food in enumerate(foods)]
    ranked = sorted((s for s in scored if s[0] > 0), key=lambda s: (-s[0], s[1]))
    return [name for _, _, name in ranked[:MAX_PAIRINGS]]


def merge_pairings(existing: list[str], suggested: list[str]) -> list[str]:
    """Combine source/AI pairings with suggestions, case-insensitively unique, max four."""
    merged: list[str] = []
    seen: set[str] = set()
    for name in [*existing, *suggested]:
        key = name.strip().lower()
        if key and key not in seen:
            seen.add(key)
            merged.append(name.strip())
    return merged[:MAX_PAIRINGS]
