"""Grape variety inference for wine items.

Varieties are resolved in priority order: names of grapes that appear
verbatim in the wine's name, region or producer are ``confirmed``; failing
that, the first known appellation, region or iconic wine found in the same
text supplies its canonical varieties as ``inferred`` or ``likely``.
"""

import re

from menubox.schemas.enrichment import GrapeInference

EXPLICIT_VARIETIES: tuple[str, ...] = (
    "Cabernet Sauvignon",
    "Cabernet Franc",
    "Sauvignon Blanc",
    "Pinot Noir",
    "Pinot Grigio",
    "Pinot Gris",
    "Pinot Meunier",
    "Chardonnay",
    "Merlot",
    "Syrah",
    "Shiraz",
    "Riesling",
    "Sangiovese",
    "Tempranillo",
    "Nebbiolo",
    "Grenache",
    "Viognier",
    "Gewürztraminer",
    "Chenin Blanc",
    "Malbec",
    "Zinfandel",
    "Albariño",
)

# Appellation/region/wine -> (varieties, confidence). Ordered from most
# specific (single-grape appellations and named wines) to broad regions;
# only the first match is used.
REGIONAL_VARIETIES: tuple[tuple[str, tuple[str, ...], str], ...] = (
    ("dom perignon", ("Chardonnay", "Pinot Noir"), "inferred"),
    ("opus one", ("Cabernet Sauvignon",), "inferred"),
    ("chablis", ("Chardonnay",), "inferred"),
    ("sancerre", ("Sauvignon Blanc",), "inferred"),
    ("pouilly-fume", ("Sauvignon Blanc",), "inferred"),
    ("pouilly fume", ("Sauvignon Blanc",), "inferred"),
    ("muscadet", ("Melon de Bourgogne",), "inferred"),
    ("sauternes", ("Sauvignon Blanc", "Sémillon"), "inferred"),
    ("barolo", ("Nebbiolo",), "inferred"),
    ("barbaresco", ("Nebbiolo",), "inferred"),
    ("chianti", ("Sangiovese",), "inferred"),
    ("brunello", ("Sangiovese",), "inferred"),
    ("prosecco", ("Glera",), "inferred"),
    ("cava", ("Macabeo", "Xarel·lo", "Parellada"), "inferred"),
    ("rioja", ("Tempranillo",), "inferred"),
    ("ribera del duero", ("Tempranillo",), "inferred"),
    ("rias baixas", ("Albariño",), "inferred"),
    ("mosel", ("Riesling",), "inferred"),
    ("rheingau", ("Riesling",), "inferred"),
    ("champagne", ("Chardonnay", "Pinot Noir", "Pinot Meunier"), "inferred"),
    ("burgundy", ("Chardonnay", "Pinot Noir"), "inferred"),
    ("bourgogne", ("Chardonnay", "Pinot Noir"), "inferred"),
    ("bordeaux", ("Cabernet Sauvignon", "Merlot", "Cabernet Franc"), "inferred"),
    ("pfalz", ("Riesling",), "likely"),
    ("loire", ("Sauvignon Blanc", "Chenin Blanc", "Cabernet Franc"), "likely"),
    ("rhone", ("Syrah", "Grenache", "Viognier"), "likely"),
    ("provence", ("Grenache", "Syrah", "Mourvèdre"), "likely"),
    ("tuscany", ("Sangiovese",), "likely"),
    ("piedmont", ("Nebbiolo", "Barbera"), "likely"),
)

RED_VARIETIES: tuple[str, ...] = (
    "cabernet",
    "merlot",
    "pinot noir",
    "syrah",
    "shiraz",
    "sangiovese",
    "tempranillo",
    "nebbiolo",
    "grenache",
    "malbec",
    "zinfandel",
    "barbera",
)
WHITE_VARIETIES: tuple[str, ...] = (
    "chardonnay",
    "sauvignon blanc",
    "pinot grigio",
    "pinot gris",
    "riesling",
    "viognier",
    "chenin blanc",
    "albariño",
    "gewürztraminer",
    "glera",
    "melon de bourgogne",
)

_FOLD = str.maketrans("éèêâôûüç", "eeeaouuc")


def _fold(text: str) -> str:
    """Lower-case and strip common accents for keyword comparison."""
    return text.lower().translate(_FOLD)


def _contains_phrase(text: str, phrase: str) -> bool:
    return re.search(rf"\b{re.escape(_fold(phrase))}\b", text) is not None


def detect_grape_varieties(
    name: str,
    region: str | None = None,
    producer: str | None = None,
) -> list[GrapeInference]:
    """Infer grape varieties from a wine's name, region and producer.

    Args:
        name: Wine item name.
        region: Wine region, if known.
        producer: Producer or winery, if known.

    Returns:
        Inferred varieties in discovery order, without duplicates.
    """
    search_text = _fold(" ".join(part for part in (name, region, producer) if part))

    explicit = [
        GrapeInference(name="Syrah" if variety == "Shiraz" else variety, confidence="confirmed", source="explicit")
        for variety in EXPLICIT_VARIETIES
        if _contains_phrase(search_text, variety)
    ]
    if explicit:
        return _dedupe(explicit)

    for place, varieties, confidence in REGIONAL_VARIETIES:
        if _contains_phrase(search_text, place):
            return [GrapeInference(name=v, confidence=confidence, source="regional") for v in varieties]
    return []


def _dedupe(inferences: list[GrapeInference]) -> list[GrapeInference]:
    seen: set[str] = set()
    unique = []
    for inference in inferences:
        if inference.name not in seen:
            seen.add(inference.name)
            unique.append(inference)
    return unique


def wine_colour(grape_varieties: list[str], name: str = "", style: str | None = None) -> str:
    """Classify a wine as ``sparkling``, ``dessert``, ``red``, ``white`` or ``unknown``."""
    if style in ("sparkling", "champagne"):
        return "sparkling"
    if style in ("dessert", "fortified"):
        return "dessert"
    text = _fold(" ".join([*grape_varieties, name]))
    if any(red in text for red in RED_VARIETIES) or re.search(r"\b(red|rouge|rosso|tinto)\b", text):
        return "red"
    if any(white in text for white in WHITE_VARIETIES) or re.search(r"\b(white|blanc|bianco)\b", text):
        return "white"
    return "unknown"
