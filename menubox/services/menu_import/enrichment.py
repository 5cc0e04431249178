"""Domain intelligence enhancer: ingredients, allergens, dietary flags and wine data."""

import logging

from menubox.schemas.enrichment import (
    AllergenFinding,
    DietaryInference,
    EnrichmentResult,
    GrapeInference,
    IngredientAnalysis,
    ItemEnrichment,
)
from menubox.schemas.items import CanonicalItem, ItemKind

from .allergens import allergen_tags, definite_set, detect_allergens
from .ingredients import (
    MEAT,
    PLANT_PROTEIN,
    SEAFOOD,
    analyze_ingredients,
    contains_keyword,
    enhanced_ingredient_list,
)
from .pairings import merge_pairings, suggest_pairings
from .wine_intelligence import detect_grape_varieties

logger = logging.getLogger(__name__)


def infer_dietary(
    item: CanonicalItem,
    analyses: list[IngredientAnalysis],
    findings: list[AllergenFinding],
) -> DietaryInference:
    """Infer dietary flags from ingredients and allergens.

    Vegan requires no definite dairy or egg allergen and no animal protein;
    vegetarian is vegan or free of meat and seafood; gluten-free and
    dairy-free mirror the absence of the definite allergen. Flags the source
    already set to true are kept.
    """
    definite = definite_set(findings)
    animal = MEAT + SEAFOOD

    has_animal_protein = contains_keyword(item.name, animal) or any(
        a.category == "seafood"
        or (a.category == "protein" and not contains_keyword(a.clean_name, PLANT_PROTEIN))
        for a in analyses
    )
    has_meat_or_seafood = contains_keyword(item.name, animal) or any(
        contains_keyword(a.clean_name, animal) for a in analyses
    )

    vegan = "dairy" not in definite and "eggs" not in definite and not has_animal_protein
    vegetarian = vegan or not has_meat_or_seafood

    return DietaryInference(
        is_vegan=item.is_vegan or vegan,
        is_vegetarian=item.is_vegetarian or vegetarian,
        is_gluten_free=item.is_gluten_free or "gluten" not in definite,
        is_dairy_free=item.is_dairy_free or "dairy" not in definite,
    )


class DomainIntelligenceEnhancer:
    """Adds heuristic domain knowledge to the items of one document.

    ``analyze`` computes an EnrichmentResult without touching the items;
    ``apply`` writes its tags back; ``enhance`` does both. Pairing
    candidates are the food items of the same document.
    """

    def enhance(self, items: list[CanonicalItem]) -> EnrichmentResult:
        result = self.analyze(items)
        self.apply(items, result)
        logger.debug("Enhanced %d items", len(result))
        return result

    def analyze(self, items: list[CanonicalItem]) -> EnrichmentResult:
        foods = [item for item in items if item.item_type == ItemKind.FOOD.value]
        result = EnrichmentResult()
        for item in items:
            result.items[item.id] = self.analyze_item(item, foods)
        return result

    def analyze_item(self, item: CanonicalItem, foods: list[CanonicalItem]) -> ItemEnrichment:
        analyses = analyze_ingredients(item.ingredients)
        findings = detect_allergens(item.ingredients, item.name)
        enrichment = ItemEnrichment(item_id=item.id, ingredients=analyses, allergens=findings)

        # Without ingredients there is nothing to base dietary claims on
        if item.item_type == ItemKind.FOOD.value and analyses:
            enrichment.dietary = infer_dietary(item, analyses, findings)

        if item.is_wine:
            if item.wine_grape_varieties:
                enrichment.grape_varieties = [
                    GrapeInference(name=g, confidence="confirmed", source="source")
                    for g in item.wine_grape_varieties
                ]
            else:
                enrichment.grape_varieties = detect_grape_varieties(
                    item.name, item.wine_region, item.wine_producer
                )
            enrichment.suggested_pairings = suggest_pairings(
                item, foods, [g.name for g in enrichment.grape_varieties]
            )

        return enrichment

    def apply(self, items: list[CanonicalItem], result: EnrichmentResult) -> None:
        for item in items:
            enrichment = result.get(item.id)
            if enrichment is None:
                continue

            if enrichment.ingredients:
                item.ingredients = enhanced_ingredient_list(enrichment.ingredients, item.ingredients)

            tags = list(item.allergens)
            for allergen in allergen_tags(enrichment.allergens):
                if allergen not in tags:
                    tags.append(allergen)
            item.allergens = tags

            if enrichment.dietary is not None:
                item.is_vegan = enrichment.dietary.is_vegan
                item.is_vegetarian = enrichment.dietary.is_vegetarian
                item.is_gluten_free = enrichment.dietary.is_gluten_free
                item.is_dairy_free = enrichment.dietary.is_dairy_free

            if item.is_wine:
                if not item.wine_grape_varieties and enrichment.grape_varieties:
                    item.wine_grape_varieties = [g.name for g in enrichment.grape_varieties]
                    logger.debug("Inferred grapes for %s: %s", item.name, item.wine_grape_varieties)
                item.wine_pairings = merge_pairings(item.wine_pairings, enrichment.suggested_pairings)
