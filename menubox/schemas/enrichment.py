"""Value objects produced by the domain intelligence layer.

These are kept apart from CanonicalItem: an enrichment describes *why* an
item ended up with its tags and is keyed by item id.
"""

from typing import Literal

from pydantic import BaseModel, Field

IngredientCategory = Literal[
    "protein", "dairy", "vegetable", "grain", "nut", "seafood", "spice", "oil", "fruit", "other"
]
AllergenTier = Literal["definite", "likely", "possible"]
GrapeConfidence = Literal["confirmed", "inferred", "likely"]
GrapeSource = Literal["explicit", "regional", "source"]


class IngredientAnalysis(BaseModel):
    """One ingredient after cleaning and categorization."""

    name: str
    clean_name: str
    category: IngredientCategory
    is_core: bool = True
    allergen_risk: list[str] = Field(default_factory=list)


class AllergenFinding(BaseModel):
    """Highest-confidence evidence found for one allergen."""

    allergen: str
    confidence: AllergenTier
    source: str
    reason: str


class DietaryInference(BaseModel):
    """Dietary flags after combining inference with source-provided flags."""

    is_vegan: bool = False
    is_vegetarian: bool = False
    is_gluten_free: bool = False
    is_dairy_free: bool = False


class GrapeInference(BaseModel):
    """A grape variety attributed to a wine and how it was found."""

    name: str
    confidence: GrapeConfidence
    source: GrapeSource


class ItemEnrichment(BaseModel):
    """Everything the enhancer learned about a single item."""

    item_id: str
    ingredients: list[IngredientAnalysis] = Field(default_factory=list)
    allergens: list[AllergenFinding] = Field(default_factory=list)
    dietary: DietaryInference | None = None
    grape_varieties: list[GrapeInference] = Field(default_factory=list)
    suggested_pairings: list[str] = Field(default_factory=list)

    @property
    def possible_allergens(self) -> list[str]:
        return [f.allergen for f in self.allergens if f.confidence == "possible"]


class EnrichmentResult(BaseModel):
    """Enrichments for a document, keyed by item id."""

    items: dict[str, ItemEnrichment] = Field(default_factory=dict)

    def get(self, item_id: str) -> ItemEnrichment | None:
        return self.items.get(item_id)

    def __len__(self) -> int:
        return len(self.items)
