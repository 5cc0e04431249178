"""Reconcile incoming menu items against the existing catalog."""

import logging
import re

from rapidfuzz.distance import Levenshtein

from menubox.schemas.menu_import import (
    ConflictResolution,
    ConflictResolutionRequest,
    ConflictResolutionResponse,
    ConflictResolutionSummary,
    ConflictStatus,
    ImportAction,
    ParsedMenuItem,
    UserAction,
)

from .repository import CatalogItem, CatalogRepository

logger = logging.getLogger(__name__)

SIMILARITY_THRESHOLD = 0.7

# Words searched for similar names; short words match too broadly
MIN_SEARCH_WORD_LENGTH = 3
MAX_SEARCH_WORDS = 3


def name_similarity(a: str, b: str) -> float:
    """1 - Levenshtein distance / longer length, compared case-insensitively."""
    return Levenshtein.normalized_similarity(a.lower(), b.lower())


def search_words(name: str) -> list[str]:
    """Longest distinct words of a name, used for the broad candidate search."""
    words = {w for w in re.split(r"\W+", name.lower()) if len(w) >= MIN_SEARCH_WORD_LENGTH}
    return sorted(words, key=lambda w: (-len(w), w))[:MAX_SEARCH_WORDS]


def import_action_for(resolution: ConflictResolution) -> ImportAction | None:
    """Default finalizer decision for a conflict outcome.

    Ambiguous and failed lookups have no default: the reviewer must decide.
    """
    if resolution.status == ConflictStatus.NO_CONFLICT:
        return ImportAction.NEW
    if resolution.status == ConflictStatus.UPDATE_CANDIDATE:
        return ImportAction.UPDATE
    if resolution.status == ConflictStatus.SKIPPED_BY_USER:
        return ImportAction.SKIP
    return None


class ConflictResolver:
    """Classifies items as new, update candidates, ambiguous or failed."""

    def __init__(self, repository: CatalogRepository) -> None:
        self.repository = repository

    async def _similar_candidates(
        self,
        restaurant_id: str,
        name: str,
        target_menu_id: str | None,
    ) -> list[tuple[CatalogItem, float]]:
        found: dict[str, CatalogItem] = {}
        for fragment in search_words(name) or [name]:
            for candidate in await self.repository.find_items_by_name(restaurant_id, fragment, target_menu_id):
                found.setdefault(candidate.id, candidate)

        scored = [(c, name_similarity(name, c.item_name)) for c in found.values()]
        return [(c, score) for c, score in scored if score > SIMILARITY_THRESHOLD]

    async def resolve_item(
        self,
        item: ParsedMenuItem,
        restaurant_id: str,
        target_menu_id: str | None = None,
    ) -> ConflictResolution:
        if item.user_action == UserAction.IGNORE:
            return ConflictResolution(status=ConflictStatus.SKIPPED_BY_USER)

        try:
            name = str(item.fields.name.value or "").strip()
            if not name:
                raise ValueError("Item name is empty, cannot process for conflicts.")

            exact = await self.repository.find_items_by_name(restaurant_id, name, target_menu_id, exact=True)
            if len(exact) == 1:
                return ConflictResolution(
                    status=ConflictStatus.UPDATE_CANDIDATE,
                    existing_item_id=exact[0].id,
                    message=f'One existing item found with name "{exact[0].item_name}".',
                )
            if len(exact) > 1:
                return ConflictResolution(
                    status=ConflictStatus.MULTIPLE_CANDIDATES,
                    candidate_item_ids=[c.id for c in exact],
                    message=f"{len(exact)} existing items found with the same name. Please review.",
                )

            similar = await self._similar_candidates(restaurant_id, name, target_menu_id)
        except Exception as exc:
            logger.warning("Error processing conflict for item %r: %s", item.fields.name.value, exc)
            return ConflictResolution(
                status=ConflictStatus.ERROR_PROCESSING_CONFLICT,
                message=f"Error during conflict check: {exc}",
            )

        if len(similar) == 1:
            candidate, score = similar[0]
            return ConflictResolution(
                status=ConflictStatus.UPDATE_CANDIDATE,
                existing_item_id=candidate.id,
                message=f'One existing item found with a similar name "{candidate.item_name}" ({score:.2f}).',
            )
        if similar:
            similar.sort(key=lambda pair: -pair[1])
            return ConflictResolution(
                status=ConflictStatus.MULTIPLE_CANDIDATES,
                candidate_item_ids=[c.id for c, _ in similar],
                message=f"{len(similar)} existing items found with similar names. Please review.",
            )
        return ConflictResolution(status=ConflictStatus.NO_CONFLICT)

    async def resolve(self, request: ConflictResolutionRequest) -> ConflictResolutionResponse:
        summary = ConflictResolutionSummary(total_processed=len(request.items))
        processed: list[ParsedMenuItem] = []

        for item in request.items:
            resolution = await self.resolve_item(item, request.restaurant_id, request.target_menu_id)

            if resolution.status in (
                ConflictStatus.MULTIPLE_CANDIDATES,
                ConflictStatus.ERROR_PROCESSING_CONFLICT,
            ):
                summary.items_requiring_user_action += 1
            elif resolution.status == ConflictStatus.UPDATE_CANDIDATE:
                summary.potential_updates_identified += 1
            elif resolution.status == ConflictStatus.NO_CONFLICT:
                summary.new_items_confirmed += 1

            processed.append(
                item.model_copy(
                    update={
                        "conflict_resolution": resolution,
                        "import_action": import_action_for(resolution),
                        "existing_item_id": resolution.existing_item_id,
                    }
                )
            )

        logger.info(
            "Conflict resolution for restaurant %s: %d items, %d updates, %d need review",
            request.restaurant_id,
            summary.total_processed,
            summary.potential_updates_identified,
            summary.items_requiring_user_action,
        )
        return ConflictResolutionResponse(items=processed, summary=summary)
