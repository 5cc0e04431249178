"""Commit reviewed menu items to the catalog, directly or through a queued job."""

import logging
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from menubox.schemas.items import ITEM_KINDS, WINE_STYLES, ItemKind, WineStyle
from menubox.schemas.menu_import import (
    FinalImportRequest,
    ImportAction,
    ImportResult,
    ImportResultItemDetail,
    ParsedField,
    ParsedMenuItem,
    QueuedImportResponse,
    UserAction,
)

from .constants import ASYNC_IMPORT_THRESHOLD, DEFAULT_CATEGORY, MIN_VINTAGE, WINE_STYLE_ALIASES
from .converters import parse_boolean, parse_int, parse_list, parse_price
from .errors import MenuImportError, SourceFileError, TargetMenuNotFoundError
from .preview import resolve_source_path
from .repository import CatalogItem, CatalogMenu, CatalogRepository, JobStore

if TYPE_CHECKING:
    from .worker import JobQueue

logger = logging.getLogger(__name__)

ERROR_REPORT_HEADER = "ItemID,ItemName,ActionAttempted,ErrorReason"

ProgressCallback = Callable[[int], Awaitable[None]]


class ItemImportError(ValueError):
    """A single item cannot be written; siblings are unaffected."""


# =============================================================================
# Item preparation
# =============================================================================


def _value(field: ParsedField | None) -> Any:
    return field.value if field is not None else None


def _text(field: ParsedField | None) -> str | None:
    value = _value(field)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _flag(field: ParsedField | None) -> bool:
    return bool(parse_boolean(_value(field)))


def _serving_options(value: Any) -> list[dict[str, Any]]:
    options = []
    for entry in value or []:
        if not isinstance(entry, dict):
            continue
        size = str(entry.get("size") or "").strip()
        price = parse_price(entry.get("price"))
        if size and price is not None:
            options.append({"size": size, "price": abs(price)})
    return options


def prepare_item_fields(item: ParsedMenuItem) -> dict[str, Any]:
    """Convert a reviewed item into MenuItem attribute values.

    Raises:
        ItemImportError: If a required field is missing or invalid.
    """
    fields = item.fields

    name = _text(fields.name)
    if not name:
        raise ItemImportError("Name cannot be empty.")

    price = parse_price(_value(fields.price))
    if price is not None and price < 0:
        raise ItemImportError("Price cannot be negative")

    item_type = (_text(fields.item_type) or ItemKind.FOOD.value).lower()
    if item_type not in ITEM_KINDS:
        raise ItemImportError(f"Invalid item type: {item_type}")

    data: dict[str, Any] = {
        "item_name": name,
        "item_price": price,
        "item_type": item_type,
        "item_category": _text(fields.category) or DEFAULT_CATEGORY,
        "description": _text(fields.description),
        "item_ingredients": parse_list(_value(fields.ingredients)),
        "allergens": parse_list(_value(fields.allergens)),
        "is_gluten_free": _flag(fields.is_gluten_free),
        "is_vegan": _flag(fields.is_vegan),
        "is_vegetarian": _flag(fields.is_vegetarian),
        "is_dairy_free": _flag(fields.is_dairy_free),
        # Wine attributes are cleared for anything that is not wine
        "wine_style": None,
        "wine_producer": None,
        "wine_grape_variety": [],
        "wine_vintage": None,
        "wine_region": None,
        "serving_options": [],
        "wine_pairings": [],
    }

    if item_type == ItemKind.WINE.value:
        style = (_text(fields.wine_style) or WineStyle.OTHER.value).lower()
        vintage = parse_int(_value(fields.wine_vintage))
        max_vintage = datetime.now().year + 5
        if vintage is not None and not MIN_VINTAGE <= vintage <= max_vintage:
            raise ItemImportError(f"Vintage {vintage} must be between {MIN_VINTAGE} and {max_vintage}")

        data.update(
            wine_style=WINE_STYLE_ALIASES.get(style, style if style in WINE_STYLES else WineStyle.OTHER.value),
            wine_producer=_text(fields.wine_producer),
            wine_grape_variety=parse_list(_value(fields.wine_grape_variety)),
            wine_vintage=vintage,
            wine_region=_text(fields.wine_region),
            serving_options=_serving_options(_value(fields.wine_serving_options)),
            wine_pairings=parse_list(_value(fields.wine_pairings)),
        )
    return data


def changed_fields(existing: CatalogItem, data: dict[str, Any]) -> dict[str, Any]:
    """Attributes of ``data`` that differ from the stored item."""
    return {key: value for key, value in data.items() if existing.fields.get(key) != value}


# =============================================================================
# Results
# =============================================================================


def _csv_field(value: Any) -> str:
    return '"' + str(value if value is not None else "").replace('"', '""') + '"'


def build_error_report(details: list[ImportResultItemDetail]) -> str:
    """CSV report of item errors; empty when there are none."""
    errors = [d for d in details if d.status == "error"]
    if not errors:
        return ""
    lines = [ERROR_REPORT_HEADER]
    for detail in errors:
        lines.append(
            ",".join(
                _csv_field(v) for v in (detail.id, detail.name, detail.action_attempted, detail.error_reason)
            )
        )
    return "\n".join(lines) + "\n"


def overall_status(processed: int, skipped: int, errored: int) -> str:
    if errored == 0:
        return "success"
    if errored < processed - skipped:
        return "partial_success"
    return "failed"


def result_message(created: int, updated: int, skipped: int, errored: int) -> str:
    if errored:
        return f"Import completed with {errored} errors."
    return (
        f"Successfully imported {created} new items and updated {updated} items. "
        f"{skipped} items were skipped."
    )


def remove_source_file(file_path: str | None, upload_dir: Path | None = None) -> None:
    """Delete the uploaded source file once it is no longer needed.

    Files outside ``upload_dir`` are never touched.
    """
    if not file_path:
        return
    try:
        path = resolve_source_path(file_path, upload_dir)
    except SourceFileError:
        logger.warning("Refusing to remove %s: outside the upload directory", file_path)
        return
    try:
        path.unlink(missing_ok=True)
        logger.debug("Removed source file %s", file_path)
    except OSError as exc:
        logger.warning("Could not remove source file %s: %s", file_path, exc)


# =============================================================================
# Finalizer
# =============================================================================


class ImportFinalizer:
    """Writes reviewed items to the catalog.

    Batches larger than ``async_threshold`` items are persisted as a job and
    queued; smaller ones are written immediately inside one transaction.
    """

    def __init__(
        self,
        repository: CatalogRepository,
        job_store: JobStore,
        queue: "JobQueue | None" = None,
        async_threshold: int = ASYNC_IMPORT_THRESHOLD,
        upload_dir: Path | None = None,
    ) -> None:
        self.repository = repository
        self.job_store = job_store
        self.queue = queue
        self.async_threshold = async_threshold
        self.upload_dir = upload_dir

    async def finalize(self, request: FinalImportRequest) -> ImportResult | QueuedImportResponse:
        """Import ``request`` inline, or queue it when it is large.

        Raises:
            SourceFileError: If ``file_path`` lies outside the upload directory.
        """
        if request.file_path:
            resolve_source_path(request.file_path, self.upload_dir)
        count = len(request.items_to_import)
        if count > self.async_threshold:
            return await self.enqueue(request)
        return await self.run_import(request)

    async def enqueue(self, request: FinalImportRequest) -> QueuedImportResponse:
        job = await self.job_store.create(
            restaurant_id=request.restaurant_id,
            parsed_menu_name=request.parsed_menu_name,
            items_to_import=[item.model_dump(mode="json") for item in request.items_to_import],
            original_file_path=request.file_path,
            target_menu_id=request.target_menu_id,
            replace_all_items=request.replace_all_items,
        )
        if self.queue is not None:
            await self.queue.put(job.id)
        count = len(request.items_to_import)
        logger.info("Queued import job %s with %d items for restaurant %s", job.id, count, request.restaurant_id)
        return QueuedImportResponse(
            job_id=job.id,
            message=f"Menu import with {count} items queued. Job ID: {job.id}",
        )

    async def _resolve_menu(self, request: FinalImportRequest, session: Any) -> CatalogMenu:
        if request.target_menu_id:
            menu = await self.repository.get_menu(request.target_menu_id, request.restaurant_id, session=session)
            if menu is None:
                raise TargetMenuNotFoundError(
                    f'Target menu with ID "{request.target_menu_id}" not found.',
                    target_menu_id=request.target_menu_id,
                )
            if request.replace_all_items:
                await self.repository.delete_menu_items(menu.id, session=session)
            return menu
        return await self.repository.create_menu(request.restaurant_id, request.parsed_menu_name, session=session)

    async def run_import(
        self,
        request: FinalImportRequest,
        job_id: str | None = None,
        progress: ProgressCallback | None = None,
    ) -> ImportResult:
        """Write the items of one request inside a single transaction.

        Per-item problems are recorded as item errors; any other exception
        rolls the whole batch back and yields a failed result.
        """
        items = request.items_to_import
        processed = len(items)
        skipped = 0
        details: list[ImportResultItemDetail] = []

        try:
            async with self.repository.transaction() as session:
                menu = await self._resolve_menu(request, session)

                update_ids = [
                    i.existing_item_id
                    for i in items
                    if i.import_action == ImportAction.UPDATE and i.existing_item_id
                ]
                existing = await self.repository.get_items(update_ids, session=session)

                creates: list[dict[str, Any]] = []
                updates: list[tuple[str, dict[str, Any]]] = []

                for item in items:
                    if item.user_action == UserAction.IGNORE or item.import_action == ImportAction.SKIP:
                        skipped += 1
                        continue

                    action = item.import_action.value if item.import_action else None
                    try:
                        if item.import_action is None:
                            raise ItemImportError("Unresolved conflict: choose new, update or skip for this item.")
                        data = prepare_item_fields(item)

                        if item.import_action == ImportAction.NEW:
                            creates.append(data)
                            continue

                        current = existing.get(item.existing_item_id or "")
                        if current is None:
                            raise ItemImportError(f'Item to update with ID "{item.existing_item_id}" not found.')
                        changes = changed_fields(current, data)
                        if not changes:
                            skipped += 1
                            continue
                        updates.append((current.id, changes))
                    except ItemImportError as exc:
                        details.append(
                            ImportResultItemDetail(
                                id=item.id,
                                name=str(item.fields.name.value or ""),
                                status="error",
                                action_attempted=action,
                                existing_item_id=item.existing_item_id,
                                error_reason=str(exc),
                            )
                        )

                if progress is not None:
                    await progress(50)

                new_ids = await self.repository.bulk_write(
                    request.restaurant_id, menu.id, creates, updates, session=session
                )
        except Exception as exc:
            reason = exc.message if isinstance(exc, MenuImportError) else str(exc)
            logger.exception("Import for restaurant %s aborted", request.restaurant_id)
            global_error = ImportResultItemDetail(
                id="global_error",
                name="Global Import Error",
                status="error",
                action_attempted="import",
                error_reason=reason,
            )
            return ImportResult(
                overall_status="failed",
                message=f"Import failed: {reason}",
                items_processed=processed,
                items_errored=processed,
                error_details=[global_error],
                error_report=build_error_report([global_error]),
                job_id=job_id,
            )

        errored = len(details)
        status = overall_status(processed, skipped, errored)
        result = ImportResult(
            overall_status=status,
            message=result_message(len(new_ids), len(updates), skipped, errored),
            menu_id=menu.id,
            menu_name=menu.name,
            items_processed=processed,
            items_created=len(new_ids),
            items_updated=len(updates),
            items_skipped=skipped,
            items_errored=errored,
            error_details=details,
            error_report=build_error_report(details),
            job_id=job_id,
        )
        logger.info(
            "Import into menu %s: %d created, %d updated, %d skipped, %d errors",
            menu.id,
            result.items_created,
            result.items_updated,
            skipped,
            errored,
        )

        if status in ("success", "partial_success"):
            remove_source_file(request.file_path, self.upload_dir)
        return result
