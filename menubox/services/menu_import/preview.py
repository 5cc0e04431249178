"""Upload preview pipeline: parse, enrich, validate and wrap items for review."""

import asyncio
import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any

from menubox.schemas.items import ITEM_KINDS, CanonicalItem
from menubox.schemas.menu_import import (
    ConflictResolutionRequest,
    ConflictResolutionResponse,
    MenuUploadPreview,
    ParsedField,
    ParsedItemFields,
    ParsedMenuItem,
    PreviewSummary,
)

from .conflicts import ConflictResolver
from .constants import MAX_GLOBAL_ERRORS, MAX_PREVIEW_TEXT_LENGTH, MIN_VINTAGE
from .converters import normalize_category
from .enrichment import DomainIntelligenceEnhancer
from .errors import MenuImportError, NoItemsFoundError, SourceFileError, UnsupportedFormatError
from .parsers import ParseOutcome, detect_format, get_parser
from .text_extraction import TextExtractionEngine
from .validation import validate_items

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE_MB = 10


def check_source_file(path: Path, max_size_mb: int = DEFAULT_MAX_SIZE_MB) -> int:
    """Ensure the source file exists, is non-empty and within the size limit.

    Returns:
        The file size in bytes.

    Raises:
        SourceFileError: If any check fails.
    """
    if not path.is_file():
        raise SourceFileError(f"File not found: {path.name}", file_path=str(path))
    size = path.stat().st_size
    if size == 0:
        raise SourceFileError("Uploaded file is empty", file_path=str(path))
    if size > max_size_mb * 1024 * 1024:
        raise SourceFileError(
            f"File exceeds maximum size of {max_size_mb} MB",
            file_path=str(path),
            size_bytes=size,
        )
    return size


def resolve_source_path(file_path: str, upload_dir: Path | None) -> Path:
    """Resolve a client-supplied source path, confining it to ``upload_dir``.

    Without an upload directory the path is returned unchanged.

    Raises:
        SourceFileError: If the path points outside the upload directory.
    """
    path = Path(file_path)
    if upload_dir is None:
        return path
    resolved = path.resolve()
    if not resolved.is_relative_to(Path(upload_dir).resolve()):
        raise SourceFileError("File path is outside the upload directory", file_path=file_path)
    return resolved


def _field(value: Any, error: str | None = None, original: Any = None) -> ParsedField:
    return ParsedField(
        value=value,
        original_value=value if original is None else original,
        is_valid=error is None,
        error_message=error,
    )


def create_parsed_item(
    item: CanonicalItem,
    index: int,
    warnings: list[str] | None = None,
    original_source_data: dict[str, Any] | None = None,
) -> ParsedMenuItem:
    """Wrap a canonical item with per-field validity for human review."""
    original = original_source_data or {}

    name = (item.name or "").strip()
    category = (item.category or "").strip()
    price_error = "Price cannot be negative" if item.price is not None and item.price < 0 else None

    fields = ParsedItemFields(
        name=_field(name, None if name else "Name cannot be empty.", original.get("name")),
        description=_field(item.description, original=original.get("description")),
        price=_field(item.price, price_error, original.get("price")),
        category=_field(category, None if category else "Category cannot be empty.", original.get("category")),
        item_type=_field(
            item.item_type,
            None if item.item_type in ITEM_KINDS else f"Item type must be one of: {', '.join(ITEM_KINDS)}",
        ),
        ingredients=_field(list(item.ingredients), original=original.get("ingredients")),
        allergens=_field(list(item.allergens), original=original.get("allergens")),
        is_gluten_free=_field(item.is_gluten_free),
        is_vegan=_field(item.is_vegan),
        is_vegetarian=_field(item.is_vegetarian),
        is_dairy_free=_field(item.is_dairy_free),
    )

    if item.is_wine:
        max_vintage = datetime.now().year + 5
        vintage_error = None
        if item.wine_vintage is not None and not MIN_VINTAGE <= item.wine_vintage <= max_vintage:
            vintage_error = f"Vintage must be between {MIN_VINTAGE} and {max_vintage}"

        fields.wine_style = _field(item.wine_style)
        fields.wine_producer = _field(item.wine_producer)
        fields.wine_grape_variety = _field(", ".join(item.wine_grape_varieties))
        fields.wine_vintage = _field(item.wine_vintage, vintage_error)
        fields.wine_region = _field(item.wine_region)
        fields.wine_serving_options = _field(
            [
                {
                    "id": uuid.uuid4().hex,
                    "size": option.size,
                    "price": "" if option.price is None else f"{option.price:.2f}",
                }
                for option in item.serving_options
            ]
        )
        fields.wine_pairings = _field(", ".join(item.wine_pairings))

    return ParsedMenuItem(
        id=item.id,
        internal_index=index,
        fields=fields,
        original_source_data=original,
        warnings=list(warnings or []),
    )


def has_field_errors(item: ParsedMenuItem) -> bool:
    fields = item.fields
    return not (fields.name.is_valid and fields.category.is_valid and fields.price.is_valid)


class MenuImportService:
    """Runs the preview pipeline and conflict resolution for uploaded menus."""

    def __init__(
        self,
        text_engine: TextExtractionEngine | None,
        enhancer: DomainIntelligenceEnhancer,
        conflict_resolver: ConflictResolver,
        upload_dir: Path | None = None,
    ) -> None:
        self.text_engine = text_engine
        self.enhancer = enhancer
        self.conflict_resolver = conflict_resolver
        self.upload_dir = upload_dir

    async def parse(self, path: Path, source_format: str, file_name: str) -> ParseOutcome:
        if source_format == "pdf":
            if self.text_engine is None:
                raise MenuImportError("PDF menus require an AI extraction client", file_name=file_name)
            return await self.text_engine.extract(path, file_name)

        parser = get_parser(source_format)
        return await asyncio.to_thread(parser.parse, path, file_name)

    async def get_upload_preview(
        self,
        file_path: str,
        original_file_name: str | None = None,
        max_size_mb: int = DEFAULT_MAX_SIZE_MB,
    ) -> MenuUploadPreview:
        """Parse an uploaded file into a reviewable preview.

        Pipeline failures are reported as a preview carrying ``global_errors``
        rather than raised. An unsupported extension or a path outside the
        upload directory is raised.

        Raises:
            UnsupportedFormatError: If the file extension is not accepted.
            SourceFileError: If the path lies outside the upload directory.
        """
        path = resolve_source_path(file_path, self.upload_dir)
        file_name = original_file_name or path.name
        preview_id = uuid.uuid4().hex
        source_format = detect_format(file_name)

        try:
            check_source_file(path, max_size_mb)
            outcome = await self.parse(path, source_format, file_name)
            if not outcome.items:
                raise NoItemsFoundError(
                    f"No menu items found in the {source_format.upper()} file",
                    file_name=file_name,
                )
        except UnsupportedFormatError:
            raise
        except MenuImportError as exc:
            logger.warning("Preview of %s failed: %s", file_name, exc.message)
            return MenuUploadPreview(
                preview_id=preview_id,
                file_path=file_path,
                source_format=source_format,
                parsed_menu_name=Path(file_name).stem or "Menu",
                global_errors=[exc.message],
                metadata={"error": exc.to_dict()},
            )

        originals = {item.id: item.model_dump(exclude={"id", "source_index"}) for item in outcome.items}

        self.enhancer.enhance(outcome.items)
        report = validate_items(outcome.items)

        parsed_items = [
            create_parsed_item(item, index, report.item_warnings.get(item.id), originals.get(item.id))
            for index, item in enumerate(report.items)
        ]
        categories = sorted({normalize_category(item.category) for item in report.items})

        metadata = dict(outcome.metadata)
        raw_text = metadata.pop("raw_text", None)

        global_errors: list[str] = []
        if not parsed_items:
            global_errors.append(f"No menu items found in the {source_format.upper()} file")

        preview = MenuUploadPreview(
            preview_id=preview_id,
            file_path=file_path,
            source_format=source_format,
            parsed_menu_name=outcome.menu_name or Path(file_name).stem or "Menu",
            parsed_items=parsed_items,
            detected_categories=categories,
            summary=PreviewSummary(
                total_items_parsed=len(parsed_items),
                items_with_potential_errors=sum(1 for p in parsed_items if has_field_errors(p)),
            ),
            global_errors=global_errors[:MAX_GLOBAL_ERRORS],
            warnings=[*outcome.warnings, *report.warnings],
            metadata=metadata,
            extracted_text=raw_text[:MAX_PREVIEW_TEXT_LENGTH] if raw_text else None,
            extracted_text_truncated=bool(raw_text) and len(raw_text) > MAX_PREVIEW_TEXT_LENGTH,
        )
        logger.info(
            "Preview %s: %d items from %s (%s), %d warnings",
            preview_id,
            len(parsed_items),
            file_name,
            source_format,
            len(preview.warnings),
        )
        return preview

    async def process_conflicts(self, request: ConflictResolutionRequest) -> ConflictResolutionResponse:
        return await self.conflict_resolver.resolve(request)
