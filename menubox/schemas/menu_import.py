"""Pydantic schemas for the menu upload, conflict and import workflow."""

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

SourceFormat = Literal["excel", "csv", "json", "word", "pdf"]


class ConflictStatus(str, Enum):
    """Outcome of matching an incoming item against the catalog."""

    NO_CONFLICT = "no_conflict"
    UPDATE_CANDIDATE = "update_candidate"
    MULTIPLE_CANDIDATES = "multiple_candidates"
    SKIPPED_BY_USER = "skipped_by_user"
    ERROR_PROCESSING_CONFLICT = "error_processing_conflict"


class ImportAction(str, Enum):
    """What the finalizer will do with an item."""

    NEW = "new"
    UPDATE = "update"
    SKIP = "skip"


class UserAction(str, Enum):
    """Reviewer decision on an item."""

    KEEP = "keep"
    IGNORE = "ignore"


class ParsedField(BaseModel):
    """One field of a preview item with its validation state."""

    value: Any = None
    original_value: Any = None
    is_valid: bool = True
    error_message: str | None = None


class ParsedItemFields(BaseModel):
    """Per-field view of a canonical item for human review."""

    name: ParsedField
    description: ParsedField = Field(default_factory=ParsedField)
    price: ParsedField = Field(default_factory=ParsedField)
    category: ParsedField
    item_type: ParsedField
    ingredients: ParsedField = Field(default_factory=lambda: ParsedField(value=[], original_value=[]))
    allergens: ParsedField = Field(default_factory=lambda: ParsedField(value=[], original_value=[]))
    is_gluten_free: ParsedField = Field(default_factory=lambda: ParsedField(value=False, original_value=False))
    is_vegan: ParsedField = Field(default_factory=lambda: ParsedField(value=False, original_value=False))
    is_vegetarian: ParsedField = Field(default_factory=lambda: ParsedField(value=False, original_value=False))
    is_dairy_free: ParsedField = Field(default_factory=lambda: ParsedField(value=False, original_value=False))

    # Present only for wine items
    wine_style: ParsedField | None = None
    wine_producer: ParsedField | None = None
    wine_grape_variety: ParsedField | None = None
    wine_vintage: ParsedField | None = None
    wine_region: ParsedField | None = None
    wine_serving_options: ParsedField | None = None
    wine_pairings: ParsedField | None = None


class ConflictResolution(BaseModel):
    """Conflict outcome attached to a preview item."""

    status: ConflictStatus = ConflictStatus.NO_CONFLICT
    message: str | None = None
    existing_item_id: str | None = None
    candidate_item_ids: list[str] = Field(default_factory=list)


class ParsedMenuItem(BaseModel):
    """A canonical item wrapped for review before commit."""

    id: str
    internal_index: int
    fields: ParsedItemFields
    original_source_data: dict[str, Any] = Field(default_factory=dict)
    status: str = "new"
    conflict_resolution: ConflictResolution = Field(default_factory=ConflictResolution)
    import_action: ImportAction | None = ImportAction.NEW
    existing_item_id: str | None = None
    user_action: UserAction = UserAction.KEEP
    warnings: list[str] = Field(default_factory=list)


class PreviewSummary(BaseModel):
    """Counts shown alongside a preview."""

    total_items_parsed: int = 0
    items_with_potential_errors: int = 0


class MenuUploadPreview(BaseModel):
    """Result of parsing and enriching an uploaded menu document."""

    preview_id: str
    file_path: str
    source_format: SourceFormat
    parsed_menu_name: str
    parsed_items: list[ParsedMenuItem] = Field(default_factory=list)
    detected_categories: list[str] = Field(default_factory=list)
    summary: PreviewSummary = Field(default_factory=PreviewSummary)
    global_errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    extracted_text: str | None = None
    extracted_text_truncated: bool = False


class PreviewRequest(BaseModel):
    """Request to build a preview from a file already on disk."""

    file_path: str
    original_file_name: str | None = None
    max_size_mb: int = Field(10, ge=1, le=100)


class ConflictResolutionRequest(BaseModel):
    """Items to reconcile against the existing catalog."""

    items: list[ParsedMenuItem]
    restaurant_id: str
    target_menu_id: str | None = None


class ConflictResolutionSummary(BaseModel):
    """Counts produced by a conflict resolution pass."""

    items_requiring_user_action: int = 0
    potential_updates_identified: int = 0
    new_items_confirmed: int = 0
    total_processed: int = 0


class ConflictResolutionResponse(BaseModel):
    """Items annotated with their conflict outcome."""

    items: list[ParsedMenuItem]
    summary: ConflictResolutionSummary


class FinalImportRequest(BaseModel):
    """Request to commit reviewed items to the catalog."""

    restaurant_id: str
    file_path: str | None = None
    parsed_menu_name: str = "Imported Menu"
    target_menu_id: str | None = None
    replace_all_items: bool = False
    items_to_import: list[ParsedMenuItem] = Field(default_factory=list)


class ImportResultItemDetail(BaseModel):
    """Per-item outcome recorded when an item could not be imported."""

    id: str
    name: str
    status: Literal["created", "updated", "skipped", "error"]
    action_attempted: str | None = None
    new_item_id: str | None = None
    existing_item_id: str | None = None
    error_reason: str | None = None


class ImportResult(BaseModel):
    """Aggregate outcome of an import."""

    overall_status: Literal["success", "partial_success", "failed"]
    message: str
    menu_id: str | None = None
    menu_name: str | None = None
    items_processed: int = 0
    items_created: int = 0
    items_updated: int = 0
    items_skipped: int = 0
    items_errored: int = 0
    error_details: list[ImportResultItemDetail] = Field(default_factory=list)
    error_report: str = ""
    job_id: str | None = None


class QueuedImportResponse(BaseModel):
    """Response when an import was handed to the job queue."""

    job_id: str
    message: str


class JobStatusResponse(BaseModel):
    """Current state of an import job."""

    job_id: str
    status: str
    progress: int
    attempts: int
    parsed_menu_name: str
    item_count: int
    created_at: datetime
    processed_at: datetime | None = None
    completed_at: datetime | None = None
    result: ImportResult | None = None
    error_message: str | None = None
