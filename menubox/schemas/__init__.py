"""Pydantic schemas for MenuBox."""

from menubox.schemas.items import (
    ALLERGENS,
    ITEM_KINDS,
    WINE_STYLES,
    CanonicalItem,
    ItemKind,
    ServingOption,
    WineStyle,
)
from menubox.schemas.menu_import import (
    ConflictResolution,
    ConflictResolutionRequest,
    ConflictResolutionResponse,
    ConflictResolutionSummary,
    ConflictStatus,
    FinalImportRequest,
    ImportAction,
    ImportResult,
    ImportResultItemDetail,
    JobStatusResponse,
    MenuUploadPreview,
    ParsedField,
    ParsedItemFields,
    ParsedMenuItem,
    PreviewRequest,
    PreviewSummary,
    QueuedImportResponse,
    UserAction,
)

__all__ = [
    # Canonical item
    "ALLERGENS",
    "ITEM_KINDS",
    "WINE_STYLES",
    "CanonicalItem",
    "ItemKind",
    "ServingOption",
    "WineStyle",
    # Preview
    "MenuUploadPreview",
    "ParsedField",
    "ParsedItemFields",
    "ParsedMenuItem",
    "PreviewRequest",
    "PreviewSummary",
    # Conflicts
    "ConflictResolution",
    "ConflictResolutionRequest",
    "ConflictResolutionResponse",
    "ConflictResolutionSummary",
    "ConflictStatus",
    "ImportAction",
    "UserAction",
    # Import
    "FinalImportRequest",
    "ImportResult",
    "ImportResultItemDetail",
    "JobStatusResponse",
    "QueuedImportResponse",
]
