"""MenuImportJob document model for queued (asynchronous) imports."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from beanie import Document, Indexed
from pydantic import Field


class ImportJobStatus(str, Enum):
    """Lifecycle status of an import job."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    PARTIAL_SUCCESS = "partial_success"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset(
    {
        ImportJobStatus.COMPLETED,
        ImportJobStatus.FAILED,
        ImportJobStatus.PARTIAL_SUCCESS,
        ImportJobStatus.CANCELLED,
    }
)


class MenuImportJob(Document):
    """Durable record of a large import handed to the worker pool."""

    restaurant_id: Indexed(str)
    original_file_path: Optional[str] = None
    parsed_menu_name: str
    target_menu_id: Optional[str] = None
    replace_all_items: bool = False
    # Serialized ParsedMenuItem payloads
    items_to_import: list[dict[str, Any]] = Field(default_factory=list)

    status: ImportJobStatus = ImportJobStatus.PENDING
    progress: int = 0
    attempts: int = 0
    result: Optional[dict[str, Any]] = None
    error_message: Optional[str] = None
    error_details: Optional[str] = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    claimed_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Settings:
        name = "menu_import_jobs"
        indexes = [
            "status",
            [("restaurant_id", 1), ("created_at", -1)],
        ]

    def __repr__(self) -> str:
        return f"<MenuImportJob(id={self.id}, status={self.status.value})>"
