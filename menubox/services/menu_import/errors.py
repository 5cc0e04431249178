"""Exceptions raised by the menu import pipeline.

Every error carries a machine-readable ``reason`` and a ``context`` dict so
callers can decide whether to retry, edit or abandon an import.
"""

from typing import Any


class MenuImportError(Exception):
    """Base class for hard failures in the menu import pipeline."""

    reason = "menu_import_error"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        return {"reason": self.reason, "message": self.message, **self.context}


class UnsupportedFormatError(MenuImportError):
    reason = "unsupported_format"


class SourceFileError(MenuImportError):
    """The source file is missing, empty, oversized or unreadable."""

    reason = "source_file_error"


class ParseError(MenuImportError):
    reason = "parse_error"


class NoItemsFoundError(MenuImportError):
    reason = "no_items_found"


class NoReadableContentError(MenuImportError):
    reason = "no_readable_content"


class ExtractionFailedError(MenuImportError):
    """All AI extraction attempts and recovery strategies were exhausted."""

    reason = "extraction_failed"

    def __init__(self, message: str, response_preview: str = "", **context: Any) -> None:
        super().__init__(message, response_preview=response_preview, **context)
        self.response_preview = response_preview


class TargetMenuNotFoundError(MenuImportError):
    reason = "target_menu_not_found"


class JobNotFoundError(MenuImportError):
    reason = "job_not_found"


class JobStateError(MenuImportError):
    reason = "invalid_job_state"
