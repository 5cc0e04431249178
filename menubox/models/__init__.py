"""MongoDB document models for MenuBox."""

from menubox.models.import_job import TERMINAL_STATUSES, ImportJobStatus, MenuImportJob
from menubox.models.menu import Menu, MenuItem, ServingOptionEntry

__all__ = [
    # Catalog documents
    "Menu",
    "MenuItem",
    # Embedded subdocuments
    "ServingOptionEntry",
    # Import jobs
    "MenuImportJob",
    "ImportJobStatus",
    "TERMINAL_STATUSES",
]
