"""Menu import package: parsing, enrichment, validation, conflicts and commit."""

from .ai_extraction import (
    AIExtractionOrchestrator,
    AnthropicExtractionClient,
    AttemptOutcome,
    ExtractedMenu,
    ExtractionClient,
    ExtractionResponse,
    RetryPolicy,
    normalize_extracted_data,
)
from .components import MenuImportComponents, build_components
from .conflicts import ConflictResolver, import_action_for, name_similarity
from .constants import ASYNC_IMPORT_THRESHOLD, FIELD_SYNONYMS, FORMAT_BY_EXTENSION
from .converters import normalize_category, parse_boolean, parse_list, parse_price
from .enrichment import DomainIntelligenceEnhancer, infer_dietary
from .errors import (
    ExtractionFailedError,
    JobNotFoundError,
    JobStateError,
    MenuImportError,
    NoItemsFoundError,
    NoReadableContentError,
    ParseError,
    SourceFileError,
    TargetMenuNotFoundError,
    UnsupportedFormatError,
)
from .field_mapping import build_column_mapping, normalize_header
from .finalizer import ImportFinalizer, build_error_report, remove_source_file
from .json_recovery import recover_json, repair_json
from .memory import InMemoryCatalogRepository, InMemoryJobStore
from .parsers import PARSERS, ParseOutcome, detect_format, get_parser
from .preview import MenuImportService, create_parsed_item
from .repository import (
    CatalogItem,
    CatalogMenu,
    CatalogRepository,
    ImportJobRecord,
    JobStore,
    MongoCatalogRepository,
    MongoJobStore,
)
from .text_extraction import TextExtractionEngine
from .validation import ValidationReport, validate_item, validate_items
from .worker import ImportWorkerPool, JobQueue

__all__ = [
    # Constants
    "ASYNC_IMPORT_THRESHOLD",
    "FIELD_SYNONYMS",
    "FORMAT_BY_EXTENSION",
    # Errors
    "ExtractionFailedError",
    "JobNotFoundError",
    "JobStateError",
    "MenuImportError",
    "NoItemsFoundError",
    "NoReadableContentError",
    "ParseError",
    "SourceFileError",
    "TargetMenuNotFoundError",
    "UnsupportedFormatError",
    # Parsing
    "PARSERS",
    "ParseOutcome",
    "build_column_mapping",
    "detect_format",
    "get_parser",
    "normalize_category",
    "normalize_header",
    "parse_boolean",
    "parse_list",
    "parse_price",
    # Extraction
    "AIExtractionOrchestrator",
    "AnthropicExtractionClient",
    "AttemptOutcome",
    "ExtractedMenu",
    "ExtractionClient",
    "ExtractionResponse",
    "RetryPolicy",
    "TextExtractionEngine",
    "normalize_extracted_data",
    "recover_json",
    "repair_json",
    # Enrichment and validation
    "DomainIntelligenceEnhancer",
    "ValidationReport",
    "infer_dietary",
    "validate_item",
    "validate_items",
    # Preview and conflicts
    "ConflictResolver",
    "MenuImportService",
    "create_parsed_item",
    "import_action_for",
    "name_similarity",
    # Persistence
    "CatalogItem",
    "CatalogMenu",
    "CatalogRepository",
    "ImportJobRecord",
    "InMemoryCatalogRepository",
    "InMemoryJobStore",
    "JobStore",
    "MongoCatalogRepository",
    "MongoJobStore",
    # Commit
    "ImportFinalizer",
    "ImportWorkerPool",
    "JobQueue",
    "build_error_report",
    "remove_source_file",
    # Wiring
    "MenuImportComponents",
    "build_components",
]
