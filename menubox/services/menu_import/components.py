"""Construction of the menu import components.

Everything is built once at start-up (see ``menubox.main``) and handed to
the routers through FastAPI dependencies; nothing here is a module-level
singleton.
"""

import logging
from dataclasses import dataclass

from menubox.config import Settings

from .ai_extraction import AIExtractionOrchestrator, AnthropicExtractionClient, ExtractionClient, RetryPolicy
from .conflicts import ConflictResolver
from .enrichment import DomainIntelligenceEnhancer
from .finalizer import ImportFinalizer
from .preview import MenuImportService
from .repository import CatalogRepository, JobStore, MongoCatalogRepository, MongoJobStore
from .text_extraction import TextExtractionEngine
from .worker import ImportWorkerPool, JobQueue

logger = logging.getLogger(__name__)


@dataclass
class MenuImportComponents:
    """The wired-up import pipeline."""

    repository: CatalogRepository
    job_store: JobStore
    queue: JobQueue
    service: MenuImportService
    finalizer: ImportFinalizer
    worker_pool: ImportWorkerPool


def build_components(
    settings: Settings,
    repository: CatalogRepository | None = None,
    job_store: JobStore | None = None,
    extraction_client: ExtractionClient | None = None,
    retry_policy: RetryPolicy | None = None,
) -> MenuImportComponents:
    """Wire the pipeline from settings.

    Args:
        settings: Application settings.
        repository: Catalog repository; defaults to MongoDB.
        job_store: Job store; defaults to MongoDB.
        extraction_client: Model client for PDF extraction; defaults to Anthropic.
        retry_policy: Extraction retry policy; defaults to the configured one.
    """
    repository = repository or MongoCatalogRepository(use_transactions=settings.use_transactions)
    job_store = job_store or MongoJobStore()

    if extraction_client is None:
        anthropic_client = AnthropicExtractionClient(
            api_key=settings.anthropic_api_key,
            model=settings.extraction_model,
            max_tokens=settings.extraction_max_tokens,
        )
        if not anthropic_client.is_available():
            logger.warning("PDF extraction is unavailable until an Anthropic API key is configured")
        extraction_client = anthropic_client

    orchestrator = AIExtractionOrchestrator(
        extraction_client,
        retry_policy
        or RetryPolicy(
            max_attempts=settings.extraction_max_attempts,
            base_delay=settings.extraction_base_delay,
        ),
    )
    text_engine = TextExtractionEngine(
        orchestrator,
        min_text_length=settings.min_text_length,
        max_text_length=settings.max_text_length,
    )

    queue = JobQueue()
    finalizer = ImportFinalizer(
        repository,
        job_store,
        queue=queue,
        async_threshold=settings.async_import_threshold,
        upload_dir=settings.upload_dir,
    )
    service = MenuImportService(
        text_engine=text_engine,
        enhancer=DomainIntelligenceEnhancer(),
        conflict_resolver=ConflictResolver(repository),
        upload_dir=settings.upload_dir,
    )
    worker_pool = ImportWorkerPool(
        job_store,
        finalizer,
        queue,
        concurrency=settings.worker_concurrency,
        stale_claim_minutes=settings.stale_claim_minutes,
        max_attempts=settings.job_max_attempts,
    )
    return MenuImportComponents(
        repository=repository,
        job_store=job_store,
        queue=queue,
        service=service,
        finalizer=finalizer,
        worker_pool=worker_pool,
    )
