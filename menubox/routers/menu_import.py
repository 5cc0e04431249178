"""Menu import endpoints: upload/preview, conflict resolution, finalize and jobs."""

import logging
import re
import uuid
from pathlib import Path
from typing import Annotated

import aiofiles
from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, Response, UploadFile, status
from slowapi import Limiter
from slowapi.util import get_remote_address

from menubox.config import settings
from menubox.schemas.menu_import import (
    ConflictResolutionRequest,
    ConflictResolutionResponse,
    FinalImportRequest,
    ImportResult,
    JobStatusResponse,
    MenuUploadPreview,
    PreviewRequest,
    QueuedImportResponse,
)
from menubox.services.menu_import import (
    ImportJobRecord,
    JobNotFoundError,
    JobStateError,
    MenuImportComponents,
    SourceFileError,
    UnsupportedFormatError,
    detect_format,
    remove_source_file,
)

logger = logging.getLogger(__name__)

router = APIRouter()

limiter = Limiter(key_func=get_remote_address)

UPLOAD_CHUNK_SIZE = 64 * 1024  # 64 KB


def get_components(request: Request) -> MenuImportComponents:
    """Components built in the application lifespan."""
    return request.app.state.menu_import


Components = Annotated[MenuImportComponents, Depends(get_components)]


def _upload_rate_limit() -> str:
    return f"{settings.upload_rate_limit_per_minute}/minute"


def _safe_file_name(file_name: str) -> str:
    """Strip directories and unusual characters from an uploaded file name."""
    name = Path(file_name).name
    return re.sub(r"[^\w.\-]", "_", name) or "upload"


def _job_status(job: ImportJobRecord) -> JobStatusResponse:
    return JobStatusResponse(
        job_id=job.id,
        status=job.status.value,
        progress=job.progress,
        attempts=job.attempts,
        parsed_menu_name=job.parsed_menu_name,
        item_count=len(job.items_to_import),
        created_at=job.created_at,
        processed_at=job.processed_at,
        completed_at=job.completed_at,
        result=ImportResult.model_validate(job.result) if job.result else None,
        error_message=job.error_message,
    )


@router.post("/upload", response_model=MenuUploadPreview)
@limiter.limit(_upload_rate_limit)
async def upload_menu(
    request: Request,  # Required for rate limiting
    components: Components,
    file: UploadFile = File(..., description="Menu document (xlsx, xls, csv, json, docx or pdf)"),
    max_size_mb: int | None = Query(None, ge=1, le=100),
) -> MenuUploadPreview:
    """Upload a menu document and return a preview of its items.

    The file is stored under the upload directory until the import is
    finalized.
    """
    file_name = file.filename or ""
    try:
        detect_format(file_name)
    except UnsupportedFormatError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    limit_mb = max_size_mb or settings.max_upload_size_mb
    max_bytes = limit_mb * 1024 * 1024

    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    destination = upload_dir / f"{uuid.uuid4().hex}_{_safe_file_name(file_name)}"

    # Stream to disk in chunks, stopping at the size limit
    total_size = 0
    too_large = False
    async with aiofiles.open(destination, "wb") as out:
        while chunk := await file.read(UPLOAD_CHUNK_SIZE):
            total_size += len(chunk)
            if total_size > max_bytes:
                too_large = True
                break
            await out.write(chunk)

    if too_large:
        destination.unlink(missing_ok=True)
        raise HTTPException(
            status_code=status.HTTP_413_CONTENT_TOO_LARGE,
            detail=f"File exceeds maximum size of {limit_mb} MB",
        )

    logger.info("Stored upload %s (%d bytes) as %s", file_name, total_size, destination.name)

    preview = await components.service.get_upload_preview(str(destination), file_name, limit_mb)
    if preview.global_errors and not preview.parsed_items:
        remove_source_file(str(destination), upload_dir)
    return preview


@router.post("/preview", response_model=MenuUploadPreview)
async def preview_menu(body: PreviewRequest, components: Components) -> MenuUploadPreview:
    """Build a preview for a menu document that is already on disk."""
    try:
        return await components.service.get_upload_preview(
            body.file_path, body.original_file_name, body.max_size_mb
        )
    except (UnsupportedFormatError, SourceFileError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)


@router.post("/conflicts", response_model=ConflictResolutionResponse)
async def resolve_conflicts(body: ConflictResolutionRequest, components: Components) -> ConflictResolutionResponse:
    """Classify preview items against the existing catalog."""
    return await components.service.process_conflicts(body)


@router.post(
    "/finalize",
    response_model=ImportResult | QueuedImportResponse,
    responses={status.HTTP_202_ACCEPTED: {"model": QueuedImportResponse}},
)
async def finalize_import(
    body: FinalImportRequest,
    response: Response,
    components: Components,
) -> ImportResult | QueuedImportResponse:
    """Commit reviewed items.

    Small batches are written immediately; large ones are queued and
    answered with 202 and a job id.
    """
    try:
        outcome = await components.finalizer.finalize(body)
    except SourceFileError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    if isinstance(outcome, QueuedImportResponse):
        response.status_code = status.HTTP_202_ACCEPTED
    return outcome


@router.get("/jobs", response_model=list[JobStatusResponse])
async def list_jobs(
    components: Components,
    restaurant_id: str = Query(..., description="Restaurant whose jobs to list"),
    limit: int = Query(50, ge=1, le=200),
) -> list[JobStatusResponse]:
    """List recent import jobs of a restaurant, newest first."""
    jobs = await components.job_store.list_for_restaurant(restaurant_id, limit=limit)
    return [_job_status(job) for job in jobs]


@router.get("/jobs/{job_id}", response_model=JobStatusResponse)
async def get_job(job_id: str, components: Components) -> JobStatusResponse:
    """Get the status, progress and result of an import job."""
    job = await components.job_store.get(job_id)
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Import job not found")
    return _job_status(job)


@router.delete("/jobs/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_job(job_id: str, components: Components) -> Response:
    """Cancel an import job that has not been claimed yet."""
    try:
        await components.job_store.cancel(job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Import job not found")
    except JobStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    logger.info("Cancelled import job %s", job_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
