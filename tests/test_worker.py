"""Tests for queued import jobs: job store, worker pool and recovery."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from conftest import RESTAURANT_ID, parsed_item
from menubox.models import ImportJobStatus
from menubox.schemas.menu_import import FinalImportRequest
from menubox.services.menu_import import (
    ImportFinalizer,
    ImportWorkerPool,
    InMemoryCatalogRepository,
    InMemoryJobStore,
    JobNotFoundError,
    JobQueue,
    JobStateError,
)
from menubox.services.menu_import.repository import utcnow


@pytest.fixture
def queue() -> JobQueue:
    return JobQueue()


@pytest.fixture
def finalizer(catalog: InMemoryCatalogRepository, job_store: InMemoryJobStore, queue: JobQueue) -> ImportFinalizer:
    # Anything above two items goes through the queue
    return ImportFinalizer(catalog, job_store, queue=queue, async_threshold=2)


@pytest.fixture
def pool(job_store: InMemoryJobStore, finalizer: ImportFinalizer, queue: JobQueue) -> ImportWorkerPool:
    return ImportWorkerPool(job_store, finalizer, queue, concurrency=2, stale_claim_minutes=30, max_attempts=3)


async def _queue_job(finalizer: ImportFinalizer, count: int = 3, **kwargs) -> str:
    request = FinalImportRequest(
        restaurant_id=RESTAURANT_ID,
        parsed_menu_name="Banquet",
        items_to_import=[parsed_item(f"Course {i}", i, price=20.0) for i in range(count)],
        **kwargs,
    )
    response = await finalizer.finalize(request)
    return response.job_id


# =============================================================================
# Job store
# =============================================================================


class TestJobStore:
    @pytest.mark.asyncio
    async def test_claim_only_once(self, job_store, finalizer):
        job_id = await _queue_job(finalizer)

        first = await job_store.claim(job_id)
        second = await job_store.claim(job_id)

        assert first.status == ImportJobStatus.PROCESSING
        assert first.attempts == 1
        assert first.claimed_at is not None
        assert second is None

    @pytest.mark.asyncio
    async def test_cancel_pending_job(self, job_store, finalizer):
        job_id = await _queue_job(finalizer)

        job = await job_store.cancel(job_id)

        assert job.status == ImportJobStatus.CANCELLED
        assert job.completed_at is not None
        assert await job_store.pending_ids() == []

    @pytest.mark.asyncio
    async def test_cancel_processing_job_is_rejected(self, job_store, finalizer):
        job_id = await _queue_job(finalizer)
        await job_store.claim(job_id)

        with pytest.raises(JobStateError, match="is processing and can no longer be cancelled"):
            await job_store.cancel(job_id)

    @pytest.mark.asyncio
    async def test_cancel_unknown_job(self, job_store):
        with pytest.raises(JobNotFoundError):
            await job_store.cancel("nope")

    @pytest.mark.asyncio
    async def test_list_for_restaurant_newest_first(self, job_store, finalizer):
        first = await _queue_job(finalizer)
        second = await _queue_job(finalizer)
        job_store.jobs[second].created_at = job_store.jobs[first].created_at + timedelta(seconds=1)
        await job_store.create(restaurant_id="restaurant-2", parsed_menu_name="Other", items_to_import=[])

        jobs = await job_store.list_for_restaurant(RESTAURANT_ID)

        assert [job.id for job in jobs] == [second, first]

    @pytest.mark.asyncio
    async def test_returned_records_are_copies(self, job_store, finalizer):
        job_id = await _queue_job(finalizer)

        snapshot = await job_store.get(job_id)
        snapshot.status = ImportJobStatus.FAILED

        assert job_store.jobs[job_id].status == ImportJobStatus.PENDING


# =============================================================================
# Processing
# =============================================================================


@pytest.mark.asyncio
async def test_process_job_completes(pool, job_store, catalog, finalizer):
    job_id = await _queue_job(finalizer)

    result = await pool.process_job(job_id)

    assert result.overall_status == "success"
    assert result.job_id == job_id
    job = await job_store.get(job_id)
    assert job.status == ImportJobStatus.COMPLETED
    assert job.progress == 100
    assert job.attempts == 1
    assert job.result["items_created"] == 3
    assert job.error_message is None
    assert len(catalog.items) == 3


@pytest.mark.asyncio
async def test_process_job_twice_runs_once(pool, catalog, finalizer):
    job_id = await _queue_job(finalizer)

    await pool.process_job(job_id)
    assert await pool.process_job(job_id) is None

    assert len(catalog.items) == 3


@pytest.mark.asyncio
async def test_failed_import_marks_job_failed(pool, job_store, finalizer):
    job_id = await _queue_job(finalizer, target_menu_id="missing")

    result = await pool.process_job(job_id)

    assert result.overall_status == "failed"
    job = await job_store.get(job_id)
    assert job.status == ImportJobStatus.FAILED
    assert job.error_message == 'Import failed: Target menu with ID "missing" not found.'


@pytest.mark.asyncio
async def test_partial_import_marks_job_partial(pool, job_store, finalizer, catalog):
    menu = catalog.add_menu(RESTAURANT_ID, "Banquet")
    request = FinalImportRequest(
        restaurant_id=RESTAURANT_ID,
        target_menu_id=menu.id,
        items_to_import=[
            parsed_item("Soup", 0),
            parsed_item("Bread", 1),
            parsed_item("Mystery", 2).model_copy(update={"import_action": None}),
        ],
    )
    response = await finalizer.finalize(request)

    await pool.process_job(response.job_id)

    job = await job_store.get(response.job_id)
    assert job.status == ImportJobStatus.PARTIAL_SUCCESS
    assert job.result["items_errored"] == 1


@pytest.mark.asyncio
async def test_crashing_import_records_error(pool, job_store, finalizer):
    job_id = await _queue_job(finalizer)
    pool.finalizer.run_import = AsyncMock(side_effect=RuntimeError("worker exploded"))

    assert await pool.process_job(job_id) is None

    job = await job_store.get(job_id)
    assert job.status == ImportJobStatus.FAILED
    assert job.error_message == "worker exploded"
    assert "RuntimeError" in job.error_details


@pytest.mark.asyncio
async def test_cancelled_job_is_not_processed(pool, job_store, finalizer, catalog):
    job_id = await _queue_job(finalizer)
    await job_store.cancel(job_id)

    assert await pool.process_job(job_id) is None
    assert catalog.items == {}


# =============================================================================
# Recovery and lifecycle
# =============================================================================


@pytest.mark.asyncio
async def test_recover_resets_stale_claims(pool, job_store, finalizer, queue):
    stale = await _queue_job(finalizer)
    exhausted = await _queue_job(finalizer)
    fresh = await _queue_job(finalizer)
    for job_id in (stale, exhausted, fresh):
        await job_store.claim(job_id)
    long_ago = utcnow() - timedelta(hours=2)
    job_store.jobs[stale].claimed_at = long_ago
    job_store.jobs[exhausted].claimed_at = long_ago
    job_store.jobs[exhausted].attempts = 3
    while queue.qsize():
        await queue.get()
        queue.task_done()

    enqueued = await pool.recover()

    assert enqueued == 1
    assert queue.qsize() == 1
    assert job_store.jobs[stale].status == ImportJobStatus.PENDING
    assert job_store.jobs[exhausted].status == ImportJobStatus.FAILED
    assert job_store.jobs[exhausted].error_message == "Job abandoned after 3 attempts"
    assert job_store.jobs[fresh].status == ImportJobStatus.PROCESSING


@pytest.mark.asyncio
async def test_workers_drain_queue(pool, job_store, finalizer, queue):
    await pool.start()
    try:
        assert pool.running
        job_ids = [await _queue_job(finalizer) for _ in range(3)]
        await asyncio.wait_for(queue.join(), timeout=5)
    finally:
        await pool.stop()

    assert not pool.running
    for job_id in job_ids:
        job = await job_store.get(job_id)
        assert job.status == ImportJobStatus.COMPLETED


@pytest.mark.asyncio
async def test_start_picks_up_pending_jobs(pool, job_store, finalizer, queue):
    job_id = await _queue_job(finalizer)
    # Simulate a restart: the in-process queue is gone, the job record is not
    await queue.get()
    queue.task_done()

    await pool.start()
    try:
        await asyncio.wait_for(queue.join(), timeout=5)
    finally:
        await pool.stop()

    assert (await job_store.get(job_id)).status == ImportJobStatus.COMPLETED
