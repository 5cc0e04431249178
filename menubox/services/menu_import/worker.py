"""Background processing of queued import jobs.

Job ids travel through an in-process asyncio queue; the job document is the
durable record, so pending jobs are re-enqueued when the pool starts.
"""

import asyncio
import logging
import traceback
from datetime import timedelta

from menubox.models import ImportJobStatus
from menubox.schemas.menu_import import FinalImportRequest, ImportResult, ParsedMenuItem

from .finalizer import ImportFinalizer
from .repository import ImportJobRecord, JobStore, utcnow

logger = logging.getLogger(__name__)

JOB_STATUS_BY_RESULT: dict[str, ImportJobStatus] = {
    "success": ImportJobStatus.COMPLETED,
    "partial_success": ImportJobStatus.PARTIAL_SUCCESS,
    "failed": ImportJobStatus.FAILED,
}


class JobQueue:
    """FIFO of job ids waiting to be claimed."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[str] = asyncio.Queue()

    async def put(self, job_id: str) -> None:
        await self._queue.put(job_id)

    async def get(self) -> str:
        return await self._queue.get()

    def task_done(self) -> None:
        self._queue.task_done()

    async def join(self) -> None:
        await self._queue.join()

    def qsize(self) -> int:
        return self._queue.qsize()


def request_from_job(job: ImportJobRecord) -> FinalImportRequest:
    """Rebuild the finalize request a job was created from."""
    return FinalImportRequest(
        restaurant_id=job.restaurant_id,
        file_path=job.original_file_path,
        parsed_menu_name=job.parsed_menu_name,
        target_menu_id=job.target_menu_id,
        replace_all_items=job.replace_all_items,
        items_to_import=[ParsedMenuItem.model_validate(item) for item in job.items_to_import],
    )


class ImportWorkerPool:
    """Worker tasks that claim queued jobs and run them through the finalizer."""

    def __init__(
        self,
        job_store: JobStore,
        finalizer: ImportFinalizer,
        queue: JobQueue,
        concurrency: int = 2,
        stale_claim_minutes: int = 30,
        max_attempts: int = 3,
    ) -> None:
        self.job_store = job_store
        self.finalizer = finalizer
        self.queue = queue
        self.concurrency = concurrency
        self.stale_claim_minutes = stale_claim_minutes
        self.max_attempts = max_attempts
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def recover(self) -> int:
        """Release stale claims and enqueue every pending job.

        Returns:
            Number of jobs enqueued.
        """
        cutoff = utcnow() - timedelta(minutes=self.stale_claim_minutes)
        reset_ids, failed_ids = await self.job_store.reset_stale(cutoff, self.max_attempts)
        if reset_ids:
            logger.warning("Reset %d stale import jobs to pending", len(reset_ids))
        if failed_ids:
            logger.warning("Marked %d stale import jobs as failed after %d attempts", len(failed_ids), self.max_attempts)

        pending = await self.job_store.pending_ids()
        for job_id in pending:
            await self.queue.put(job_id)
        if pending:
            logger.info("Re-enqueued %d pending import jobs", len(pending))
        return len(pending)

    async def start(self) -> None:
        await self.recover()
        self._tasks = [
            asyncio.create_task(self._run(n), name=f"menu-import-worker-{n}")
            for n in range(self.concurrency)
        ]
        logger.info("Started %d import workers", self.concurrency)

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Import workers stopped")

    async def _run(self, worker_number: int) -> None:
        while True:
            job_id = await self.queue.get()
            try:
                await self.process_job(job_id)
            except Exception:
                logger.exception("Worker %d crashed on job %s", worker_number, job_id)
            finally:
                self.queue.task_done()

    async def process_job(self, job_id: str) -> ImportResult | None:
        """Claim and run one job.

        Returns:
            The import result, or None if the job could not be claimed or
            raised.
        """
        job = await self.job_store.claim(job_id)
        if job is None:
            logger.debug("Job %s is no longer pending; skipping", job_id)
            return None

        logger.info("Processing import job %s (attempt %d)", job.id, job.attempts)

        async def report_progress(progress: int) -> None:
            await self.job_store.update_progress(job.id, progress)

        try:
            await report_progress(10)
            result = await self.finalizer.run_import(request_from_job(job), job_id=job.id, progress=report_progress)
        except Exception as exc:
            logger.exception("Import job %s failed", job.id)
            await self.job_store.fail(job.id, str(exc), traceback.format_exc())
            return None

        status = JOB_STATUS_BY_RESULT[result.overall_status]
        error_message = result.message if status == ImportJobStatus.FAILED else None
        await self.job_store.complete(job.id, status, result.model_dump(mode="json"), error_message=error_message)
        logger.info("Import job %s finished with status %s", job.id, status.value)
        return result
