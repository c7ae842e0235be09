"""
Database-backed job queue for CV processing.

The upload layer enqueues {cv_document_id}; QueueWorker claims pending jobs,
runs the handler with bounded concurrency and records the outcome. Failed
jobs are re-queued until max_attempts, jobs whose CV is still locked by
another run are deferred, and jobs stuck in PROCESSING (worker crash) are
recovered after a timeout.
"""
import asyncio
import logging
from datetime import timedelta
from typing import Awaitable, Callable, List, Tuple

from sqlalchemy import select, update

from ..models import CvProcessingJob, ProcessingJobStatus
from ..models.cv import utcnow

logger = logging.getLogger(__name__)

Handler = Callable[[dict], Awaitable[dict]]


async def enqueue(db, cv_document_id: str, max_attempts: int = 3) -> CvProcessingJob:
    """Add a pending job for a CV document and commit it."""
    job = CvProcessingJob(
        cv_document_id=cv_document_id,
        status=ProcessingJobStatus.PENDING,
        max_attempts=max_attempts,
    )
    db.add(job)
    await db.commit()
    await db.refresh(job)
    logger.info(f"[QUEUE] Enqueued job {job.id} for CV {cv_document_id}")
    return job


class QueueWorker:

    def __init__(self, session_maker, handler: Handler, concurrency: int = 4,
                 poll_interval: float = 2.0, stuck_timeout: int = 300):
        self.session_maker = session_maker
        self.handler = handler
        self.concurrency = concurrency
        self.poll_interval = poll_interval
        self.stuck_timeout = stuck_timeout
        self._slots = asyncio.Semaphore(concurrency)
        self._tasks = set()

    @property
    def free_slots(self) -> int:
        return max(0, self.concurrency - len(self._tasks))

    async def claim(self, limit: int) -> List[Tuple[str, str]]:
        """Move up to ``limit`` pending jobs to PROCESSING; returns (job_id, cv_document_id)."""
        if limit <= 0:
            return []

        claimed = []
        async with self.session_maker() as db:
            result = await db.execute(
                select(CvProcessingJob.id, CvProcessingJob.cv_document_id)
                .where(CvProcessingJob.status == ProcessingJobStatus.PENDING)
                .order_by(CvProcessingJob.created_at)
                .limit(limit)
            )
            for job_id, cv_document_id in result.all():
                # Guarded transition: another worker may have taken it already
                updated = await db.execute(
                    update(CvProcessingJob)
                    .where(
                        CvProcessingJob.id == job_id,
                        CvProcessingJob.status == ProcessingJobStatus.PENDING,
                    )
                    .values(
                        status=ProcessingJobStatus.PROCESSING,
                        attempts=CvProcessingJob.attempts + 1,
                        started_at=utcnow(),
                        completed_at=None,
                    )
                    .execution_options(synchronize_session=False)
                )
                if updated.rowcount == 1:
                    claimed.append((job_id, cv_document_id))
            await db.commit()
        return claimed

    async def _finish(self, job_id: str, error: str = None) -> None:
        async with self.session_maker() as db:
            job = await db.get(CvProcessingJob, job_id)
            if job is None:
                return

            if error is None:
                job.status = ProcessingJobStatus.COMPLETED
                job.error_message = None
                job.completed_at = utcnow()
            elif job.attempts < job.max_attempts:
                job.status = ProcessingJobStatus.PENDING
                job.error_message = error[:500]
                logger.info(f"[WORKER] Job {job_id} re-queued (attempt {job.attempts}/{job.max_attempts})")
            else:
                job.status = ProcessingJobStatus.FAILED
                job.error_message = error[:500]
                job.completed_at = utcnow()
            await db.commit()

    async def _defer(self, job_id: str) -> None:
        """Put a job back to PENDING without using up an attempt."""
        async with self.session_maker() as db:
            await db.execute(
                update(CvProcessingJob)
                .where(
                    CvProcessingJob.id == job_id,
                    CvProcessingJob.status == ProcessingJobStatus.PROCESSING,
                )
                .values(
                    status=ProcessingJobStatus.PENDING,
                    attempts=CvProcessingJob.attempts - 1,
                    started_at=None,
                )
                .execution_options(synchronize_session=False)
            )
            await db.commit()

    async def execute(self, job_id: str, cv_document_id: str) -> None:
        async with self._slots:
            try:
                result = await self.handler({"cv_document_id": cv_document_id})
            except Exception as e:
                logger.error(f"[WORKER] Job {job_id} failed for CV {cv_document_id}: {e}")
                await self._finish(job_id, error=str(e) or e.__class__.__name__)
                return

            # Another run still holds the CV: try again once its lease is gone
            if isinstance(result, dict) and result.get("skipped"):
                logger.info(f"[WORKER] Job {job_id} deferred, CV {cv_document_id} is locked by another run")
                await self._defer(job_id)
            else:
                await self._finish(job_id)

    async def recover_stuck(self) -> int:
        """Re-queue (or fail) jobs left in PROCESSING longer than stuck_timeout."""
        cutoff = utcnow() - timedelta(seconds=self.stuck_timeout)
        async with self.session_maker() as db:
            result = await db.execute(
                select(CvProcessingJob).where(
                    CvProcessingJob.status == ProcessingJobStatus.PROCESSING,
                    CvProcessingJob.started_at < cutoff,
                )
            )
            stuck = result.scalars().all()
            for job in stuck:
                job.error_message = "Job timed out (stuck in processing)."
                if job.attempts < job.max_attempts:
                    job.status = ProcessingJobStatus.PENDING
                else:
                    job.status = ProcessingJobStatus.FAILED
                    job.completed_at = utcnow()
            await db.commit()

        if stuck:
            logger.warning(f"[WORKER] Recovered {len(stuck)} stuck job(s)")
        return len(stuck)

    async def run_once(self) -> int:
        """Claim what fits in the free slots and start it. Returns the number started."""
        claimed = await self.claim(self.free_slots)
        for job_id, cv_document_id in claimed:
            task = asyncio.create_task(self.execute(job_id, cv_document_id))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return len(claimed)

    async def drain(self) -> None:
        """Wait for every started job to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def run_forever(self, stop: asyncio.Event) -> None:
        logger.info(f"[WORKER] Started with {self.concurrency} slot(s). Waiting for jobs in queue: cv-processing")
        while not stop.is_set():
            try:
                await self.recover_stuck()
                await self.run_once()
            except Exception:
                logger.exception("[WORKER] Polling failed")
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass

        logger.info("[WORKER] Stopping, waiting for running jobs")
        await self.drain()
