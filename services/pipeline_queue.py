"""
In-process work queue for post-call pipeline runs.

The webhook handler must answer quickly, so call termination only submits a
job here and returns. Each job runs as its own asyncio task; a semaphore
bounds how many run at once. Every outcome, including failures, is recorded
on the job instead of propagating, so a failed run never affects the webhook
or other runs.
"""
import asyncio
import logging
import os
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Set

from models.job_models import JobStatus, PipelineJob
from models.minutes_models import MinutesDocument
from utils.errors import MinutesServiceError

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 4
# Finished jobs kept for status polling; oldest are dropped first
MAX_RETAINED_JOBS = 1000

PipelineRunner = Callable[[PipelineJob], Awaitable[MinutesDocument]]


class PipelineQueue:
    """Submit-and-return execution of pipeline jobs with observable status."""

    def __init__(self, runner: PipelineRunner, max_concurrency: Optional[int] = None):
        if max_concurrency is None:
            max_concurrency = int(os.getenv("PIPELINE_MAX_CONCURRENCY", DEFAULT_MAX_CONCURRENCY))
        if max_concurrency < 1:
            raise ValueError("PIPELINE_MAX_CONCURRENCY must be at least 1")

        self.runner = runner
        self.max_concurrency = max_concurrency
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._jobs: "OrderedDict[str, PipelineJob]" = OrderedDict()
        # Strong references; the event loop only keeps weak ones
        self._tasks: Set[asyncio.Task] = set()

    def submit(self, meeting_id: str, user_id: str, call_id: str) -> PipelineJob:
        """
        Queue a pipeline run and return immediately.

        Must be called from within the running event loop.

        Returns:
            The queued job; poll get(job.job_id) for its progress
        """
        job = PipelineJob(meeting_id=meeting_id, user_id=user_id, call_id=call_id)
        self._jobs[job.job_id] = job
        self._prune()

        task = asyncio.create_task(self._run(job), name=f"pipeline-{job.job_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.info(
            f"Pipeline job queued: job_id={job.job_id}, call_id={call_id}, "
            f"meeting_id={meeting_id}, pending={len(self._tasks)}"
        )
        return job

    def get(self, job_id: str) -> Optional[PipelineJob]:
        return self._jobs.get(job_id)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def join(self) -> None:
        """Wait until every submitted job has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel outstanding runs and wait for them to unwind."""
        if not self._tasks:
            return
        logger.warning(f"Cancelling {len(self._tasks)} pipeline job(s) on shutdown")
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)

        # Runs cancelled while waiting for a slot never started
        for job in self._jobs.values():
            if job.status == JobStatus.queued:
                job.status = JobStatus.failed
                job.error_code = "CANCELLED"
                job.error_message = "Pipeline run was cancelled before it started"
                job.completed_at = datetime.now(timezone.utc)

    async def _run(self, job: PipelineJob) -> None:
        async with self._semaphore:
            job.status = JobStatus.processing
            job.started_at = datetime.now(timezone.utc)
            logger.info(f"Pipeline job started: job_id={job.job_id}, call_id={job.call_id}")

            try:
                job.result = await self.runner(job)
                job.status = JobStatus.succeeded
                logger.info(f"Pipeline job succeeded: job_id={job.job_id}, meeting_id={job.meeting_id}")
            except MinutesServiceError as e:
                job.status = JobStatus.failed
                job.error_code = e.code
                job.error_message = e.message
                logger.error(
                    f"Pipeline job failed: job_id={job.job_id}, meeting_id={job.meeting_id}, "
                    f"code={e.code}, error={e.message}"
                )
            except asyncio.CancelledError:
                job.status = JobStatus.failed
                job.error_code = "CANCELLED"
                job.error_message = "Pipeline run was cancelled"
                raise
            except Exception as e:
                job.status = JobStatus.failed
                job.error_code = "INTERNAL_ERROR"
                job.error_message = f"{type(e).__name__}: {e}"
                logger.error(
                    f"Pipeline job crashed: job_id={job.job_id}, meeting_id={job.meeting_id}, "
                    f"error={type(e).__name__}: {e}",
                    exc_info=True,
                )
            finally:
                job.completed_at = datetime.now(timezone.utc)

    def _prune(self) -> None:
        while len(self._jobs) > MAX_RETAINED_JOBS:
            oldest_id = next(
                (job_id for job_id, job in self._jobs.items()
                 if job.status in (JobStatus.succeeded, JobStatus.failed)),
                None,
            )
            if oldest_id is None:
                return
            del self._jobs[oldest_id]
