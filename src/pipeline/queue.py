"""Scan queue: single-flight sequencing of scan jobs.

All state lives on one asyncio event loop; public methods are synchronous
mutations, so they are serialised with each other and with the engine's
checkpoints. At most one job holds the current slot at any time.

Pause is a genuine wait: the job's token blocks the engine at its next
checkpoint until resume() or cancel(). Neither pause nor cancel aborts a
provider call that is already in flight.
"""

import asyncio
import logging
import uuid
from collections.abc import Callable
from datetime import datetime

from src.core.config import QueueConfig
from src.core.errors import ScanCancelled
from src.core.schemas import JobStatus, ScanJob, ScanProgress
from src.pipeline.control import ScanToken
from src.pipeline.engine import ScanEngine

logger = logging.getLogger(__name__)

JobListener = Callable[[list[ScanJob]], None]


class ScanQueue:
    """Owns pending/active scan jobs and drives the scan engine.

    Construct one per process and pass it to callers::

        queue = ScanQueue(engine, settings.queue)
        unsubscribe = queue.subscribe(print_jobs)
        job_id = queue.enqueue(project_id)
        await queue.drain()
    """

    def __init__(self, engine: ScanEngine, config: QueueConfig | None = None) -> None:
        self._engine = engine
        self._config = config or QueueConfig()
        self._jobs: list[ScanJob] = []
        self._current: ScanJob | None = None
        self._tokens: dict[str, ScanToken] = {}
        self._paused = False
        self._dispatch_pending = False
        self._listeners: list[JobListener] = []
        self._tasks: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, listener: JobListener) -> Callable[[], None]:
        """Register a job-list listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self) -> None:
        snapshot = self.get_jobs()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.warning("Job listener raised - ignoring", exc_info=True)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def enqueue(self, project_id: str) -> str:
        """Queue a scan for a project and return the new job id."""
        job = ScanJob(id=f"scan_{uuid.uuid4().hex}", project_id=project_id)
        self._jobs.append(job)
        logger.info("Queued job %s for project %s", job.id, project_id)
        self._emit()
        self._dispatch()
        return job.id

    def pause(self, job_id: str) -> bool:
        """Pause the running job. Returns False if it is not running."""
        job = self._find(job_id)
        if job is None or job.status is not JobStatus.RUNNING:
            return False

        job.status = JobStatus.PAUSED
        self._paused = True
        token = self._tokens.get(job.id)
        if token is not None:
            token.pause()
        logger.info("Paused job %s", job.id)
        self._emit()
        return True

    def resume(self, job_id: str) -> bool:
        """Resume a paused job. Returns False if it is not paused."""
        job = self._find(job_id)
        if job is None or job.status is not JobStatus.PAUSED:
            return False

        job.status = JobStatus.RUNNING
        self._paused = False
        token = self._tokens.get(job.id)
        if token is not None:
            token.resume()
        logger.info("Resumed job %s", job.id)
        self._emit()
        self._dispatch()
        return True

    def cancel(self, job_id: str) -> bool:
        """Cancel a queued, running, or paused job and remove it.

        Returns False for unknown or already-terminal jobs.
        """
        job = self._find(job_id)
        if job is None or job.status.is_terminal:
            return False

        if job is self._current:
            token = self._tokens.pop(job.id, None)
            if token is not None:
                token.cancel()
            if job.status is JobStatus.PAUSED:
                self._paused = False
            self._current = None

        job.status = JobStatus.CANCELLED
        job.completed_at = datetime.now()
        self._jobs.remove(job)
        logger.info("Cancelled job %s", job.id)
        self._emit()
        self._schedule_dispatch()
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def current_job(self) -> ScanJob | None:
        return self._current.model_copy(deep=True) if self._current else None

    @property
    def is_paused(self) -> bool:
        return self._paused

    def get_jobs(self) -> list[ScanJob]:
        """Snapshot of all known jobs in enqueue order."""
        return [job.model_copy(deep=True) for job in self._jobs]

    def get_jobs_by_project(self, project_id: str) -> list[ScanJob]:
        return [job for job in self.get_jobs() if job.project_id == project_id]

    def get_job(self, job_id: str) -> ScanJob | None:
        job = self._find(job_id)
        return job.model_copy(deep=True) if job else None

    async def drain(self) -> None:
        """Wait until no engine task is left running.

        Also waits out a scheduled dispatch, so queued jobs behind the
        current one are run too. A paused job keeps this waiting until it is
        resumed or cancelled; a globally paused queue with nothing running
        returns immediately.
        """
        while True:
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
            elif self._dispatch_pending:
                await asyncio.sleep(self._config.dispatch_delay_seconds)
            else:
                return

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _find(self, job_id: str) -> ScanJob | None:
        for job in self._jobs:
            if job.id == job_id:
                return job
        return None

    def _schedule_dispatch(self) -> None:
        self._dispatch_pending = True
        asyncio.get_running_loop().call_later(
            self._config.dispatch_delay_seconds, self._dispatch
        )

    def _dispatch(self) -> None:
        self._dispatch_pending = False
        if self._paused or self._current is not None:
            return

        job = next((j for j in self._jobs if j.status is JobStatus.QUEUED), None)
        if job is None:
            return

        token = ScanToken()
        self._current = job
        self._tokens[job.id] = token
        job.status = JobStatus.RUNNING
        job.started_at = datetime.now()
        logger.info("Starting job %s for project %s", job.id, job.project_id)
        self._emit()

        task = asyncio.get_running_loop().create_task(self._run_job(job, token))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_job(self, job: ScanJob, token: ScanToken) -> None:
        def on_progress(progress: ScanProgress) -> None:
            # late events from a paused or cancelled job are dropped
            if job.status is JobStatus.RUNNING:
                job.progress = progress
                self._emit()

        try:
            scan_id = await self._engine.run(job.project_id, on_progress, token)
        except ScanCancelled:
            logger.info("Job %s stopped after cancellation", job.id)
        except Exception as e:
            if not token.cancelled:
                job.status = JobStatus.FAILED
                job.error = str(e)
                job.completed_at = datetime.now()
                logger.error("Job %s failed: %s", job.id, e)
        else:
            if not token.cancelled:
                job.status = JobStatus.COMPLETED
                job.scan_id = scan_id
                job.completed_at = datetime.now()
                logger.info("Job %s completed (scan %s)", job.id, scan_id)
        finally:
            if self._current is job:
                # a job that finished while paused must not leave the queue stalled
                self._paused = False
                self._current = None
                self._tokens.pop(job.id, None)
                self._prune_finished()
                self._emit()
                self._schedule_dispatch()

    def _prune_finished(self) -> None:
        finished = [j for j in self._jobs if j.status.is_terminal]
        excess = len(finished) - self._config.max_finished_jobs
        for job in finished[:max(0, excess)]:
            self._jobs.remove(job)
