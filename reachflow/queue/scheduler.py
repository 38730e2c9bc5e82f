"""
Job Scheduler for workflow executions.

Decouples "a run was requested" from "a run executes now". Every job is
kept in a job store keyed by execution id, so queued, delayed and
retrying runs survive a restart: ``start()`` queues again whatever a
previous process left waiting or active. A bounded pool of asyncio
workers processes the jobs; failed runs are retried with exponential
backoff, and queued runs can be paused and resumed.

Pause is coarse: it keeps a queued job from starting, but a run that is
already inside the executor finishes its traversal.
"""

from typing import Any, List, Optional
from datetime import datetime
import asyncio
import logging
import time

from reachflow.config import Settings, settings as default_settings
from reachflow.errors import InvalidTransitionError, WorkflowPausedError
from reachflow.queue.jobs import Job, JobState, JobStatus, WorkflowJobData
from reachflow.queue.store import InMemoryJobStore, JobStore
from reachflow.storage.base import WorkflowStore
from reachflow.storage.models import ExecutionStatus


logger = logging.getLogger(__name__)


def compute_backoff(attempts_made: int, base_delay: float) -> float:
    """Delay before the next attempt: base, 2 x base, 4 x base..."""
    return base_delay * (2 ** max(attempts_made - 1, 0))


class JobScheduler:
    """
    Job queue with a bounded worker pool.
    
    Usage:
        scheduler = JobScheduler(executor, storage, job_store=RedisJobStore.from_url(url))
        await scheduler.start()
        await scheduler.enqueue(execution.id, workflow.id, lead.id)
        ...
        await scheduler.close()
    
    ``executor`` is anything with ``async run(execution_id, retry=False)``.
    Without a ``job_store`` jobs are kept in memory and last only as long
    as the scheduler's store object.
    
    One scheduler consumes a job store at a time.
    """
    
    def __init__(
        self,
        executor: Any,
        storage: WorkflowStore,
        settings: Optional[Settings] = None,
        job_store: Optional[JobStore] = None,
    ):
        self.executor = executor
        self.storage = storage
        self.settings = settings or default_settings
        self.job_store = job_store if job_store is not None else InMemoryJobStore()
        
        self._ready: asyncio.Queue = asyncio.Queue()
        self._lock = asyncio.Lock()
        self._tasks: List[asyncio.Task] = []
        self._closing = False
        self._active_count = 0
    
    @property
    def concurrency(self) -> int:
        return self.settings.WORKER_CONCURRENCY
    
    @property
    def is_running(self) -> bool:
        return bool(self._tasks)
    
    @property
    def active_count(self) -> int:
        """Number of jobs currently inside the executor."""
        return self._active_count
    
    # ============================================================
    # Lifecycle
    # ============================================================
    
    async def start(self) -> None:
        """Queue recovered jobs, then spawn the worker pool and the maintenance task."""
        if self._tasks:
            return
        self._closing = False
        recovered = await self._recover()
        for worker_id in range(self.concurrency):
            self._tasks.append(asyncio.create_task(self._worker(worker_id)))
        self._tasks.append(asyncio.create_task(self._maintain()))
        logger.info(
            f"Job scheduler started with {self.concurrency} workers "
            f"({recovered} jobs recovered)"
        )
    
    async def close(self, timeout: Optional[float] = None) -> None:
        """
        Stop the workers.
        
        Workers stop taking jobs at once. Runs inside the executor get up
        to ``timeout`` seconds (``SHUTDOWN_GRACE_SECONDS`` by default) to
        finish. Runs still going after that are cancelled and their jobs
        go back to waiting in the job store, for the next ``start()``.
        """
        self._closing = True
        grace = self.settings.SHUTDOWN_GRACE_SECONDS if timeout is None else timeout
        deadline = time.monotonic() + grace
        while self._active_count and time.monotonic() < deadline:
            await asyncio.sleep(self.settings.QUEUE_POLL_INTERVAL)
        
        if self._active_count:
            logger.warning(f"Interrupting {self._active_count} running jobs after {grace}s")
        
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Job scheduler closed")
    
    async def _recover(self) -> int:
        """Queue the jobs a previous process left waiting or active."""
        recovered = 0
        async with self._lock:
            for job in await self.job_store.list_jobs():
                if job.state == JobState.ACTIVE:
                    # The process died mid-run; the attempt counts
                    job.reentry = True
                    self._make_ready(job)
                    await self.job_store.save(job)
                elif job.state == JobState.WAITING:
                    self._ready.put_nowait(job.id)
                else:
                    continue
                recovered += 1
        return recovered
    
    # ============================================================
    # Commands
    # ============================================================
    
    async def enqueue(self, execution_id: str, workflow_id: str, lead_id: str) -> Job:
        """
        Admit a run, keyed by its execution id.
        
        Enqueuing an id that already has a job returns that job unchanged,
        so the same run is never executed twice at once.
        """
        async with self._lock:
            existing = await self.job_store.get(execution_id)
            if existing is not None:
                logger.info(f"Execution {execution_id} already queued ({existing.state.value})")
                return existing
            
            job = Job(
                id=execution_id,
                data=WorkflowJobData(execution_id, workflow_id, lead_id),
                max_attempts=self.settings.JOB_ATTEMPTS,
            )
            await self.job_store.save(job)
            self._ready.put_nowait(execution_id)
        
        logger.info(
            f"Enqueued workflow execution {execution_id} "
            f"(workflow={workflow_id}, lead={lead_id})"
        )
        return job
    
    async def pause(self, execution_id: str) -> bool:
        """
        Hold a job back for the pause delay.
        
        Returns:
            False if there is no such job or it already finished
        """
        async with self._lock:
            job = await self.job_store.get(execution_id)
            if job is None or job.state.is_terminal:
                return False
            
            job.paused = True
            if job.state != JobState.ACTIVE:
                self._delay(job, self.settings.PAUSE_DELAY_SECONDS)
            await self.job_store.save(job)
        
        await self._sync_execution_status(execution_id, ExecutionStatus.PAUSED)
        logger.info(f"Paused workflow execution {execution_id}")
        return True
    
    async def resume(self, execution_id: str) -> bool:
        """
        Make a delayed job (paused, or waiting out a retry backoff) run now.
        
        Returns:
            False if there is no such job or it already finished
        """
        async with self._lock:
            job = await self.job_store.get(execution_id)
            if job is None or job.state.is_terminal:
                return False
            
            job.paused = False
            if job.state == JobState.DELAYED:
                job.reentry = True
                self._make_ready(job)
            await self.job_store.save(job)
        
        await self._sync_execution_status(execution_id, ExecutionStatus.RUNNING)
        logger.info(f"Resumed workflow execution {execution_id}")
        return True
    
    async def status(self, execution_id: str) -> Optional[JobStatus]:
        """Queue-level status of a job, or None if unknown."""
        job = await self.job_store.get(execution_id)
        return JobStatus.from_job(job) if job is not None else None
    
    # ============================================================
    # Maintenance
    # ============================================================
    
    async def promote_delayed(self) -> int:
        """Move delayed jobs whose delay has passed back to waiting."""
        promoted = 0
        async with self._lock:
            for job_id in await self.job_store.due(JobState.DELAYED, time.time()):
                job = await self.job_store.get(job_id)
                if job is None or job.state != JobState.DELAYED:
                    continue
                self._make_ready(job)
                await self.job_store.save(job)
                promoted += 1
        return promoted
    
    async def clean(self) -> int:
        """Drop finished jobs older than their retention period."""
        now = time.time()
        retention = {
            JobState.COMPLETED: self.settings.COMPLETED_JOB_RETENTION_SECONDS,
            JobState.FAILED: self.settings.FAILED_JOB_RETENTION_SECONDS,
        }
        removed = 0
        async with self._lock:
            for state, seconds in retention.items():
                for job_id in await self.job_store.due(state, now - seconds):
                    await self.job_store.delete(job_id)
                    removed += 1
        
        if removed:
            logger.debug(f"Removed {removed} finished jobs")
        return removed
    
    async def _maintain(self) -> None:
        while True:
            await asyncio.sleep(self.settings.QUEUE_POLL_INTERVAL)
            await self.promote_delayed()
            await self.clean()
    
    # ============================================================
    # Workers
    # ============================================================
    
    async def _worker(self, worker_id: int) -> None:
        while True:
            job_id = await self._ready.get()
            try:
                await self._process(job_id)
            except Exception as e:
                logger.exception(f"Worker {worker_id} crashed on job {job_id}: {e}")
            finally:
                self._ready.task_done()
    
    async def _process(self, job_id: str) -> None:
        async with self._lock:
            job = await self.job_store.get(job_id)
            # Stale queue entry: the job was paused, removed or already taken
            if job is None or job.state != JobState.WAITING or self._closing:
                return
            job.state = JobState.ACTIVE
            job.attempts_made += 1
            job.processed_on = datetime.now()
            retry = job.attempts_made > 1 or job.reentry
            await self.job_store.save(job)
        
        data = job.data
        logger.info(
            f"Processing workflow execution job {job.id} "
            f"(attempt {job.attempts_made}/{job.max_attempts})"
        )
        
        self._active_count += 1
        try:
            await self.executor.run(data.execution_id, retry=retry)
        except asyncio.CancelledError:
            await self._put_back(job)
            raise
        except WorkflowPausedError:
            async with self._lock:
                job = await self._reload(job)
                job.attempts_made -= 1
                job.paused = True
                self._delay(job, self.settings.PAUSE_DELAY_SECONDS)
                await self.job_store.save(job)
            logger.info(f"Job {job.id} is paused, parked for later")
            return
        except Exception as e:
            async with self._lock:
                job = await self._reload(job)
                self._handle_failure(job, e)
                await self.job_store.save(job)
            return
        finally:
            self._active_count -= 1
        
        async with self._lock:
            job = await self._reload(job)
            job.state = JobState.COMPLETED
            job.finished_on = datetime.now()
            job.return_value = {"success": True, "execution_id": data.execution_id}
            job.failed_reason = None
            await self.job_store.save(job)
        logger.info(f"Job {job.id} completed successfully")
    
    async def _put_back(self, job: Job) -> None:
        """Return a job interrupted by shutdown to the store, without spending its attempt."""
        async with self._lock:
            job = await self._reload(job)
            job.attempts_made = max(job.attempts_made - 1, 0)
            job.reentry = True
            if job.paused:
                self._delay(job, self.settings.PAUSE_DELAY_SECONDS)
            else:
                job.state = JobState.WAITING
                job.delay_until = None
            await self.job_store.save(job)
        logger.warning(f"Job {job.id} interrupted by shutdown, returned to the queue")
    
    async def _reload(self, job: Job) -> Job:
        """Latest stored copy of a job; pause flags may have changed meanwhile."""
        return await self.job_store.get(job.id) or job
    
    def _handle_failure(self, job: Job, error: Exception) -> None:
        job.failed_reason = str(error)
        
        if job.paused:
            self._delay(job, self.settings.PAUSE_DELAY_SECONDS)
            logger.info(f"Job {job.id} failed while paused, parked: {error}")
            return
        
        retryable = not isinstance(error, InvalidTransitionError)
        if retryable and job.attempts_made < job.max_attempts:
            delay = compute_backoff(job.attempts_made, self.settings.JOB_BACKOFF_SECONDS)
            self._delay(job, delay)
            logger.warning(
                f"Job {job.id} failed (attempt {job.attempts_made}/{job.max_attempts}), "
                f"retrying in {delay:.1f}s: {error}"
            )
            return
        
        job.state = JobState.FAILED
        job.finished_on = datetime.now()
        logger.error(
            f"Job {job.id} failed after {job.attempts_made} attempts: {error}"
        )
    
    def _delay(self, job: Job, seconds: float) -> None:
        job.state = JobState.DELAYED
        job.delay_until = time.time() + seconds
    
    def _make_ready(self, job: Job) -> None:
        job.state = JobState.WAITING
        job.delay_until = None
        self._ready.put_nowait(job.id)
    
    async def _sync_execution_status(self, execution_id: str, status: ExecutionStatus) -> None:
        """Mirror a pause/resume onto the execution record when allowed."""
        execution = await self.storage.get_execution(execution_id)
        if execution is None:
            return
        if execution.status.can_transition(status, retry=True):
            await self.storage.update_execution(execution_id, status=status)
        else:
            logger.debug(
                f"Execution {execution_id} stays {execution.status.value} "
                f"(cannot become {status.value})"
            )
