"""
Job Stores for the workflow execution queue.

The scheduler keeps every job record in a job store so queued, delayed,
retrying and parked jobs outlive the process that accepted them. Redis is
the production store; the in-memory store serves tests and single-process
development.

Stores index delayed jobs by the time they become due and finished jobs
by the time they finished, so the scheduler's maintenance pass never has
to scan every record.
"""

from typing import Dict, List, Optional, Protocol
import logging

import redis.asyncio as redis

from reachflow.queue.jobs import Job, JobState


logger = logging.getLogger(__name__)

# States whose jobs are indexed by a timestamp
INDEXED_STATES = (JobState.DELAYED, JobState.COMPLETED, JobState.FAILED)


def index_score(job: Job) -> Optional[float]:
    """Timestamp a job is indexed under, or None for waiting/active jobs."""
    if job.state == JobState.DELAYED:
        return job.delay_until
    if job.state.is_terminal:
        return job.finished_at
    return None


class JobStore(Protocol):
    """Persistence for job records."""
    
    async def save(self, job: Job) -> None:
        """Insert or replace a job record."""
    
    async def get(self, job_id: str) -> Optional[Job]:
        """Get a copy of a job record."""
    
    async def delete(self, job_id: str) -> None:
        """Remove a job record."""
    
    async def list_jobs(self) -> List[Job]:
        """All job records."""
    
    async def due(self, state: JobState, until: float) -> List[str]:
        """Ids of jobs in ``state`` indexed at or before ``until``."""
    
    async def close(self) -> None:
        """Release connections."""


class InMemoryJobStore:
    """
    Process-local job store.
    
    Records are kept as JSON, exactly as Redis keeps them, so callers
    always work on copies. Jobs survive a scheduler restart as long as the
    same store instance is reused.
    """
    
    def __init__(self):
        self._records: Dict[str, str] = {}
    
    async def save(self, job: Job) -> None:
        self._records[job.id] = job.to_json()
    
    async def get(self, job_id: str) -> Optional[Job]:
        raw = self._records.get(job_id)
        return Job.from_json(raw) if raw is not None else None
    
    async def delete(self, job_id: str) -> None:
        self._records.pop(job_id, None)
    
    async def list_jobs(self) -> List[Job]:
        return [Job.from_json(raw) for raw in self._records.values()]
    
    async def due(self, state: JobState, until: float) -> List[str]:
        due = []
        for job in await self.list_jobs():
            score = index_score(job)
            if job.state == state and score is not None and score <= until:
                due.append(job.id)
        return due
    
    async def close(self) -> None:
        pass
    
    def __len__(self) -> int:
        return len(self._records)


class RedisJobStore:
    """
    Job store on Redis.
    
    Layout under ``prefix``:
        <prefix>:records     hash of job id -> job JSON
        <prefix>:delayed     sorted set of job ids scored by delay_until
        <prefix>:completed   sorted set of job ids scored by finish time
        <prefix>:failed      sorted set of job ids scored by finish time
    
    Usage:
        store = RedisJobStore.from_url("redis://localhost:6379")
        scheduler = JobScheduler(executor, storage, job_store=store)
    """
    
    def __init__(self, client: "redis.Redis", prefix: str = "reachflow:jobs"):
        self._redis = client
        self.prefix = prefix
    
    @classmethod
    def from_url(cls, url: str, prefix: str = "reachflow:jobs") -> "RedisJobStore":
        """Create a store with its own connection pool (connects lazily)."""
        return cls(redis.from_url(url, decode_responses=True), prefix=prefix)
    
    @property
    def _records_key(self) -> str:
        return f"{self.prefix}:records"
    
    def _index_key(self, state: JobState) -> str:
        return f"{self.prefix}:{state.value}"
    
    async def save(self, job: Job) -> None:
        score = index_score(job)
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.hset(self._records_key, job.id, job.to_json())
            for state in INDEXED_STATES:
                pipe.zrem(self._index_key(state), job.id)
            if score is not None:
                pipe.zadd(self._index_key(job.state), {job.id: score})
            await pipe.execute()
    
    async def get(self, job_id: str) -> Optional[Job]:
        raw = await self._redis.hget(self._records_key, job_id)
        return Job.from_json(raw) if raw is not None else None
    
    async def delete(self, job_id: str) -> None:
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.hdel(self._records_key, job_id)
            for state in INDEXED_STATES:
                pipe.zrem(self._index_key(state), job_id)
            await pipe.execute()
    
    async def list_jobs(self) -> List[Job]:
        return [Job.from_json(raw) for raw in await self._redis.hvals(self._records_key)]
    
    async def due(self, state: JobState, until: float) -> List[str]:
        if state not in INDEXED_STATES:
            return []
        return list(await self._redis.zrangebyscore(self._index_key(state), "-inf", until))
    
    async def close(self) -> None:
        await self._redis.aclose()
        logger.debug("Redis job store closed")
