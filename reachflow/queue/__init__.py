"""
Queue package - Job scheduling for workflow executions.
"""

from reachflow.queue.jobs import Job, JobState, JobStatus, WorkflowJobData
from reachflow.queue.store import InMemoryJobStore, JobStore, RedisJobStore
from reachflow.queue.scheduler import JobScheduler, compute_backoff

__all__ = [
    "Job",
    "JobState",
    "JobStatus",
    "WorkflowJobData",
    "InMemoryJobStore",
    "JobStore",
    "RedisJobStore",
    "JobScheduler",
    "compute_backoff",
]
