"""
Job records for the workflow execution queue.

A Job is the queue's view of one execution: its payload, its state and
its attempt history. Jobs are serialized to JSON so a job store can keep
them outside the process.
"""

from typing import Any, Dict, Optional
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
import json


class JobState(str, Enum):
    """Queue-level state of a job."""
    WAITING = "waiting"
    ACTIVE = "active"
    DELAYED = "delayed"
    COMPLETED = "completed"
    FAILED = "failed"
    
    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED)


@dataclass(frozen=True)
class WorkflowJobData:
    """Payload of an "execute this run" command."""
    execution_id: str
    workflow_id: str
    lead_id: str


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class Job:
    """
    A queued execution and its attempt history.
    
    Attributes:
        id: Job id, equal to the execution id
        data: What to run
        max_attempts: Attempts allowed before the job fails for good
        state: Queue-level state
        attempts_made: Attempts started so far
        paused: Pause was requested; the job is parked instead of retried
        reentry: The next attempt re-enters an execution already under way
        delay_until: Epoch seconds a delayed job becomes due
        finished_on: When the job completed or failed for good
    """
    id: str
    data: WorkflowJobData
    max_attempts: int
    state: JobState = JobState.WAITING
    attempts_made: int = 0
    paused: bool = False
    reentry: bool = False
    delay_until: Optional[float] = None
    created_at: datetime = field(default_factory=datetime.now)
    processed_on: Optional[datetime] = None
    finished_on: Optional[datetime] = None
    return_value: Optional[Dict[str, Any]] = None
    failed_reason: Optional[str] = None
    
    @property
    def finished_at(self) -> Optional[float]:
        """Epoch seconds of ``finished_on``, used for retention."""
        return self.finished_on.timestamp() if self.finished_on else None
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "data": {
                "execution_id": self.data.execution_id,
                "workflow_id": self.data.workflow_id,
                "lead_id": self.data.lead_id,
            },
            "max_attempts": self.max_attempts,
            "state": self.state.value,
            "attempts_made": self.attempts_made,
            "paused": self.paused,
            "reentry": self.reentry,
            "delay_until": self.delay_until,
            "created_at": _format_datetime(self.created_at),
            "processed_on": _format_datetime(self.processed_on),
            "finished_on": _format_datetime(self.finished_on),
            "return_value": self.return_value,
            "failed_reason": self.failed_reason,
        }
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Job":
        return cls(
            id=data["id"],
            data=WorkflowJobData(**data["data"]),
            max_attempts=data["max_attempts"],
            state=JobState(data["state"]),
            attempts_made=data.get("attempts_made", 0),
            paused=data.get("paused", False),
            reentry=data.get("reentry", False),
            delay_until=data.get("delay_until"),
            created_at=_parse_datetime(data.get("created_at")) or datetime.now(),
            processed_on=_parse_datetime(data.get("processed_on")),
            finished_on=_parse_datetime(data.get("finished_on")),
            return_value=data.get("return_value"),
            failed_reason=data.get("failed_reason"),
        )
    
    def to_json(self) -> str:
        return json.dumps(self.to_dict())
    
    @classmethod
    def from_json(cls, raw: str) -> "Job":
        return cls.from_dict(json.loads(raw))


@dataclass
class JobStatus:
    """Snapshot of a job for status queries."""
    id: str
    state: JobState
    attempts_made: int
    processed_on: Optional[datetime] = None
    finished_on: Optional[datetime] = None
    return_value: Optional[Dict[str, Any]] = None
    failed_reason: Optional[str] = None
    
    @classmethod
    def from_job(cls, job: Job) -> "JobStatus":
        return cls(
            id=job.id,
            state=job.state,
            attempts_made=job.attempts_made,
            processed_on=job.processed_on,
            finished_on=job.finished_on,
            return_value=job.return_value,
            failed_reason=job.failed_reason,
        )
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "state": self.state.value,
            "attempts_made": self.attempts_made,
            "processed_on": _format_datetime(self.processed_on),
            "finished_on": _format_datetime(self.finished_on),
            "return_value": self.return_value,
            "failed_reason": self.failed_reason,
        }
