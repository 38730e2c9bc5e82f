"""
Persisted record types.

These mirror the rows the persistence collaborator stores. The engine
reads them by ID or by parent and writes back executions and messages.
"""

from typing import Any, Dict, Optional
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
import uuid


def new_id() -> str:
    return str(uuid.uuid4())


class ExecutionStatus(str, Enum):
    """Status of a workflow execution."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    PAUSED = "paused"
    
    @property
    def is_terminal(self) -> bool:
        return self in (ExecutionStatus.COMPLETED, ExecutionStatus.FAILED)
    
    def can_transition(self, target: "ExecutionStatus", retry: bool = False) -> bool:
        """
        Check whether a status change is allowed.
        
        Status only moves forward, except for the running/paused pair.
        A failed execution may go back to running only when the job
        queue re-enters it for another attempt (``retry=True``).
        """
        if self == target:
            return not self.is_terminal
        if self == ExecutionStatus.FAILED:
            return retry and target == ExecutionStatus.RUNNING
        return target in _TRANSITIONS[self]


_TRANSITIONS = {
    ExecutionStatus.PENDING: {ExecutionStatus.RUNNING, ExecutionStatus.PAUSED, ExecutionStatus.FAILED},
    ExecutionStatus.RUNNING: {ExecutionStatus.COMPLETED, ExecutionStatus.FAILED, ExecutionStatus.PAUSED},
    ExecutionStatus.PAUSED: {ExecutionStatus.RUNNING, ExecutionStatus.COMPLETED, ExecutionStatus.FAILED},
    ExecutionStatus.COMPLETED: set(),
    ExecutionStatus.FAILED: set(),
}


@dataclass
class Workflow:
    """A stored workflow definition header."""
    id: str
    name: str
    description: str = ""
    status: str = "draft"
    persona_id: Optional[str] = None
    execution_count: int = 0
    success_count: int = 0
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)


@dataclass
class WorkflowNodeRecord:
    """A stored workflow node row."""
    id: str
    workflow_id: str
    node_type: str
    label: str = ""
    config: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class WorkflowEdgeRecord:
    """A stored workflow edge row."""
    id: str
    workflow_id: str
    source_node_id: str
    target_node_id: str
    label: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class Lead:
    id: str
    name: str
    email: Optional[str] = None
    company: Optional[str] = None
    phone: Optional[str] = None
    status: str = "new"


@dataclass
class Persona:
    id: str
    name: str
    system_prompt: str
    tone: str = ""
    industry: str = ""
    description: str = ""


@dataclass
class IntegrationSetting:
    """Provider credentials and switch, keyed by provider name."""
    provider: str
    config: Dict[str, Any] = field(default_factory=dict)
    is_active: bool = False
    updated_at: datetime = field(default_factory=datetime.now)


@dataclass
class WorkflowExecution:
    """The durable state of one run."""
    id: str
    workflow_id: str
    lead_id: str
    status: ExecutionStatus = ExecutionStatus.PENDING
    current_node_id: Optional[str] = None
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "workflow_id": self.workflow_id,
            "lead_id": self.lead_id,
            "status": self.status.value,
            "current_node_id": self.current_node_id,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "error": self.error,
        }


@dataclass
class Message:
    """
    One channel send made by a run.
    
    Delivery timestamps after ``sent_at`` are filled in later by webhook
    processing, correlated through the provider message ID in metadata.
    """
    id: str
    execution_id: str
    lead_id: str
    channel: str
    content: str
    persona_id: Optional[str] = None
    status: str = "pending"
    metadata: Optional[Dict[str, Any]] = None
    sent_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    opened_at: Optional[datetime] = None
    clicked_at: Optional[datetime] = None
    replied_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=datetime.now)
