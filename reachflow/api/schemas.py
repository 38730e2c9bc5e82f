"""
Pydantic Schemas for API Request/Response Models.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from reachflow.storage.models import ExecutionStatus, WorkflowExecution


# ============================================================
# Requests
# ============================================================

class ExecuteWorkflowRequest(BaseModel):
    """Request to run a workflow for one lead."""
    lead_id: Optional[str] = Field(None, description="Lead the workflow acts on")
    
    class Config:
        json_schema_extra = {
            "example": {"lead_id": "6f1c2f0e-2b7a-4c55-9d0e-2d6d5c0b9a11"}
        }


# ============================================================
# Responses
# ============================================================

class ExecutionResponse(BaseModel):
    """A persisted workflow execution."""
    id: str
    workflow_id: str
    lead_id: str
    status: ExecutionStatus
    current_node_id: Optional[str] = None
    started_at: str
    completed_at: Optional[str] = None
    error: Optional[str] = None
    
    @classmethod
    def from_execution(cls, execution: WorkflowExecution) -> "ExecutionResponse":
        return cls(**execution.to_dict())


class ExecutionListResponse(BaseModel):
    """Executions of one workflow."""
    executions: List[ExecutionResponse]
    total: int


class RunControlResponse(BaseModel):
    """Outcome of a pause or resume."""
    success: bool = True
    message: str


class RunStatusResponse(BaseModel):
    """
    Status of a run.
    
    ``source`` is "queue" while the job queue knows the run (``state``,
    ``attempts_made`` and friends are set) and "storage" afterwards
    (``status``, ``current_node_id`` and friends are set).
    """
    id: str
    source: str = Field(..., description="'queue' or 'storage'")
    state: Optional[str] = Field(None, description="waiting, active, delayed, completed or failed")
    attempts_made: Optional[int] = None
    processed_on: Optional[str] = None
    finished_on: Optional[str] = None
    return_value: Optional[Dict[str, Any]] = None
    failed_reason: Optional[str] = None
    status: Optional[ExecutionStatus] = None
    current_node_id: Optional[str] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    error: Optional[str] = None


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str
    detail: Optional[str] = None
