"""
Workflow Execution API Routes.

Endpoints for starting runs and for pausing, resuming and observing them.
"""

from fastapi import APIRouter, HTTPException, Request
import logging

from reachflow.api.schemas import (
    ErrorResponse,
    ExecuteWorkflowRequest,
    ExecutionListResponse,
    ExecutionResponse,
    RunControlResponse,
    RunStatusResponse,
)
from reachflow.errors import NotFoundError
from reachflow.service import WorkflowRunService


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workflows", tags=["Executions"])


def _service(request: Request) -> WorkflowRunService:
    return request.app.state.run_service


@router.post(
    "/{workflow_id}/execute",
    response_model=ExecutionResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Lead ID missing"},
        404: {"model": ErrorResponse, "description": "Workflow not found"},
    },
)
async def execute_workflow(
    workflow_id: str,
    body: ExecuteWorkflowRequest,
    request: Request,
) -> ExecutionResponse:
    """
    Run a workflow for one lead.
    
    The run is queued; poll ``GET /workflows/executions/{id}/status``
    to follow it.
    """
    if not body.lead_id:
        raise HTTPException(status_code=400, detail="Lead ID is required")
    
    try:
        execution = await _service(request).start_run(workflow_id, body.lead_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    
    return ExecutionResponse.from_execution(execution)


@router.post(
    "/executions/{execution_id}/pause",
    response_model=RunControlResponse,
    responses={404: {"model": ErrorResponse}},
)
async def pause_execution(execution_id: str, request: Request) -> RunControlResponse:
    """Pause a queued run."""
    if not await _service(request).pause_run(execution_id):
        raise HTTPException(status_code=404, detail="Workflow execution not found")
    return RunControlResponse(message="Workflow paused")


@router.post(
    "/executions/{execution_id}/resume",
    response_model=RunControlResponse,
    responses={404: {"model": ErrorResponse}},
)
async def resume_execution(execution_id: str, request: Request) -> RunControlResponse:
    """Resume a paused or backed-off run."""
    if not await _service(request).resume_run(execution_id):
        raise HTTPException(status_code=404, detail="Workflow execution not found")
    return RunControlResponse(message="Workflow resumed")


@router.get(
    "/executions/{execution_id}/status",
    response_model=RunStatusResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_execution_status(execution_id: str, request: Request) -> RunStatusResponse:
    """Queue status of a run, or its stored status once the job expired."""
    try:
        status = await _service(request).run_status(execution_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return RunStatusResponse(**status)


@router.get(
    "/executions/{execution_id}",
    response_model=ExecutionResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_execution(execution_id: str, request: Request) -> ExecutionResponse:
    """Get a stored execution."""
    execution = await _service(request).get_run(execution_id)
    if execution is None:
        raise HTTPException(status_code=404, detail="Workflow execution not found")
    return ExecutionResponse.from_execution(execution)


@router.get(
    "/{workflow_id}/executions",
    response_model=ExecutionListResponse,
)
async def list_executions(workflow_id: str, request: Request) -> ExecutionListResponse:
    """List the executions of a workflow, most recent first."""
    executions = await _service(request).list_runs(workflow_id)
    return ExecutionListResponse(
        executions=[ExecutionResponse.from_execution(e) for e in executions],
        total=len(executions),
    )
