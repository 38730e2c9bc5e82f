"""
Run control service.

The narrow contract callers use to start, pause, resume and observe
workflow runs. The HTTP routes are a thin layer over this.
"""

from typing import Any, Dict, List, Optional
import logging

from reachflow.errors import NotFoundError
from reachflow.queue.scheduler import JobScheduler
from reachflow.storage.base import WorkflowStore
from reachflow.storage.models import WorkflowExecution


logger = logging.getLogger(__name__)


class WorkflowRunService:
    """Starts runs through the scheduler and reports on them."""
    
    def __init__(self, storage: WorkflowStore, scheduler: JobScheduler):
        self.storage = storage
        self.scheduler = scheduler
    
    async def start_run(self, workflow_id: str, lead_id: str) -> WorkflowExecution:
        """
        Create a pending execution and hand it to the scheduler.
        
        Raises:
            NotFoundError: If the workflow does not exist
        """
        workflow = await self.storage.get_workflow(workflow_id)
        if workflow is None:
            raise NotFoundError("Workflow not found")
        
        execution = await self.storage.create_execution(workflow_id, lead_id)
        await self.scheduler.enqueue(execution.id, workflow_id, lead_id)
        logger.info(f"Started run {execution.id} of workflow {workflow_id} for lead {lead_id}")
        return execution
    
    async def pause_run(self, execution_id: str) -> bool:
        return await self.scheduler.pause(execution_id)
    
    async def resume_run(self, execution_id: str) -> bool:
        return await self.scheduler.resume(execution_id)
    
    async def run_status(self, execution_id: str) -> Dict[str, Any]:
        """
        Queue status of a run, or its persisted status once the queue
        no longer knows the job.
        
        Raises:
            NotFoundError: If neither the queue nor storage knows the run
        """
        job_status = await self.scheduler.status(execution_id)
        if job_status is not None:
            return {"source": "queue", **job_status.to_dict()}
        
        execution = await self.storage.get_execution(execution_id)
        if execution is None:
            raise NotFoundError("Workflow execution not found")
        return {"source": "storage", **execution.to_dict()}
    
    async def list_runs(self, workflow_id: str) -> List[WorkflowExecution]:
        """Executions of a workflow, most recent first."""
        return await self.storage.list_executions(workflow_id)
    
    async def get_run(self, execution_id: str) -> Optional[WorkflowExecution]:
        return await self.storage.get_execution(execution_id)
