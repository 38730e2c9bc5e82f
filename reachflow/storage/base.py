"""Persistence protocol consumed by the engine, scheduler and adapters."""

from typing import Any, List, Optional, Protocol

from reachflow.storage.models import (
    ExecutionStatus,
    IntegrationSetting,
    Lead,
    Message,
    Persona,
    Workflow,
    WorkflowEdgeRecord,
    WorkflowExecution,
    WorkflowNodeRecord,
)


class WorkflowStore(Protocol):
    """Read/write access by ID plus list-by-parent queries."""
    
    async def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        """Retrieve a workflow by id."""
    
    async def increment_workflow_stats(self, workflow_id: str, success: bool) -> Optional[Workflow]:
        """Count one more execution (and success) for the workflow."""
    
    async def get_workflow_nodes(self, workflow_id: str) -> List[WorkflowNodeRecord]:
        """Nodes of a workflow in listing order."""
    
    async def get_workflow_edges(self, workflow_id: str) -> List[WorkflowEdgeRecord]:
        """Edges of a workflow in listing order."""
    
    async def get_lead(self, lead_id: str) -> Optional[Lead]:
        """Retrieve a lead by id."""
    
    async def get_persona(self, persona_id: str) -> Optional[Persona]:
        """Retrieve a persona by id."""
    
    async def get_integration_setting(self, provider: str) -> Optional[IntegrationSetting]:
        """Retrieve provider settings."""
    
    async def create_execution(
        self,
        workflow_id: str,
        lead_id: str,
        status: ExecutionStatus = ExecutionStatus.PENDING,
    ) -> WorkflowExecution:
        """Create a new execution record."""
    
    async def get_execution(self, execution_id: str) -> Optional[WorkflowExecution]:
        """Retrieve an execution by id."""
    
    async def update_execution(self, execution_id: str, **fields: Any) -> Optional[WorkflowExecution]:
        """Apply field updates to an execution."""
    
    async def list_executions(self, workflow_id: Optional[str] = None) -> List[WorkflowExecution]:
        """List executions, optionally for one workflow."""
    
    async def create_message(self, **fields: Any) -> Message:
        """Record a channel send."""
    
    async def list_messages(self, execution_id: Optional[str] = None) -> List[Message]:
        """List messages, optionally for one execution."""
