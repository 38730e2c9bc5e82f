"""
In-Memory Storage for the ReachFlow engine.

Provides asyncio-safe storage for workflows, leads, personas, executions,
messages and integration settings. Records are copied on the way in and
out so callers never mutate stored state directly. Can be replaced with
a database implementation of ``WorkflowStore``.
"""

from typing import Any, Dict, List, Optional
from copy import deepcopy
from dataclasses import fields as dataclass_fields
from datetime import datetime
import asyncio

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
    new_id,
)


_EXECUTION_FIELDS = {f.name for f in dataclass_fields(WorkflowExecution)} - {"id"}


class InMemoryStorage:
    """
    In-memory implementation of the persistence collaborator.
    
    Nodes and edges keep their insertion order, which is the listing
    order the engine relies on for start-node selection and fan-out.
    """
    
    def __init__(self):
        self._workflows: Dict[str, Workflow] = {}
        self._nodes: Dict[str, List[WorkflowNodeRecord]] = {}
        self._edges: Dict[str, List[WorkflowEdgeRecord]] = {}
        self._leads: Dict[str, Lead] = {}
        self._personas: Dict[str, Persona] = {}
        self._settings: Dict[str, IntegrationSetting] = {}
        self._executions: Dict[str, WorkflowExecution] = {}
        self._messages: Dict[str, Message] = {}
        self._lock = asyncio.Lock()
    
    # ============================================================
    # Workflows
    # ============================================================
    
    async def save_workflow(self, workflow: Workflow) -> Workflow:
        async with self._lock:
            self._workflows[workflow.id] = deepcopy(workflow)
            self._nodes.setdefault(workflow.id, [])
            self._edges.setdefault(workflow.id, [])
            return deepcopy(workflow)
    
    async def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        async with self._lock:
            return deepcopy(self._workflows.get(workflow_id))
    
    async def increment_workflow_stats(self, workflow_id: str, success: bool) -> Optional[Workflow]:
        """Count one execution, and one success when ``success`` is set."""
        async with self._lock:
            workflow = self._workflows.get(workflow_id)
            if workflow is None:
                return None
            workflow.execution_count += 1
            if success:
                workflow.success_count += 1
            workflow.updated_at = datetime.now()
            return deepcopy(workflow)
    
    async def add_node(
        self,
        workflow_id: str,
        node_type: str,
        label: str = "",
        config: Optional[Dict[str, Any]] = None,
        node_id: Optional[str] = None,
    ) -> WorkflowNodeRecord:
        async with self._lock:
            record = WorkflowNodeRecord(
                id=node_id or new_id(),
                workflow_id=workflow_id,
                node_type=node_type,
                label=label,
                config=dict(config or {}),
            )
            self._nodes.setdefault(workflow_id, []).append(record)
            return deepcopy(record)
    
    async def add_edge(
        self,
        workflow_id: str,
        source_node_id: str,
        target_node_id: str,
        label: Optional[str] = None,
    ) -> WorkflowEdgeRecord:
        async with self._lock:
            record = WorkflowEdgeRecord(
                id=new_id(),
                workflow_id=workflow_id,
                source_node_id=source_node_id,
                target_node_id=target_node_id,
                label=label,
            )
            self._edges.setdefault(workflow_id, []).append(record)
            return deepcopy(record)
    
    async def get_workflow_nodes(self, workflow_id: str) -> List[WorkflowNodeRecord]:
        async with self._lock:
            return deepcopy(self._nodes.get(workflow_id, []))
    
    async def get_workflow_edges(self, workflow_id: str) -> List[WorkflowEdgeRecord]:
        async with self._lock:
            return deepcopy(self._edges.get(workflow_id, []))
    
    # ============================================================
    # Leads, personas, integration settings
    # ============================================================
    
    async def save_lead(self, lead: Lead) -> Lead:
        async with self._lock:
            self._leads[lead.id] = deepcopy(lead)
            return deepcopy(lead)
    
    async def get_lead(self, lead_id: str) -> Optional[Lead]:
        async with self._lock:
            return deepcopy(self._leads.get(lead_id))
    
    async def save_persona(self, persona: Persona) -> Persona:
        async with self._lock:
            self._personas[persona.id] = deepcopy(persona)
            return deepcopy(persona)
    
    async def get_persona(self, persona_id: str) -> Optional[Persona]:
        async with self._lock:
            return deepcopy(self._personas.get(persona_id))
    
    async def upsert_integration_setting(
        self,
        provider: str,
        config: Dict[str, Any],
        is_active: bool = True,
    ) -> IntegrationSetting:
        async with self._lock:
            setting = IntegrationSetting(
                provider=provider,
                config=dict(config),
                is_active=is_active,
            )
            self._settings[provider] = setting
            return deepcopy(setting)
    
    async def get_integration_setting(self, provider: str) -> Optional[IntegrationSetting]:
        async with self._lock:
            return deepcopy(self._settings.get(provider))
    
    # ============================================================
    # Executions
    # ============================================================
    
    async def create_execution(
        self,
        workflow_id: str,
        lead_id: str,
        status: ExecutionStatus = ExecutionStatus.PENDING,
    ) -> WorkflowExecution:
        async with self._lock:
            execution = WorkflowExecution(
                id=new_id(),
                workflow_id=workflow_id,
                lead_id=lead_id,
                status=status,
            )
            self._executions[execution.id] = execution
            return deepcopy(execution)
    
    async def get_execution(self, execution_id: str) -> Optional[WorkflowExecution]:
        async with self._lock:
            return deepcopy(self._executions.get(execution_id))
    
    async def update_execution(self, execution_id: str, **fields: Any) -> Optional[WorkflowExecution]:
        """
        Apply field updates to an execution.
        
        Raises:
            ValueError: If a field name is not part of the record
        """
        unknown = set(fields) - _EXECUTION_FIELDS
        if unknown:
            raise ValueError(f"Unknown execution fields: {sorted(unknown)}")
        
        async with self._lock:
            execution = self._executions.get(execution_id)
            if execution is None:
                return None
            for name, value in fields.items():
                if name == "status":
                    value = ExecutionStatus(value)
                setattr(execution, name, value)
            return deepcopy(execution)
    
    async def list_executions(self, workflow_id: Optional[str] = None) -> List[WorkflowExecution]:
        """List executions, most recently started first."""
        async with self._lock:
            executions = [
                e for e in self._executions.values()
                if workflow_id is None or e.workflow_id == workflow_id
            ]
            executions.sort(key=lambda e: e.started_at, reverse=True)
            return deepcopy(executions)
    
    # ============================================================
    # Messages
    # ============================================================
    
    async def create_message(self, **fields: Any) -> Message:
        async with self._lock:
            message = Message(id=new_id(), **fields)
            self._messages[message.id] = message
            return deepcopy(message)
    
    async def list_messages(self, execution_id: Optional[str] = None) -> List[Message]:
        async with self._lock:
            return deepcopy([
                m for m in self._messages.values()
                if execution_id is None or m.execution_id == execution_id
            ])
    
    def __len__(self) -> int:
        return len(self._executions)
