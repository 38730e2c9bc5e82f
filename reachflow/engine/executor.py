"""
Workflow Executor.

Runs one WorkflowExecution end to end: loads the graph and snapshots,
walks the graph depth first from the start node, invokes the node
handlers and records the outcome on the execution record.
"""

from typing import Any, Dict, FrozenSet, List, Optional, Tuple
from dataclasses import dataclass, field
from datetime import datetime
from copy import deepcopy
import time
import logging

from reachflow.channels.dispatch import ChannelDispatcher
from reachflow.config import Settings, settings as default_settings
from reachflow.engine.graph import Node, WorkflowGraph
from reachflow.engine.node import NodeRuntime, get_node_handler
from reachflow.engine.state import ExecutionContext
from reachflow.errors import InvalidTransitionError, NotFoundError, WorkflowPausedError
from reachflow.integrations.openrouter import AIGenerator
from reachflow.storage.base import WorkflowStore
from reachflow.storage.models import ExecutionStatus, WorkflowExecution


logger = logging.getLogger(__name__)


@dataclass
class ExecutionStep:
    """A single node visit in the execution log."""
    step: int
    node_id: str
    node_type: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_ms: Optional[float] = None
    result: str = "success"
    error: Optional[str] = None
    next_node_ids: List[str] = field(default_factory=list)
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step,
            "node_id": self.node_id,
            "node_type": self.node_type,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
            "result": self.result,
            "error": self.error,
            "next_node_ids": self.next_node_ids,
        }


@dataclass
class ExecutionResult:
    """Result of a completed run."""
    execution_id: str
    workflow_id: str
    lead_id: str
    status: ExecutionStatus
    variables: Dict[str, Any]
    execution_log: List[ExecutionStep] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    total_duration_ms: Optional[float] = None
    
    @property
    def visited(self) -> List[str]:
        """Node ids in the order they were executed."""
        return [step.node_id for step in self.execution_log]
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "execution_id": self.execution_id,
            "workflow_id": self.workflow_id,
            "lead_id": self.lead_id,
            "status": self.status.value,
            "variables": self.variables,
            "execution_log": [step.to_dict() for step in self.execution_log],
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "total_duration_ms": self.total_duration_ms,
        }


# A pending visit: the node to run and the ids on the path leading to it
WorkItem = Tuple[str, FrozenSet[str]]


class WorkflowExecutor:
    """
    Executes workflow runs.
    
    One executor is shared by all queue workers; everything specific to a
    run lives in locals of ``run`` so concurrent runs never share state.
    
    Usage:
        executor = WorkflowExecutor(storage, dispatcher, generator)
        result = await executor.run(execution_id)
    """
    
    def __init__(
        self,
        storage: WorkflowStore,
        channels: ChannelDispatcher,
        generator: Optional[AIGenerator] = None,
        settings: Optional[Settings] = None,
    ):
        self.storage = storage
        self.channels = channels
        self.generator = generator
        self.settings = settings or default_settings
    
    async def run(self, execution_id: str, retry: bool = False) -> ExecutionResult:
        """
        Execute a run from its start node.
        
        Args:
            execution_id: Execution record to run
            retry: The job queue is re-entering a failed execution
        
        Returns:
            ExecutionResult of the completed run
        
        Raises:
            WorkflowPausedError: If the execution is paused (record untouched)
            InvalidTransitionError: If the execution already finished (record untouched)
            Exception: Any fatal error, after it was recorded on the execution
        """
        start_time = time.time()
        execution = await self.storage.get_execution(execution_id)
        if execution is None:
            raise NotFoundError("Execution not found")
        
        if execution.status == ExecutionStatus.PAUSED:
            logger.info(f"Workflow execution {execution_id} is paused, skipping")
            raise WorkflowPausedError("Workflow is paused")
        
        if not execution.status.can_transition(ExecutionStatus.RUNNING, retry=retry):
            raise InvalidTransitionError(
                f"Execution {execution_id} is already {execution.status.value}"
            )
        
        steps: List[ExecutionStep] = []
        try:
            workflow = await self.storage.get_workflow(execution.workflow_id)
            if workflow is None:
                raise NotFoundError("Workflow not found")
            
            lead = await self.storage.get_lead(execution.lead_id)
            if lead is None:
                raise NotFoundError("Lead not found")
            
            graph = WorkflowGraph.from_records(
                await self.storage.get_workflow_nodes(workflow.id),
                await self.storage.get_workflow_edges(workflow.id),
            )
            
            persona = None
            if workflow.persona_id:
                persona = await self.storage.get_persona(workflow.persona_id)
            
            await self._set_status(execution_id, ExecutionStatus.RUNNING, retry=retry)
            
            context = ExecutionContext(
                workflow_id=workflow.id,
                execution_id=execution_id,
                lead_id=lead.id,
                lead=deepcopy(lead),
                persona_id=workflow.persona_id,
                persona=deepcopy(persona),
            )
            runtime = NodeRuntime(
                graph=graph,
                channels=self.channels,
                generator=self.generator,
                storage=self.storage,
                settings=self.settings,
            )
            
            start_node = graph.start_node()
            logger.info(
                f"Starting execution {execution_id} of workflow {workflow.id} "
                f"at node '{start_node.id}'"
            )
            await self._traverse(start_node, context, runtime, steps)
            
            finished = await self._set_status(
                execution_id,
                ExecutionStatus.COMPLETED,
                completed_at=datetime.now(),
            )
            await self.storage.increment_workflow_stats(workflow.id, success=True)
        
        except Exception as e:
            logger.exception(f"Workflow execution {execution_id} failed: {e}")
            await self._record_failure(execution_id, e)
            raise
        
        logger.info(f"Workflow execution {execution_id} completed ({len(steps)} steps)")
        return ExecutionResult(
            execution_id=execution_id,
            workflow_id=workflow.id,
            lead_id=lead.id,
            status=ExecutionStatus.COMPLETED,
            variables=dict(context.variables),
            execution_log=steps,
            started_at=finished.started_at if finished else None,
            completed_at=finished.completed_at if finished else None,
            total_duration_ms=(time.time() - start_time) * 1000,
        )
    
    async def _traverse(
        self,
        start_node: Node,
        context: ExecutionContext,
        runtime: NodeRuntime,
        steps: List[ExecutionStep],
    ) -> None:
        """
        Walk the graph depth first from ``start_node``.
        
        Each work item carries the set of node ids on its own path from the
        start node. A node already on its path is a cycle and that path
        stops there. Paths that merge without a cycle (A->B->D, A->C->D)
        run the merge node once per path.
        """
        graph = runtime.graph
        stack: List[WorkItem] = [(start_node.id, frozenset())]
        
        while stack:
            node_id, path = stack.pop()
            
            if node_id in path:
                logger.warning(f"Cycle detected at node {node_id}, stopping execution on this path")
                continue
            
            node = graph.get_node(node_id)
            if node is None:
                logger.warning(f"Edge points at unknown node {node_id}, skipping")
                continue
            
            next_ids = await self._execute_node(node, context, runtime, steps)
            
            # Pushed in reverse so children pop in edge-listing order
            child_path = path | {node_id}
            for next_id in reversed(next_ids):
                stack.append((next_id, child_path))
    
    async def _execute_node(
        self,
        node: Node,
        context: ExecutionContext,
        runtime: NodeRuntime,
        steps: List[ExecutionStep],
    ) -> List[str]:
        """Run one node and return the ids to continue with, in order."""
        step = ExecutionStep(
            step=len(steps) + 1,
            node_id=node.id,
            node_type=node.type_name,
            started_at=datetime.now(),
        )
        steps.append(step)
        node_start_time = time.time()
        
        logger.info(f"Executing node: {node.label or node.id} ({node.type_name})")
        
        try:
            await self.storage.update_execution(context.execution_id, current_node_id=node.id)
            
            handler = get_node_handler(node.node_type)
            chosen = None
            if handler is None and not node.is_known_type:
                logger.warning(f"Unknown node type '{node.type_name}', passing through")
            elif handler is None:
                logger.info(f"No handler for node type '{node.type_name}', passing through")
            else:
                chosen = await handler(node, context, runtime)
            
            if handler is not None and handler.branching:
                next_ids = [chosen] if chosen else []
            else:
                next_ids = [edge.target_node_id for edge in runtime.graph.outgoing_edges(node.id)]
        
        except Exception as e:
            step.result = "error"
            step.error = str(e)
            raise
        finally:
            step.completed_at = datetime.now()
            step.duration_ms = (time.time() - node_start_time) * 1000
        
        step.next_node_ids = next_ids
        return next_ids
    
    async def _set_status(
        self,
        execution_id: str,
        status: ExecutionStatus,
        retry: bool = False,
        **fields: Any,
    ) -> Optional[WorkflowExecution]:
        """
        Move an execution to ``status``.
        
        Raises:
            InvalidTransitionError: If the current status does not allow it
        """
        current = await self.storage.get_execution(execution_id)
        if current is None:
            raise NotFoundError("Execution not found")
        if current.status != status and not current.status.can_transition(status, retry=retry):
            raise InvalidTransitionError(
                f"Cannot move execution {execution_id} from "
                f"{current.status.value} to {status.value}"
            )
        return await self.storage.update_execution(execution_id, status=status, **fields)
    
    async def _record_failure(self, execution_id: str, error: Exception) -> None:
        """Mark the execution failed, unless it already completed."""
        current = await self.storage.get_execution(execution_id)
        if current is None or current.status == ExecutionStatus.COMPLETED:
            return
        await self.storage.update_execution(
            execution_id,
            status=ExecutionStatus.FAILED,
            completed_at=datetime.now(),
            error=str(error),
        )


async def execute_workflow(
    execution_id: str,
    storage: WorkflowStore,
    channels: ChannelDispatcher,
    generator: Optional[AIGenerator] = None,
    settings: Optional[Settings] = None,
) -> ExecutionResult:
    """
    Convenience function to run one execution.
    
    Args:
        execution_id: Execution record to run
        storage: Persistence collaborator
        channels: Channel dispatcher
        generator: AI generator for ``ai`` nodes
        settings: Overrides for the global settings
        settings: Settings override (defaults to the global settings)
    
    Returns:
        ExecutionResult
    """
    executor = WorkflowExecutor(storage, channels, generator, settings)
    return await executor.run(execution_id)
