"""
Storage package - Persisted records and the in-memory backend.
"""

from reachflow.storage.base import WorkflowStore
from reachflow.storage.memory import InMemoryStorage
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

__all__ = [
    "WorkflowStore",
    "InMemoryStorage",
    "ExecutionStatus",
    "IntegrationSetting",
    "Lead",
    "Message",
    "Persona",
    "Workflow",
    "WorkflowEdgeRecord",
    "WorkflowExecution",
    "WorkflowNodeRecord",
]
