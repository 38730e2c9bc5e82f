"""
Engine package - Core workflow execution components.
"""

from reachflow.engine.graph import Edge, Node, NodeType, WorkflowGraph, find_start_node
from reachflow.engine.state import ExecutionContext
from reachflow.engine.node import NodeRuntime, get_node_handler, node_handler
from reachflow.engine.executor import ExecutionResult, WorkflowExecutor, execute_workflow

__all__ = [
    "Edge",
    "Node",
    "NodeType",
    "WorkflowGraph",
    "find_start_node",
    "ExecutionContext",
    "NodeRuntime",
    "get_node_handler",
    "node_handler",
    "ExecutionResult",
    "WorkflowExecutor",
    "execute_workflow",
]
