"""
Graph Model for the Workflow Engine.

A WorkflowGraph is the read-only view of one workflow's nodes and edges,
rebuilt from storage at the start of every run. Workflows are authored by
users with no acyclicity or single-root guarantee, so the entry point is
inferred rather than declared.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence, Union
from dataclasses import dataclass, field
from enum import Enum
import logging

from reachflow.errors import GraphError


logger = logging.getLogger(__name__)


class NodeType(str, Enum):
    """Types of nodes in a workflow."""
    AI = "ai"
    EMAIL = "email"
    SMS = "sms"
    LINKEDIN = "linkedin"
    CALENDAR = "calendar"
    WAIT = "wait"
    DECISION = "decision"


@dataclass(frozen=True)
class Node:
    """
    A step in the workflow graph.
    
    Attributes:
        id: Unique identifier within the graph
        node_type: What the step does; a plain string for types this engine
            does not know, which pass through to their children
        label: Display name only, never interpreted
        config: Per-type settings (``waitMinutes``, ``subject``, ``condition``...)
    """
    id: str
    node_type: Union[NodeType, str]
    label: str = ""
    config: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)
    
    @property
    def type_name(self) -> str:
        return self.node_type.value if isinstance(self.node_type, NodeType) else self.node_type
    
    @property
    def is_known_type(self) -> bool:
        return isinstance(self.node_type, NodeType)


@dataclass(frozen=True)
class Edge:
    """A directed connection; the label is used by decision nodes."""
    source_node_id: str
    target_node_id: str
    label: Optional[str] = None


def find_start_node(nodes: Sequence[Node], edges: Iterable[Edge]) -> Optional[Node]:
    """
    Pick the node the traversal starts from.
    
    Returns the first node, in listing order, that no edge points at. If
    every node has an incoming edge the first node is used instead.
    
    Args:
        nodes: Nodes in listing order
        edges: All edges of the graph
    
    Returns:
        The start node, or None if there are no nodes
    """
    targets = {edge.target_node_id for edge in edges}
    for node in nodes:
        if node.id not in targets:
            return node
    return nodes[0] if nodes else None


class WorkflowGraph:
    """
    Nodes and edges of one workflow, in their original listing order.
    
    Listing order matters: it breaks ties between start-node candidates,
    sets the fan-out order, and sets the preference order of decision
    edges.
    """
    
    def __init__(self, nodes: Sequence[Node], edges: Sequence[Edge]):
        self._nodes: List[Node] = list(nodes)
        self._edges: List[Edge] = list(edges)
        self._by_id: Dict[str, Node] = {}
        for node in self._nodes:
            if node.id in self._by_id:
                raise GraphError(f"Duplicate node id '{node.id}' in workflow")
            self._by_id[node.id] = node
    
    @classmethod
    def from_records(cls, node_records: Iterable[Any], edge_records: Iterable[Any]) -> "WorkflowGraph":
        """Build a graph from stored node and edge rows."""
        nodes = []
        for record in node_records:
            try:
                node_type = NodeType(record.node_type)
            except ValueError:
                logger.warning(f"Unknown node type '{record.node_type}' on node '{record.id}'")
                node_type = record.node_type
            nodes.append(Node(
                id=record.id,
                node_type=node_type,
                label=record.label,
                config=dict(record.config or {}),
            ))
        
        edges = [
            Edge(
                source_node_id=record.source_node_id,
                target_node_id=record.target_node_id,
                label=record.label,
            )
            for record in edge_records
        ]
        return cls(nodes, edges)
    
    @property
    def nodes(self) -> List[Node]:
        return list(self._nodes)
    
    @property
    def edges(self) -> List[Edge]:
        return list(self._edges)
    
    def get_node(self, node_id: str) -> Optional[Node]:
        return self._by_id.get(node_id)
    
    def outgoing_edges(self, node_id: str) -> List[Edge]:
        """Edges leaving ``node_id``, in listing order."""
        return [edge for edge in self._edges if edge.source_node_id == node_id]
    
    def start_node(self) -> Node:
        """
        Get the traversal entry point.
        
        Raises:
            GraphError: If the graph has no nodes
        """
        node = find_start_node(self._nodes, self._edges)
        if node is None:
            raise GraphError("No start node found in workflow")
        return node
    
    def validate(self) -> List[str]:
        """
        Report structural problems.
        
        Edges that point at unknown nodes are tolerated at run time (the
        traversal skips them), so this is informational.
        
        Returns:
            List of problems (empty if none)
        """
        errors = []
        
        if not self._nodes:
            errors.append("Workflow must have at least one node")
        
        for node in self._nodes:
            if not node.is_known_type:
                errors.append(f"Node '{node.id}' has unknown type '{node.type_name}'")
        
        for edge in self._edges:
            if edge.source_node_id not in self._by_id:
                errors.append(f"Edge source '{edge.source_node_id}' is not a node")
            if edge.target_node_id not in self._by_id:
                errors.append(f"Edge target '{edge.target_node_id}' is not a node")
        
        return errors
    
    def __len__(self) -> int:
        return len(self._nodes)
    
    def __repr__(self) -> str:
        return (
            f"WorkflowGraph(nodes={[n.id for n in self._nodes]}, "
            f"edges={len(self._edges)})"
        )
