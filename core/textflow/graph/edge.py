"""
Edge Protocol - How nodes connect in a workflow graph.

An edge is a plain directed dependency: the target consumes the source's
content once the source has completed. There are no edge conditions; the
only ordering that matters is insertion order, which fixes the order in
which a node concatenates its inputs.
"""

import logging
import uuid

from pydantic import BaseModel, Field

from textflow.graph.node import NodeSpec, NodeStatus
from textflow.graph.validator import (
    GraphValidationError,
    build_adjacency,
    check_new_edge,
    find_cycle,
)

logger = logging.getLogger(__name__)


class EdgeSpec(BaseModel):
    """
    Specification for an edge between nodes.

    Example:
        EdgeSpec(id="c1", source="input", target="writer")
    """

    id: str
    source: str = Field(description="Source node ID")
    target: str = Field(description="Target node ID")

    model_config = {"extra": "allow"}


class GraphSpec(BaseModel):
    """
    Nodes and edges of one workspace.

    Query helpers are pure. Edit helpers (add/remove) mutate the spec and are
    meant to be called between runs only; WorkflowRuntime enforces that.
    """

    nodes: list[NodeSpec] = Field(default_factory=list, description="All node specifications")
    edges: list[EdgeSpec] = Field(default_factory=list, description="All edge specifications")

    model_config = {"extra": "allow"}

    # === QUERIES ===

    def get_node(self, node_id: str) -> NodeSpec | None:
        """Get a node by ID."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def node_ids(self) -> list[str]:
        return [node.id for node in self.nodes]

    def incoming(self, node_id: str) -> list[EdgeSpec]:
        """Edges entering a node, in insertion order."""
        return [e for e in self.edges if e.target == node_id]

    def outgoing(self, node_id: str) -> list[EdgeSpec]:
        """Edges leaving a node, in insertion order."""
        return [e for e in self.edges if e.source == node_id]

    def descendants(self, node_id: str) -> set[str]:
        """
        All nodes reachable from node_id through one or more outgoing edges.

        The start node is only included if it sits on a cycle.
        """
        found: set[str] = set()
        stack = [node_id]
        while stack:
            current = stack.pop()
            for edge in self.outgoing(current):
                if edge.target not in found:
                    found.add(edge.target)
                    stack.append(edge.target)
        return found

    # === EDITS ===

    def add_node(self, node: NodeSpec) -> NodeSpec:
        if self.get_node(node.id) is not None:
            raise GraphValidationError(f"Node '{node.id}' already exists")
        self.nodes.append(node)
        return node

    def remove_node(self, node_id: str) -> bool:
        """Remove a node and every edge touching it. Returns False if not found."""
        node = self.get_node(node_id)
        if node is None:
            return False
        self.nodes.remove(node)
        self.edges = [e for e in self.edges if e.source != node_id and e.target != node_id]
        return True

    def add_edge(self, source: str, target: str, edge_id: str | None = None) -> EdgeSpec:
        """Connect source -> target after validating the edit (see check_new_edge)."""
        check_new_edge(self, source, target)
        edge = EdgeSpec(id=edge_id or f"c-{uuid.uuid4().hex[:12]}", source=source, target=target)
        self.edges.append(edge)
        logger.debug(f"Connected {source} -> {target} ({edge.id})")
        return edge

    def remove_edge(self, edge_id: str) -> bool:
        for edge in self.edges:
            if edge.id == edge_id:
                self.edges.remove(edge)
                return True
        return False

    # === VALIDATION ===

    def validate(self) -> list[str]:
        """Validate the graph structure. Returns a list of problems (empty if OK)."""
        errors = []

        seen: set[str] = set()
        for node in self.nodes:
            if node.id in seen:
                errors.append(f"Duplicate node ID: '{node.id}'")
            seen.add(node.id)

        for edge in self.edges:
            if not self.get_node(edge.source):
                errors.append(f"Edge '{edge.id}' references missing source '{edge.source}'")
            if not self.get_node(edge.target):
                errors.append(f"Edge '{edge.id}' references missing target '{edge.target}'")

        cycle = find_cycle(build_adjacency(self.node_ids(), self.edges))
        if cycle:
            errors.append(f"Cycle detected: {' → '.join(cycle)}")

        for node in self.nodes:
            if node.needs_input and not self.incoming(node.id):
                errors.append(f"Node '{node.id}' ({node.kind}) has no inputs and will never run")

        return errors


def upstream_statuses(graph: GraphSpec, node_id: str, states) -> list[NodeStatus | None]:
    """Status of each incoming edge's source, None for unknown sources."""
    result = []
    for edge in graph.incoming(node_id):
        state = states.get(edge.source)
        result.append(state.status if state is not None else None)
    return result
