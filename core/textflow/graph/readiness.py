"""
Readiness evaluation - which idle nodes may run this round.

A node is eligible when it is IDLE and either:
- its kind needs no input (source_text, source_image, brainstorm), or
- it has at least one incoming edge and every upstream node is COMPLETED.

A node that needs input but has no incoming edge is never eligible. Neither
is a node whose upstream ended in ERROR; both simply stay IDLE (blocked).
"""

from collections.abc import Mapping

from textflow.graph.edge import GraphSpec, upstream_statuses
from textflow.graph.node import NodeSpec, NodeState, NodeStatus


def is_eligible(node: NodeSpec, graph: GraphSpec, states: Mapping[str, NodeState]) -> bool:
    """
    Check whether a node can be dispatched in the current round.

    Args:
        node: Node to evaluate
        graph: Graph the node belongs to
        states: Current node states keyed by node id

    Returns:
        True if the node should run now
    """
    state = states.get(node.id)
    if state is None or state.status != NodeStatus.IDLE:
        return False

    if not node.needs_input:
        return True

    statuses = upstream_statuses(graph, node.id, states)
    if not statuses:
        return False

    return all(status == NodeStatus.COMPLETED for status in statuses)


def eligible_nodes(graph: GraphSpec, states: Mapping[str, NodeState]) -> list[NodeSpec]:
    """All eligible nodes, in graph order."""
    return [node for node in graph.nodes if is_eligible(node, graph, states)]
