"""Retry cascade - which nodes a partial re-run must invalidate."""

import logging
from typing import TYPE_CHECKING

from textflow.graph.edge import GraphSpec

if TYPE_CHECKING:
    from textflow.runtime.state_store import StateStore

logger = logging.getLogger(__name__)


def retry_scope(graph: GraphSpec, node_id: str) -> set[str]:
    """
    The node itself plus all of its transitive descendants.

    Raises:
        KeyError: If node_id is not in the graph
    """
    if graph.get_node(node_id) is None:
        raise KeyError(f"Node '{node_id}' not found in graph")
    return {node_id} | graph.descendants(node_id)


def reset_for_retry(graph: GraphSpec, store: "StateStore", node_id: str) -> list[str]:
    """
    Reset node_id and everything downstream of it to IDLE.

    Ancestors and unrelated branches keep their status and content.
    Returns the reset ids in store order.
    """
    scope = retry_scope(graph, node_id)
    reset_ids = store.reset(scope)
    logger.info(f"Retry from {node_id}: reset {len(reset_ids)} node(s)")
    return reset_ids


def reset_for_full_run(graph: GraphSpec, store: "StateStore") -> list[str]:
    """Reset every node of the graph. A full run is a retry of everything."""
    store.sync(graph.node_ids())
    return store.reset_all()
