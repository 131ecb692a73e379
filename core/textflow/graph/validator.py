"""Structural validation for workflow graphs.

The scheduler assumes the edge set is acyclic. These checks run at edit time
so a cycle never reaches a run.
"""

import logging
from collections.abc import Iterable

logger = logging.getLogger(__name__)

WHITE, GRAY, BLACK = 0, 1, 2  # unvisited, on the current path, done


class GraphValidationError(ValueError):
    """An edit would leave the graph in a state the scheduler cannot run."""


def build_adjacency(node_ids: Iterable[str], edges: Iterable) -> dict[str, list[str]]:
    """Map node id -> ordered list of target ids. Edges to unknown nodes are kept."""
    adjacency: dict[str, list[str]] = {node_id: [] for node_id in node_ids}
    for edge in edges:
        adjacency.setdefault(edge.source, []).append(edge.target)
        adjacency.setdefault(edge.target, [])
    return adjacency


def find_cycle(adjacency: dict[str, list[str]]) -> list[str] | None:
    """
    Return one cycle as a list of node ids (first id repeated at the end),
    or None if the graph is acyclic.

    Iterative three-colour DFS: a GRAY successor closes a cycle.
    """
    color = {node_id: WHITE for node_id in adjacency}

    for root in adjacency:
        if color[root] != WHITE:
            continue

        path: list[str] = [root]
        stack = [(root, iter(adjacency[root]))]
        color[root] = GRAY

        while stack:
            node_id, successors = stack[-1]
            advanced = False
            for nxt in successors:
                if color[nxt] == GRAY:
                    start = path.index(nxt)
                    return path[start:] + [nxt]
                if color[nxt] == WHITE:
                    color[nxt] = GRAY
                    path.append(nxt)
                    stack.append((nxt, iter(adjacency[nxt])))
                    advanced = True
                    break
            if not advanced:
                color[node_id] = BLACK
                path.pop()
                stack.pop()

    return None


def reaches(adjacency: dict[str, list[str]], source: str, target: str) -> bool:
    """True if target is reachable from source (including source == target)."""
    stack = [source]
    seen: set[str] = set()
    while stack:
        current = stack.pop()
        if current == target:
            return True
        if current in seen:
            continue
        seen.add(current)
        stack.extend(adjacency.get(current, ()))
    return False


def check_new_edge(graph, source: str, target: str) -> None:
    """
    Raise GraphValidationError if adding source -> target is not allowed.

    Rejects unknown endpoints, self loops, duplicates and edges that would
    close a cycle.
    """
    if graph.get_node(source) is None:
        raise GraphValidationError(f"Unknown source node: {source}")
    if graph.get_node(target) is None:
        raise GraphValidationError(f"Unknown target node: {target}")
    if source == target:
        raise GraphValidationError(f"Node '{source}' cannot connect to itself")
    if any(e.source == source and e.target == target for e in graph.edges):
        raise GraphValidationError(f"Connection {source} -> {target} already exists")

    adjacency = build_adjacency((n.id for n in graph.nodes), graph.edges)
    if reaches(adjacency, target, source):
        logger.warning(f"Rejected edge {source} -> {target}: would create a cycle")
        raise GraphValidationError(
            f"Connection {source} -> {target} would create a cycle"
        )
