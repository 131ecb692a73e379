"""
State Store - the authoritative node id -> NodeState mapping.

Only the scheduler writes to it during a run, one atomic apply() per node
transition. Everything else (rendering, persistence, tests) reads immutable
snapshots.
"""

import logging
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from textflow.graph.node import NodeState, NodeStatus

logger = logging.getLogger(__name__)

# IDLE -> COMPLETED is the instant resolution of source nodes.
ALLOWED_TRANSITIONS: dict[NodeStatus, frozenset[NodeStatus]] = {
    NodeStatus.IDLE: frozenset({NodeStatus.RUNNING, NodeStatus.COMPLETED}),
    NodeStatus.RUNNING: frozenset({NodeStatus.COMPLETED, NodeStatus.ERROR}),
    NodeStatus.COMPLETED: frozenset(),
    NodeStatus.ERROR: frozenset(),
}


class InvalidTransitionError(ValueError):
    """A status change the node state machine does not allow."""


@dataclass
class StateChange:
    """Record of a single node transition."""

    node_id: str
    old: NodeState
    new: NodeState
    version: int
    timestamp: float = field(default_factory=time.time)


class StateStore:
    """
    Authoritative run state for every node of a graph.

    Example:
        store = StateStore(["input", "writer"])
        store.apply("writer", NodeState.running())
        store.apply("writer", NodeState.completed("Hello"))
        snapshot = store.snapshot()  # read-only mapping
        snapshot["writer"].content  # "Hello"
    """

    def __init__(self, node_ids: Iterable[str] = (), max_history: int = 1000):
        self._states: dict[str, NodeState] = {node_id: NodeState.idle() for node_id in node_ids}
        self._history: list[StateChange] = []
        self._max_history = max_history
        self._version = 0

    @classmethod
    def from_states(cls, states: Mapping[str, NodeState]) -> "StateStore":
        """
        Rebuild a store from previously observed states.

        A RUNNING state cannot survive outside a live run, so it comes back as
        IDLE.
        """
        store = cls()
        for node_id, state in states.items():
            if state.status == NodeStatus.RUNNING:
                logger.info(f"Recovered interrupted node {node_id} as idle")
                state = NodeState.idle()
            store._states[node_id] = state
        return store

    # === READS ===

    def get(self, node_id: str) -> NodeState:
        """State of one node. Raises KeyError for unknown ids."""
        return self._states[node_id]

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._states

    def __len__(self) -> int:
        return len(self._states)

    def node_ids(self) -> list[str]:
        return list(self._states)

    @property
    def version(self) -> int:
        """Incremented on every applied change or reset."""
        return self._version

    def snapshot(self) -> Mapping[str, NodeState]:
        """Read-only copy of all states. Later writes do not show through."""
        return MappingProxyType(dict(self._states))

    def to_dict(self) -> dict[str, dict]:
        return {node_id: state.to_dict() for node_id, state in self._states.items()}

    def ids_with_status(self, status: NodeStatus) -> list[str]:
        return [node_id for node_id, state in self._states.items() if state.status == status]

    def get_history(self, node_id: str | None = None, limit: int = 100) -> list[StateChange]:
        """Recent changes, most recent first."""
        changes = self._history[::-1]
        if node_id:
            changes = [c for c in changes if c.node_id == node_id]
        return changes[:limit]

    # === WRITES ===

    def apply(self, node_id: str, new_state: NodeState) -> Mapping[str, NodeState]:
        """
        Atomically replace one node's state and return the resulting snapshot.

        Raises:
            KeyError: Unknown node id
            InvalidTransitionError: Transition not allowed by the state machine
        """
        old_state = self._states[node_id]
        if new_state.status not in ALLOWED_TRANSITIONS[old_state.status]:
            raise InvalidTransitionError(
                f"Node '{node_id}' cannot go from {old_state.status} to {new_state.status}"
            )
        self._write(node_id, old_state, new_state)
        return self.snapshot()

    def reset(self, node_ids: Iterable[str]) -> list[str]:
        """
        Return the given nodes to IDLE, clearing content and error.

        Unknown ids raise KeyError before anything is changed. Returns the ids
        in store order.
        """
        targets = set(node_ids)
        unknown = targets - self._states.keys()
        if unknown:
            raise KeyError(f"Unknown node ids: {sorted(unknown)}")

        reset_ids = [node_id for node_id in self._states if node_id in targets]
        for node_id in reset_ids:
            old_state = self._states[node_id]
            if old_state != NodeState.idle():
                self._write(node_id, old_state, NodeState.idle())
        self._version += 1
        return reset_ids

    def reset_all(self) -> list[str]:
        return self.reset(self._states)

    def sync(self, node_ids: Iterable[str]) -> None:
        """Match the store to a graph edit: add new ids as IDLE, drop removed ones."""
        wanted = list(node_ids)
        wanted_set = set(wanted)
        for node_id in list(self._states):
            if node_id not in wanted_set:
                del self._states[node_id]
        for node_id in wanted:
            self._states.setdefault(node_id, NodeState.idle())
        self._version += 1

    def _write(self, node_id: str, old_state: NodeState, new_state: NodeState) -> None:
        self._states[node_id] = new_state
        self._version += 1
        self._history.append(
            StateChange(node_id=node_id, old=old_state, new=new_state, version=self._version)
        )
        if len(self._history) > self._max_history:
            self._history = self._history[-self._max_history :]
        logger.debug(f"{node_id}: {old_state.status} → {new_state.status}")
