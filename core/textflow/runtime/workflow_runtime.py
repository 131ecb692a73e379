"""
Workflow Runtime - Top-level entry point for running a workspace.

Owns the StateStore, the EventBus and the executor for one workspace, and is
the only place where runs start. A single in-flight guard makes sure no two
runs (and no structural edit) overlap over the same state.
"""

import logging
import uuid
from collections.abc import Mapping
from typing import Any

from textflow.graph.cascade import reset_for_full_run, reset_for_retry
from textflow.graph.edge import EdgeSpec
from textflow.graph.executor import (
    ExecutionResult,
    ExecutorConfig,
    RunInProgressError,
    WorkflowExecutor,
)
from textflow.graph.node import NodeKind, NodeSpec, NodeState, create_node, new_node_id
from textflow.llm.provider import LLMProvider
from textflow.observability import restore_trace_context, set_trace_context
from textflow.runtime.event_bus import EventBus
from textflow.runtime.state_store import StateStore
from textflow.workspace import Workspace

logger = logging.getLogger(__name__)


class WorkflowRuntime:
    """
    Runs and edits one workspace.

    Example:
        runtime = WorkflowRuntime(default_workspace(), llm=LiteLLMProvider())

        async def render(event):
            draw(event.snapshot)

        runtime.event_bus.subscribe([EventType.NODE_STATUS_CHANGED], render)

        result = await runtime.run_all()
        result = await runtime.retry_from("node-2")
    """

    def __init__(
        self,
        workspace: Workspace,
        llm: LLMProvider | None = None,
        config: ExecutorConfig | None = None,
        event_bus: EventBus | None = None,
        store: StateStore | None = None,
    ):
        """
        Initialize the runtime.

        Args:
            workspace: Workspace whose graph is run
            llm: Generation capability
            config: Engine configuration
            event_bus: Bus for state observers (a private one is created if omitted)
            store: Previously observed states (e.g. StateStore.from_states); nodes
                missing from it start IDLE
        """
        self.workspace = workspace
        self.event_bus = event_bus or EventBus()
        self._store = store if store is not None else StateStore()
        self._store.sync(workspace.graph.node_ids())
        self._executor = WorkflowExecutor(
            llm=llm,
            config=config,
            event_bus=self.event_bus,
            workspace_id=workspace.id,
        )
        self._in_flight = False

    @property
    def is_running(self) -> bool:
        return self._in_flight

    @property
    def store(self) -> StateStore:
        return self._store

    def snapshot(self) -> Mapping[str, NodeState]:
        """Read-only view of every node's status, content and error."""
        return self._store.snapshot()

    # === RUNS ===

    async def run_all(self) -> ExecutionResult:
        """Reset every node to IDLE, then run the whole graph."""
        self._begin()
        try:
            reset_ids = reset_for_full_run(self.workspace.graph, self._store)
            return await self._execute(reset_ids)
        finally:
            self._in_flight = False

    async def retry_from(self, node_id: str) -> ExecutionResult:
        """
        Reset node_id and its descendants, then run.

        Upstream and unrelated nodes keep their results, so only the affected
        sub-chain calls the model again.

        Raises:
            KeyError: If node_id is not in the graph
            RunInProgressError: If a run is already in flight
        """
        self._begin()
        try:
            reset_ids = reset_for_retry(self.workspace.graph, self._store, node_id)
            return await self._execute(reset_ids)
        finally:
            self._in_flight = False

    def _begin(self) -> None:
        # Checked and set before the first await so two concurrent callers cannot both pass
        if self._in_flight:
            raise RunInProgressError(
                f"Workspace '{self.workspace.id}' already has a run in progress"
            )
        self._in_flight = True

    async def _execute(self, reset_ids: list[str]) -> ExecutionResult:
        run_id = uuid.uuid4().hex
        trace_token = set_trace_context(workspace_id=self.workspace.id, run_id=run_id)
        try:
            await self.event_bus.emit_nodes_reset(
                self.workspace.id, reset_ids, self._store.snapshot()
            )
            await self.event_bus.emit_run_started(
                self.workspace.id, run_id, len(self.workspace.graph.nodes), reset_ids
            )

            return await self._executor.execute(
                graph=self.workspace.graph,
                store=self._store,
                global_context=self.workspace.global_context,
                run_id=run_id,
            )
        finally:
            restore_trace_context(trace_token)

    # === EDITS (between runs only) ===

    def _check_editable(self, action: str) -> None:
        if self._in_flight:
            raise RunInProgressError(f"Cannot {action} while a run is in progress")

    def set_global_context(self, text: str) -> None:
        self._check_editable("change the global context")
        self.workspace.global_context = text

    def add_node(self, node: NodeSpec | NodeKind | str, **overrides: Any) -> NodeSpec:
        """Add a node (a NodeSpec, or a kind to build with create_node)."""
        self._check_editable("add nodes")
        if not isinstance(node, NodeSpec):
            node = create_node(node, **overrides)
        self.workspace.graph.add_node(node)
        self._store.sync(self.workspace.graph.node_ids())
        logger.info(f"Added node {node.id} ({node.kind})")
        return node

    def update_node(self, node_id: str, **changes: Any) -> NodeSpec:
        """Change a node's configuration. Its run state is left alone."""
        self._check_editable("edit nodes")
        if "id" in changes:
            raise ValueError("Node ids cannot be changed")
        node = self._require_node(node_id)
        updated = NodeSpec.model_validate({**node.model_dump(), **changes})
        nodes = self.workspace.graph.nodes
        nodes[nodes.index(node)] = updated
        return updated

    def remove_node(self, node_id: str) -> bool:
        """Remove a node and its connections. Returns False if it did not exist."""
        self._check_editable("remove nodes")
        removed = self.workspace.graph.remove_node(node_id)
        if removed:
            self._store.sync(self.workspace.graph.node_ids())
            logger.info(f"Removed node {node_id}")
        return removed

    def duplicate_node(self, node_id: str) -> NodeSpec:
        """Clone a node's configuration under a new id. The copy starts IDLE."""
        self._check_editable("duplicate nodes")
        original = self._require_node(node_id)
        title = f"{original.title} (Copy)" if original.title else "(Copy)"
        clone = original.model_copy(update={"id": new_node_id(), "title": title}, deep=True)
        return self.add_node(clone)

    def connect(self, source: str, target: str) -> EdgeSpec:
        """
        Connect source -> target.

        Raises:
            GraphValidationError: Unknown endpoint, self loop, duplicate or cycle
        """
        self._check_editable("connect nodes")
        return self.workspace.graph.add_edge(source, target)

    def disconnect(self, edge_id: str) -> bool:
        self._check_editable("remove connections")
        return self.workspace.graph.remove_edge(edge_id)

    def _require_node(self, node_id: str) -> NodeSpec:
        node = self.workspace.graph.get_node(node_id)
        if node is None:
            raise KeyError(f"Node '{node_id}' not found in graph")
        return node
