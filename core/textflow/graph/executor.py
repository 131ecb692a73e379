"""
Workflow Executor - Runs workflow graphs to quiescence.

The executor:
1. Resolves every idle source node (source_text, source_image) at once
2. Repeats rounds: computes the eligible set, marks it RUNNING, processes
   all of it concurrently and applies each outcome as it settles
3. Waits for the whole round before recomputing eligibility
4. Stops when a round finds nothing eligible; leftover idle nodes are blocked

A node failure is recorded on that node only. Descendants of a failed node
never become eligible and stay IDLE; the run itself never fails.
"""

import asyncio
import logging
import time
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from textflow.config import get_default_model
from textflow.graph.edge import GraphSpec
from textflow.graph.node import NodeSpec, NodeState, NodeStatus
from textflow.graph.processor import NodeOutcome, NodeProcessor, resolve_source
from textflow.graph.readiness import eligible_nodes
from textflow.llm.provider import LLMProvider
from textflow.observability import restore_trace_context, set_trace_context

if TYPE_CHECKING:
    from textflow.runtime.event_bus import EventBus
    from textflow.runtime.state_store import StateStore


class RunInProgressError(RuntimeError):
    """A run was started while another run over the same state is in flight."""


@dataclass
class ExecutorConfig:
    """Engine knobs."""

    default_model: str = field(default_factory=get_default_model)
    # Simulated work for preview nodes; 0 resolves them without sleeping
    preview_delay_seconds: float = 0.0


@dataclass
class ExecutionResult:
    """Result of running a graph to quiescence."""

    run_id: str
    rounds: int = 0
    completed: list[str] = field(default_factory=list)  # completed during this run
    failed: list[str] = field(default_factory=list)
    blocked: list[str] = field(default_factory=list)  # idle at quiescence
    errors: dict[str, str] = field(default_factory=dict)  # {node_id: error_message}
    dispatched: list[list[str]] = field(default_factory=list)  # node ids per round
    final_state: Mapping[str, NodeState] = field(default_factory=dict)
    total_tokens: int = 0
    total_latency_ms: int = 0

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)

    def summary(self) -> dict:
        return {
            "rounds": self.rounds,
            "completed": list(self.completed),
            "failed": list(self.failed),
            "blocked": list(self.blocked),
            "total_tokens": self.total_tokens,
            "total_latency_ms": self.total_latency_ms,
        }


class WorkflowExecutor:
    """
    Executes workflow graphs against a StateStore.

    Example:
        executor = WorkflowExecutor(llm=LiteLLMProvider())
        store = StateStore(graph.node_ids())

        result = await executor.execute(
            graph=graph,
            store=store,
            global_context="Company Name: FutureTech Inc.",
        )
    """

    def __init__(
        self,
        llm: LLMProvider | None = None,
        config: ExecutorConfig | None = None,
        event_bus: "EventBus | None" = None,
        workspace_id: str = "",
        processor: NodeProcessor | None = None,
    ):
        """
        Initialize the executor.

        Args:
            llm: Generation capability used by generating nodes
            config: Engine configuration
            event_bus: Optional bus receiving a snapshot after every transition
            workspace_id: Workspace ID for event and log correlation
            processor: Custom node processor (defaults to one built from llm/config)
        """
        self.config = config or ExecutorConfig()
        self.llm = llm
        self.processor = processor or NodeProcessor(
            llm=llm,
            default_model=self.config.default_model,
            preview_delay_seconds=self.config.preview_delay_seconds,
        )
        self.logger = logging.getLogger(__name__)
        self._event_bus = event_bus
        self._workspace_id = workspace_id
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def execute(
        self,
        graph: GraphSpec,
        store: "StateStore",
        global_context: str = "",
        run_id: str | None = None,
    ) -> ExecutionResult:
        """
        Drive the graph to quiescence.

        Nodes that are not IDLE in the store are left as they are; resetting
        before a run is the caller's job (see graph.cascade).

        Raises:
            RunInProgressError: If this executor is already running
            ValueError: If the store is missing states for graph nodes
        """
        if self._running:
            raise RunInProgressError("A workflow run is already in progress")

        missing = [node_id for node_id in graph.node_ids() if node_id not in store]
        if missing:
            raise ValueError(f"State store has no state for nodes: {missing}")

        self._running = True
        run_id = run_id or uuid.uuid4().hex
        trace_token = set_trace_context(run_id=run_id)
        result = ExecutionResult(run_id=run_id)
        start = time.monotonic()

        try:
            self.logger.info(f"🚀 Starting run over {len(graph.nodes)} node(s)")

            # Step 1: sources resolve immediately, edges or not
            for node in graph.nodes:
                if node.is_source and store.get(node.id).status == NodeStatus.IDLE:
                    state = NodeState.completed(resolve_source(node))
                    await self._transition(store, run_id, node.id, state)
                    result.completed.append(node.id)

            # Step 2: rounds until nothing is eligible
            while True:
                ready = eligible_nodes(graph, store.snapshot())
                if not ready:
                    break

                result.rounds += 1
                ready_ids = [node.id for node in ready]
                result.dispatched.append(ready_ids)
                self.logger.info(f"▶ Round {result.rounds}: {', '.join(ready_ids)}")
                if self._event_bus:
                    await self._event_bus.emit_round_started(
                        self._workspace_id, run_id, result.rounds, ready_ids
                    )

                for node in ready:
                    await self._transition(store, run_id, node.id, NodeState.running())

                # Inputs are read from the state as it stood when the round began
                inputs = store.snapshot()
                outcomes = await asyncio.gather(
                    *(
                        self._run_node(node, graph, inputs, global_context, store, run_id)
                        for node in ready
                    )
                )

                round_completed: list[str] = []
                round_failed: list[str] = []
                for outcome in outcomes:
                    result.total_tokens += outcome.tokens_used
                    if outcome.success:
                        round_completed.append(outcome.node_id)
                    else:
                        round_failed.append(outcome.node_id)
                        result.errors[outcome.node_id] = outcome.error or "Unknown error"
                result.completed.extend(round_completed)
                result.failed.extend(round_failed)

                if self._event_bus:
                    await self._event_bus.emit_round_completed(
                        self._workspace_id, run_id, result.rounds, round_completed, round_failed
                    )

            result.blocked = [
                node.id for node in graph.nodes if store.get(node.id).status == NodeStatus.IDLE
            ]
            result.final_state = store.snapshot()
            result.total_latency_ms = int((time.monotonic() - start) * 1000)

            self.logger.info("✓ Run complete")
            self.logger.info(f"   Rounds: {result.rounds}")
            self.logger.info(f"   Completed: {len(result.completed)}")
            if result.failed:
                self.logger.warning(f"   Failed: {', '.join(result.failed)}")
            if result.blocked:
                self.logger.info(f"   Blocked: {', '.join(result.blocked)}")

            if self._event_bus:
                await self._event_bus.emit_run_completed(
                    self._workspace_id, run_id, result.summary(), result.final_state
                )
            return result
        finally:
            self._running = False
            restore_trace_context(trace_token)

    async def _run_node(
        self,
        node: NodeSpec,
        graph: GraphSpec,
        inputs: Mapping[str, NodeState],
        global_context: str,
        store: "StateStore",
        run_id: str,
    ) -> NodeOutcome:
        """Process one node and apply its outcome as soon as it settles."""
        set_trace_context(node_id=node.id)
        try:
            outcome = await self.processor.process(node, graph, inputs, global_context)
        except Exception as e:
            self.logger.exception(f"✗ {node.id} raised while processing")
            outcome = NodeOutcome(node_id=node.id, success=False, error=str(e) or type(e).__name__)

        await self._transition(store, run_id, node.id, outcome.to_state())
        return outcome

    async def _transition(
        self,
        store: "StateStore",
        run_id: str,
        node_id: str,
        state: NodeState,
    ) -> None:
        snapshot = store.apply(node_id, state)
        if self._event_bus:
            await self._event_bus.emit_node_status_changed(
                self._workspace_id, run_id, node_id, state, snapshot
            )
