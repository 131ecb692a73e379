"""Graph structures: Nodes, Edges, readiness, processing and the scheduler."""

from textflow.graph.cascade import reset_for_full_run, reset_for_retry, retry_scope
from textflow.graph.edge import EdgeSpec, GraphSpec
from textflow.graph.executor import (
    ExecutionResult,
    ExecutorConfig,
    RunInProgressError,
    WorkflowExecutor,
)
from textflow.graph.node import (
    INPUTLESS_KINDS,
    SOURCE_KINDS,
    NodeKind,
    NodeSpec,
    NodeState,
    NodeStatus,
    create_node,
)
from textflow.graph.processor import NodeOutcome, NodeProcessor, build_prompt, gather_inputs
from textflow.graph.readiness import eligible_nodes, is_eligible
from textflow.graph.validator import GraphValidationError, find_cycle

__all__ = [
    # Node
    "NodeKind",
    "NodeStatus",
    "NodeSpec",
    "NodeState",
    "SOURCE_KINDS",
    "INPUTLESS_KINDS",
    "create_node",
    # Edge
    "EdgeSpec",
    "GraphSpec",
    # Validation
    "GraphValidationError",
    "find_cycle",
    # Readiness
    "is_eligible",
    "eligible_nodes",
    # Processing
    "NodeProcessor",
    "NodeOutcome",
    "build_prompt",
    "gather_inputs",
    # Cascade
    "retry_scope",
    "reset_for_retry",
    "reset_for_full_run",
    # Executor
    "WorkflowExecutor",
    "ExecutorConfig",
    "ExecutionResult",
    "RunInProgressError",
]
