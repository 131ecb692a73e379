"""
TextFlow - a readiness-driven workflow engine for chains of generative text steps.

Nodes are connected into a DAG; each run resolves source nodes, then runs
every node whose inputs are complete, round by round, until nothing more can
run. A retry resets one node and everything downstream of it.
"""

from textflow.graph import (
    EdgeSpec,
    ExecutionResult,
    ExecutorConfig,
    GraphSpec,
    GraphValidationError,
    NodeKind,
    NodeSpec,
    NodeState,
    NodeStatus,
    RunInProgressError,
    WorkflowExecutor,
    create_node,
)
from textflow.llm import LLMProvider, LLMResponse, MockLLMProvider, ProviderError
from textflow.runtime import EventBus, EventType, StateStore, WorkflowEvent
from textflow.runtime.workflow_runtime import WorkflowRuntime
from textflow.workspace import Workspace, WorkspaceCollection, default_workspace

__all__ = [
    "NodeKind",
    "NodeStatus",
    "NodeSpec",
    "NodeState",
    "create_node",
    "EdgeSpec",
    "GraphSpec",
    "GraphValidationError",
    "WorkflowExecutor",
    "ExecutorConfig",
    "ExecutionResult",
    "RunInProgressError",
    "LLMProvider",
    "LLMResponse",
    "ProviderError",
    "MockLLMProvider",
    "EventBus",
    "EventType",
    "WorkflowEvent",
    "StateStore",
    "WorkflowRuntime",
    "Workspace",
    "WorkspaceCollection",
    "default_workspace",
]
