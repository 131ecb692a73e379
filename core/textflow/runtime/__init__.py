"""Runtime: authoritative node state, state observation and the workspace runner."""

from textflow.runtime.event_bus import EventBus, EventType, WorkflowEvent
from textflow.runtime.state_store import InvalidTransitionError, StateChange, StateStore

__all__ = [
    "EventBus",
    "EventType",
    "WorkflowEvent",
    "StateStore",
    "StateChange",
    "InvalidTransitionError",
]
