"""
Event Bus - Pub/sub channel through which the engine's state is observed.

The executor publishes an event after every node transition carrying a
read-only snapshot of all node states. Rendering and persistence
collaborators subscribe; they never write back into the engine.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from textflow.graph.node import NodeState

logger = logging.getLogger(__name__)


class EventType(StrEnum):
    """Types of events that can be published."""

    # Run lifecycle
    RUN_STARTED = "run_started"
    RUN_COMPLETED = "run_completed"

    # Round barrier
    ROUND_STARTED = "round_started"
    ROUND_COMPLETED = "round_completed"

    # Node state
    NODE_STATUS_CHANGED = "node_status_changed"
    NODES_RESET = "nodes_reset"


@dataclass
class WorkflowEvent:
    """An event emitted by the engine."""

    type: EventType
    workspace_id: str = ""
    run_id: str | None = None
    node_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    snapshot: Mapping[str, NodeState] | None = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "type": self.type.value,
            "workspace_id": self.workspace_id,
            "run_id": self.run_id,
            "node_id": self.node_id,
            "data": self.data,
            "snapshot": (
                {node_id: state.to_dict() for node_id, state in self.snapshot.items()}
                if self.snapshot is not None
                else None
            ),
            "timestamp": self.timestamp.isoformat(),
        }


# Type for event handlers
EventHandler = Callable[[WorkflowEvent], Awaitable[None]]


@dataclass
class Subscription:
    """A subscription to events."""

    id: str
    event_types: set[EventType]
    handler: EventHandler
    filter_workspace: str | None = None  # Only receive events from this workspace
    filter_node: str | None = None  # Only receive events about this node
    filter_run: str | None = None  # Only receive events from this run


class EventBus:
    """
    Pub/sub event bus for engine observers.

    Example:
        bus = EventBus()

        async def on_change(event: WorkflowEvent):
            render(event.snapshot)

        bus.subscribe(event_types=[EventType.NODE_STATUS_CHANGED], handler=on_change)
    """

    def __init__(
        self,
        max_history: int = 1000,
        max_concurrent_handlers: int = 10,
    ):
        """
        Initialize event bus.

        Args:
            max_history: Maximum events to keep in history
            max_concurrent_handlers: Maximum concurrent handler executions
        """
        self._subscriptions: dict[str, Subscription] = {}
        self._event_history: list[WorkflowEvent] = []
        self._max_history = max_history
        self._semaphore = asyncio.Semaphore(max_concurrent_handlers)
        self._subscription_counter = 0

    def subscribe(
        self,
        event_types: list[EventType],
        handler: EventHandler,
        filter_workspace: str | None = None,
        filter_node: str | None = None,
        filter_run: str | None = None,
    ) -> str:
        """
        Subscribe to events.

        Returns:
            Subscription ID (use to unsubscribe)
        """
        self._subscription_counter += 1
        sub_id = f"sub_{self._subscription_counter}"

        self._subscriptions[sub_id] = Subscription(
            id=sub_id,
            event_types=set(event_types),
            handler=handler,
            filter_workspace=filter_workspace,
            filter_node=filter_node,
            filter_run=filter_run,
        )
        logger.debug(f"Subscription {sub_id} registered for {event_types}")
        return sub_id

    def unsubscribe(self, subscription_id: str) -> bool:
        """Remove a subscription. Returns True if it existed."""
        if subscription_id in self._subscriptions:
            del self._subscriptions[subscription_id]
            logger.debug(f"Subscription {subscription_id} removed")
            return True
        return False

    async def publish(self, event: WorkflowEvent) -> None:
        """Record an event and deliver it to every matching subscriber."""
        self._event_history.append(event)
        if len(self._event_history) > self._max_history:
            self._event_history = self._event_history[-self._max_history :]

        matching_handlers = [
            subscription.handler
            for subscription in self._subscriptions.values()
            if self._matches(subscription, event)
        ]
        if matching_handlers:
            await self._execute_handlers(event, matching_handlers)

    def _matches(self, subscription: Subscription, event: WorkflowEvent) -> bool:
        """Check if a subscription matches an event."""
        if event.type not in subscription.event_types:
            return False
        if subscription.filter_workspace and subscription.filter_workspace != event.workspace_id:
            return False
        if subscription.filter_node and subscription.filter_node != event.node_id:
            return False
        if subscription.filter_run and subscription.filter_run != event.run_id:
            return False
        return True

    async def _execute_handlers(
        self,
        event: WorkflowEvent,
        handlers: list[EventHandler],
    ) -> None:
        """Execute handlers concurrently; a failing observer never affects the run."""

        async def run_handler(handler: EventHandler) -> None:
            async with self._semaphore:
                try:
                    await handler(event)
                except Exception as e:
                    logger.error(f"Handler error for {event.type}: {e}")

        await asyncio.gather(*[run_handler(h) for h in handlers], return_exceptions=True)

    # === CONVENIENCE PUBLISHERS ===

    async def emit_run_started(
        self,
        workspace_id: str,
        run_id: str,
        node_count: int,
        reset_nodes: list[str],
    ) -> None:
        await self.publish(
            WorkflowEvent(
                type=EventType.RUN_STARTED,
                workspace_id=workspace_id,
                run_id=run_id,
                data={"node_count": node_count, "reset_nodes": reset_nodes},
            )
        )

    async def emit_run_completed(
        self,
        workspace_id: str,
        run_id: str,
        summary: dict[str, Any],
        snapshot: Mapping[str, NodeState],
    ) -> None:
        await self.publish(
            WorkflowEvent(
                type=EventType.RUN_COMPLETED,
                workspace_id=workspace_id,
                run_id=run_id,
                data=summary,
                snapshot=snapshot,
            )
        )

    async def emit_round_started(
        self,
        workspace_id: str,
        run_id: str,
        round_number: int,
        node_ids: list[str],
    ) -> None:
        await self.publish(
            WorkflowEvent(
                type=EventType.ROUND_STARTED,
                workspace_id=workspace_id,
                run_id=run_id,
                data={"round": round_number, "nodes": node_ids},
            )
        )

    async def emit_round_completed(
        self,
        workspace_id: str,
        run_id: str,
        round_number: int,
        completed: list[str],
        failed: list[str],
    ) -> None:
        await self.publish(
            WorkflowEvent(
                type=EventType.ROUND_COMPLETED,
                workspace_id=workspace_id,
                run_id=run_id,
                data={"round": round_number, "completed": completed, "failed": failed},
            )
        )

    async def emit_node_status_changed(
        self,
        workspace_id: str,
        run_id: str | None,
        node_id: str,
        state: NodeState,
        snapshot: Mapping[str, NodeState],
    ) -> None:
        await self.publish(
            WorkflowEvent(
                type=EventType.NODE_STATUS_CHANGED,
                workspace_id=workspace_id,
                run_id=run_id,
                node_id=node_id,
                data={"status": state.status.value},
                snapshot=snapshot,
            )
        )

    async def emit_nodes_reset(
        self,
        workspace_id: str,
        node_ids: list[str],
        snapshot: Mapping[str, NodeState],
    ) -> None:
        await self.publish(
            WorkflowEvent(
                type=EventType.NODES_RESET,
                workspace_id=workspace_id,
                data={"node_ids": node_ids},
                snapshot=snapshot,
            )
        )

    # === QUERY OPERATIONS ===

    def get_history(
        self,
        event_type: EventType | None = None,
        run_id: str | None = None,
        node_id: str | None = None,
        limit: int = 100,
    ) -> list[WorkflowEvent]:
        """Event history with optional filtering, most recent first."""
        events = self._event_history[::-1]

        if event_type:
            events = [e for e in events if e.type == event_type]
        if run_id:
            events = [e for e in events if e.run_id == run_id]
        if node_id:
            events = [e for e in events if e.node_id == node_id]

        return events[:limit]

    def get_stats(self) -> dict:
        """Get event bus statistics."""
        type_counts: dict[str, int] = {}
        for event in self._event_history:
            type_counts[event.type.value] = type_counts.get(event.type.value, 0) + 1

        return {
            "total_events": len(self._event_history),
            "subscriptions": len(self._subscriptions),
            "events_by_type": type_counts,
        }

    # === WAITING OPERATIONS ===

    async def wait_for(
        self,
        event_type: EventType,
        run_id: str | None = None,
        node_id: str | None = None,
        timeout: float | None = None,
    ) -> WorkflowEvent | None:
        """
        Wait for a specific event to occur.

        Returns:
            The event if received, None on timeout
        """
        result: WorkflowEvent | None = None
        event_received = asyncio.Event()

        async def handler(event: WorkflowEvent) -> None:
            nonlocal result
            result = event
            event_received.set()

        sub_id = self.subscribe(
            event_types=[event_type],
            handler=handler,
            filter_node=node_id,
            filter_run=run_id,
        )

        try:
            if timeout:
                try:
                    await asyncio.wait_for(event_received.wait(), timeout=timeout)
                except TimeoutError:
                    return None
            else:
                await event_received.wait()

            return result
        finally:
            self.unsubscribe(sub_id)
