"""Tests for WorkflowRuntime - the entry point that runs and edits a workspace."""

import asyncio

import pytest

from textflow.graph.executor import RunInProgressError
from textflow.graph.node import NodeKind, NodeSpec, NodeState, NodeStatus
from textflow.graph.validator import GraphValidationError
from textflow.llm.mock import MockLLMProvider
from textflow.llm.provider import LLMProvider, LLMResponse
from textflow.observability import get_trace_context, set_trace_context
from textflow.runtime.event_bus import EventType
from textflow.runtime.state_store import StateStore
from textflow.runtime.workflow_runtime import WorkflowRuntime
from textflow.workspace import Workspace, default_workspace


@pytest.fixture
def workspace(blog_chain):
    return Workspace(id="ws-test", global_context="Voice: upbeat", graph=blog_chain)


@pytest.fixture
def runtime(workspace, mock_llm, executor_config):
    return WorkflowRuntime(workspace, llm=mock_llm, config=executor_config)


class GatedProvider(LLMProvider):
    """Blocks every call until the gate opens."""

    def __init__(self):
        self.gate = asyncio.Event()

    async def generate(self, model_id, prompt, instruction=None, global_context=None):
        await self.gate.wait()
        return LLMResponse(content=f"gated {prompt}", model=model_id)


class TestRuns:
    @pytest.mark.asyncio
    async def test_run_all(self, runtime, mock_llm):
        result = await runtime.run_all()

        assert result.completed == ["input", "writer", "coder", "preview"]
        assert runtime.snapshot()["preview"].status == NodeStatus.COMPLETED
        assert all(call.global_context == "Voice: upbeat" for call in mock_llm.calls)
        assert not runtime.is_running

    @pytest.mark.asyncio
    async def test_run_all_resets_previous_results(self, runtime, mock_llm):
        await runtime.run_all()
        first = dict(runtime.snapshot())

        await runtime.run_all()

        assert dict(runtime.snapshot()) == first
        assert len(mock_llm.calls) == 4

    @pytest.mark.asyncio
    async def test_retry_from_keeps_ancestors(self, runtime, mock_llm):
        await runtime.run_all()
        mock_llm.calls.clear()

        result = await runtime.retry_from("coder")

        assert result.completed == ["coder", "preview"]
        assert len(mock_llm.calls) == 1
        assert mock_llm.calls[0].prompt.startswith("CONTENT TO INSERT")
        assert runtime.snapshot()["writer"].status == NodeStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_retry_unknown_node_releases_guard(self, runtime):
        with pytest.raises(KeyError):
            await runtime.retry_from("nope")
        assert not runtime.is_running

    @pytest.mark.asyncio
    async def test_events_for_a_run(self, runtime):
        await runtime.run_all()

        bus = runtime.event_bus
        reset = bus.get_history(event_type=EventType.NODES_RESET)[0]
        started = bus.get_history(event_type=EventType.RUN_STARTED)[0]
        finished = bus.get_history(event_type=EventType.RUN_COMPLETED)[0]

        assert reset.data["node_ids"] == ["input", "writer", "coder", "preview"]
        assert started.workspace_id == "ws-test"
        assert started.run_id == finished.run_id

    def test_resumes_from_stored_states(self, workspace, mock_llm, executor_config):
        store = StateStore.from_states({"input": NodeState.completed("Topic X")})

        runtime = WorkflowRuntime(workspace, llm=mock_llm, config=executor_config, store=store)

        assert runtime.snapshot()["input"].content == "Topic X"
        assert runtime.snapshot()["writer"] == NodeState.idle()

    @pytest.mark.asyncio
    async def test_empty_store_passed_in_is_used(self, workspace, mock_llm, executor_config):
        mine = StateStore()

        runtime = WorkflowRuntime(workspace, llm=mock_llm, config=executor_config, store=mine)
        await runtime.run_all()

        assert runtime.store is mine
        assert len(mine) == 4
        assert mine.get("preview").status == NodeStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_trace_context_scoped_to_the_run(self, runtime):
        seen = []

        async def capture(event):
            seen.append(get_trace_context())

        runtime.event_bus.subscribe([EventType.RUN_STARTED], capture)
        set_trace_context(request_id="req-1")

        result = await runtime.run_all()

        assert seen[0]["workspace_id"] == "ws-test"
        assert seen[0]["run_id"] == result.run_id
        assert get_trace_context() == {"request_id": "req-1"}


class TestInFlightGuard:
    @pytest.mark.asyncio
    async def test_second_run_rejected(self, workspace, executor_config):
        llm = GatedProvider()
        runtime = WorkflowRuntime(workspace, llm=llm, config=executor_config)

        first = asyncio.create_task(runtime.run_all())
        await asyncio.sleep(0)
        assert runtime.is_running

        with pytest.raises(RunInProgressError):
            await runtime.run_all()
        with pytest.raises(RunInProgressError):
            await runtime.retry_from("writer")

        llm.gate.set()
        await first
        assert not runtime.is_running

        # A fresh run is accepted once the first settles
        await runtime.retry_from("preview")

    @pytest.mark.asyncio
    async def test_edits_rejected_while_running(self, workspace, executor_config):
        llm = GatedProvider()
        runtime = WorkflowRuntime(workspace, llm=llm, config=executor_config)

        task = asyncio.create_task(runtime.run_all())
        await asyncio.sleep(0)

        with pytest.raises(RunInProgressError):
            runtime.add_node(NodeKind.PREVIEW)
        with pytest.raises(RunInProgressError):
            runtime.remove_node("preview")
        with pytest.raises(RunInProgressError):
            runtime.connect("input", "preview")
        with pytest.raises(RunInProgressError):
            runtime.set_global_context("changed")

        llm.gate.set()
        await task
        assert workspace.global_context == "Voice: upbeat"


class TestEdits:
    def test_add_and_connect(self, runtime):
        node = runtime.add_node(NodeKind.OPTIMIZER, node_id="seo")
        edge = runtime.connect("writer", "seo")

        assert runtime.snapshot()["seo"] == NodeState.idle()
        assert runtime.workspace.graph.incoming("seo") == [edge]
        assert node.title == "Optimizer"

    def test_connect_rejects_cycle(self, runtime):
        with pytest.raises(GraphValidationError):
            runtime.connect("preview", "writer")

    def test_disconnect(self, runtime):
        edge_id = runtime.workspace.graph.incoming("preview")[0].id
        assert runtime.disconnect(edge_id) is True
        assert runtime.workspace.graph.incoming("preview") == []

    def test_remove_node_drops_state(self, runtime):
        assert runtime.remove_node("coder") is True
        assert "coder" not in runtime.snapshot()
        assert runtime.workspace.graph.outgoing("writer") == []

    def test_update_node(self, runtime):
        updated = runtime.update_node("writer", instruction="Shorter.", model_id="other/model")
        assert runtime.workspace.graph.get_node("writer") is updated
        assert updated.instruction == "Shorter."

        with pytest.raises(ValueError):
            runtime.update_node("writer", id="renamed")
        with pytest.raises(KeyError):
            runtime.update_node("ghost", title="x")

    @pytest.mark.asyncio
    async def test_duplicate_node_starts_idle(self, runtime):
        await runtime.run_all()

        clone = runtime.duplicate_node("writer")

        assert clone.id != "writer"
        assert clone.kind == NodeKind.GENERATOR
        assert clone.instruction == "Write a blog post."
        assert clone.title == "(Copy)"
        assert runtime.snapshot()[clone.id] == NodeState.idle()
        assert runtime.workspace.graph.incoming(clone.id) == []

    def test_add_existing_spec(self, runtime):
        spec = NodeSpec(id="extra", kind=NodeKind.BRAINSTORM, title="Ideas")
        assert runtime.add_node(spec) is spec
        with pytest.raises(GraphValidationError):
            runtime.add_node(spec)

    def test_set_global_context(self, runtime):
        runtime.set_global_context("Voice: formal")
        assert runtime.workspace.global_context == "Voice: formal"


@pytest.mark.asyncio
async def test_default_workspace_runs_end_to_end(executor_config):
    llm = MockLLMProvider(responses={"electric aviation": "# Flying electric"})
    runtime = WorkflowRuntime(default_workspace(), llm=llm, config=executor_config)

    result = await runtime.run_all()

    assert result.failed == [] and result.blocked == []
    assert runtime.snapshot()["node-2"].content == "# Flying electric"
    assert llm.calls[0].model_id == "gemini/gemini-2.5-flash"
    assert "FutureTech Inc." in llm.calls[0].system
    # No template on the HTML Builder: it gets the generic HTML request
    assert "self-contained HTML document" in llm.calls[1].prompt
    assert runtime.snapshot()["node-6"].content == runtime.snapshot()["node-5"].content
