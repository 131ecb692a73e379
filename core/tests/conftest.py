"""Shared fixtures for the TextFlow test suite."""

import pytest

from textflow.graph.edge import EdgeSpec, GraphSpec
from textflow.graph.executor import ExecutorConfig
from textflow.graph.node import NodeKind, NodeSpec
from textflow.llm.mock import MockLLMProvider
from textflow.observability import clear_trace_context

TEST_MODEL = "test/stub-model"

HTML_TEMPLATE = "<html><body><article></article></body></html>"


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point the config loader at an empty location so ~/.textflow never leaks in."""
    monkeypatch.setenv("TEXTFLOW_CONFIG", str(tmp_path / "missing.json"))
    yield
    clear_trace_context()


@pytest.fixture
def mock_llm():
    return MockLLMProvider()


@pytest.fixture
def executor_config():
    return ExecutorConfig(default_model=TEST_MODEL)


def make_graph(nodes: list[NodeSpec], links: list[tuple[str, str]]) -> GraphSpec:
    """Build a graph from nodes and (source, target) pairs; edges get ids e1, e2, ..."""
    edges = [
        EdgeSpec(id=f"e{i}", source=source, target=target)
        for i, (source, target) in enumerate(links, start=1)
    ]
    return GraphSpec(nodes=nodes, edges=edges)


@pytest.fixture
def blog_chain() -> GraphSpec:
    """Input("Topic X") -> Writer -> Coder(template) -> Preview."""
    return make_graph(
        [
            NodeSpec(id="input", kind=NodeKind.SOURCE_TEXT, prompt="Topic X"),
            NodeSpec(id="writer", kind=NodeKind.GENERATOR, instruction="Write a blog post."),
            NodeSpec(id="coder", kind=NodeKind.CODER, template=HTML_TEMPLATE),
            NodeSpec(id="preview", kind=NodeKind.PREVIEW),
        ],
        [("input", "writer"), ("writer", "coder"), ("coder", "preview")],
    )


@pytest.fixture
def abcd_chain() -> GraphSpec:
    """A -> B -> C -> D, A being a text source."""
    return make_graph(
        [
            NodeSpec(id="A", kind=NodeKind.SOURCE_TEXT, prompt="X"),
            NodeSpec(id="B", kind=NodeKind.GENERATOR),
            NodeSpec(id="C", kind=NodeKind.OPTIMIZER),
            NodeSpec(id="D", kind=NodeKind.PREVIEW),
        ],
        [("A", "B"), ("B", "C"), ("C", "D")],
    )


@pytest.fixture
def build_graph():
    return make_graph
