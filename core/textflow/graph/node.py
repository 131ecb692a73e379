"""
Node Protocol - The building blocks of a workflow.

A node is configuration (NodeSpec) plus run state (NodeState). The spec is
edited by the user between runs and never touched by the engine; the state
lives in the StateStore and is the only thing a run mutates.

Node kinds form a closed set:
- source_text: emits its configured prompt, no upstream needed
- source_image: emits its image references, no upstream needed
- brainstorm: asks the model for topics from the global context alone
- generator / optimizer / fact_check: rewrite upstream text through the model
- coder: grafts upstream text into an HTML template (or writes HTML)
- preview: pass-through sink that concatenates upstream content
"""

import uuid
from dataclasses import dataclass
from enum import StrEnum

from pydantic import BaseModel, Field


class NodeKind(StrEnum):
    """What a node does with its inputs."""

    SOURCE_TEXT = "source_text"
    SOURCE_IMAGE = "source_image"
    GENERATOR = "generator"
    OPTIMIZER = "optimizer"
    FACT_CHECK = "fact_check"
    CODER = "coder"
    BRAINSTORM = "brainstorm"
    PREVIEW = "preview"


# Kinds that resolve instantly in the first step of every run
SOURCE_KINDS = frozenset({NodeKind.SOURCE_TEXT, NodeKind.SOURCE_IMAGE})

# Kinds that may run without any incoming edge
INPUTLESS_KINDS = SOURCE_KINDS | {NodeKind.BRAINSTORM}


class NodeStatus(StrEnum):
    """Run status of a node."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


class NodeSpec(BaseModel):
    """
    Configuration of a single node.

    Examples:
        NodeSpec(id="input", kind=NodeKind.SOURCE_TEXT, prompt="Topic X")

        NodeSpec(
            id="writer",
            kind=NodeKind.GENERATOR,
            instruction="You are an expert blog writer.",
            model_id="gemini/gemini-2.5-flash",
        )
    """

    id: str
    kind: NodeKind
    title: str = ""

    prompt: str = Field(default="", description="Text emitted by source_text nodes")
    instruction: str | None = Field(default=None, description="Role/system text for the model")
    model_id: str | None = Field(default=None, description="Generation profile selector")
    template: str | None = Field(default=None, description="Raw HTML scaffold for coder nodes")
    image_refs: list[str] = Field(
        default_factory=list, description="Image locators for source_image nodes"
    )

    model_config = {"extra": "allow"}

    @property
    def is_source(self) -> bool:
        return self.kind in SOURCE_KINDS

    @property
    def needs_input(self) -> bool:
        """True if the node can only run once upstream nodes have completed."""
        return self.kind not in INPUTLESS_KINDS


@dataclass(frozen=True)
class NodeState:
    """
    Run state of a node.

    content is non-empty only when COMPLETED; error_message is set only when
    ERROR. Construction enforces both.
    """

    status: NodeStatus = NodeStatus.IDLE
    content: str = ""
    error_message: str | None = None

    def __post_init__(self) -> None:
        if self.content and self.status != NodeStatus.COMPLETED:
            raise ValueError(f"content is only allowed on completed nodes, not {self.status}")
        if self.error_message is not None and self.status != NodeStatus.ERROR:
            raise ValueError(f"error_message is only allowed on errored nodes, not {self.status}")
        if self.status == NodeStatus.ERROR and not self.error_message:
            raise ValueError("errored nodes require an error_message")

    @classmethod
    def idle(cls) -> "NodeState":
        return cls()

    @classmethod
    def running(cls) -> "NodeState":
        return cls(status=NodeStatus.RUNNING)

    @classmethod
    def completed(cls, content: str) -> "NodeState":
        return cls(status=NodeStatus.COMPLETED, content=content)

    @classmethod
    def failed(cls, error_message: str) -> "NodeState":
        return cls(status=NodeStatus.ERROR, error_message=error_message or "Unknown error")

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "content": self.content,
            "error_message": self.error_message,
        }


# ---------------------------------------------------------------------------
# Per-kind defaults applied when a node is created from the editor
# ---------------------------------------------------------------------------

FACT_CHECK_MODEL = "gemini/gemini-3-pro-preview"

NODE_DEFAULTS: dict[NodeKind, dict[str, str | None]] = {
    NodeKind.SOURCE_TEXT: {"title": "Input", "instruction": None},
    NodeKind.SOURCE_IMAGE: {"title": "Image Import", "instruction": None},
    NodeKind.BRAINSTORM: {
        "title": "Brainstorm",
        "instruction": (
            "You are a creative strategist. Generate 5-10 engaging blog post topics "
            "relevant to the company described in the global context. "
            "Output them as a numbered list."
        ),
    },
    NodeKind.GENERATOR: {"title": "AI Writer", "instruction": "Write a comprehensive blog post..."},
    NodeKind.OPTIMIZER: {"title": "Optimizer", "instruction": "Optimize the input text for SEO..."},
    NodeKind.FACT_CHECK: {
        "title": "Fact Check",
        "instruction": "Verify the facts in this text...",
        "model_id": FACT_CHECK_MODEL,
    },
    NodeKind.CODER: {"title": "HTML Builder", "instruction": "Convert content to HTML..."},
    NodeKind.PREVIEW: {"title": "Preview", "instruction": None},
}


def new_node_id() -> str:
    return f"node-{uuid.uuid4().hex[:12]}"


def create_node(kind: NodeKind | str, node_id: str | None = None, **overrides) -> NodeSpec:
    """Build a NodeSpec pre-filled with the defaults for its kind."""
    kind = NodeKind(kind)
    fields = {k: v for k, v in NODE_DEFAULTS[kind].items() if v is not None}
    if kind == NodeKind.CODER:
        fields.setdefault("template", "")
    fields.update(overrides)
    return NodeSpec(id=node_id or new_node_id(), kind=kind, **fields)
