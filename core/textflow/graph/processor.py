"""
Node Processor - turns a node plus its completed upstream into new content.

Dispatch is a switch over NodeKind. Source kinds and preview resolve without
calling the model; every other kind builds a prompt and calls the
generation capability with the node's instruction and the global context.
"""

import asyncio
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field

from textflow.graph.edge import GraphSpec
from textflow.graph.node import NodeKind, NodeSpec, NodeState, NodeStatus
from textflow.llm.provider import LLMProvider

logger = logging.getLogger(__name__)

BRAINSTORM_PROMPT = "Generate a list of relevant topics based on the global context provided."

CODER_TEMPLATE_PROMPT = """CONTENT TO INSERT:
{content}

HTML TEMPLATE:
{template}

INSTRUCTIONS:
Insert the content into the HTML template. Do not change the layout structure, only add the text.
{image_hint}"""

CODER_HTML_INSTRUCTION = (
    "Produce a complete, self-contained HTML document for the content above. "
    "Embed every available image with an <img> tag."
)


@dataclass
class NodeInputs:
    """Upstream material gathered for one node, in incoming-edge order."""

    texts: list[str] = field(default_factory=list)
    images: list[str] = field(default_factory=list)
    contents: list[str] = field(default_factory=list)  # every upstream content, images included

    @property
    def combined_text(self) -> str:
        return "\n\n".join(self.texts)


@dataclass
class NodeOutcome:
    """Result of processing a node."""

    node_id: str
    success: bool
    content: str = ""
    error: str | None = None
    model: str | None = None
    latency_ms: int = 0
    tokens_used: int = 0

    def to_state(self) -> NodeState:
        if self.success:
            return NodeState.completed(self.content)
        return NodeState.failed(self.error or "Unknown error")

    @property
    def status(self) -> NodeStatus:
        return NodeStatus.COMPLETED if self.success else NodeStatus.ERROR


def gather_inputs(
    node: NodeSpec,
    graph: GraphSpec,
    states: Mapping[str, NodeState],
) -> NodeInputs:
    """
    Collect upstream content in incoming-edge order.

    source_image upstreams feed the image list; everything else feeds the
    text list. Order follows edge insertion, never completion time.
    """
    inputs = NodeInputs()
    for edge in graph.incoming(node.id):
        source = graph.get_node(edge.source)
        state = states.get(edge.source)
        if source is None or state is None:
            continue
        inputs.contents.append(state.content)
        if source.kind == NodeKind.SOURCE_IMAGE:
            inputs.images.extend(source.image_refs)
        else:
            inputs.texts.append(state.content)
    return inputs


def resolve_source(node: NodeSpec) -> str:
    """Content of a source node; sources never call the model."""
    if node.kind == NodeKind.SOURCE_TEXT:
        return node.prompt or ""
    if node.kind == NodeKind.SOURCE_IMAGE:
        return "\n".join(node.image_refs)
    raise ValueError(f"Node '{node.id}' ({node.kind}) is not a source node")


def build_prompt(node: NodeSpec, inputs: NodeInputs) -> str:
    """Assemble the prompt sent to the model for a generating node."""
    if node.kind == NodeKind.BRAINSTORM:
        return BRAINSTORM_PROMPT

    if node.kind == NodeKind.CODER:
        if node.template:
            image_hint = ""
            if inputs.images:
                image_hint = (
                    "Also, insert these images where appropriate in the HTML: "
                    + ", ".join(inputs.images)
                )
            return CODER_TEMPLATE_PROMPT.format(
                content=inputs.combined_text,
                template=node.template,
                image_hint=image_hint,
            ).rstrip()
        return f"{_generator_prompt(inputs)}\n\n{CODER_HTML_INSTRUCTION}"

    if node.kind in (NodeKind.GENERATOR, NodeKind.OPTIMIZER, NodeKind.FACT_CHECK):
        return _generator_prompt(inputs)

    raise ValueError(f"Node '{node.id}' ({node.kind}) does not build a prompt")


def _generator_prompt(inputs: NodeInputs) -> str:
    prompt = inputs.combined_text
    if inputs.images:
        prompt += f"\n\nAvailable Image URLs: {', '.join(inputs.images)}"
    return prompt


class NodeProcessor:
    """
    Executes a single node.

    Example:
        processor = NodeProcessor(llm=MockLLMProvider(), default_model="gemini/gemini-2.5-flash")
        outcome = await processor.process(node, graph, store.snapshot(), global_context="")
    """

    def __init__(
        self,
        llm: LLMProvider | None,
        default_model: str,
        preview_delay_seconds: float = 0.0,
    ):
        self.llm = llm
        self.default_model = default_model
        self.preview_delay_seconds = preview_delay_seconds

    async def process(
        self,
        node: NodeSpec,
        graph: GraphSpec,
        states: Mapping[str, NodeState],
        global_context: str = "",
    ) -> NodeOutcome:
        """
        Produce the outcome for one node. Never raises for model failures;
        they come back as an unsuccessful NodeOutcome.
        """
        start = time.monotonic()

        match node.kind:
            case NodeKind.SOURCE_TEXT | NodeKind.SOURCE_IMAGE:
                return NodeOutcome(node_id=node.id, success=True, content=resolve_source(node))

            case NodeKind.PREVIEW:
                inputs = gather_inputs(node, graph, states)
                if self.preview_delay_seconds:
                    await asyncio.sleep(self.preview_delay_seconds)
                return NodeOutcome(
                    node_id=node.id,
                    success=True,
                    content="\n\n".join(inputs.contents),
                    latency_ms=int((time.monotonic() - start) * 1000),
                )

            case _:
                inputs = gather_inputs(node, graph, states)
                return await self._generate(node, build_prompt(node, inputs), global_context, start)

    async def _generate(
        self,
        node: NodeSpec,
        prompt: str,
        global_context: str,
        start: float,
    ) -> NodeOutcome:
        model = node.model_id or self.default_model
        if self.llm is None:
            return NodeOutcome(
                node_id=node.id,
                success=False,
                error="No generation provider configured",
                model=model,
            )

        try:
            response = await self.llm.generate(
                model_id=model,
                prompt=prompt,
                instruction=node.instruction,
                global_context=global_context or None,
            )
        except Exception as e:
            latency_ms = int((time.monotonic() - start) * 1000)
            logger.error(
                f"✗ {node.id} failed: {e}",
                extra={"node_id": node.id, "model": model, "latency_ms": latency_ms},
            )
            return NodeOutcome(
                node_id=node.id,
                success=False,
                error=str(e) or "Unknown error",
                model=model,
                latency_ms=latency_ms,
            )

        latency_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            f"✓ {node.id} generated {len(response.content)} chars",
            extra={"node_id": node.id, "model": model, "latency_ms": latency_ms},
        )
        return NodeOutcome(
            node_id=node.id,
            success=True,
            content=response.content,
            model=response.model or model,
            latency_ms=latency_ms,
            tokens_used=response.input_tokens + response.output_tokens,
        )
