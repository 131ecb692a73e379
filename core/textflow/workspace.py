"""
Workspace - one graph plus the global context broadcast to every node.

Also holds the sample workspace new installs start from, and the collection
of workspaces an editor switches between.
"""

import logging
import time

from pydantic import BaseModel, Field

from textflow.graph.edge import EdgeSpec, GraphSpec
from textflow.graph.node import NodeKind, NodeSpec

logger = logging.getLogger(__name__)

DEFAULT_WORKSPACE_MODEL = "gemini/gemini-2.5-flash"


class Workspace(BaseModel):
    """A named graph and its global context."""

    id: str
    name: str = "New Workspace"
    global_context: str = Field(
        default="", description="Text prepended to every generation call in this workspace"
    )
    graph: GraphSpec = Field(default_factory=GraphSpec)

    model_config = {"extra": "allow"}


def default_workspace() -> Workspace:
    """The 'Tech Blog Campaign' sample: Input → Blog Writer → HTML Builder → Web Preview."""
    nodes = [
        NodeSpec(
            id="node-1",
            kind=NodeKind.SOURCE_TEXT,
            title="Topic Input",
            prompt="The future of electric aviation",
        ),
        NodeSpec(
            id="node-2",
            kind=NodeKind.GENERATOR,
            title="Blog Writer",
            instruction=(
                "You are an expert blog writer. Write a comprehensive, engaging blog post "
                "about the user provided topic. Use markdown formatting."
            ),
            model_id=DEFAULT_WORKSPACE_MODEL,
        ),
        NodeSpec(
            id="node-5",
            kind=NodeKind.CODER,
            title="HTML Builder",
            instruction=(
                "You are a frontend web developer. Take the provided blog content and wrap "
                "it in the provided HTML template. If no template is provided, create a "
                "modern one. If image URLs are provided in the input, use them in <img> tags."
            ),
            model_id=DEFAULT_WORKSPACE_MODEL,
        ),
        NodeSpec(id="node-6", kind=NodeKind.PREVIEW, title="Web Preview"),
    ]
    edges = [
        EdgeSpec(id="c1", source="node-1", target="node-2"),
        EdgeSpec(id="c4", source="node-2", target="node-5"),
        EdgeSpec(id="c5", source="node-5", target="node-6"),
    ]
    return Workspace(
        id="ws-1",
        name="Tech Blog Campaign",
        global_context=(
            "Company Name: FutureTech Inc.\n"
            "Voice: Professional, innovative, and optimistic.\n"
            "Target Audience: Tech enthusiasts and investors."
        ),
        graph=GraphSpec(nodes=nodes, edges=edges),
    )


class WorkspaceCollection(BaseModel):
    """
    Ordered workspaces plus the one currently active.

    The collection never becomes empty: deleting the last workspace is refused.

    Example:
        workspaces = WorkspaceCollection.with_default()
        ws = workspaces.create()  # becomes active
        workspaces.delete(ws.id)  # active falls back to the first remaining
    """

    workspaces: list[Workspace] = Field(default_factory=list)
    active_id: str | None = None

    model_config = {"extra": "allow"}

    @classmethod
    def with_default(cls) -> "WorkspaceCollection":
        sample = default_workspace()
        return cls(workspaces=[sample], active_id=sample.id)

    def get(self, workspace_id: str) -> Workspace | None:
        for workspace in self.workspaces:
            if workspace.id == workspace_id:
                return workspace
        return None

    @property
    def active(self) -> Workspace | None:
        if self.active_id is None:
            return None
        return self.get(self.active_id)

    def activate(self, workspace_id: str) -> Workspace:
        workspace = self.get(workspace_id)
        if workspace is None:
            raise KeyError(f"Workspace '{workspace_id}' not found")
        self.active_id = workspace_id
        return workspace

    def create(self, name: str = "New Workspace", global_context: str = "") -> Workspace:
        """Append an empty workspace and make it active."""
        workspace_id = f"ws-{int(time.time() * 1000)}"
        while self.get(workspace_id) is not None:
            workspace_id = f"{workspace_id}-1"
        workspace = Workspace(id=workspace_id, name=name, global_context=global_context)
        self.workspaces.append(workspace)
        self.active_id = workspace.id
        logger.info(f"Created workspace {workspace.id}")
        return workspace

    def delete(self, workspace_id: str) -> bool:
        """
        Remove a workspace. Returns False if it is unknown or the only one left.

        Deleting the active workspace activates the first remaining one.
        """
        workspace = self.get(workspace_id)
        if workspace is None or len(self.workspaces) <= 1:
            return False
        self.workspaces.remove(workspace)
        if self.active_id == workspace_id:
            self.active_id = self.workspaces[0].id
        logger.info(f"Deleted workspace {workspace_id}")
        return True
