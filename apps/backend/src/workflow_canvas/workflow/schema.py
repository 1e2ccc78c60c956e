"""Pydantic models for the step list and the canvas graph."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

TriggerType = Literal["manual", "scheduled", "webhook", "event"]
TRIGGER_TYPES: tuple[str, ...] = ("manual", "scheduled", "webhook", "event")

TRIGGER_NODE_ID = "trigger"
STEP_NODE_PREFIX = "step-"


class RetryConfig(BaseModel):
    """Retry policy applied by the workflow engine to a single step."""

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(3, ge=0)
    retry_delay: int = Field(30, ge=0)


class Step(BaseModel):
    """One tool invocation in the ordered pipeline."""

    id: str
    step_number: int = Field(..., ge=1)
    tool_name: str
    tool_parameters: dict[str, Any] = Field(default_factory=dict)
    description: str = ""
    retry_config: RetryConfig = Field(default_factory=RetryConfig)
    timeout: int = Field(60, gt=0)

    def to_payload(self) -> dict[str, Any]:
        """Shape the step the way the workflow engine stores it (no id)."""
        return self.model_dump(exclude={"id"})


# ---------------------------------------------------------------------------
# Canvas graph
# ---------------------------------------------------------------------------


class Position(BaseModel):
    model_config = ConfigDict(frozen=True)

    x: float = 0
    y: float = 0


class NodeData(BaseModel):
    """Display payload rendered by a canvas node, kept in sync with its step."""

    model_config = ConfigDict(frozen=True)

    label: str
    tool_name: str
    category: str
    description: str = ""
    step_number: int = 0
    is_configured: bool = False
    parameters: dict[str, Any] = Field(default_factory=dict)
    retry_config: RetryConfig = Field(default_factory=RetryConfig)
    timeout: int = Field(60, gt=0)
    is_trigger: bool = False
    trigger_type: Optional[TriggerType] = None


class Node(BaseModel):
    """A node placed on the canvas."""

    model_config = ConfigDict(frozen=True)

    id: str
    position: Position = Field(default_factory=Position)
    data: NodeData

    @property
    def is_trigger(self) -> bool:
        return self.id == TRIGGER_NODE_ID

    @property
    def step_id(self) -> str:
        """Step id embedded in the node id."""
        return step_id_for(self.id)


class Edge(BaseModel):
    """Directed edge: ``target`` runs after ``source``."""

    model_config = ConfigDict(frozen=True)

    id: str
    source: str
    target: str


class Graph(BaseModel):
    """Immutable snapshot of the canvas.

    Mutation functions never modify a ``Graph``; they return a new one.
    """

    model_config = ConfigDict(frozen=True)

    nodes: tuple[Node, ...] = ()
    edges: tuple[Edge, ...] = ()

    def get_node(self, node_id: str) -> Optional[Node]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def step_nodes(self) -> list[Node]:
        """Non-trigger nodes in storage order."""
        return [n for n in self.nodes if not n.is_trigger]

    def get_edges_from(self, node_id: str) -> list[Edge]:
        return [e for e in self.edges if e.source == node_id]

    def get_edges_to(self, node_id: str) -> list[Edge]:
        return [e for e in self.edges if e.target == node_id]

    def has_edge(self, source: str, target: str) -> bool:
        return any(e.source == source and e.target == target for e in self.edges)


def node_id_for(step_id: str) -> str:
    return f"{STEP_NODE_PREFIX}{step_id}"


def step_id_for(node_id: str) -> str:
    return node_id.removeprefix(STEP_NODE_PREFIX)


def edge_id_for(source: str, target: str) -> str:
    return f"e-{source}-{target}"


# ---------------------------------------------------------------------------
# Persistence payloads
# ---------------------------------------------------------------------------


class WorkflowMetadata(BaseModel):
    category: str = ""
    tags: list[str] = Field(default_factory=list)


class WorkflowPayload(BaseModel):
    """Body of a create or update call against the workflow API."""

    name: str
    description: str
    steps: list[dict[str, Any]]
    trigger_type: TriggerType = "manual"
    trigger_config: dict[str, Any] = Field(default_factory=dict)
    variables: dict[str, Any] = Field(default_factory=dict)
    workflow_metadata: WorkflowMetadata = Field(default_factory=WorkflowMetadata)


class CanvasState(BaseModel):
    """Serializable snapshot of an editor session.

    Used to hand a session over to the form editor and to resume an
    abandoned session from a draft. ``tags`` is the raw comma separated
    string the user typed.
    """

    workflow_name: str = ""
    description: str = ""
    trigger_type: TriggerType = "manual"
    trigger_config: dict[str, Any] = Field(default_factory=dict)
    category: str = ""
    tags: str = ""
    steps: list[Step] = Field(default_factory=list)


class ToolInfo(BaseModel):
    """A tool entry returned by the tool catalog."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: str = ""
    input_schema: dict[str, Any] = Field(default_factory=dict, alias="inputSchema")
    category: Optional[str] = None
    platform: Optional[str] = None

    @property
    def properties(self) -> dict[str, Any]:
        return self.input_schema.get("properties", {}) or {}

    @property
    def required(self) -> list[str]:
        return list(self.input_schema.get("required", []) or [])
