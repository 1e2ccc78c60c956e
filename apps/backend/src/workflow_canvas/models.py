"""API models for the workflow canvas service."""

from typing import Any, Optional

from pydantic import BaseModel, Field

from .workflow.schema import CanvasState, Graph, RetryConfig, Step, TriggerType


class OpenSessionRequest(BaseModel):
    """Open an editor session. All sources are optional; none means empty canvas."""

    workflow_id: Optional[str] = Field(
        None,
        description="Load this stored workflow from the workflow API for editing",
    )
    workflow: Optional[dict[str, Any]] = Field(
        None,
        description="A workflow record already fetched by the caller",
    )
    canvas_state: Optional[CanvasState] = Field(
        None,
        description="Snapshot handed over from the form editor",
    )
    draft_id: Optional[str] = Field(
        None,
        description="Resume a previously abandoned session",
    )


class DetailsUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    trigger_type: Optional[TriggerType] = None
    trigger_config: Optional[dict[str, Any]] = None
    category: Optional[str] = None
    tags: Optional[str] = Field(None, description="Comma separated tags")


class AddNodeRequest(BaseModel):
    tool_name: str = Field(..., min_length=1, description="Catalog name of the tool to add")
    step_id: Optional[str] = Field(None, description="Explicit step id; generated when omitted")


class NodeUpdate(BaseModel):
    parameters: Optional[dict[str, Any]] = None
    description: Optional[str] = None
    retry_config: Optional[RetryConfig] = None
    timeout: Optional[int] = Field(None, gt=0)
    x: Optional[float] = None
    y: Optional[float] = None


class ConnectRequest(BaseModel):
    source: str
    target: str


class SessionView(BaseModel):
    """Everything a client needs to render an editor session."""

    session_id: str
    workflow_id: Optional[str | int] = None
    name: str
    description: str
    trigger_type: TriggerType
    trigger_config: dict[str, Any]
    category: str
    tags: str
    graph: Graph
    steps: list[Step] = Field(..., description="Step list the graph would be saved as")
    error: Optional[str] = None


class DraftResponse(BaseModel):
    draft_id: str


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str = "Workflow Canvas Backend"
