"""Editor session: owns the current canvas graph and the workflow details."""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any, Optional, Sequence

from pydantic import ValidationError

from . import mutations
from .categories import DEFAULT_CATEGORY_RULES, CategoryRule
from .convert import hydrate, linearize
from .errors import InvalidWorkflowError, PersistenceError, SaveValidationError
from .persistence import WorkflowApi
from .schema import (
    TRIGGER_TYPES,
    CanvasState,
    Graph,
    Node,
    RetryConfig,
    Step,
    ToolInfo,
    TriggerType,
    WorkflowMetadata,
    WorkflowPayload,
)

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)


class WorkflowEditor:
    """A single canvas editing session.

    ``graph`` is the only slot holding canvas state. Every edit replaces it
    with the value returned by a function in ``mutations``; a ``Graph`` read
    earlier is never changed underneath its reader.
    """

    def __init__(
        self,
        api: WorkflowApi,
        categories: Sequence[CategoryRule] = DEFAULT_CATEGORY_RULES,
        default_retry: Optional[RetryConfig] = None,
        default_timeout: int = 60,
        include_all_tools: bool = True,
    ) -> None:
        self.api = api
        self.categories = tuple(categories)
        self.default_retry = default_retry or RetryConfig()
        self.default_timeout = default_timeout
        self.include_all_tools = include_all_tools

        # Workflow details
        self.workflow_id: Optional[str | int] = None
        self.name = ""
        self.description = ""
        self.trigger_type: TriggerType = "manual"
        self.trigger_config: dict[str, Any] = {}
        self.category = ""
        self.tags = ""  # raw comma separated input

        self.graph: Graph = hydrate([], "manual", self.categories)

        self.available_tools: list[ToolInfo] = []
        self.loading_tools = False
        self.saving = False
        self.error: Optional[str] = None

    @classmethod
    def from_settings(
        cls,
        api: WorkflowApi,
        settings: Settings,
        categories: Sequence[CategoryRule] = DEFAULT_CATEGORY_RULES,
    ) -> WorkflowEditor:
        return cls(
            api,
            categories=categories,
            default_retry=RetryConfig(
                max_retries=settings.default_max_retries,
                retry_delay=settings.default_retry_delay,
            ),
            default_timeout=settings.default_step_timeout,
            include_all_tools=settings.include_all_tools,
        )

    @property
    def is_editing(self) -> bool:
        return self.workflow_id is not None

    # ------------------------------------------------------------------
    # Opening
    # ------------------------------------------------------------------

    def open(
        self,
        workflow: Optional[dict[str, Any]] = None,
        canvas_state: Optional[CanvasState] = None,
    ) -> None:
        """(Re)initialise the session.

        A canvas state (coming back from the form editor, or a draft) wins
        over the stored workflow record for content; the record still decides
        whether saving creates or updates.

        Raises ``InvalidWorkflowError`` when the steps cannot form a graph;
        the session is left as it was.
        """
        if canvas_state is not None:
            steps = list(canvas_state.steps)
        elif workflow is not None:
            steps = self.steps_from_record(workflow.get("steps") or [])
        else:
            steps = []
        _check_unique_ids(steps)

        self.workflow_id = workflow.get("id") if workflow else None
        if canvas_state is not None:
            self.name = canvas_state.workflow_name
            self.description = canvas_state.description
            self.trigger_type = canvas_state.trigger_type or "manual"
            self.trigger_config = dict(canvas_state.trigger_config)
            self.category = canvas_state.category
            self.tags = canvas_state.tags
        elif workflow is not None:
            metadata = workflow.get("workflow_metadata") or {}
            self.name = workflow.get("name") or ""
            self.description = workflow.get("description") or ""
            self.trigger_type = _coerce_trigger_type(workflow.get("trigger_type"))
            self.trigger_config = dict(workflow.get("trigger_config") or {})
            self.category = metadata.get("category") or ""
            self.tags = ", ".join(metadata.get("tags") or [])
        else:
            self.name = ""
            self.description = ""
            self.trigger_type = "manual"
            self.trigger_config = {}
            self.category = ""
            self.tags = ""

        self.graph = hydrate(steps, self.trigger_type, self.categories)
        self.error = None
        logger.debug("Opened editor with %d step(s), editing=%s", len(steps), self.is_editing)

    def steps_from_record(self, raw_steps: list[dict[str, Any]]) -> list[Step]:
        """Map stored steps to ``Step`` objects ordered by ``step_number``."""
        steps = []
        for index, raw in enumerate(raw_steps):
            if not isinstance(raw, dict) or not raw.get("tool_name"):
                raise InvalidWorkflowError(f"Step {index + 1} has no tool name")
            retry = raw.get("retry_config")
            timeout = raw.get("timeout")
            try:
                steps.append(
                    Step(
                        id=str(raw.get("id") or uuid.uuid4().hex[:9]),
                        step_number=raw.get("step_number") or index + 1,
                        tool_name=raw["tool_name"],
                        tool_parameters=raw.get("tool_parameters") or {},
                        description=raw.get("description") or "",
                        retry_config=RetryConfig.model_validate(retry) if retry else self.default_retry,
                        timeout=timeout or self.default_timeout,
                    )
                )
            except ValidationError as e:
                fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err["loc"])
                raise InvalidWorkflowError(f"Step {index + 1} is invalid ({fields or 'unknown field'})") from e
        return sorted(steps, key=lambda s: s.step_number)

    async def load_tools(self) -> list[ToolInfo]:
        """Fetch the toolbox. A failure leaves the toolbox empty, not the canvas."""
        self.loading_tools = True
        try:
            self.available_tools = await self.api.list_tools(include_all=self.include_all_tools)
        except PersistenceError as e:
            logger.error("Error loading tools: %s", e)
        finally:
            self.loading_tools = False
        return self.available_tools

    def find_tool(self, tool_name: str) -> Optional[ToolInfo]:
        return next((t for t in self.available_tools if t.name == tool_name), None)

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def add_node(self, tool_name: str, step_id: Optional[str] = None) -> Node:
        self.graph, node = mutations.add_node(
            self.graph,
            tool_name,
            self.categories,
            step_id=step_id,
            retry_config=self.default_retry,
            timeout=self.default_timeout,
        )
        return node

    def connect(self, source: str, target: str) -> None:
        self.graph = mutations.connect(self.graph, source, target)

    def delete_node(self, node_id: str) -> None:
        self.graph = mutations.delete_node(self.graph, node_id)

    def auto_layout(self) -> None:
        self.graph = mutations.auto_layout(self.graph)

    def move_node(self, node_id: str, x: float, y: float) -> None:
        self.graph = mutations.move_node(self.graph, node_id, x, y)

    def update_node(
        self,
        node_id: str,
        *,
        parameters: Optional[dict[str, Any]] = None,
        description: Optional[str] = None,
        retry_config: Optional[RetryConfig] = None,
        timeout: Optional[int] = None,
    ) -> None:
        self.graph = mutations.update_node(
            self.graph,
            node_id,
            parameters=parameters,
            description=description,
            retry_config=retry_config,
            timeout=timeout,
        )

    def set_details(
        self,
        *,
        name: Optional[str] = None,
        description: Optional[str] = None,
        trigger_type: Optional[TriggerType] = None,
        trigger_config: Optional[dict[str, Any]] = None,
        category: Optional[str] = None,
        tags: Optional[str] = None,
    ) -> None:
        if name is not None:
            self.name = name
        if description is not None:
            self.description = description
        if trigger_type is not None and trigger_type != self.trigger_type:
            self.trigger_type = trigger_type
            self.graph = mutations.set_trigger_type(self.graph, trigger_type)
        if trigger_config is not None:
            self.trigger_config = dict(trigger_config)
        if category is not None:
            self.category = category
        if tags is not None:
            self.tags = tags

    # ------------------------------------------------------------------
    # Snapshots and saving
    # ------------------------------------------------------------------

    @property
    def steps(self) -> list[Step]:
        return linearize(self.graph)

    def canvas_state(self) -> CanvasState:
        return CanvasState(
            workflow_name=self.name,
            description=self.description,
            trigger_type=self.trigger_type,
            trigger_config=dict(self.trigger_config),
            category=self.category,
            tags=self.tags,
            steps=self.steps,
        )

    def tag_list(self) -> list[str]:
        return [t.strip() for t in self.tags.split(",") if t.strip()]

    def validate(self) -> list[Step]:
        """Check the session can be saved and return the steps to save."""
        if not self.name.strip():
            raise SaveValidationError("Please enter a workflow name")
        steps = self.steps
        if not steps:
            raise SaveValidationError("Please add at least one step")
        return steps

    def build_payload(self, steps: list[Step]) -> WorkflowPayload:
        verb = "Updated" if self.is_editing else "Created"
        return WorkflowPayload(
            name=self.name,
            description=self.description or f"{verb} with {len(steps)} steps",
            steps=[step.to_payload() for step in steps],
            trigger_type=self.trigger_type,
            trigger_config=dict(self.trigger_config),
            variables={},
            workflow_metadata=WorkflowMetadata(category=self.category, tags=self.tag_list()),
        )

    async def save(self) -> Optional[dict[str, Any]]:
        """Persist the session as a step list.

        Returns the stored record, or ``None`` with ``error`` set. The graph
        is never modified, so a failed save can simply be retried.
        """
        try:
            steps = self.validate()
        except SaveValidationError as e:
            self.error = str(e)
            return None

        payload = self.build_payload(steps)
        self.saving = True
        self.error = None
        try:
            if self.is_editing:
                record = await self.api.update_workflow(self.workflow_id, payload)
            else:
                record = await self.api.create_workflow(payload)
        except PersistenceError as e:
            logger.warning("Saving workflow %r failed: %s", self.name, e)
            self.error = str(e) or "Failed to save workflow"
            return None
        finally:
            self.saving = False

        # Later saves of this session update the record that was just created
        if not self.is_editing and record.get("id") is not None:
            self.workflow_id = record["id"]
        return record


def _coerce_trigger_type(value: Any) -> TriggerType:
    trigger_type = str(value or "manual").lower()
    if trigger_type not in TRIGGER_TYPES:
        logger.warning("Unknown trigger type %r, falling back to manual", value)
        return "manual"
    return trigger_type  # type: ignore[return-value]


def _check_unique_ids(steps: Sequence[Step]) -> None:
    seen: set[str] = set()
    for step in steps:
        if step.id in seen:
            raise InvalidWorkflowError(f"Duplicate step id '{step.id}'")
        seen.add(step.id)
