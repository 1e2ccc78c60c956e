from .categories import DEFAULT_CATEGORY_RULES, CategoryRule, category_of
from .convert import hydrate, linearize
from .editor import WorkflowEditor
from .errors import (
    EditorError,
    NodeNotFoundError,
    PersistenceError,
    SaveValidationError,
    TriggerNodeError,
)
from .persistence import HttpWorkflowApi, WorkflowApi
from .schema import CanvasState, Edge, Graph, Node, Step, WorkflowPayload
from .store import DraftStore

__all__ = [
    "DEFAULT_CATEGORY_RULES",
    "CategoryRule",
    "category_of",
    "hydrate",
    "linearize",
    "WorkflowEditor",
    "EditorError",
    "NodeNotFoundError",
    "PersistenceError",
    "SaveValidationError",
    "TriggerNodeError",
    "HttpWorkflowApi",
    "WorkflowApi",
    "CanvasState",
    "Edge",
    "Graph",
    "Node",
    "Step",
    "WorkflowPayload",
    "DraftStore",
]
