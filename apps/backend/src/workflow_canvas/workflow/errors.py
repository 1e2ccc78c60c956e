"""Exceptions raised by the canvas editor and the workflow API adapter."""

from __future__ import annotations


class EditorError(Exception):
    """Base class for editor failures. ``error_type`` is a stable short code."""

    def __init__(self, message: str, error_type: str = "editor_error"):
        self.error_type = error_type
        super().__init__(message)


class NodeNotFoundError(EditorError):
    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node '{node_id}' not found", "node_not_found")


class TriggerNodeError(EditorError):
    """Raised when an operation would delete the trigger or wire into it."""

    def __init__(self, message: str):
        super().__init__(message, "trigger_node")


class SaveValidationError(EditorError):
    """Local validation failure; no call to the workflow API was made."""

    def __init__(self, message: str):
        super().__init__(message, "validation_error")


class PersistenceError(EditorError):
    """The workflow API rejected a request or could not be reached."""

    def __init__(self, message: str, error_type: str = "persistence_error", status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message, error_type)


class InvalidWorkflowError(EditorError):
    """A stored record or canvas state cannot be opened as a graph."""

    def __init__(self, message: str):
        super().__init__(message, "invalid_workflow")
