"""Adapters for the remote workflow API: persistence and tool catalog."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional

import httpx
from pydantic import ValidationError

from .errors import PersistenceError
from .schema import ToolInfo, WorkflowPayload

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)


class WorkflowApi(ABC):
    """Interface the editor uses to read and write workflow records.

    ``create_workflow`` and ``update_workflow`` return the stored record.
    Failures raise ``PersistenceError``.
    """

    @abstractmethod
    async def create_workflow(self, payload: WorkflowPayload) -> dict[str, Any]: ...

    @abstractmethod
    async def update_workflow(self, workflow_id: str | int, payload: WorkflowPayload) -> dict[str, Any]: ...

    @abstractmethod
    async def get_workflow(self, workflow_id: str | int) -> dict[str, Any]: ...

    @abstractmethod
    async def list_tools(self, include_all: bool = True) -> list[ToolInfo]: ...


class HttpWorkflowApi(WorkflowApi):
    """Talks to the console's REST API.

    Expected endpoints:
        GET  /mcp/tools                   -> tool catalog
        POST /workflows/create-from-steps -> create
        PUT  /workflows/{id}              -> update
        GET  /workflows/{id}              -> fetch for editing

    Responses are wrapped as ``{"success": bool, "data": ..., "error": str}``.
    """

    def __init__(
        self,
        base_url: str,
        api_token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base = base_url.rstrip("/")
        self._headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if api_token:
            self._headers["Authorization"] = f"Bearer {api_token}"
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> HttpWorkflowApi:
        return cls(
            settings.workflow_api_url,
            settings.workflow_api_token,
            timeout=settings.request_timeout,
        )

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------

    async def create_workflow(self, payload: WorkflowPayload) -> dict[str, Any]:
        body = payload.model_dump(exclude={"name"})
        body["workflow_name"] = payload.name
        resp = await self._request("POST", "/workflows/create-from-steps", json=body)
        record = self._unwrap(resp, "create", "Failed to create workflow")
        logger.info("Created workflow %r with %d step(s)", payload.name, len(payload.steps))
        return record

    async def update_workflow(self, workflow_id: str | int, payload: WorkflowPayload) -> dict[str, Any]:
        resp = await self._request("PUT", f"/workflows/{workflow_id}", json=payload.model_dump())
        record = self._unwrap(resp, "update", "Failed to update workflow")
        logger.info("Updated workflow %s with %d step(s)", workflow_id, len(payload.steps))
        return record

    async def get_workflow(self, workflow_id: str | int) -> dict[str, Any]:
        resp = await self._request("GET", f"/workflows/{workflow_id}")
        return self._unwrap(resp, "get", "Failed to load workflow")

    # ------------------------------------------------------------------
    # Tool catalog
    # ------------------------------------------------------------------

    async def list_tools(self, include_all: bool = True) -> list[ToolInfo]:
        # "all" is a synonym the backend still accepts
        flag = "true" if include_all else "false"
        resp = await self._request("GET", "/mcp/tools", params={"include_all": flag, "all": flag})
        self._check_error(resp, "list_tools")
        body = _json_body(resp, "Failed to load tools")
        data = body.get("data") if isinstance(body, dict) else None
        if isinstance(data, dict) and "tools" in data:
            raw_tools = data["tools"]
        elif isinstance(body, dict):
            raw_tools = body.get("tools", [])
        else:
            raw_tools = []
        try:
            tools = [ToolInfo.model_validate(t) for t in raw_tools or []]
        except ValidationError as e:
            raise PersistenceError("Failed to load tools", "invalid_response", resp.status_code) from e
        logger.info("Loaded %d tool(s) from the catalog", len(tools))
        return tools

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                base_url=self._base,
                headers=self._headers,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                return await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise PersistenceError(f"Workflow API unreachable: {e}", "network_error") from e

    def _unwrap(self, resp: httpx.Response, action: str, failure_message: str) -> dict[str, Any]:
        self._check_error(resp, action)
        body = _json_body(resp, failure_message)
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict) or not data or not body.get("success"):
            message = body.get("error") if isinstance(body, dict) else None
            raise PersistenceError(message or failure_message, "rejected", resp.status_code)
        return data

    def _check_error(self, resp: httpx.Response, action: str) -> None:
        if resp.status_code in (200, 201, 204):
            return
        detail = _error_detail(resp)
        if resp.status_code == 401:
            raise PersistenceError("Workflow API authentication failed, check WORKFLOW_API_TOKEN", "auth_error", 401)
        if resp.status_code == 403:
            raise PersistenceError("Workflow API permission denied", "permission_denied", 403)
        if resp.status_code == 404:
            raise PersistenceError("Workflow not found", "not_found", 404)
        if resp.status_code == 422:
            raise PersistenceError(detail or "Workflow rejected by the server", "validation_error", 422)
        raise PersistenceError(
            detail or f"Workflow API {action} failed ({resp.status_code})",
            "server_error",
            resp.status_code,
        )


def _json_body(resp: httpx.Response, failure_message: str) -> Any:
    try:
        return resp.json()
    except ValueError as e:
        logger.warning("Workflow API returned a non-JSON body (%s)", resp.headers.get("content-type", "unknown"))
        raise PersistenceError(failure_message, "invalid_response", resp.status_code) from e


def _error_detail(resp: httpx.Response) -> str:
    """Pull a readable message out of an error response."""
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:300]
    if isinstance(body, dict):
        for key in ("error", "detail", "message"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return ""
