import logging
import time
import uuid
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .models import (
    AddNodeRequest,
    ConnectRequest,
    DetailsUpdate,
    DraftResponse,
    HealthResponse,
    NodeUpdate,
    OpenSessionRequest,
    SessionView,
)
from .workflow.editor import WorkflowEditor
from .workflow.errors import EditorError, NodeNotFoundError, PersistenceError, TriggerNodeError
from .workflow.persistence import HttpWorkflowApi
from .workflow.store import DraftStore

load_dotenv()

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Workflow Canvas API",
    description="Edit automation workflows as a graph, save them as an ordered step list",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ROOT_DIR = Path(__file__).resolve().parents[2]

settings = get_settings()
workflow_api = HttpWorkflowApi.from_settings(settings)
draft_store = DraftStore(settings.drafts_dir or ROOT_DIR / "drafts")

# Open editor sessions, keyed by session id. A session lives until it is
# closed or sits idle past settings.session_idle_timeout.
sessions: dict[str, WorkflowEditor] = {}
session_last_used: dict[str, float] = {}


def _get_session(session_id: str) -> WorkflowEditor:
    editor = sessions.get(session_id)
    if editor is None:
        raise HTTPException(status_code=404, detail="Editor session not found")
    session_last_used[session_id] = time.monotonic()
    return editor


def _evict_idle_sessions() -> None:
    cutoff = time.monotonic() - settings.session_idle_timeout
    for session_id in list(sessions):
        if session_last_used.get(session_id, cutoff) < cutoff:
            del sessions[session_id]
            session_last_used.pop(session_id, None)
            logger.info("Evicted idle editor session %s", session_id)


def _editor_http_error(e: EditorError) -> HTTPException:
    if isinstance(e, NodeNotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, TriggerNodeError):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


def _view(session_id: str, editor: WorkflowEditor) -> dict:
    view = SessionView(
        session_id=session_id,
        workflow_id=editor.workflow_id,
        name=editor.name,
        description=editor.description,
        trigger_type=editor.trigger_type,
        trigger_config=editor.trigger_config,
        category=editor.category,
        tags=editor.tags,
        graph=editor.graph,
        steps=editor.steps,
        error=editor.error,
    )
    return view.model_dump(mode="json")


@app.get("/api/health", response_model=HealthResponse)
def health():
    return HealthResponse(status="ok")


@app.get("/api/tools")
async def list_tools():
    try:
        tools = await workflow_api.list_tools(include_all=settings.include_all_tools)
    except PersistenceError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return [t.model_dump(by_alias=True) for t in tools]


# --- Editor sessions ---

@app.post("/api/editor/sessions")
async def open_session(request: OpenSessionRequest):
    workflow = request.workflow
    if request.workflow_id is not None:
        try:
            workflow = await workflow_api.get_workflow(request.workflow_id)
        except PersistenceError as e:
            status = 404 if e.status_code == 404 else 502
            raise HTTPException(status_code=status, detail=str(e))

    canvas_state = request.canvas_state
    if request.draft_id is not None:
        try:
            canvas_state = draft_store.load(request.draft_id)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if canvas_state is None:
            raise HTTPException(status_code=404, detail="Draft not found")

    editor = WorkflowEditor.from_settings(workflow_api, settings)
    try:
        editor.open(workflow=workflow, canvas_state=canvas_state)
    except EditorError as e:
        raise _editor_http_error(e)
    await editor.load_tools()

    _evict_idle_sessions()
    session_id = uuid.uuid4().hex
    sessions[session_id] = editor
    session_last_used[session_id] = time.monotonic()
    logger.info("Opened editor session %s", session_id)
    return _view(session_id, editor)


@app.get("/api/editor/sessions/{session_id}")
def get_session(session_id: str):
    return _view(session_id, _get_session(session_id))


@app.delete("/api/editor/sessions/{session_id}")
def close_session(session_id: str):
    _get_session(session_id)
    del sessions[session_id]
    session_last_used.pop(session_id, None)
    return {"status": "closed", "session_id": session_id}


@app.get("/api/editor/sessions/{session_id}/canvas-state")
def get_canvas_state(session_id: str):
    return _get_session(session_id).canvas_state().model_dump(mode="json")


@app.patch("/api/editor/sessions/{session_id}/details")
def update_details(session_id: str, request: DetailsUpdate):
    editor = _get_session(session_id)
    editor.set_details(**request.model_dump(exclude_none=True))
    return _view(session_id, editor)


@app.post("/api/editor/sessions/{session_id}/nodes")
def add_node(session_id: str, request: AddNodeRequest):
    editor = _get_session(session_id)
    try:
        node = editor.add_node(request.tool_name, step_id=request.step_id)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    view = _view(session_id, editor)
    view["node_id"] = node.id
    return view


@app.patch("/api/editor/sessions/{session_id}/nodes/{node_id}")
def update_node(session_id: str, node_id: str, request: NodeUpdate):
    editor = _get_session(session_id)
    try:
        if request.x is not None or request.y is not None:
            node = editor.graph.get_node(node_id)
            if node is None:
                raise NodeNotFoundError(node_id)
            editor.move_node(
                node_id,
                request.x if request.x is not None else node.position.x,
                request.y if request.y is not None else node.position.y,
            )
        config = request.model_dump(exclude_none=True, exclude={"x", "y"})
        if config:
            editor.update_node(
                node_id,
                parameters=request.parameters,
                description=request.description,
                retry_config=request.retry_config,
                timeout=request.timeout,
            )
    except EditorError as e:
        raise _editor_http_error(e)
    return _view(session_id, editor)


@app.delete("/api/editor/sessions/{session_id}/nodes/{node_id}")
def delete_node(session_id: str, node_id: str):
    editor = _get_session(session_id)
    try:
        editor.delete_node(node_id)
    except EditorError as e:
        raise _editor_http_error(e)
    return _view(session_id, editor)


@app.post("/api/editor/sessions/{session_id}/edges")
def connect_nodes(session_id: str, request: ConnectRequest):
    editor = _get_session(session_id)
    try:
        editor.connect(request.source, request.target)
    except EditorError as e:
        raise _editor_http_error(e)
    return _view(session_id, editor)


@app.post("/api/editor/sessions/{session_id}/layout")
def layout(session_id: str):
    editor = _get_session(session_id)
    editor.auto_layout()
    return _view(session_id, editor)


@app.post("/api/editor/sessions/{session_id}/save")
async def save_session(session_id: str):
    editor = _get_session(session_id)
    try:
        editor.validate()
    except EditorError as e:
        editor.error = str(e)
        raise HTTPException(status_code=400, detail=editor.error)

    record = await editor.save()
    if record is None:
        raise HTTPException(status_code=502, detail=editor.error or "Failed to save workflow")
    return {"workflow": record, "session": _view(session_id, editor)}


@app.post("/api/editor/sessions/{session_id}/draft", response_model=DraftResponse)
def save_draft(session_id: str):
    editor = _get_session(session_id)
    draft_id = draft_store.save(editor.canvas_state())
    return DraftResponse(draft_id=draft_id)


@app.get("/api/editor/drafts")
def list_drafts():
    return draft_store.list_ids()


@app.delete("/api/editor/drafts/{draft_id}")
def delete_draft(draft_id: str):
    try:
        deleted = draft_store.delete(draft_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not deleted:
        raise HTTPException(status_code=404, detail="Draft not found")
    return {"status": "deleted", "draft_id": draft_id}
