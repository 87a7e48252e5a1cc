"""
FastAPI endpoints for running AI-generated snippets and reading back results.
"""

from fastapi import APIRouter, HTTPException
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
import logging

from ...config import settings
from ...services.execution import (
    ExecutionEngine,
    ExecutionRequest,
    ResultKind,
    ResultStoreRegistry,
)

logger = logging.getLogger(__name__)

# Initialize engine and per-session result stores (singletons)
engine = ExecutionEngine.from_settings(settings)
stores = ResultStoreRegistry()

router = APIRouter(prefix="/api/execution", tags=["execution"])


# --- REQUEST/RESPONSE MODELS ---

class RunRequest(BaseModel):
    """Request body for a Run action on a fenced code block"""
    session_id: str = Field(..., min_length=1, description="Unique session identifier")
    code: str = Field(..., description="Snippet extracted from the code block")
    language: str = Field(..., description="Fence language tag, e.g. js, python, html")


class ExecutionResponse(BaseModel):
    """Response body for a snippet run"""
    kind: str
    content: str
    is_error: bool
    error_kind: Optional[str] = None
    request_id: Optional[str] = None
    execution_time: float
    timestamp: datetime


class ResultStateResponse(BaseModel):
    """What the session's output panel currently shows"""
    state: str
    request_id: Optional[str] = None
    result: Optional[ExecutionResponse] = None


# --- ENDPOINTS ---

@router.post("/run", response_model=ExecutionResponse)
async def run_code(request: RunRequest):
    """
    Execute a snippet and make it the session's current result.

    JavaScript runs in a separate Node.js process with a mock console,
    Python runs on the configured interpreter runtime, HTML/CSS is returned
    for the isolated preview surface. Unsupported tags produce an
    informational message rather than an error.
    """
    logger.info(f"Run request for session {request.session_id}, language {request.language!r}")

    execution_request = ExecutionRequest(code=request.code, language_tag=request.language)
    result = await engine.dispatch(execution_request, stores.get(request.session_id))

    return ExecutionResponse(timestamp=datetime.now(), **result.to_dict())


@router.get("/sessions/{session_id}/result", response_model=ResultStateResponse)
async def get_result(session_id: str):
    """Return the session's held result, "Running..." placeholder, or nothing."""
    store = stores.peek(session_id)
    if store is None:
        return ResultStateResponse(state="idle")

    snapshot = store.snapshot()
    result = snapshot["result"]
    return ResultStateResponse(
        state=snapshot["state"],
        request_id=snapshot["request_id"],
        result=ExecutionResponse(timestamp=datetime.now(), **result) if result else None,
    )


@router.delete("/sessions/{session_id}/result", response_model=ResultStateResponse)
async def clear_result(session_id: str):
    """Close the output panel: drop whatever the session holds."""
    store = stores.peek(session_id)
    if store is not None:
        store.clear()
    return ResultStateResponse(state="idle")


@router.get("/sessions/{session_id}/preview", response_class=HTMLResponse)
async def get_preview(session_id: str):
    """
    Serve the session's HTML/CSS result as a standalone, sandboxed document.

    Meant to be loaded in an iframe; the CSP sandbox keeps its scripts away
    from the host application's origin and state.
    """
    store = stores.peek(session_id)
    current = store.current if store is not None else None
    if current is None or current.kind != ResultKind.PREVIEW:
        raise HTTPException(status_code=404, detail="No preview available for this session")

    body, headers = engine.preview_renderer.render_document(current.content)
    return HTMLResponse(content=body, headers=headers)


@router.get("/health")
async def health_check():
    """
    Report which execution strategies are currently usable.
    """
    runtimes = engine.health_check()
    status = "healthy"
    if any(check.get("status") != "healthy" for check in runtimes.values()):
        status = "degraded"

    return {
        "status": status,
        "runtimes": runtimes,
        "limits": {
            "js_timeout_seconds": settings.js_timeout_seconds,
            "python_timeout_seconds": settings.python_timeout_seconds,
            "max_output_chars": settings.max_output_chars,
        },
    }
