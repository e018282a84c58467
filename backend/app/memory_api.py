"""
Memory Agent API

HTTP endpoints over the memory tools: browser session, ad-hoc actions,
recording, sequences, element mappings, history and status.
"""

import logging
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from memory_agent import BrowserMemoryAgent, MemoryConfig, MemoryTools, ToolResult
from memory_agent.errors import (
    AlreadyRecordingError,
    AlreadyRunningError,
    NoActiveSessionError,
    NotFoundError,
    NotRecordingError,
    NotRunningError,
    UnknownActionError,
    ValidationError
)

# Configure logging
logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/api/memory", tags=["Memory Agent"])

# Global instance
_tools: Optional[MemoryTools] = None

ERROR_STATUS = [
    (NotFoundError, 404),
    (ValidationError, 400),
    (UnknownActionError, 400),
    (AlreadyRecordingError, 409),
    (NotRecordingError, 409),
    (AlreadyRunningError, 409),
    (NotRunningError, 409),
    (NoActiveSessionError, 409),
]


def get_memory_tools() -> MemoryTools:
    """Get or create the memory tools instance"""
    global _tools
    if _tools is None:
        _tools = MemoryTools(BrowserMemoryAgent(config=MemoryConfig.from_env()))
    return _tools


def status_for(error: Exception) -> int:
    """HTTP status code for a memory agent error"""
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return status_code
    return 500


def _respond(result: ToolResult) -> Dict[str, Any]:
    if result.error is not None:
        raise HTTPException(status_code=status_for(result.error), detail=result.message)
    return result.to_dict()


# ==================== Request Models ====================

class StartBrowserRequest(BaseModel):
    """Browser launch request"""
    browser: Optional[str] = None  # chromium, firefox, webkit
    headless: Optional[bool] = None
    arguments: Optional[List[str]] = None


class ScreenshotRequest(BaseModel):
    output_path: Optional[str] = None


class ActionRequest(BaseModel):
    """Ad-hoc browser action"""
    parameters: Dict[str, Any] = Field(default_factory=dict)


class StartRecordingRequest(BaseModel):
    """Start recording a named sequence"""
    sequence_name: str
    description: str = ""
    trigger_pattern: str = ""


class SequenceActionModel(BaseModel):
    tool_name: str
    parameters: Dict[str, Any] = Field(default_factory=dict)


class SaveSequenceRequest(BaseModel):
    """Save a sequence directly, without recording"""
    name: str
    description: str = ""
    trigger_pattern: str = ""
    actions: List[SequenceActionModel]


class RunSequenceRequest(BaseModel):
    variables: Dict[str, Any] = Field(default_factory=dict)


class SaveElementRequest(BaseModel):
    """Element locator for a site pattern"""
    site_pattern: str
    element_name: str
    by: str  # id, css, xpath, name, tag, class
    value: str
    description: str = ""


class SavedElementActionRequest(BaseModel):
    text: Optional[str] = None
    timeout: Optional[int] = None


# ==================== Browser Endpoints ====================

@router.post("/browser/start")
async def start_browser(request: StartBrowserRequest, tools: MemoryTools = Depends(get_memory_tools)):
    """Launch a browser session"""
    return _respond(await tools.start_browser(request.browser, request.headless, request.arguments))


@router.post("/browser/close")
async def close_browser(tools: MemoryTools = Depends(get_memory_tools)):
    return _respond(await tools.close_session())


@router.post("/browser/screenshot")
async def take_screenshot(request: ScreenshotRequest, tools: MemoryTools = Depends(get_memory_tools)):
    return _respond(await tools.take_screenshot(request.output_path))


@router.post("/actions/{tool_name}")
async def perform_action(
    tool_name: str,
    request: ActionRequest,
    tools: MemoryTools = Depends(get_memory_tools)
):
    """
    Perform one browser action.

    The action is captured by an active recording and logged to history.
    """
    return _respond(await tools.perform_action(tool_name, request.parameters))


# ==================== Recording Endpoints ====================

@router.post("/recording/start")
async def start_recording(request: StartRecordingRequest, tools: MemoryTools = Depends(get_memory_tools)):
    return _respond(tools.start_recording(request.sequence_name, request.description, request.trigger_pattern))


@router.post("/recording/stop")
async def stop_recording(tools: MemoryTools = Depends(get_memory_tools)):
    """Stop recording and save the captured sequence"""
    return _respond(tools.stop_recording())


@router.post("/recording/cancel")
async def cancel_recording(tools: MemoryTools = Depends(get_memory_tools)):
    return _respond(tools.cancel_recording())


@router.get("/recording")
async def get_recording_status(tools: MemoryTools = Depends(get_memory_tools)):
    return _respond(tools.get_recording_status())


# ==================== Sequence Endpoints ====================

@router.post("/sequences")
async def save_sequence(request: SaveSequenceRequest, tools: MemoryTools = Depends(get_memory_tools)):
    actions = [a.model_dump() for a in request.actions]
    return _respond(tools.save_sequence(request.name, request.description, actions, request.trigger_pattern))


@router.get("/sequences")
async def list_sequences(tools: MemoryTools = Depends(get_memory_tools)):
    return _respond(tools.list_sequences())


@router.get("/sequences/search")
async def search_sequences(query: str = Query(...), tools: MemoryTools = Depends(get_memory_tools)):
    """Case-insensitive search over name, description and trigger pattern"""
    return _respond(tools.search_sequences(query))


@router.post("/sequences/interrupt")
async def interrupt_sequence(tools: MemoryTools = Depends(get_memory_tools)):
    """
    Request the running sequence to stop.

    Returns at once; the run stops after its current step completes.
    """
    return _respond(tools.interrupt_sequence())


@router.get("/sequences/{name}")
async def get_sequence(name: str, tools: MemoryTools = Depends(get_memory_tools)):
    return _respond(tools.get_sequence(name))


@router.delete("/sequences/{name}")
async def delete_sequence(name: str, tools: MemoryTools = Depends(get_memory_tools)):
    return _respond(tools.delete_sequence(name))


@router.post("/sequences/{name}/run")
async def run_sequence(
    name: str,
    request: Optional[RunSequenceRequest] = None,
    tools: MemoryTools = Depends(get_memory_tools)
):
    """
    Run a saved sequence.

    Interrupted and failed runs are reported in the body with
    success=false; only errors that prevent the run return an error status.
    """
    variables = request.variables if request else {}
    return _respond(await tools.run_sequence(name, variables))


# ==================== Element Endpoints ====================

@router.post("/elements")
async def save_element(request: SaveElementRequest, tools: MemoryTools = Depends(get_memory_tools)):
    return _respond(tools.save_element(
        request.site_pattern, request.element_name, request.by, request.value, request.description
    ))


@router.get("/elements")
async def get_elements(url: Optional[str] = None, tools: MemoryTools = Depends(get_memory_tools)):
    """Saved elements whose site pattern matches the URL (default: current page)"""
    return _respond(await tools.get_elements(url))


@router.get("/elements/lookup")
async def get_element(
    site_pattern: str = Query(...),
    element_name: str = Query(...),
    tools: MemoryTools = Depends(get_memory_tools)
):
    return _respond(tools.get_element(site_pattern, element_name))


@router.post("/elements/{element_name}/click")
async def click_saved_element(
    element_name: str,
    request: Optional[SavedElementActionRequest] = None,
    tools: MemoryTools = Depends(get_memory_tools)
):
    timeout = request.timeout if request else None
    return _respond(await tools.click_saved_element(element_name, timeout))


@router.post("/elements/{element_name}/type")
async def type_in_saved_element(
    element_name: str,
    request: SavedElementActionRequest,
    tools: MemoryTools = Depends(get_memory_tools)
):
    if request.text is None:
        raise HTTPException(status_code=400, detail="text is required")
    return _respond(await tools.type_in_saved_element(element_name, request.text, request.timeout))


# ==================== History & Status Endpoints ====================

@router.get("/history")
async def get_execution_history(limit: Optional[int] = None, tools: MemoryTools = Depends(get_memory_tools)):
    return _respond(tools.get_execution_history(limit))


@router.get("/status")
async def get_memory_status(tools: MemoryTools = Depends(get_memory_tools)):
    return _respond(tools.memory_status())


@router.get("/resources/memory-status")
async def memory_status_resource(tools: MemoryTools = Depends(get_memory_tools)):
    return tools.memory_status().data


@router.get("/resources/sequences-list")
async def sequences_list_resource(tools: MemoryTools = Depends(get_memory_tools)):
    return tools.sequences_list()
