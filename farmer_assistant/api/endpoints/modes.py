"""
Session and mode API endpoints.

Every submission goes through the session's ModeController. By default the
endpoint waits for the backend answer and returns the final session state;
with ``wait=false`` it returns immediately (202) while the request keeps
loading, and the state can be polled from ``GET /api/v1/session``.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse

from farmer_assistant.controller.mode_controller import ModeController, SessionSnapshot
from farmer_assistant.controller.panels import (
    SME_OPTIONS,
    AdvisoryPanel,
    ConsultantPanel,
    DiseasePanel,
    SchemesPanel,
    TalkPanel,
)
from farmer_assistant.core import depends_controller
from farmer_assistant.models.api import (
    ModeSwitchRequest,
    QueryRequest,
    RecordingStatus,
    TranscribeRequest,
    VoiceQueryRequest,
)
from farmer_assistant.models.requests import Mode
from farmer_assistant.render.views import render_snapshot, view_payload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["modes"])


def _activate(controller: ModeController, mode: Mode) -> None:
    if controller.mode != mode:
        controller.switch_mode(mode)


async def _respond(
    controller: ModeController, task: asyncio.Task, wait: bool
):
    if not wait:
        return JSONResponse(
            status_code=202, content=controller.snapshot().model_dump(mode="json")
        )
    # A mode switch may cancel the task; the snapshot then shows the new mode
    await asyncio.wait([task])
    return controller.snapshot()


@router.get("/session", response_model=SessionSnapshot)
async def get_session(controller: ModeController = Depends(depends_controller)):
    return controller.snapshot()


@router.get("/session/view", response_class=HTMLResponse)
async def get_session_view(controller: ModeController = Depends(depends_controller)):
    """HTML fragment for the current state (loading, error or result)."""
    return HTMLResponse(render_snapshot(controller.snapshot()))


@router.get("/session/result")
async def get_session_result(controller: ModeController = Depends(depends_controller)):
    """
    Decoded result view as JSON.

    Example:
        GET /api/v1/session/result

        Response:
        {
            "title": "Government Schemes Information",
            "view": {"kind": "schemes", "message": "...", "schemes": [...]}
        }
    """
    snapshot = controller.snapshot()
    view = view_payload(snapshot.result) if snapshot.result is not None else None
    return {"title": snapshot.title, "view": view}


@router.post("/session/mode", response_model=SessionSnapshot)
async def switch_mode(
    request: ModeSwitchRequest,
    controller: ModeController = Depends(depends_controller),
):
    controller.switch_mode(request.mode)
    return controller.snapshot()


@router.post("/session/retry", response_model=SessionSnapshot)
async def retry(controller: ModeController = Depends(depends_controller)):
    controller.retry()
    return controller.snapshot()


@router.delete("/session/alerts")
async def clear_alerts(controller: ModeController = Depends(depends_controller)):
    return {"cleared": len(controller.clear_alerts())}


@router.get("/modes/options")
async def get_mode_options():
    return {
        "modes": [mode.value for mode in Mode],
        "smeOptions": SME_OPTIONS,
        "schemeExamples": SchemesPanel.example_queries,
        "consultantExamples": ConsultantPanel.example_queries,
    }


@router.post("/modes/disease", response_model=SessionSnapshot)
async def analyze_disease(
    file: Optional[UploadFile] = File(None, description="Crop photo (image/*, max 5MB)"),
    text_description: str = Form("", description="Optional description of the problem"),
    wait: bool = Query(True),
    controller: ModeController = Depends(depends_controller),
):
    image_bytes = await file.read() if file is not None else None
    content_type = file.content_type if file is not None else None

    _activate(controller, Mode.DISEASE)
    task = DiseasePanel(controller).analyze(image_bytes, content_type, text_description)
    return await _respond(controller, task, wait)


@router.post("/modes/schemes", response_model=SessionSnapshot)
async def ask_schemes(
    request: QueryRequest,
    wait: bool = Query(True),
    controller: ModeController = Depends(depends_controller),
):
    _activate(controller, Mode.SCHEMES)
    task = SchemesPanel(controller).ask(request.query, request.sme)
    return await _respond(controller, task, wait)


@router.post("/modes/schemes/voice", response_model=SessionSnapshot)
async def ask_schemes_by_voice(
    request: VoiceQueryRequest,
    wait: bool = Query(True),
    controller: ModeController = Depends(depends_controller),
):
    _activate(controller, Mode.SCHEMES)
    task = SchemesPanel(controller).ask_voice(request.audio, request.sme)
    return await _respond(controller, task, wait)


@router.post("/modes/consultant", response_model=SessionSnapshot)
async def consult_expert(
    request: QueryRequest,
    wait: bool = Query(True),
    controller: ModeController = Depends(depends_controller),
):
    _activate(controller, Mode.CONSULTANT)
    task = ConsultantPanel(controller).consult(request.query, request.sme)
    return await _respond(controller, task, wait)


@router.post("/modes/advisory", response_model=SessionSnapshot)
async def trigger_advisory(
    wait: bool = Query(True),
    controller: ModeController = Depends(depends_controller),
):
    _activate(controller, Mode.ADVISORY)
    task = AdvisoryPanel(controller).trigger()
    return await _respond(controller, task, wait)


@router.post("/modes/talk", response_model=SessionSnapshot)
async def transcribe_audio(
    request: TranscribeRequest,
    wait: bool = Query(True),
    controller: ModeController = Depends(depends_controller),
):
    _activate(controller, Mode.TALK)
    task = TalkPanel(controller).transcribe(request.audio, request.language)
    return await _respond(controller, task, wait)


@router.post("/voice/start", response_model=RecordingStatus)
async def start_recording(controller: ModeController = Depends(depends_controller)):
    """Start recording; a missing microphone is reported in the session alerts."""
    controller.start_recording()
    recorder = controller.recorder
    return RecordingStatus(
        recording=recorder.is_recording, has_recording=recorder.last_recording is not None
    )


@router.post("/voice/stop", response_model=RecordingStatus)
async def stop_recording(controller: ModeController = Depends(depends_controller)):
    audio = controller.stop_recording()
    return RecordingStatus(
        recording=False,
        has_recording=controller.recorder.last_recording is not None,
        audio=audio,
    )
