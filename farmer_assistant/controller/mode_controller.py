"""
ModeController: the single assistant session.

Owns the active mode and the request lifecycle shared by every panel:

    idle --submit--> loading --ok--> success
                             --fail-> error --retry--> idle

Switching modes resets all transient state from any state. The in-flight
submission runs as an asyncio task tagged with a generation number; a
switch bumps the generation and cancels the task, and a result arriving
for an older generation is dropped, so a late response can never repaint
another mode.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from farmer_assistant.controller.thoughts import ThoughtSequence, thoughts_for_mode
from farmer_assistant.core.alerts import Alert
from farmer_assistant.core.config import Settings, get_settings
from farmer_assistant.models.requests import InputType, Mode, QueryType, RequestPayload
from farmer_assistant.services.gateway import (
    REQUEST_FAILED_MESSAGE,
    GatewayClient,
    GatewayResult,
    get_gateway_client,
)
from farmer_assistant.services.voice import MicrophoneUnavailableError, VoiceRecorder

logger = logging.getLogger(__name__)

TITLES = {
    QueryType.GOVERNMENT_SCHEMES.value: "Government Schemes Information",
    QueryType.SME_CONSULTATION.value: "Expert Consultation",
    QueryType.PREDICTIVE_ADVISORY.value: "Predictive Advisory",
}
AUDIO_TITLE = "Audio Transcription Results"
DEFAULT_TITLE = "Disease Analysis Results"

LOADING_TEXTS = {
    QueryType.GOVERNMENT_SCHEMES.value: "Searching government schemes...",
    QueryType.SME_CONSULTATION.value: "Consulting with expert...",
    QueryType.PREDICTIVE_ADVISORY.value: "Generating predictive advisory...",
}
AUDIO_LOADING_TEXT = "Transcribing your audio..."
DEFAULT_LOADING_TEXT = "Analyzing your crop image..."

MICROPHONE_HINT = "Allow microphone access or install the voice extra (pip install 'farmer-assistant[voice]')."


class RequestState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class SubmissionInProgressError(Exception):
    """Raised when a submission is attempted while another one is loading."""

    pass


class SessionSnapshot(BaseModel):
    """Read-only copy of the session state."""

    model_config = ConfigDict(frozen=True)

    mode: Mode
    state: RequestState
    generation: int
    loading_text: Optional[str] = None
    thoughts: List[str] = Field(default_factory=list)
    title: Optional[str] = None
    result: Any = None
    error: Optional[str] = None
    session_id: Optional[str] = None
    recording: bool = False
    has_recording: bool = False
    alerts: List[Alert] = Field(default_factory=list)


def title_for(payload: RequestPayload) -> str:
    """Result heading derived from queryType, then inputType."""
    if payload.query_type in TITLES:
        return TITLES[payload.query_type]
    if payload.input_type == InputType.AUDIO.value:
        return AUDIO_TITLE
    return DEFAULT_TITLE


def loading_text_for(payload: RequestPayload) -> str:
    if payload.query_type in LOADING_TEXTS:
        return LOADING_TEXTS[payload.query_type]
    if payload.input_type == InputType.AUDIO.value:
        return AUDIO_LOADING_TEXT
    return DEFAULT_LOADING_TEXT


class ModeController:
    """
    Session state machine shared by all mode panels.

    Example:
        >>> controller = ModeController(gateway=client)
        >>> controller.switch_mode(Mode.SCHEMES)
        >>> task = controller.submit(payload)
        >>> await task
        >>> controller.snapshot().state
        <RequestState.SUCCESS: 'success'>
    """

    def __init__(
        self,
        gateway: Optional[GatewayClient] = None,
        settings: Optional[Settings] = None,
        recorder: Optional[VoiceRecorder] = None,
    ):
        self._settings = settings or get_settings()
        self._gateway = gateway or get_gateway_client()
        self._recorder = recorder or VoiceRecorder()

        self.mode: Mode = Mode.DISEASE
        self.state: RequestState = RequestState.IDLE
        self.loading_text: Optional[str] = None
        self.title: Optional[str] = None
        self.result: Any = None
        self.error: Optional[str] = None
        self.session_id: Optional[str] = None
        self.backend_health: Optional[Dict[str, Any]] = None

        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self._thoughts = ThoughtSequence([], self._settings.thought_delay_seconds)
        self._alerts: List[Alert] = []

    @property
    def gateway(self) -> GatewayClient:
        return self._gateway

    @property
    def recorder(self) -> VoiceRecorder:
        return self._recorder

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def alerts(self) -> List[Alert]:
        return list(self._alerts)

    def alert(self, alert: Alert) -> None:
        """AlertSink collecting alerts for display."""
        logger.warning(f"[alert] {alert.message}")
        self._alerts.append(alert)

    def clear_alerts(self) -> List[Alert]:
        alerts, self._alerts = self._alerts, []
        return alerts

    def _reset(self) -> None:
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self._thoughts.cancel()
        self._thoughts = ThoughtSequence([], self._settings.thought_delay_seconds)

        self.state = RequestState.IDLE
        self.loading_text = None
        self.title = None
        self.result = None
        self.error = None
        self.session_id = None

    def switch_mode(self, mode: Mode) -> None:
        """Activate a mode, discarding any in-flight request and recording."""
        previous = self.mode
        self.mode = Mode(mode)
        self._reset()
        self._recorder.discard()
        logger.info(f"Mode switched {previous.value} -> {self.mode.value}")

    def submit(
        self,
        payload: RequestPayload,
        attach_farm_settings: bool = True,
        loading_text: Optional[str] = None,
    ) -> asyncio.Task:
        """
        Start a submission on the running event loop.

        Args:
            payload: Request built by a panel
            attach_farm_settings: Forwarded to the gateway
            loading_text: Overrides the query-type loading message

        Returns:
            The task performing the request; awaiting it is optional

        Raises:
            SubmissionInProgressError: If a request is already loading
        """
        if self.state == RequestState.LOADING:
            raise SubmissionInProgressError("A request is already in progress.")

        self._generation += 1
        generation = self._generation

        self.state = RequestState.LOADING
        self.loading_text = loading_text or loading_text_for(payload)
        self.result = None
        self.error = None
        self.title = None
        self.session_id = None

        self._thoughts = ThoughtSequence(
            thoughts_for_mode(self.mode), self._settings.thought_delay_seconds
        )
        self._thoughts.start()

        self._task = asyncio.get_running_loop().create_task(
            self._dispatch(generation, payload, attach_farm_settings)
        )
        return self._task

    async def _dispatch(
        self, generation: int, payload: RequestPayload, attach_farm_settings: bool
    ) -> GatewayResult:
        try:
            result = await self._gateway.submit(
                payload, attach_farm_settings=attach_farm_settings
            )
        except Exception as e:
            logger.error(f"[{self.mode.value}] Submission raised: {e}", exc_info=True)
            result = GatewayResult(success=False, error=REQUEST_FAILED_MESSAGE)

        if generation != self._generation:
            logger.info(f"Dropping stale response for generation {generation}")
            return result

        self._thoughts.cancel()
        self.loading_text = None
        self._task = None

        if result.success:
            data = result.data
            self.state = RequestState.SUCCESS
            self.result = data
            self.title = title_for(payload)
            if isinstance(data, dict):
                self.session_id = data.get("session_id")
            logger.info(f"[{self.mode.value}] Request succeeded (session {self.session_id})")
        else:
            self.state = RequestState.ERROR
            self.error = result.error
            logger.error(f"[{self.mode.value}] Request failed: {result.error}")
        return result

    def retry(self) -> None:
        """Leave the error state. Nothing is resubmitted."""
        if self.state == RequestState.ERROR:
            self.state = RequestState.IDLE
            self.error = None

    def start_recording(self) -> bool:
        """Acquire the microphone; failures become alerts."""
        try:
            self._recorder.start()
        except MicrophoneUnavailableError as e:
            self.alert(Alert(message=str(e), hint=MICROPHONE_HINT))
            return False
        return True

    def stop_recording(self) -> Optional[str]:
        return self._recorder.stop()

    async def check_backend_health(self) -> Optional[Dict[str, Any]]:
        self.backend_health = await self._gateway.check_health()
        return self.backend_health

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            mode=self.mode,
            state=self.state,
            generation=self._generation,
            loading_text=self.loading_text,
            thoughts=self._thoughts.shown,
            title=self.title,
            result=self.result,
            error=self.error,
            session_id=self.session_id,
            recording=self._recorder.is_recording,
            has_recording=self._recorder.last_recording is not None,
            alerts=list(self._alerts),
        )


# Module-level singleton instance
_mode_controller: Optional[ModeController] = None


def get_mode_controller() -> ModeController:
    """
    Get the singleton ModeController instance.

    Returns:
        ModeController instance
    """
    global _mode_controller
    if _mode_controller is None:
        _mode_controller = ModeController()
    return _mode_controller


def reset_mode_controller() -> None:
    """Drop the singleton (for tests)."""
    global _mode_controller
    _mode_controller = None
