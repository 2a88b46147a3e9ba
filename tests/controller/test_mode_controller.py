"""
Unit tests for ModeController.

Tests cover the request lifecycle, titles and loading texts, thought
sequences, mode switching and the guarantee that stale responses never
repaint the session.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from farmer_assistant.controller.mode_controller import (
    ModeController,
    RequestState,
    SubmissionInProgressError,
    loading_text_for,
    title_for,
)
from farmer_assistant.controller.thoughts import MODE_THOUGHTS, ThoughtSequence
from farmer_assistant.core.config import Settings
from farmer_assistant.models.requests import InputType, Mode, QueryType, RequestPayload
from farmer_assistant.services.gateway import GatewayResult
from farmer_assistant.services.voice import MicrophoneUnavailableError


class FakeGateway:
    """Gateway whose submit() blocks until release() is called."""

    def __init__(self, result=None, blocking=False):
        self.result = result or GatewayResult(success=True, data={"session_id": "s-1"})
        self.blocking = blocking
        self.calls = []
        self._released = None

    def release(self):
        self._released.set()

    async def submit(self, payload, attach_farm_settings=True):
        self.calls.append((payload, attach_farm_settings))
        if self.blocking:
            if self._released is None:
                self._released = asyncio.Event()
            await self._released.wait()
        return self.result

    async def check_health(self):
        return {"status": "healthy"}


def fake_recorder():
    recorder = MagicMock()
    recorder.is_recording = False
    recorder.last_recording = None
    return recorder


def make_controller(gateway=None, recorder=None, delay=0.01):
    return ModeController(
        gateway=gateway or FakeGateway(),
        settings=Settings(thought_delay_seconds=delay),
        recorder=recorder or fake_recorder(),
    )


def schemes_payload():
    return RequestPayload(
        input_type=InputType.TEXT,
        content="subsidy for drip irrigation",
        query_type=QueryType.GOVERNMENT_SCHEMES,
    )


def disease_payload():
    return RequestPayload(input_type=InputType.IMAGE, content="aGVsbG8=")


class TestTitlesAndLoadingTexts:
    @pytest.mark.parametrize(
        "query_type,input_type,title,loading",
        [
            (QueryType.GOVERNMENT_SCHEMES, InputType.TEXT,
             "Government Schemes Information", "Searching government schemes..."),
            (QueryType.SME_CONSULTATION, InputType.TEXT,
             "Expert Consultation", "Consulting with expert..."),
            (QueryType.PREDICTIVE_ADVISORY, InputType.TEXT,
             "Predictive Advisory", "Generating predictive advisory..."),
            (None, InputType.AUDIO, "Audio Transcription Results", "Transcribing your audio..."),
            (None, InputType.IMAGE, "Disease Analysis Results", "Analyzing your crop image..."),
        ],
    )
    def test_derived_from_payload(self, query_type, input_type, title, loading):
        payload = RequestPayload(input_type=input_type, content="x", query_type=query_type)

        assert title_for(payload) == title
        assert loading_text_for(payload) == loading

    def test_voice_schemes_query_keeps_schemes_title(self):
        payload = RequestPayload(
            input_type=InputType.AUDIO, content="x", query_type=QueryType.GOVERNMENT_SCHEMES
        )
        assert title_for(payload) == "Government Schemes Information"


class TestLifecycle:
    def test_initial_state(self):
        snapshot = make_controller().snapshot()

        assert snapshot.mode == Mode.DISEASE
        assert snapshot.state == RequestState.IDLE
        assert snapshot.result is None

    def test_success(self):
        controller = make_controller()
        controller.switch_mode(Mode.SCHEMES)

        async def scenario():
            task = controller.submit(schemes_payload())
            assert controller.state == RequestState.LOADING
            assert controller.loading_text == "Searching government schemes..."
            await task

        asyncio.run(scenario())
        snapshot = controller.snapshot()

        assert snapshot.state == RequestState.SUCCESS
        assert snapshot.result == {"session_id": "s-1"}
        assert snapshot.session_id == "s-1"
        assert snapshot.title == "Government Schemes Information"
        assert snapshot.loading_text is None

    def test_failure_then_retry(self):
        gateway = FakeGateway(result=GatewayResult(success=False, error="Model overloaded"))
        controller = make_controller(gateway)

        async def scenario():
            await controller.submit(disease_payload())

        asyncio.run(scenario())
        assert controller.state == RequestState.ERROR
        assert controller.error == "Model overloaded"

        controller.retry()

        assert controller.state == RequestState.IDLE
        assert controller.error is None
        assert len(gateway.calls) == 1

    def test_unexpected_gateway_exception_ends_in_error(self):
        gateway = FakeGateway()
        gateway.submit = AsyncMock(side_effect=RuntimeError("decoder crashed"))
        controller = make_controller(gateway)

        async def scenario():
            await controller.submit(disease_payload())
            return controller.state

        assert asyncio.run(scenario()) == RequestState.ERROR
        assert controller.error == "Request failed"
        assert controller._thoughts.running is False

        gateway.submit = AsyncMock(return_value=GatewayResult(success=True, data={}))

        async def resubmit():
            await controller.submit(disease_payload())

        asyncio.run(resubmit())
        assert controller.state == RequestState.SUCCESS

    def test_retry_outside_error_does_nothing(self):
        controller = make_controller()
        controller.retry()
        assert controller.state == RequestState.IDLE

    def test_attach_farm_settings_is_forwarded(self):
        gateway = FakeGateway()
        controller = make_controller(gateway)

        async def scenario():
            await controller.submit(disease_payload(), attach_farm_settings=False)

        asyncio.run(scenario())
        assert gateway.calls[0][1] is False

    def test_second_submit_while_loading_is_rejected(self):
        gateway = FakeGateway(blocking=True)
        controller = make_controller(gateway)

        async def scenario():
            task = controller.submit(disease_payload())
            await asyncio.sleep(0)
            with pytest.raises(SubmissionInProgressError):
                controller.submit(disease_payload())
            gateway.release()
            await task

        asyncio.run(scenario())
        assert len(gateway.calls) == 1


class TestThoughts:
    def test_thoughts_appear_and_stop_on_response(self):
        gateway = FakeGateway(blocking=True)
        controller = make_controller(gateway, delay=0.005)
        controller.switch_mode(Mode.SCHEMES)

        async def scenario():
            task = controller.submit(schemes_payload())
            await asyncio.sleep(0.1)
            during = controller.snapshot().thoughts
            gateway.release()
            await task
            return during

        during = asyncio.run(scenario())

        assert during == MODE_THOUGHTS[Mode.SCHEMES]

    def test_response_cancels_pending_thoughts(self):
        controller = make_controller(delay=10)

        async def scenario():
            await controller.submit(disease_payload())
            await asyncio.sleep(0)
            return controller._thoughts.running

        assert asyncio.run(scenario()) is False
        assert controller.snapshot().thoughts == [MODE_THOUGHTS[Mode.DISEASE][0]]

    def test_sequence_schedule(self):
        shown = []

        async def scenario():
            sequence = ThoughtSequence(["a", "b", "c"], delay=0.05, on_thought=shown.append)
            sequence.start()
            await asyncio.sleep(0.075)
            partial = list(shown)
            sequence.cancel()
            await asyncio.sleep(0.1)
            return partial

        partial = asyncio.run(scenario())

        assert partial == ["a", "b"]
        assert shown == ["a", "b"]


class TestModeSwitching:
    def test_switch_resets_transient_state(self):
        recorder = fake_recorder()
        controller = make_controller(recorder=recorder)

        async def scenario():
            await controller.submit(disease_payload())

        asyncio.run(scenario())
        generation = controller.generation
        controller.switch_mode(Mode.ADVISORY)
        snapshot = controller.snapshot()

        assert snapshot.mode == Mode.ADVISORY
        assert snapshot.state == RequestState.IDLE
        assert snapshot.result is None
        assert snapshot.title is None
        assert snapshot.session_id is None
        assert snapshot.thoughts == []
        assert snapshot.generation > generation
        recorder.discard.assert_called_once()

    def test_late_response_never_repaints_new_mode(self):
        gateway = FakeGateway(blocking=True)
        controller = make_controller(gateway)
        controller.switch_mode(Mode.SCHEMES)

        async def scenario():
            task = controller.submit(schemes_payload())
            await asyncio.sleep(0)
            controller.switch_mode(Mode.DISEASE)
            gateway.release()
            await asyncio.wait([task])
            return task

        task = asyncio.run(scenario())
        snapshot = controller.snapshot()

        assert task.cancelled()
        assert snapshot.mode == Mode.DISEASE
        assert snapshot.state == RequestState.IDLE
        assert snapshot.result is None
        assert snapshot.title is None

    def test_stale_generation_result_is_dropped(self):
        controller = make_controller()
        controller.switch_mode(Mode.SCHEMES)
        stale_generation = controller.generation
        controller.switch_mode(Mode.CONSULTANT)

        asyncio.run(controller._dispatch(stale_generation, schemes_payload(), True))

        assert controller.state == RequestState.IDLE
        assert controller.result is None
        assert controller.mode == Mode.CONSULTANT


class TestAlertsAndHealth:
    def test_microphone_failure_becomes_alert(self):
        recorder = fake_recorder()
        recorder.start.side_effect = MicrophoneUnavailableError(
            "Unable to access microphone. Please check permissions."
        )
        controller = make_controller(recorder=recorder)

        assert controller.start_recording() is False
        alerts = controller.snapshot().alerts
        assert alerts[0].message == "Unable to access microphone. Please check permissions."
        assert alerts[0].hint

        assert len(controller.clear_alerts()) == 1
        assert controller.alerts == []

    def test_check_backend_health(self):
        controller = make_controller()
        health = asyncio.run(controller.check_backend_health())

        assert health == {"status": "healthy"}
        assert controller.backend_health == {"status": "healthy"}
