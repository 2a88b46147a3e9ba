"""
Unit tests for GatewayClient.

HTTP is replaced with httpx.MockTransport; each test inspects the outgoing
request and the normalized GatewayResult.
"""

import asyncio
import json

import httpx
import pytest

from farmer_assistant.core.config import Settings
from farmer_assistant.models.requests import InputType, QueryType, RequestPayload
from farmer_assistant.models.settings import FarmSettings
from farmer_assistant.services.gateway import (
    NETWORK_ERROR_MESSAGE,
    REQUEST_FAILED_MESSAGE,
    GatewayClient,
)
from farmer_assistant.services.settings_store import InMemoryStorage, SettingsStore


@pytest.fixture
def settings():
    return Settings(
        backend_url="https://backend.test/farmer-assistant/",
        data_backend_url="https://data.test",
    )


@pytest.fixture
def settings_store():
    store = SettingsStore(InMemoryStorage())
    store.save_farm_settings(FarmSettings(crop_type="Mango", farmer_name="Ravi"))
    return store


def make_client(settings, settings_store, handler):
    return GatewayClient(
        settings=settings,
        settings_store=settings_store,
        transport=httpx.MockTransport(handler),
    )


def run(coro):
    return asyncio.run(coro)


def schemes_payload():
    return RequestPayload(
        input_type=InputType.TEXT,
        content="drip irrigation subsidy",
        query_type=QueryType.GOVERNMENT_SCHEMES,
    )


class TestSubmit:
    def test_posts_payload_with_user_and_farm_settings(self, settings, settings_store):
        captured = {}

        def handler(request):
            captured["url"] = str(request.url)
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "session_id": "s-1"})

        client = make_client(settings, settings_store, handler)
        result = run(client.submit(schemes_payload()))

        assert result.success is True
        assert result.data["session_id"] == "s-1"
        assert captured["url"] == "https://backend.test/farmer-assistant/api/analyze"

        body = captured["body"]
        assert body["inputType"] == "text"
        assert body["queryType"] == "government_schemes"
        assert body["content"] == "drip irrigation subsidy"
        assert body["userId"] == settings_store.get_user_id()
        assert body["farmSettings"]["cropType"] == "Mango"
        assert body["farmSettings"]["farmerName"] == "Ravi"

    def test_farm_settings_can_be_omitted(self, settings, settings_store):
        captured = {}

        def handler(request):
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"final_response": {"transcript": "hello"}})

        client = make_client(settings, settings_store, handler)
        payload = RequestPayload(input_type=InputType.AUDIO, content="UklGRg==")
        run(client.submit(payload, attach_farm_settings=False))

        assert "farmSettings" not in captured["body"]
        assert "userId" in captured["body"]
        assert "queryType" not in captured["body"]

    def test_error_body_message_is_used(self, settings, settings_store):
        def handler(request):
            return httpx.Response(500, json={"error": "Model overloaded"})

        result = run(make_client(settings, settings_store, handler).submit(schemes_payload()))

        assert result.success is False
        assert result.error == "Model overloaded"
        assert result.status_code == 500

    def test_error_without_message_uses_fallback(self, settings, settings_store):
        def handler(request):
            return httpx.Response(404, text="not found")

        result = run(make_client(settings, settings_store, handler).submit(schemes_payload()))

        assert result.success is False
        assert result.error == REQUEST_FAILED_MESSAGE

    def test_transport_failure_is_network_error(self, settings, settings_store):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        result = run(make_client(settings, settings_store, handler).submit(schemes_payload()))

        assert result.success is False
        assert result.error == NETWORK_ERROR_MESSAGE

    @pytest.mark.parametrize(
        "error",
        [
            httpx.DecodingError("Malformed gzip stream"),
            httpx.TooManyRedirects("Exceeded maximum allowed redirects."),
        ],
    )
    def test_non_transport_request_errors_are_network_errors(
        self, settings, settings_store, error
    ):
        def handler(request):
            raise error

        result = run(make_client(settings, settings_store, handler).submit(schemes_payload()))

        assert result.success is False
        assert result.error == NETWORK_ERROR_MESSAGE

    def test_non_json_success_is_network_error(self, settings, settings_store):
        def handler(request):
            return httpx.Response(200, text="<html>gateway</html>")

        result = run(make_client(settings, settings_store, handler).submit(schemes_payload()))

        assert result.success is False
        assert result.error == NETWORK_ERROR_MESSAGE


class TestHealth:
    def test_healthy_backend(self, settings, settings_store):
        def handler(request):
            assert request.url.path == "/farmer-assistant/health"
            return httpx.Response(200, json={"status": "healthy"})

        health = run(make_client(settings, settings_store, handler).check_health())
        assert health == {"status": "healthy"}

    def test_failure_returns_none(self, settings, settings_store):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        assert run(make_client(settings, settings_store, handler).check_health()) is None


class TestFarmDataRoutes:
    def test_check_proximity_body(self, settings, settings_store):
        captured = {}

        def handler(request):
            captured["url"] = str(request.url)
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"similar_pairs": []})

        locations = [{"imageName": "a.jpg", "latitude": 17.1, "longitude": 78.2, "imageId": "1"}]
        result = run(make_client(settings, settings_store, handler).check_proximity(locations))

        assert result.success is True
        assert captured["url"] == "https://data.test/check-proximity"
        assert captured["body"] == {"locations": locations}

    def test_save_decision_body(self, settings, settings_store):
        captured = {}

        def handler(request):
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True})

        client = make_client(settings, settings_store, handler)
        run(client.save_decision("p1", "save_both", "1", "2"))

        assert captured["body"] == {
            "pairId": "p1",
            "action": "save_both",
            "imageId1": "1",
            "imageId2": "2",
        }

    def test_classify_image_body(self, settings, settings_store):
        captured = {}

        def handler(request):
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"predictions": []})

        client = make_client(settings, settings_store, handler)
        run(client.classify_image("data:image/jpeg;base64,AAAA"))

        assert captured["body"] == {
            "image_data": "data:image/jpeg;base64,AAAA",
            "model_type": "mobilenet",
        }

    def test_data_backend_defaults_to_backend_url(self, settings_store):
        settings = Settings(backend_url="https://backend.test", data_backend_url=None)
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, json=[])

        run(make_client(settings, settings_store, handler).get_dashboard())
        assert seen == ["https://backend.test/dashboard"]
