"""
GatewayClient for the cloud inference and farm data backends.

Every outbound call goes through this module. Results are normalized into
GatewayResult so callers never handle transport exceptions themselves:

- HTTP 2xx            -> success, parsed JSON body as data
- HTTP non-2xx        -> failure, body["error"] or "Request failed"
- transport failure   -> failure, generic network error message

There is deliberately no retry and no timeout unless one is configured.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel

from farmer_assistant.core.config import Settings, get_settings
from farmer_assistant.models.requests import RequestPayload
from farmer_assistant.services.settings_store import SettingsStore, get_settings_store

logger = logging.getLogger(__name__)

NETWORK_ERROR_MESSAGE = "Network error. Please check your connection and try again."
REQUEST_FAILED_MESSAGE = "Request failed"


class GatewayResult(BaseModel):
    """Uniform outcome of a backend call."""

    success: bool
    data: Any = None
    error: Optional[str] = None
    status_code: Optional[int] = None


class GatewayClient:
    """
    Async client wrapping the fixed backend endpoints.

    Example:
        >>> client = GatewayClient()
        >>> result = await client.submit(payload)
        >>> if result.success:
        ...     print(result.data["session_id"])
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        settings_store: Optional[SettingsStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = settings or get_settings()
        self._settings_store = settings_store or get_settings_store()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def settings_store(self) -> SettingsStore:
        return self._settings_store

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._settings.request_timeout,
                transport=self._transport,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def analyze_url(self) -> str:
        return f"{self._settings.backend_url}{self._settings.analyze_path}"

    @property
    def health_url(self) -> str:
        return f"{self._settings.backend_url}{self._settings.health_path}"

    def _farm_url(self, route: str) -> str:
        return f"{self._settings.farm_backend_url}/{route.lstrip('/')}"

    async def _request(self, method: str, url: str, json_body: Any = None) -> GatewayResult:
        try:
            response = await self._get_client().request(method, url, json=json_body)
        except httpx.RequestError as e:
            logger.error(f"Request to {url} failed: {e!r}")
            return GatewayResult(success=False, error=NETWORK_ERROR_MESSAGE)

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_success:
            if body is None:
                logger.error(f"Response from {url} is not JSON (status {response.status_code})")
                return GatewayResult(
                    success=False, error=NETWORK_ERROR_MESSAGE, status_code=response.status_code
                )
            return GatewayResult(success=True, data=body, status_code=response.status_code)

        error = body.get("error") if isinstance(body, dict) else None
        logger.error(f"Request to {url} failed with status {response.status_code}: {body!r}")
        return GatewayResult(
            success=False,
            error=error or REQUEST_FAILED_MESSAGE,
            status_code=response.status_code,
        )

    async def submit(
        self, payload: RequestPayload, attach_farm_settings: bool = True
    ) -> GatewayResult:
        """
        POST a submission to the analysis endpoint.

        Args:
            payload: Mode-specific request fields
            attach_farm_settings: Include the saved farm profile. Analysis-style
                submissions do; audio transcription does not.

        Returns:
            GatewayResult with the parsed response as data
        """
        update: Dict[str, Any] = {"user_id": self._settings_store.get_user_id()}
        if attach_farm_settings:
            update["farm_settings"] = self._settings_store.get_farm_settings().to_payload()
        body = payload.model_copy(update=update).to_json()

        logger.info(
            f"Sending {body.get('queryType', 'disease')} request "
            f"({body['inputType']}) for {body['userId']}"
        )
        return await self._request("POST", self.analyze_url, body)

    async def check_health(self) -> Optional[Dict[str, Any]]:
        """
        Poll the backend health route. Failures are logged, never raised.

        Returns:
            Parsed health document, or None when the call failed
        """
        result = await self._request("GET", self.health_url)
        if not result.success:
            logger.error(f"Health check failed: {result.error}")
            return None

        health = result.data if isinstance(result.data, dict) else {}
        if health.get("status") == "healthy":
            logger.info("Backend healthy")
        else:
            logger.warning(f"Backend health issues: {health}")
        return health

    async def classify_image(self, image_data_url: str, model_type: str = "mobilenet") -> GatewayResult:
        return await self._request(
            "POST",
            self._farm_url("classify-image"),
            {"image_data": image_data_url, "model_type": model_type},
        )

    async def get_upload_credential(self, file_name: str, content_type: str) -> GatewayResult:
        """Ask the backend for a short-lived object store credential."""
        return await self._request(
            "POST",
            self._farm_url("upload-credential"),
            {
                "fileName": file_name,
                "contentType": content_type,
                "userId": self._settings_store.get_user_id(),
            },
        )

    async def save_farm_image(self, record: Dict[str, Any]) -> GatewayResult:
        body = dict(record)
        body.setdefault("userId", self._settings_store.get_user_id())
        return await self._request("POST", self._farm_url("save-farm-image"), body)

    async def check_proximity(self, locations: List[Dict[str, Any]]) -> GatewayResult:
        return await self._request(
            "POST", self._farm_url("check-proximity"), {"locations": locations}
        )

    async def save_decision(
        self, pair_id: str, action: str, image_id1: str, image_id2: str
    ) -> GatewayResult:
        return await self._request(
            "POST",
            self._farm_url("save-decision"),
            {"pairId": pair_id, "action": action, "imageId1": image_id1, "imageId2": image_id2},
        )

    async def get_dashboard(self) -> GatewayResult:
        return await self._request("GET", self._farm_url("dashboard"))


# Module-level singleton instance
_gateway_client: Optional[GatewayClient] = None


def get_gateway_client() -> GatewayClient:
    """
    Get the singleton GatewayClient instance.

    Returns:
        GatewayClient instance
    """
    global _gateway_client
    if _gateway_client is None:
        _gateway_client = GatewayClient()
    return _gateway_client
