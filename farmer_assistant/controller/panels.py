"""
Mode panels: per-mode input collection and validation.

Each panel checks its input locally, builds the RequestPayload for its mode
and hands it to the ModeController. Validation failures raise
InputValidationError before any request is sent; the HTTP layer turns them
into 400 responses carrying the message.
"""

import asyncio
import base64
import logging
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from farmer_assistant.controller.mode_controller import ModeController
from farmer_assistant.core.config import Settings, get_settings
from farmer_assistant.models.classification import ClassificationResult, FarmPlot
from farmer_assistant.models.requests import InputType, QueryType, RequestPayload

logger = logging.getLogger(__name__)

NO_SME = "none"

SME_OPTIONS: List[Dict[str, str]] = [
    {"value": NO_SME, "label": "No specific expert"},
    {"value": "crop_specialist", "label": "Crop Specialist"},
    {"value": "soil_expert", "label": "Soil Health Expert"},
    {"value": "pest_management", "label": "Pest Management Expert"},
    {"value": "irrigation_expert", "label": "Irrigation Expert"},
    {"value": "scheme_advisor", "label": "Government Scheme Advisor"},
]

SCHEME_EXAMPLE_QUERIES = [
    "What subsidies are available for drip irrigation?",
    "How do I apply for PM-KISAN?",
    "Is there crop insurance for citrus farmers?",
    "Which schemes support organic farming?",
]

CONSULTANT_EXAMPLE_QUERIES = [
    "My mosambi leaves are turning yellow. What should I do?",
    "How often should I irrigate during fruit development?",
    "Which fertilizer suits soil type A for citrus?",
    "How can I control fruit fly without chemicals?",
]

ADVISORY_CONTENT = "predictive advisor"
UPLOADED_IMAGE_CROP = "Uploaded Image"

EMPTY_SCHEMES_QUERY = "Please enter your question about government schemes."
EMPTY_CONSULTANT_QUERY = "Please enter your question for the expert consultation."
MISSING_SME = "Please select a Subject Matter Expert."
MISSING_IMAGE = "Please select an image first."
INVALID_IMAGE = "Please select a valid image file."
IMAGE_TOO_LARGE = "Image size should be less than 5MB."
MISSING_AUDIO = "Please record audio first."


class InputValidationError(Exception):
    """
    Raised when panel input fails local validation.

    No request is sent when this is raised; the message is shown to the user
    as-is.
    """

    pass


def _selected_sme(sme: Optional[str]) -> Optional[str]:
    if not sme or sme == NO_SME:
        return None
    return sme


class _Panel:
    def __init__(self, controller: ModeController, settings: Optional[Settings] = None):
        self._controller = controller
        self._settings = settings or get_settings()

    def _submit(
        self, payload: RequestPayload, attach_farm_settings: bool = True
    ) -> asyncio.Task:
        return self._controller.submit(payload, attach_farm_settings=attach_farm_settings)

    def _recorded_audio(self, audio_b64: Optional[str]) -> str:
        audio = audio_b64 or self._controller.recorder.last_recording
        if not audio:
            raise InputValidationError(MISSING_AUDIO)
        return audio


class DiseasePanel(_Panel):
    def analyze(
        self,
        image_bytes: Optional[bytes],
        content_type: Optional[str],
        text_description: str = "",
    ) -> asyncio.Task:
        """
        Submit a crop photo for disease analysis.

        Args:
            image_bytes: Raw image file content
            content_type: MIME type reported for the file
            text_description: Optional free text sent with the image

        Raises:
            InputValidationError: If no image, not an image, or too large
        """
        if not image_bytes:
            raise InputValidationError(MISSING_IMAGE)
        if not content_type or not content_type.startswith("image/"):
            raise InputValidationError(INVALID_IMAGE)
        if len(image_bytes) > self._settings.max_image_size:
            raise InputValidationError(IMAGE_TOO_LARGE)

        payload = RequestPayload(
            input_type=InputType.IMAGE,
            content=base64.b64encode(image_bytes).decode("ascii"),
            language="en",
            text_description=text_description.strip(),
        )
        logger.info(f"Disease analysis requested ({len(image_bytes)} bytes, {content_type})")
        return self._submit(payload)


class SchemesPanel(_Panel):
    example_queries = SCHEME_EXAMPLE_QUERIES

    def ask(self, query: str, sme: Optional[str] = None) -> asyncio.Task:
        query = (query or "").strip()
        if not query:
            raise InputValidationError(EMPTY_SCHEMES_QUERY)

        payload = RequestPayload(
            input_type=InputType.TEXT,
            content=query,
            query_type=QueryType.GOVERNMENT_SCHEMES,
            sme_agent=_selected_sme(sme),
        )
        return self._submit(payload)

    def ask_voice(self, audio_b64: Optional[str] = None, sme: Optional[str] = None) -> asyncio.Task:
        """Ask by voice. Uses the last recording when no audio is passed."""
        payload = RequestPayload(
            input_type=InputType.AUDIO,
            content=self._recorded_audio(audio_b64),
            query_type=QueryType.GOVERNMENT_SCHEMES,
            sme_agent=_selected_sme(sme),
        )
        return self._submit(payload)


class ConsultantPanel(_Panel):
    example_queries = CONSULTANT_EXAMPLE_QUERIES

    def consult(self, query: str, sme: Optional[str]) -> asyncio.Task:
        query = (query or "").strip()
        if not query:
            raise InputValidationError(EMPTY_CONSULTANT_QUERY)
        if not _selected_sme(sme):
            raise InputValidationError(MISSING_SME)

        payload = RequestPayload(
            input_type=InputType.TEXT,
            content=query,
            query_type=QueryType.SME_CONSULTATION,
            sme_agent=sme,
        )
        return self._submit(payload)


class AdvisoryPanel(_Panel):
    def trigger(self) -> asyncio.Task:
        """One-click advisory; the farm profile supplies all the context."""
        payload = RequestPayload(
            input_type=InputType.TEXT,
            content=ADVISORY_CONTENT,
            query_type=QueryType.PREDICTIVE_ADVISORY,
        )
        return self._submit(payload)


class TalkPanel(_Panel):
    def transcribe(self, audio_b64: Optional[str] = None, language: str = "en") -> asyncio.Task:
        # Transcription requests carry no farm profile
        payload = RequestPayload(
            input_type=InputType.AUDIO,
            content=self._recorded_audio(audio_b64),
            language=language,
        )
        return self._submit(payload, attach_farm_settings=False)


def plots_from_dashboard(documents: Any) -> List[FarmPlot]:
    """
    Flatten dashboard documents into map markers.

    Plants without coordinates are skipped. Plot ids are ``cropType-index``
    with a 1-based index across all documents.
    """
    if isinstance(documents, dict):
        documents = documents.get("documents") or documents.get("data") or []
    if not isinstance(documents, list):
        return []

    plots: List[FarmPlot] = []
    index = 0
    for doc in documents:
        if not isinstance(doc, dict):
            continue
        plants = doc.get("plants") or []
        for plant in plants if isinstance(plants, list) else []:
            if not isinstance(plant, dict):
                continue
            latitude = plant.get("latitude")
            longitude = plant.get("longitude")
            if not latitude or not longitude:
                continue
            try:
                latitude, longitude = float(latitude), float(longitude)
            except (TypeError, ValueError):
                logger.warning(f"Skipping plant with unreadable coordinates: {plant!r}")
                continue
            index += 1
            crop_type = str(plant.get("cropType") or "Unknown")
            plots.append(
                FarmPlot(
                    plot_id=f"{crop_type}-{index}",
                    crop_type=crop_type,
                    latitude=latitude,
                    longitude=longitude,
                    file_name=str(plant.get("fileName") or "N/A"),
                    image_url=plant.get("cloudinaryUrl") or plant.get("imageUrl"),
                )
            )
    return plots


def plots_from_results(results: Sequence[ClassificationResult]) -> List[FarmPlot]:
    """Markers for locally classified images that carry GPS."""
    plots = []
    for index, result in enumerate(results, start=1):
        if result.location is None:
            continue
        plots.append(
            FarmPlot(
                plot_id=f"IMG-{index}",
                crop_type=UPLOADED_IMAGE_CROP,
                latitude=result.location.latitude,
                longitude=result.location.longitude,
                file_name=result.file_name,
                image_url=result.asset_url or result.image_url,
            )
        )
    return plots


class MapPanel(_Panel):
    async def load_plots(
        self, local_results: Sequence[ClassificationResult] = ()
    ) -> List[FarmPlot]:
        """
        Fetch saved plants from the dashboard and overlay local results.

        Returns:
            Map markers, or an empty list when the dashboard fetch fails
        """
        result = await self._controller.gateway.get_dashboard()
        if not result.success:
            logger.error(f"Error loading dashboard data: {result.error}")
            return []

        try:
            plots = plots_from_dashboard(result.data)
        except ValidationError as e:
            logger.error(f"Unreadable dashboard data: {e}")
            return []

        plots.extend(plots_from_results(local_results))
        logger.info(f"Map loaded with {len(plots)} plots")
        return plots
