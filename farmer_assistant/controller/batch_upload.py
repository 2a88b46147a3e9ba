"""
Bulk image classification and farm image upload.

BatchUploadWorkflow keeps the list of classified images for the upload
mode. For each incoming file it reads GPS from EXIF and classifies the
image concurrently, then asks the farm data backend which geotagged images
look like the same tree. The user resolves each duplicate pair; the
surviving images can be synced to the object store and the farm database
together with the inferred crop type.
"""

import asyncio
import base64
import io
import logging
import uuid
from typing import Callable, Dict, List, Optional, Sequence

from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, ValidationError

from farmer_assistant.core.alerts import Alert, AlertSink, log_alert
from farmer_assistant.core.config import Settings, get_settings
from farmer_assistant.models.classification import (
    ClassificationResult,
    DuplicateAction,
    DuplicatePair,
    Prediction,
    SaveOutcome,
)
from farmer_assistant.services.asset_store import (
    AssetStore,
    AssetUploadError,
    UploadCredential,
    prepare_image_for_upload,
)
from farmer_assistant.services.classifier import (
    ClassificationError,
    ImageClassifier,
    ModelLoadError,
    RemoteClassifierRuntime,
    TeachableMachineRuntime,
)
from farmer_assistant.services.crop_inference import CropLabelMapping
from farmer_assistant.services.exif_gps import extract_gps
from farmer_assistant.services.gateway import GatewayClient

logger = logging.getLogger(__name__)

UPLOAD_CONTENT_TYPE = "image/jpeg"


class ImageFile(BaseModel):
    """One file handed to the workflow."""

    file_name: str
    content_type: str
    data: bytes


class DuplicateResolutionError(Exception):
    """Raised when a duplicate pair is unknown or its decision was rejected."""

    pass


def _data_url(data: bytes, content_type: str) -> str:
    return f"data:{content_type};base64,{base64.b64encode(data).decode('ascii')}"


def _decode_image(data: bytes) -> Image.Image:
    with Image.open(io.BytesIO(data)) as img:
        img.load()
        return img.copy()


class BatchUploadWorkflow:
    """
    Classified image list plus duplicate pairs for the upload mode.

    Example:
        >>> workflow = BatchUploadWorkflow(classifier, gateway)
        >>> new = await workflow.process_files([ImageFile(...)])
        >>> workflow.duplicate_pairs
        [DuplicatePair(pair_id='p1', image_id1='...', image_id2='...')]
    """

    def __init__(
        self,
        classifier: ImageClassifier,
        gateway: GatewayClient,
        crop_mapping: Optional[CropLabelMapping] = None,
        settings: Optional[Settings] = None,
        alert: Optional[AlertSink] = None,
        asset_store_factory: Callable[[UploadCredential], AssetStore] = AssetStore,
    ):
        self._classifier = classifier
        self._gateway = gateway
        self._settings = settings or get_settings()
        self._crop_mapping = crop_mapping or CropLabelMapping.from_settings(self._settings)
        self._alert = alert or log_alert
        self._asset_store_factory = asset_store_factory

        self._results: List[ClassificationResult] = []
        self._sources: Dict[str, bytes] = {}
        self._pairs: List[DuplicatePair] = []
        self.is_processing = False
        self.is_checking_duplicates = False

    @property
    def results(self) -> List[ClassificationResult]:
        return list(self._results)

    @property
    def duplicate_pairs(self) -> List[DuplicatePair]:
        return list(self._pairs)

    @property
    def crop_mapping(self) -> CropLabelMapping:
        return self._crop_mapping

    def get_result(self, result_id: str) -> Optional[ClassificationResult]:
        for result in self._results:
            if result.id == str(result_id):
                return result
        return None

    async def _classify_file(self, file: ImageFile) -> Optional[ClassificationResult]:
        async def classify() -> List[Prediction]:
            image = await asyncio.to_thread(_decode_image, file.data)
            return await self._classifier.classify(image)

        try:
            location, predictions = await asyncio.gather(
                asyncio.to_thread(extract_gps, file.data), classify()
            )
        except (UnidentifiedImageError, OSError, ClassificationError, ModelLoadError) as e:
            logger.error(f"Error classifying image {file.file_name}: {e}")
            self._alert(Alert(message=f"Could not classify {file.file_name}.", hint=str(e)))
            return None

        result_id = uuid.uuid4().hex
        self._sources[result_id] = file.data
        return ClassificationResult(
            id=result_id,
            file_name=file.file_name,
            content_type=file.content_type,
            image_url=_data_url(file.data, file.content_type),
            predictions=predictions,
            location=location,
        )

    async def process_files(self, files: Sequence[ImageFile]) -> List[ClassificationResult]:
        """
        Classify a batch of files and check the new results for duplicates.

        Non-image files are ignored. Files that fail are skipped with an
        alert; the rest of the batch continues.

        Returns:
            The newly added results (empty if the model cannot be loaded)
        """
        if not files:
            return []

        self.is_processing = True
        try:
            if await self._classifier.load_model() is None:
                return []

            new_results: List[ClassificationResult] = []
            for file in files:
                if not file.content_type.startswith("image/"):
                    logger.info(f"Skipping non-image file {file.file_name}")
                    continue
                result = await self._classify_file(file)
                if result is not None:
                    new_results.append(result)
                    self._results.append(result)

            logger.info(f"Classified {len(new_results)} of {len(files)} files")
        finally:
            self.is_processing = False

        if new_results:
            await self.check_duplicates(new_results)
        return new_results

    async def check_duplicates(
        self, results: Optional[Sequence[ClassificationResult]] = None
    ) -> List[DuplicatePair]:
        """
        Ask the backend which geotagged results are near-duplicates.

        Only results with a location are sent. Backend failures are logged
        and leave the current pairs untouched.
        """
        candidates = [r for r in (results if results is not None else self._results) if r.location]
        if not candidates:
            logger.info("No images with location data to check for duplicates")
            return self.duplicate_pairs

        locations = [
            {
                "imageName": r.file_name,
                "latitude": r.location.latitude,
                "longitude": r.location.longitude,
                "imageId": r.id,
            }
            for r in candidates
        ]

        self.is_checking_duplicates = True
        try:
            response = await self._gateway.check_proximity(locations)
        finally:
            self.is_checking_duplicates = False

        if not response.success:
            logger.error(f"Error checking for duplicates: {response.error}")
            return self.duplicate_pairs

        data = response.data
        if not isinstance(data, dict):
            logger.error(f"Unexpected proximity reply ignored: {data!r}")
            return self.duplicate_pairs

        try:
            self._pairs = [
                DuplicatePair.model_validate(p) for p in data.get("similar_pairs") or []
            ]
        except (ValidationError, TypeError) as e:
            logger.error(f"Malformed duplicate pairs ignored: {e}")
            self._pairs = []
        logger.info(f"Proximity check on {len(locations)} images: {len(self._pairs)} pairs")
        return self.duplicate_pairs

    async def resolve_duplicate(self, pair_id: str, action: DuplicateAction) -> None:
        """
        Record the user's decision for one pair.

        The pair is dropped and the losing image removed only after the
        backend accepts the decision.

        Raises:
            DuplicateResolutionError: If the pair is unknown or the backend
                rejects the decision
        """
        action = DuplicateAction(action)
        pair = next((p for p in self._pairs if p.pair_id == str(pair_id)), None)
        if pair is None:
            raise DuplicateResolutionError(f"Unknown duplicate pair {pair_id}")

        response = await self._gateway.save_decision(
            pair.pair_id, action.value, pair.image_id1, pair.image_id2
        )
        if not response.success:
            logger.error(f"Error saving decision for {pair.pair_id}: {response.error}")
            raise DuplicateResolutionError(response.error or "Could not save decision")

        self._pairs = [p for p in self._pairs if p.pair_id != pair.pair_id]
        if action == DuplicateAction.KEEP_FIRST:
            self.remove_result(pair.image_id2)
        elif action == DuplicateAction.KEEP_SECOND:
            self.remove_result(pair.image_id1)
        logger.info(f"Duplicate {pair.pair_id} resolved with {action.value}")

    def remove_result(self, result_id: str) -> bool:
        """Remove one result and every pair that references it."""
        result_id = str(result_id)
        before = len(self._results)
        self._results = [r for r in self._results if r.id != result_id]
        self._sources.pop(result_id, None)
        self._pairs = [
            p for p in self._pairs if result_id not in (p.image_id1, p.image_id2)
        ]

        removed = len(self._results) < before
        if not removed:
            logger.warning(f"Could not find image to remove with id {result_id}")
        return removed

    def clear(self) -> None:
        self._results = []
        self._sources = {}
        self._pairs = []

    async def _sync_one(self, result: ClassificationResult) -> SaveOutcome:
        crop_type = self._crop_mapping.infer(result.predictions)

        try:
            prepared = await asyncio.to_thread(
                prepare_image_for_upload,
                self._sources[result.id],
                self._settings.upload_max_dimension,
                self._settings.upload_jpeg_quality,
            )
        except AssetUploadError as e:
            return SaveOutcome(success=False, crop_type=crop_type, error=str(e))

        issued = await self._gateway.get_upload_credential(result.file_name, UPLOAD_CONTENT_TYPE)
        if not issued.success:
            return SaveOutcome(success=False, crop_type=crop_type, error=issued.error)

        try:
            credential = UploadCredential.model_validate(issued.data)
            store = self._asset_store_factory(credential)
            asset_url, asset_id = await asyncio.to_thread(
                store.upload_image,
                io.BytesIO(prepared),
                credential.object_name,
                UPLOAD_CONTENT_TYPE,
            )
        except (ValidationError, AssetUploadError) as e:
            logger.error(f"Upload of {result.file_name} failed: {e}")
            return SaveOutcome(success=False, crop_type=crop_type, error=str(e))

        saved = await self._gateway.save_farm_image(
            {
                "imageId": result.id,
                "fileName": result.file_name,
                "imageUrl": asset_url,
                "assetId": asset_id,
                "cropType": crop_type,
                "latitude": result.location.latitude,
                "longitude": result.location.longitude,
                "predictions": [p.model_dump(by_alias=True) for p in result.predictions],
                "capturedAt": result.captured_at.isoformat(),
            }
        )
        result.asset_url = asset_url
        if not saved.success:
            return SaveOutcome(
                success=False,
                asset_url=asset_url,
                asset_id=asset_id,
                crop_type=crop_type,
                error=saved.error,
            )
        return SaveOutcome(
            success=True, asset_url=asset_url, asset_id=asset_id, crop_type=crop_type
        )

    async def sync_results(self) -> List[ClassificationResult]:
        """
        Upload geotagged, not yet saved results and record them in the farm
        database. Each result's save_outcome is updated in place.

        Returns:
            The results that were attempted
        """
        pending = [
            r
            for r in self._results
            if r.location is not None and not (r.save_outcome and r.save_outcome.success)
        ]
        for result in pending:
            result.save_outcome = await self._sync_one(result)
            if result.save_outcome.success:
                logger.info(f"Saved {result.file_name} as {result.save_outcome.crop_type}")
            else:
                logger.error(f"Could not save {result.file_name}: {result.save_outcome.error}")
        return pending


def build_image_classifier(
    settings: Settings, gateway: GatewayClient, alert: Optional[AlertSink] = None
) -> ImageClassifier:
    """Classifier for the configured model type ("teachable_machine" or "mobilenet")."""
    if settings.classifier_model_type == "mobilenet":
        runtime = RemoteClassifierRuntime(gateway, model_type="mobilenet")
    else:
        runtime = TeachableMachineRuntime(settings.classifier_cache_dir)
    return ImageClassifier(
        runtime,
        settings.classifier_model_url,
        fallback_model_url=settings.classifier_fallback_model_url,
        alert=alert,
    )


# Module-level singleton instance
_batch_workflow: Optional[BatchUploadWorkflow] = None


def get_batch_workflow() -> BatchUploadWorkflow:
    """
    Get the singleton BatchUploadWorkflow, reporting alerts to the session.

    Returns:
        BatchUploadWorkflow instance
    """
    global _batch_workflow
    if _batch_workflow is None:
        from farmer_assistant.controller.mode_controller import get_mode_controller

        controller = get_mode_controller()
        settings = get_settings()
        _batch_workflow = BatchUploadWorkflow(
            build_image_classifier(settings, controller.gateway, controller.alert),
            controller.gateway,
            settings=settings,
            alert=controller.alert,
        )
    return _batch_workflow


def reset_batch_workflow() -> None:
    """Drop the singleton (for tests)."""
    global _batch_workflow
    _batch_workflow = None
