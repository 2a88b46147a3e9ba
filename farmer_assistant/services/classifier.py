"""
Local image classifier for the bulk upload workflow.

This module loads a pretrained image classification model published as a
Teachable Machine export (``model.json``, weight shards and
``metadata.json`` under one base URL) and runs single-image inference.
A remote variant delegates inference to the backend's fine-tuned MobileNetV2.

Usage:
    classifier = ImageClassifier(TeachableMachineRuntime(cache_dir), model_url)
    predictions = await classifier.classify(image)
    top3 = top_predictions(predictions)
"""

import asyncio
import base64
import hashlib
import io
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import httpx
import numpy as np
from PIL import Image, ImageOps
from pydantic import ValidationError

from farmer_assistant.core.alerts import Alert, AlertSink, log_alert
from farmer_assistant.models.classification import Prediction

logger = logging.getLogger(__name__)

MODEL_FILE = "model.json"
METADATA_FILE = "metadata.json"
DEFAULT_IMAGE_SIZE = 224

LOAD_FAILED_MESSAGE = "Failed to load the model."
LOAD_FAILED_HINT = (
    "Check the model URL and that the classifier runtime is installed "
    "(pip install 'farmer-assistant[classifier]')."
)


class ClassifierRuntimeUnavailable(Exception):
    """Raised when the image classification runtime is not installed."""

    pass


class ModelLoadError(Exception):
    """Raised when model files cannot be fetched or parsed."""

    pass


class ClassificationError(Exception):
    """Raised when inference on a single image fails."""

    pass


class ClassifierModel(ABC):
    """A loaded model able to score one image."""

    @abstractmethod
    async def predict(self, image: Image.Image) -> List[Prediction]:
        ...


class ClassifierRuntime(ABC):
    """Loads models from a (model.json, metadata.json) URL pair."""

    @abstractmethod
    async def load(self, model_url: str, metadata_url: str) -> ClassifierModel:
        ...


def preprocess_image(image: Image.Image, size: int = DEFAULT_IMAGE_SIZE) -> np.ndarray:
    """
    Center-crop to a square, resize, and scale pixels to [-1, 1].

    Returns:
        Array of shape (1, size, size, 3)
    """
    fitted = ImageOps.fit(image.convert("RGB"), (size, size), Image.Resampling.BILINEAR)
    array = np.asarray(fitted, dtype=np.float32) / 127.5 - 1.0
    return np.expand_dims(array, axis=0)


class TeachableMachineModel(ClassifierModel):
    def __init__(self, keras_model: Any, labels: Sequence[str], image_size: int):
        self._model = keras_model
        self._labels = list(labels)
        self._image_size = image_size

    @property
    def labels(self) -> List[str]:
        return list(self._labels)

    def _predict_sync(self, image: Image.Image) -> List[Prediction]:
        batch = preprocess_image(image, self._image_size)
        scores = self._model.predict(batch, verbose=0)[0]
        return [
            Prediction(class_name=label, probability=float(score))
            for label, score in zip(self._labels, scores)
        ]

    async def predict(self, image: Image.Image) -> List[Prediction]:
        try:
            return await asyncio.to_thread(self._predict_sync, image)
        except Exception as e:
            raise ClassificationError(f"Inference failed: {e}") from e


class TeachableMachineRuntime(ClassifierRuntime):
    """
    Runtime for Teachable Machine (TensorFlow.js layers) exports.

    Model files are downloaded once per base URL into ``cache_dir`` and then
    loaded with tensorflowjs, which is an optional dependency.
    """

    def __init__(self, cache_dir: Path, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._cache_dir = Path(cache_dir)
        self._transport = transport

    def _model_dir(self, model_url: str) -> Path:
        digest = hashlib.sha256(model_url.encode("utf-8")).hexdigest()[:16]
        return self._cache_dir / digest

    async def _download(self, client: httpx.AsyncClient, url: str, target: Path) -> bytes:
        try:
            response = await client.get(url, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ModelLoadError(f"HTTP {e.response.status_code} fetching {url}") from e
        except httpx.TransportError as e:
            raise ModelLoadError(f"Could not fetch {url}: {e}") from e

        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(response.content)
        return response.content

    async def fetch(self, model_url: str, metadata_url: str) -> tuple[Path, Dict[str, Any]]:
        """
        Download model definition, weight shards and metadata.

        Returns:
            (path to local model.json, parsed metadata)

        Raises:
            ModelLoadError: If any file is unreachable or not valid JSON
        """
        model_dir = self._model_dir(model_url)
        base_url = model_url.rsplit("/", 1)[0] + "/"

        async with httpx.AsyncClient(transport=self._transport) as client:
            model_raw = await self._download(client, model_url, model_dir / MODEL_FILE)
            metadata_raw = await self._download(client, metadata_url, model_dir / METADATA_FILE)

            try:
                model_doc = json.loads(model_raw)
                metadata = json.loads(metadata_raw)
            except json.JSONDecodeError as e:
                raise ModelLoadError(f"Model files are not valid JSON: {e}") from e

            for group in model_doc.get("weightsManifest", []):
                for shard in group.get("paths", []):
                    await self._download(client, base_url + shard, model_dir / shard)

        logger.info(f"Model files cached in {model_dir}")
        return model_dir / MODEL_FILE, metadata

    async def load(self, model_url: str, metadata_url: str) -> ClassifierModel:
        try:
            import tensorflowjs as tfjs
        except ImportError as e:
            raise ClassifierRuntimeUnavailable(
                "Teachable Machine runtime (tensorflowjs) is not installed"
            ) from e

        model_path, metadata = await self.fetch(model_url, metadata_url)
        labels = metadata.get("labels")
        if not labels:
            raise ModelLoadError(f"No labels in {metadata_url}")

        try:
            keras_model = await asyncio.to_thread(
                tfjs.converters.load_keras_model, str(model_path)
            )
        except Exception as e:
            raise ModelLoadError(f"Could not load model from {model_url}: {e}") from e

        image_size = int(metadata.get("imageSize", DEFAULT_IMAGE_SIZE))
        return TeachableMachineModel(keras_model, labels, image_size)


def image_to_data_url(image: Image.Image, quality: int = 90) -> str:
    """Encode an image as a JPEG data URL."""
    buffer = io.BytesIO()
    image.convert("RGB").save(buffer, format="JPEG", quality=quality)
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/jpeg;base64,{encoded}"


class RemoteClassifierModel(ClassifierModel):
    """Sends the image to the backend's ``/classify-image`` route."""

    def __init__(self, gateway: Any, model_type: str = "mobilenet"):
        self._gateway = gateway
        self._model_type = model_type

    async def predict(self, image: Image.Image) -> List[Prediction]:
        result = await self._gateway.classify_image(image_to_data_url(image), self._model_type)
        if not result.success:
            raise ClassificationError(f"Backend classification failed: {result.error}")

        data = result.data
        raw = (data.get("predictions") or []) if isinstance(data, dict) else None
        if not isinstance(raw, list):
            raise ClassificationError(f"Malformed classification reply: {data!r}")
        try:
            return [Prediction.model_validate(item) for item in raw]
        except ValidationError as e:
            raise ClassificationError(f"Malformed classification reply: {e}") from e


class RemoteClassifierRuntime(ClassifierRuntime):
    """Nothing to download: inference happens server side."""

    def __init__(self, gateway: Any, model_type: str = "mobilenet"):
        self._gateway = gateway
        self._model_type = model_type

    async def load(self, model_url: str, metadata_url: str) -> ClassifierModel:
        return RemoteClassifierModel(self._gateway, self._model_type)


def _model_urls(base_url: str) -> tuple[str, str]:
    if not base_url.endswith("/"):
        base_url += "/"
    return base_url + MODEL_FILE, base_url + METADATA_FILE


class ImageClassifier:
    """
    Caches one loaded model and runs predictions with it.

    load_model() is idempotent. When both the primary and the fallback URL
    fail it reports an alert and returns None instead of raising.
    """

    def __init__(
        self,
        runtime: ClassifierRuntime,
        model_url: str,
        fallback_model_url: Optional[str] = None,
        alert: Optional[AlertSink] = None,
    ):
        self._runtime = runtime
        self._model_url = model_url
        self._fallback_model_url = fallback_model_url
        self._alert = alert or log_alert
        self._model: Optional[ClassifierModel] = None
        self._lock = asyncio.Lock()

    async def load_model(self) -> Optional[ClassifierModel]:
        if self._model is not None:
            return self._model

        async with self._lock:
            if self._model is not None:
                return self._model

            candidates = [self._model_url]
            if self._fallback_model_url:
                candidates.append(self._fallback_model_url)

            for base_url in candidates:
                model_url, metadata_url = _model_urls(base_url)
                try:
                    self._model = await self._runtime.load(model_url, metadata_url)
                    logger.info(f"Classifier model loaded from {base_url}")
                    return self._model
                except ClassifierRuntimeUnavailable as e:
                    logger.error(f"Error loading model: {e}")
                    break
                except ModelLoadError as e:
                    logger.error(f"Error loading model from {base_url}: {e}")

            self._alert(Alert(message=LOAD_FAILED_MESSAGE, hint=LOAD_FAILED_HINT))
            return None

    async def classify(self, image: Image.Image) -> List[Prediction]:
        """
        Run single-image inference.

        Returns:
            Predictions in model output order (unsorted)

        Raises:
            ModelLoadError: If no model could be loaded
            ClassificationError: If inference fails
        """
        model = await self.load_model()
        if model is None:
            raise ModelLoadError(LOAD_FAILED_MESSAGE)
        return await model.predict(image)


def sort_predictions(predictions: Iterable[Prediction]) -> List[Prediction]:
    """Sort by probability, highest first. Stable, so re-sorting is a no-op."""
    return sorted(predictions, key=lambda p: p.probability, reverse=True)


def top_predictions(predictions: Iterable[Prediction], n: int = 3) -> List[Prediction]:
    return sort_predictions(predictions)[:n]
