"""
Crop-type inference from classifier predictions.

The top-1 label is looked up in a configurable label -> crop mapping and
accepted only above a probability threshold. Anything else falls back to
the negative label. With the default configuration this is the mango rule:
``mango_tree`` above 0.5 is "Mango", everything else "Not Mango".
"""

from typing import Dict, Iterable, Optional

from farmer_assistant.core.config import Settings, get_settings
from farmer_assistant.models.classification import Prediction


class CropLabelMapping:
    """Maps classifier labels to crop names."""

    def __init__(
        self,
        mapping: Dict[str, str],
        threshold: float = 0.5,
        negative_label: str = "Not Mango",
    ):
        self._mapping = dict(mapping)
        self._threshold = threshold
        self._negative_label = negative_label

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "CropLabelMapping":
        settings = settings or get_settings()
        return cls(
            settings.crop_label_mapping,
            threshold=settings.crop_probability_threshold,
            negative_label=settings.crop_negative_label,
        )

    @property
    def labels(self) -> Dict[str, str]:
        return dict(self._mapping)

    def infer(self, predictions: Iterable[Prediction]) -> str:
        """
        Infer the crop from predictions in any order.

        Args:
            predictions: Classifier output

        Returns:
            Mapped crop name, or the negative label
        """
        top = max(predictions, key=lambda p: p.probability, default=None)
        if top is None:
            return self._negative_label

        crop = self._mapping.get(top.class_name)
        if crop is not None and top.probability > self._threshold:
            return crop
        return self._negative_label
