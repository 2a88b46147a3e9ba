"""
Image classification data models.

This module contains Pydantic models for the bulk image classification
workflow: predictions, GPS metadata, per-image results and duplicate pairs.
"""

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Prediction(BaseModel):
    """One label score produced by the classifier."""

    model_config = ConfigDict(populate_by_name=True)

    class_name: str = Field(..., alias="className", description="Model output label")
    probability: float = Field(..., description="Native model confidence in [0, 1]")


class GPSCoordinates(BaseModel):
    """Signed decimal-degree location read from EXIF."""

    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)


class SaveOutcome(BaseModel):
    """Result of persisting one image to the farm database."""

    success: bool
    asset_url: Optional[str] = None
    asset_id: Optional[str] = None
    crop_type: Optional[str] = None
    error: Optional[str] = None


class ClassificationResult(BaseModel):
    """Classification of one uploaded image."""

    id: str = Field(..., description="Local result identifier")
    file_name: str = Field(..., description="Original file name")
    content_type: str = Field("image/jpeg", description="MIME type of the source file")
    image_url: str = Field(..., description="Displayable data URL of the image")
    predictions: List[Prediction] = Field(default_factory=list)
    captured_at: datetime = Field(default_factory=datetime.now)
    location: Optional[GPSCoordinates] = None
    asset_url: Optional[str] = Field(None, description="Public URL after upload")
    save_outcome: Optional[SaveOutcome] = None


class DuplicateAction(str, Enum):
    SAVE_BOTH = "save_both"
    KEEP_FIRST = "keep_first_remove_second"
    KEEP_SECOND = "remove_first_keep_second"


class DuplicatePair(BaseModel):
    """Two images the backend judged to be the same physical tree."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    pair_id: str = Field(..., alias="pairId")
    image_id1: str = Field(..., alias="imageId1")
    image_id2: str = Field(..., alias="imageId2")
    distance: Optional[float] = None

    @field_validator("pair_id", "image_id1", "image_id2", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        """Backends return numeric ids; results are keyed by string."""
        return str(v) if v is not None else v


class FarmPlot(BaseModel):
    """A plant marker shown on the farm map."""

    plot_id: str
    crop_type: Optional[str] = None
    latitude: float
    longitude: float
    file_name: str = "N/A"
    image_url: Optional[str] = None
