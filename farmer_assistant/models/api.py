"""
Request and response bodies of the local HTTP API.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from farmer_assistant.models.classification import (
    ClassificationResult,
    DuplicateAction,
    Prediction,
)
from farmer_assistant.models.requests import Mode


class ModeSwitchRequest(BaseModel):
    mode: Mode = Field(..., description="Mode to activate")


class QueryRequest(BaseModel):
    """Text question for the schemes or consultant panel."""

    query: str = Field("", description="User question")
    sme: Optional[str] = Field(None, description="Selected subject matter expert")


class VoiceQueryRequest(BaseModel):
    audio: Optional[str] = Field(
        None, description="Base64 audio; the last recording is used when omitted"
    )
    sme: Optional[str] = None


class TranscribeRequest(BaseModel):
    audio: Optional[str] = Field(
        None, description="Base64 audio; the last recording is used when omitted"
    )
    language: str = Field("en", description="Spoken language hint")


class RecordingStatus(BaseModel):
    recording: bool
    has_recording: bool
    audio: Optional[str] = Field(None, description="Base64 WAV of the finished clip")


class ResolveDuplicateRequest(BaseModel):
    action: DuplicateAction


class ClassificationResultOut(BaseModel):
    """A classification result with its display-ready top predictions."""

    result: ClassificationResult
    top_predictions: List[Prediction]
    crop_type: str
