"""
Request payload models for the cloud analysis endpoint.

This module contains the enums and the Pydantic model used to build the
JSON body of every submission.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Mode(str, Enum):
    """Mutually exclusive top-level workflows."""

    DISEASE = "disease"
    SCHEMES = "schemes"
    CONSULTANT = "consultant"
    ADVISORY = "advisory"
    MAP = "map"
    UPLOAD = "upload"
    TALK = "talk"


class InputType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"


class QueryType(str, Enum):
    """Backend routing hint. Disease analysis is implied when absent."""

    DISEASE = "disease"
    GOVERNMENT_SCHEMES = "government_schemes"
    SME_CONSULTATION = "sme_consultation"
    PREDICTIVE_ADVISORY = "predictive_advisory"


class RequestPayload(BaseModel):
    """Body of a ``POST /api/analyze`` request."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    input_type: InputType = Field(..., alias="inputType", description="Kind of content")
    content: str = Field(..., description="Raw text, base64 image or base64 audio")
    query_type: Optional[QueryType] = Field(
        None, alias="queryType", description="Omitted for disease analysis"
    )
    language: str = Field("en", description="Response language")
    user_id: Optional[str] = Field(None, alias="userId", description="Per-device user id")
    farm_settings: Optional[Dict[str, Any]] = Field(
        None, alias="farmSettings", description="Serialized FarmSettings"
    )
    sme_agent: Optional[str] = Field(None, description="Selected subject matter expert")
    text_description: Optional[str] = Field(
        None, alias="textDescription", description="Free text sent alongside an image"
    )
    predictions: Optional[List[Dict[str, Any]]] = Field(
        None, description="Pre-computed local classification results"
    )

    def to_json(self) -> Dict[str, Any]:
        """Wire representation: camelCase keys, unset optionals dropped."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
