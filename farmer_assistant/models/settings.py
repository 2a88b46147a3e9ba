"""
Farm profile data model.

FarmSettings mirrors the JSON document persisted under the ``farmSettings``
storage key, so field aliases follow the stored camelCase names.
"""

from datetime import date
from typing import List

from pydantic import BaseModel, ConfigDict, Field

# Suggested values only; saving does not validate against them
CROP_STAGES = [
    "New Flush/Sprouting",
    "Flowering",
    "Fruit Set",
    "Fruit Development",
    "Maturity/Harvest",
]
SOIL_TYPES = ["A", "B", "C"]
LANGUAGES = [
    "English", "Hindi", "Bengali", "Tamil", "Telugu",
    "Marathi", "Gujarati", "Kannada", "Malayalam", "Punjabi",
]


class FarmSettings(BaseModel):
    """Farmer profile attached to analysis requests."""

    model_config = ConfigDict(populate_by_name=True)

    crop_type: str = Field("Mosambi", alias="cropType", description="Crop grown")
    acreage: float = Field(15, description="Farm size in acres")
    sowing_date: date = Field(date(2022, 1, 1), alias="sowingDate", description="Sowing date")
    current_stage: str = Field(
        "Fruit Development", alias="currentStage", description="Crop growth stage"
    )
    farmer_name: str = Field("Vijender", alias="farmerName", description="Farmer name")
    soil_type: str = Field("A", alias="soilType", description="Soil type (A, B or C)")
    current_challenges: str = Field(
        "Currently there are no challenges.",
        alias="currentChallenges",
        description="Free-text description of current problems",
    )
    preferred_languages: List[str] = Field(
        default_factory=lambda: ["English", "Telugu"],
        alias="preferredLanguages",
        description="Preferred languages, most preferred first",
    )

    def to_payload(self) -> dict:
        """Serialize using the stored camelCase names."""
        return self.model_dump(mode="json", by_alias=True)
