"""
Farm settings API endpoints.

The farm profile is stored locally and attached to every analysis request.
"""

from fastapi import APIRouter, Depends

from farmer_assistant.core import depends_settings_store
from farmer_assistant.models.settings import CROP_STAGES, LANGUAGES, SOIL_TYPES, FarmSettings
from farmer_assistant.services.settings_store import SettingsStore

router = APIRouter(prefix="/api/v1/settings", tags=["settings"])


@router.get("", response_model=FarmSettings)
async def get_farm_settings(
    store: SettingsStore = Depends(depends_settings_store),
) -> FarmSettings:
    """
    Return the saved farm settings, or the defaults when none are saved.

    Example:
        GET /api/v1/settings

        Response:
        {
            "cropType": "Mosambi",
            "acreage": 15.0,
            "sowingDate": "2022-01-01",
            ...
        }
    """
    return store.get_farm_settings()


@router.put("", response_model=FarmSettings)
async def save_farm_settings(
    settings: FarmSettings,
    store: SettingsStore = Depends(depends_settings_store),
) -> FarmSettings:
    """Persist the farm settings. Camel-case and snake-case keys are both accepted."""
    return store.save_farm_settings(settings)


@router.get("/user-id")
async def get_user_id(store: SettingsStore = Depends(depends_settings_store)):
    return {"userId": store.get_user_id()}


@router.get("/options")
async def get_setting_options():
    """Suggested values for the constrained settings fields."""
    return {
        "cropStages": CROP_STAGES,
        "soilTypes": SOIL_TYPES,
        "languages": LANGUAGES,
    }
