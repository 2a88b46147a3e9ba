"""
FastAPI dependency injection utilities for the Farmer Assistant.

This module provides dependency injection functions for FastAPI routes.
"""

from typing import TYPE_CHECKING

from fastapi import Depends

if TYPE_CHECKING:
    from farmer_assistant.controller.batch_upload import BatchUploadWorkflow
    from farmer_assistant.controller.mode_controller import ModeController
    from farmer_assistant.services.settings_store import SettingsStore


# Lazy imports to avoid circular dependency
def _get_mode_controller() -> "ModeController":
    from farmer_assistant.controller.mode_controller import get_mode_controller
    return get_mode_controller()


def _get_settings_store() -> "SettingsStore":
    from farmer_assistant.services.settings_store import get_settings_store
    return get_settings_store()


def _get_batch_workflow() -> "BatchUploadWorkflow":
    from farmer_assistant.controller.batch_upload import get_batch_workflow
    return get_batch_workflow()


async def depends_controller(
    controller: "ModeController" = Depends(_get_mode_controller),
) -> "ModeController":
    """
    FastAPI dependency injection for the session's ModeController.

    Usage in routes:
        @router.post("/retry")
        async def retry(controller: ModeController = Depends(depends_controller)):
            controller.retry()
            return controller.snapshot()

    Returns:
        ModeController: The singleton session controller
    """
    return controller


async def depends_settings_store(
    store: "SettingsStore" = Depends(_get_settings_store),
) -> "SettingsStore":
    """
    FastAPI dependency injection for SettingsStore.

    Returns:
        SettingsStore: The singleton settings store
    """
    return store


async def depends_batch_workflow(
    workflow: "BatchUploadWorkflow" = Depends(_get_batch_workflow),
) -> "BatchUploadWorkflow":
    """
    FastAPI dependency injection for the bulk upload workflow.

    Returns:
        BatchUploadWorkflow: The singleton workflow
    """
    return workflow
