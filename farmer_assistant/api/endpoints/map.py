"""
Farm map API endpoints.
"""

from typing import List

from fastapi import APIRouter, Depends

from farmer_assistant.controller.batch_upload import BatchUploadWorkflow
from farmer_assistant.controller.mode_controller import ModeController
from farmer_assistant.controller.panels import MapPanel
from farmer_assistant.core import depends_batch_workflow, depends_controller
from farmer_assistant.models.classification import FarmPlot

router = APIRouter(prefix="/api/v1/map", tags=["map"])


@router.get("/plots", response_model=List[FarmPlot])
async def get_plots(
    controller: ModeController = Depends(depends_controller),
    workflow: BatchUploadWorkflow = Depends(depends_batch_workflow),
):
    """Saved plants from the farm dashboard plus geotagged local uploads."""
    return await MapPanel(controller).load_plots(workflow.results)
