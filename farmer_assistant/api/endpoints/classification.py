"""
Bulk image classification API endpoints.

Images are classified locally (or by the backend MobileNet), checked for
geographic near-duplicates, and can then be synced to the farm database.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from farmer_assistant.controller.batch_upload import (
    BatchUploadWorkflow,
    DuplicateResolutionError,
    ImageFile,
)
from farmer_assistant.core import depends_batch_workflow
from farmer_assistant.models.api import ClassificationResultOut, ResolveDuplicateRequest
from farmer_assistant.models.classification import ClassificationResult, DuplicatePair
from farmer_assistant.services.classifier import top_predictions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/classification", tags=["classification"])


def _present(workflow: BatchUploadWorkflow, result: ClassificationResult) -> ClassificationResultOut:
    return ClassificationResultOut(
        result=result,
        top_predictions=top_predictions(result.predictions),
        crop_type=workflow.crop_mapping.infer(result.predictions),
    )


@router.post("/images", response_model=List[ClassificationResultOut])
async def classify_images(
    files: List[UploadFile] = File(..., description="Images to classify"),
    workflow: BatchUploadWorkflow = Depends(depends_batch_workflow),
):
    """
    Classify a batch of images and check them for duplicates.

    Non-image files are skipped. Images that fail are reported in the
    session alerts and left out of the response.

    Example:
        POST /api/v1/classification/images
        Content-Type: multipart/form-data

        Response:
        [
            {
                "result": {"id": "3f2a...", "file_name": "tree1.jpg", ...},
                "top_predictions": [{"className": "mango_tree", "probability": 0.93}],
                "crop_type": "Mango"
            }
        ]
    """
    incoming = [
        ImageFile(
            file_name=file.filename or "unnamed",
            content_type=file.content_type or "application/octet-stream",
            data=await file.read(),
        )
        for file in files
    ]
    new_results = await workflow.process_files(incoming)
    return [_present(workflow, result) for result in new_results]


@router.get("/images", response_model=List[ClassificationResultOut])
async def list_results(workflow: BatchUploadWorkflow = Depends(depends_batch_workflow)):
    return [_present(workflow, result) for result in workflow.results]


@router.get("/images/{result_id}", response_model=ClassificationResultOut)
async def get_result(
    result_id: str,
    workflow: BatchUploadWorkflow = Depends(depends_batch_workflow),
):
    result = workflow.get_result(result_id)
    if result is None:
        raise HTTPException(status_code=404, detail=f"Result not found: {result_id}")
    return _present(workflow, result)


@router.delete("/images/{result_id}")
async def remove_result(
    result_id: str,
    workflow: BatchUploadWorkflow = Depends(depends_batch_workflow),
):
    if not workflow.remove_result(result_id):
        raise HTTPException(status_code=404, detail=f"Result not found: {result_id}")
    return {"removed": result_id}


@router.delete("/images")
async def clear_results(workflow: BatchUploadWorkflow = Depends(depends_batch_workflow)):
    workflow.clear()
    return {"cleared": True}


@router.post("/sync", response_model=List[ClassificationResult])
async def sync_results(workflow: BatchUploadWorkflow = Depends(depends_batch_workflow)):
    """Upload geotagged results and save them with their inferred crop type."""
    return await workflow.sync_results()


@router.get("/duplicates", response_model=List[DuplicatePair])
async def list_duplicates(workflow: BatchUploadWorkflow = Depends(depends_batch_workflow)):
    return workflow.duplicate_pairs


@router.post("/duplicates/check", response_model=List[DuplicatePair])
async def check_duplicates(workflow: BatchUploadWorkflow = Depends(depends_batch_workflow)):
    return await workflow.check_duplicates()


@router.post("/duplicates/{pair_id}", response_model=List[DuplicatePair])
async def resolve_duplicate(
    pair_id: str,
    request: ResolveDuplicateRequest,
    workflow: BatchUploadWorkflow = Depends(depends_batch_workflow),
):
    """
    Apply a decision to one duplicate pair.

    Returns:
        The remaining duplicate pairs
    """
    try:
        await workflow.resolve_duplicate(pair_id, request.action)
    except DuplicateResolutionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return workflow.duplicate_pairs
