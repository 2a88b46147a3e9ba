"""
FastAPI Main Application for the Farmer Assistant.

This module initializes the FastAPI application with all routes and middleware.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from farmer_assistant.api.endpoints.classification import router as classification_router
from farmer_assistant.api.endpoints.map import router as map_router
from farmer_assistant.api.endpoints.modes import router as modes_router
from farmer_assistant.api.endpoints.settings import router as settings_router
from farmer_assistant.controller.mode_controller import (
    SubmissionInProgressError,
    get_mode_controller,
)
from farmer_assistant.controller.panels import InputValidationError
from farmer_assistant.core.config import get_settings

# Initialize settings
settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    controller = get_mode_controller()
    await controller.check_backend_health()
    yield
    controller.recorder.release()
    await controller.gateway.aclose()


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Farmer assistant: crop disease analysis, schemes, expert advice and farm mapping",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(settings_router)
app.include_router(modes_router)
app.include_router(classification_router)
app.include_router(map_router)


@app.get("/")
async def root():
    """Root endpoint with system information."""
    return {
        "message": "Farmer Assistant API",
        "version": "0.1.0",
        "status": "operational",
    }


@app.get(f"{settings.api_v1_prefix}/health")
async def health_check():
    """Local service health plus the last backend health poll."""
    return {
        "status": "healthy",
        "service": "farmer-assistant",
        "backend": get_mode_controller().backend_health,
    }


@app.exception_handler(InputValidationError)
async def input_validation_handler(request: Request, exc: InputValidationError):
    """Local validation failures never reach the backend."""
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(SubmissionInProgressError)
async def submission_in_progress_handler(request: Request, exc: SubmissionInProgressError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all uncaught exceptions."""
    logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "detail": str(exc)},
    )
