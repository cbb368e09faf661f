"""
Digit recognizer API routes.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException

from ..services import AppServices, get_services
from .model import ModelNotTrainedError
from .schemas import (
    GuessRequest,
    GuessResponse,
    TrainBatchRequest,
    TrainBatchResponse,
    TrainingStatusResponse,
    TrainQueuedResponse,
    TrainRequest,
)

logger = structlog.get_logger()

router = APIRouter(tags=["recognizer"])


@router.post("/train", response_model=TrainQueuedResponse)
async def train(
    request: TrainRequest, services: AppServices = Depends(get_services)
) -> TrainQueuedResponse:
    """Queue a training step and return without waiting for it."""
    try:
        services.recognizer.submit_training(request.digit, request.pixels)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return TrainQueuedResponse()


@router.post("/train-batch", response_model=TrainBatchResponse)
async def train_batch(
    request: TrainBatchRequest, services: AppServices = Depends(get_services)
) -> TrainBatchResponse:
    """Train on several samples in order and wait for all of them."""
    try:
        result = await services.recognizer.train_batch(
            [(sample.digit, sample.pixels) for sample in request.samples]
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return TrainBatchResponse(**result)


@router.post("/guess", response_model=GuessResponse)
async def guess(
    request: GuessRequest, services: AppServices = Depends(get_services)
) -> GuessResponse:
    """Predict the digit drawn in a 28x28 image."""
    try:
        result = await services.recognizer.guess(request.pixels)
    except ModelNotTrainedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("prediction_failed", error=str(e))
        raise HTTPException(status_code=500, detail=f"Prediction failed: {str(e)}")

    return GuessResponse(**result)


@router.get("/training-status", response_model=TrainingStatusResponse)
async def training_status(
    services: AppServices = Depends(get_services),
) -> TrainingStatusResponse:
    """Queue and model counters."""
    return TrainingStatusResponse(**services.recognizer.get_status())
