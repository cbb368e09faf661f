"""
Request and response models for the digit recognizer endpoints.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, conint

from .model import INPUT_SIZE

Pixels = List[float]


class TrainRequest(BaseModel):
    digit: conint(ge=0, le=9)
    pixels: Pixels = Field(..., min_length=INPUT_SIZE, max_length=INPUT_SIZE)


class TrainBatchRequest(BaseModel):
    samples: List[TrainRequest] = Field(..., min_length=1, max_length=500)


class GuessRequest(BaseModel):
    pixels: Pixels = Field(..., min_length=INPUT_SIZE, max_length=INPUT_SIZE)


class TrainQueuedResponse(BaseModel):
    success: bool = True
    message: str = "Training task queued"


class TrainBatchResponse(BaseModel):
    success: bool
    trained: int
    failed: int
    errors: List[str] = Field(default_factory=list)


class GuessResponse(BaseModel):
    prediction: int
    confidence: float
    probabilities: List[float]


class TrainingStatusResponse(BaseModel):
    busy: bool
    pending: int
    completed: int
    failed: int
    samples_seen: int
    last_loss: Optional[float] = None
