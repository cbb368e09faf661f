"""
Request and response models for the program pipeline endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, constr


class ProgramInputCreate(BaseModel):
    """A user's idea or modification request."""

    profile_id: constr(strip_whitespace=True, min_length=1, max_length=128)
    input_text: constr(strip_whitespace=True, min_length=1, max_length=2000)


class ProgramInputResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    profile_id: str
    input_text: str
    iteration_id: Optional[int] = None
    created_at: datetime


class ProgramStateResponse(BaseModel):
    state: str
    current_iteration_id: Optional[int] = None
    updated_at: Optional[datetime] = None


class ProgramIterationSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime
    code_length: int
