"""Plain data types passed between the program store and the coordinator."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class ProgramPhase(str, Enum):
    """Phase of the evolving program pipeline."""

    UNINITIALIZED = "UNINITIALIZED"
    INITIAL = "INITIAL"
    ITERATION = "ITERATION"


@dataclass(frozen=True)
class ProgramInput:
    id: int
    profile_id: str
    input_text: str
    iteration_id: Optional[int]
    created_at: datetime


@dataclass(frozen=True)
class ProgramArtifact:
    id: int
    code: str
    created_at: datetime


@dataclass(frozen=True)
class ProgramState:
    phase: ProgramPhase
    current_iteration_id: Optional[int]
