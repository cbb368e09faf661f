"""
Evolving App

A digit recognizer trained over HTTP, a collaborative pixel canvas, and a
pipeline that keeps regenerating a shared web app from its users' requests.
"""

import importlib.metadata

try:
    __version__ = importlib.metadata.version("evolving-app")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.0"

from .core.task_queue import SerialTaskQueue
from .programs.coordinator import CycleKind, CycleReport, CycleStatus, IterationCoordinator
from .programs.types import ProgramArtifact, ProgramInput, ProgramPhase, ProgramState

__all__ = [
    "CycleKind",
    "CycleReport",
    "CycleStatus",
    "IterationCoordinator",
    "ProgramArtifact",
    "ProgramInput",
    "ProgramPhase",
    "ProgramState",
    "SerialTaskQueue",
]
