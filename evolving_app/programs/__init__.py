"""
Evolving program pipeline: user inputs, generated code versions and the
coordinator that cycles between them.
"""

from .types import ProgramArtifact, ProgramInput, ProgramPhase, ProgramState

__all__ = [
    "ProgramArtifact",
    "ProgramInput",
    "ProgramPhase",
    "ProgramState",
]
