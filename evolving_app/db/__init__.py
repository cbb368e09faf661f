"""
Database package for the evolving app.
"""

from .base import Base, get_db, get_engine, get_session_local, init_database
from .models import ProgramCodeModel, ProgramInputModel, ProgramStateModel
from .services import ProgramService

__all__ = [
    "Base",
    "get_db",
    "get_engine",
    "get_session_local",
    "init_database",
    "ProgramCodeModel",
    "ProgramInputModel",
    "ProgramStateModel",
    "ProgramService",
]
