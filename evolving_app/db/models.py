"""
SQLAlchemy models for the evolving program pipeline.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text

from .base import Base


def _utcnow() -> datetime:
    # Python-side default keeps sub-second resolution on SQLite too,
    # which the per-profile "latest wins" ordering depends on.
    return datetime.now(timezone.utc)


def _iso(value: Any) -> Any:
    return value.isoformat() if value else None


class ProgramCodeModel(Base):
    """One persisted version of the generated program."""

    __tablename__ = "program_code"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (Index("ix_program_code_created_at", "created_at"),)

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "code": self.code,
            "created_at": _iso(self.created_at),
        }


class ProgramInputModel(Base):
    """A user's request for the program, tied to a profile."""

    __tablename__ = "program_input"

    id = Column(Integer, primary_key=True, autoincrement=True)
    profile_id = Column(String(128), nullable=False, index=True)
    input_text = Column(Text, nullable=False)
    iteration_id = Column(
        Integer, ForeignKey("program_code.id"), nullable=True, index=True
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("ix_program_input_iteration_created", "iteration_id", "created_at"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "profile_id": self.profile_id,
            "input_text": self.input_text,
            "iteration_id": self.iteration_id,
            "created_at": _iso(self.created_at),
        }


class ProgramStateModel(Base):
    """Singleton row holding the pipeline phase and current iteration."""

    __tablename__ = "program_state"

    id = Column(Integer, primary_key=True)
    state = Column(String(20), nullable=False, default="INITIAL")
    current_iteration_id = Column(
        Integer, ForeignKey("program_code.id"), nullable=True
    )
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "state": self.state,
            "current_iteration_id": self.current_iteration_id,
            "updated_at": _iso(self.updated_at),
        }
