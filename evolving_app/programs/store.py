"""
Program store used by the iteration coordinator.

Each call opens its own session and returns detached dataclasses, so the
coordinator can run calls in a worker thread without sharing ORM state.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterable, Iterator, List, Optional

from sqlalchemy.orm import Session, sessionmaker

from ..db.models import ProgramCodeModel, ProgramInputModel
from ..db.services import ProgramService
from .types import ProgramArtifact, ProgramInput, ProgramPhase, ProgramState


def _to_input(row: ProgramInputModel) -> ProgramInput:
    return ProgramInput(
        id=row.id,
        profile_id=row.profile_id,
        input_text=row.input_text,
        iteration_id=row.iteration_id,
        created_at=row.created_at,
    )


def _to_artifact(row: ProgramCodeModel) -> ProgramArtifact:
    return ProgramArtifact(id=row.id, code=row.code, created_at=row.created_at)


class ProgramStore:
    """Session-per-call access to program_input, program_code and program_state."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @contextmanager
    def _service(self) -> Iterator[ProgramService]:
        db: Session = self.session_factory()
        try:
            yield ProgramService(db)
        finally:
            db.close()

    def force_phase(self, phase: ProgramPhase) -> ProgramState:
        """Set the phase unconditionally, keeping the current iteration pointer."""
        with self._service() as service:
            row = service.set_state(phase, keep_iteration=True)
            return ProgramState(
                phase=ProgramPhase(row.state),
                current_iteration_id=row.current_iteration_id,
            )

    def get_state(self) -> Optional[ProgramState]:
        with self._service() as service:
            row = service.get_state()
            if row is None:
                return None
            return ProgramState(
                phase=ProgramPhase(row.state),
                current_iteration_id=row.current_iteration_id,
            )

    def set_state(self, phase: ProgramPhase, current_iteration_id: Optional[int]) -> None:
        with self._service() as service:
            service.set_state(phase, current_iteration_id=current_iteration_id)

    def list_unattributed_inputs(self) -> List[ProgramInput]:
        with self._service() as service:
            return [_to_input(row) for row in service.get_inputs(None)]

    def list_inputs_for_iteration(self, iteration_id: int) -> List[ProgramInput]:
        with self._service() as service:
            return [_to_input(row) for row in service.get_inputs(iteration_id)]

    def attach_inputs(self, input_ids: Iterable[int], iteration_id: int) -> int:
        with self._service() as service:
            return service.attach_inputs(input_ids, iteration_id)

    def insert_placeholder(self) -> int:
        with self._service() as service:
            return service.create_code("").id

    def update_code(self, artifact_id: int, code: str) -> None:
        with self._service() as service:
            if service.update_code(artifact_id, code) is None:
                raise LookupError(f"Program code {artifact_id} not found")

    def get_artifact(self, artifact_id: int) -> Optional[ProgramArtifact]:
        with self._service() as service:
            row = service.get_code(artifact_id)
            return _to_artifact(row) if row else None

    def publish_artifact(self, code: str) -> int:
        """Insert a new version and make it current atomically."""
        with self._service() as service:
            return service.publish_code(code).id
