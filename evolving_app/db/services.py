"""
Database services for the evolving program pipeline.
"""

from typing import Iterable, List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from ..programs.types import ProgramPhase
from .models import ProgramCodeModel, ProgramInputModel, ProgramStateModel

STATE_ROW_ID = 1


class ProgramService:
    """Service for program inputs, code versions and the state singleton."""

    def __init__(self, db: Session):
        self.db = db

    # State singleton

    def get_state(self) -> Optional[ProgramStateModel]:
        """Get the singleton state row, if it exists."""
        return self.db.get(ProgramStateModel, STATE_ROW_ID)

    def set_state(
        self,
        phase: ProgramPhase,
        current_iteration_id: Optional[int] = None,
        keep_iteration: bool = False,
        commit: bool = True,
    ) -> ProgramStateModel:
        """Write the state row, creating it on first use."""
        state = self.get_state()
        if state is None:
            state = ProgramStateModel(id=STATE_ROW_ID)
            self.db.add(state)

        state.state = phase.value
        if not keep_iteration:
            state.current_iteration_id = current_iteration_id

        if commit:
            self.db.commit()
            self.db.refresh(state)
        return state

    # Inputs

    def create_input(
        self, profile_id: str, input_text: str, iteration_id: Optional[int] = None
    ) -> ProgramInputModel:
        """Record a user's request."""
        db_input = ProgramInputModel(
            profile_id=profile_id,
            input_text=input_text,
            iteration_id=iteration_id,
        )
        self.db.add(db_input)
        self.db.commit()
        self.db.refresh(db_input)
        return db_input

    def get_inputs(self, iteration_id: Optional[int]) -> List[ProgramInputModel]:
        """Inputs attributed to an iteration (or unattributed when None), oldest first."""
        query = self.db.query(ProgramInputModel)
        if iteration_id is None:
            query = query.filter(ProgramInputModel.iteration_id.is_(None))
        else:
            query = query.filter(ProgramInputModel.iteration_id == iteration_id)

        return query.order_by(
            ProgramInputModel.created_at.asc(), ProgramInputModel.id.asc()
        ).all()

    def attach_inputs(self, input_ids: Iterable[int], iteration_id: int) -> int:
        """Stamp inputs as folded into an iteration. Returns rows updated."""
        ids = list(input_ids)
        if not ids:
            return 0

        updated = (
            self.db.query(ProgramInputModel)
            .filter(ProgramInputModel.id.in_(ids))
            .update({ProgramInputModel.iteration_id: iteration_id}, synchronize_session=False)
        )
        self.db.commit()
        return updated

    # Code versions

    def create_code(self, code: str = "", commit: bool = True) -> ProgramCodeModel:
        """Insert a new code version. An empty string is a placeholder."""
        db_code = ProgramCodeModel(code=code)
        self.db.add(db_code)
        if commit:
            self.db.commit()
            self.db.refresh(db_code)
        else:
            self.db.flush()
        return db_code

    def update_code(self, code_id: int, code: str) -> Optional[ProgramCodeModel]:
        """Fill in the code of a placeholder version."""
        db_code = self.get_code(code_id)
        if not db_code:
            return None

        db_code.code = code
        self.db.commit()
        self.db.refresh(db_code)
        return db_code

    def get_code(self, code_id: int) -> Optional[ProgramCodeModel]:
        """Get a code version by ID."""
        return self.db.get(ProgramCodeModel, code_id)

    def get_latest_code(self) -> Optional[ProgramCodeModel]:
        """Most recently created code version."""
        return (
            self.db.query(ProgramCodeModel)
            .order_by(desc(ProgramCodeModel.created_at), desc(ProgramCodeModel.id))
            .first()
        )

    def get_codes(self, limit: int = 20, offset: int = 0) -> List[ProgramCodeModel]:
        """Code versions, newest first."""
        return (
            self.db.query(ProgramCodeModel)
            .order_by(desc(ProgramCodeModel.created_at), desc(ProgramCodeModel.id))
            .offset(offset)
            .limit(limit)
            .all()
        )

    def publish_code(self, code: str) -> ProgramCodeModel:
        """Insert a code version and point the state at it in one transaction."""
        try:
            db_code = self.create_code(code, commit=False)
            self.set_state(
                ProgramPhase.ITERATION, current_iteration_id=db_code.id, commit=False
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(db_code)
        return db_code
