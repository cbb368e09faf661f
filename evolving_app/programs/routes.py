"""
Program pipeline API routes.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from ..db.base import get_db
from ..db.services import ProgramService
from ..services import AppServices, get_services
from .schemas import (
    ProgramInputCreate,
    ProgramInputResponse,
    ProgramIterationSummary,
    ProgramStateResponse,
)
from .types import ProgramPhase

logger = structlog.get_logger()

router = APIRouter(prefix="/api/program", tags=["program"])


@router.post("/inputs", response_model=ProgramInputResponse, status_code=201)
async def submit_input(
    payload: ProgramInputCreate, db: Session = Depends(get_db)
) -> ProgramInputResponse:
    """Record a request against the current iteration (or the seed pool)."""
    service = ProgramService(db)
    state = service.get_state()

    iteration_id: Optional[int] = None
    if state is not None and state.state == ProgramPhase.ITERATION.value:
        iteration_id = state.current_iteration_id

    try:
        db_input = service.create_input(
            payload.profile_id, payload.input_text, iteration_id=iteration_id
        )
    except Exception as e:
        logger.error("program_input_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to save input")

    logger.info(
        "program_input_saved",
        input_id=db_input.id,
        profile_id=db_input.profile_id,
        iteration_id=iteration_id,
    )
    return ProgramInputResponse.model_validate(db_input)


@router.get("/state", response_model=ProgramStateResponse)
async def get_state(db: Session = Depends(get_db)) -> ProgramStateResponse:
    """Stored phase and current iteration."""
    state = ProgramService(db).get_state()
    if state is None:
        return ProgramStateResponse(state=ProgramPhase.UNINITIALIZED.value)

    return ProgramStateResponse(
        state=state.state,
        current_iteration_id=state.current_iteration_id,
        updated_at=state.updated_at,
    )


@router.get("/play", response_class=HTMLResponse)
async def play(
    iteration_id: Optional[int] = None, db: Session = Depends(get_db)
) -> HTMLResponse:
    """Serve a program version as HTML.

    Uses the pinned ``iteration_id`` when given, otherwise the current
    iteration, otherwise the most recent version.
    """
    service = ProgramService(db)

    if iteration_id is None:
        state = service.get_state()
        if state is not None:
            iteration_id = state.current_iteration_id

    code = service.get_code(iteration_id) if iteration_id is not None else service.get_latest_code()
    if code is None or not code.code:
        raise HTTPException(status_code=404, detail="No program code found")

    return HTMLResponse(content=code.code)


@router.get("/iterations", response_model=List[ProgramIterationSummary])
async def list_iterations(
    limit: int = 20, offset: int = 0, db: Session = Depends(get_db)
) -> List[ProgramIterationSummary]:
    """Program versions, newest first."""
    codes = ProgramService(db).get_codes(limit=min(limit, 100), offset=offset)
    return [
        ProgramIterationSummary(id=c.id, created_at=c.created_at, code_length=len(c.code or ""))
        for c in codes
    ]


@router.get("/coordinator")
async def coordinator_status(
    services: AppServices = Depends(get_services),
) -> Dict[str, Any]:
    """In-process coordinator status and last cycle report."""
    return services.coordinator.get_status()


@router.post("/cycle")
async def run_cycle(services: AppServices = Depends(get_services)) -> Dict[str, Any]:
    """Run the cycle for the current phase now.

    Returns a ``skipped`` report when a cycle is already in flight.
    """
    report = await services.coordinator.run_once()
    return report.to_dict()
