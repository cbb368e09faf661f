"""
Pixel canvas API routes.
"""

from __future__ import annotations

from typing import Any, Dict

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..services import AppServices, get_services
from .board import InvalidPixelError

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["canvas"])


class PixelPlacement(BaseModel):
    x: int
    y: int
    color: str


@router.get("/canvas")
async def get_canvas(services: AppServices = Depends(get_services)) -> Dict[str, Any]:
    """Current canvas state."""
    return services.board.snapshot()


@router.post("/pixel")
async def place_pixel(
    placement: PixelPlacement, services: AppServices = Depends(get_services)
) -> Dict[str, Any]:
    """Place a single pixel."""
    try:
        services.board.place(placement.x, placement.y, placement.color)
    except InvalidPixelError as e:
        logger.info(
            "pixel_rejected",
            x=placement.x,
            y=placement.y,
            color=placement.color,
            reason=str(e),
        )
        raise HTTPException(status_code=400, detail=str(e))

    logger.info("pixel_placed", x=placement.x, y=placement.y, color=placement.color)
    return {"success": True}
