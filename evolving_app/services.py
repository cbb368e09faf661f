"""
Application context.

Everything with process lifetime (the task queue, the model, the canvas and
the coordinator) is built once in the API lifespan, stored on ``app.state``
and handed to route handlers through ``Depends(get_services)``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

import structlog
from fastapi import Request
from sqlalchemy import Engine

from .canvas.board import PixelBoard
from .config import Settings
from .core.task_queue import SerialTaskQueue
from .db.base import get_engine, get_session_local
from .generation import Generator, get_generator
from .programs.coordinator import IterationCoordinator
from .programs.store import ProgramStore
from .recognizer.model import DigitClassifier
from .recognizer.service import RecognizerService

logger = structlog.get_logger()


@dataclass
class AppServices:
    settings: Settings
    queue: SerialTaskQueue
    recognizer: RecognizerService
    board: PixelBoard
    store: ProgramStore
    generator: Generator
    coordinator: IterationCoordinator


def build_services(
    settings: Settings,
    engine: Optional[Engine] = None,
    generator: Optional[Generator] = None,
) -> AppServices:
    """Construct the process-wide services from settings."""
    queue = SerialTaskQueue(task_timeout=settings.queue_task_timeout_seconds)
    model = DigitClassifier(
        hidden_units=settings.model_hidden_units,
        learning_rate=settings.model_learning_rate,
        seed=settings.model_seed,
    )
    store = ProgramStore(get_session_local(engine or get_engine()))
    generator = generator or get_generator(settings)

    return AppServices(
        settings=settings,
        queue=queue,
        recognizer=RecognizerService(model, queue),
        board=PixelBoard(settings.canvas_width, settings.canvas_height),
        store=store,
        generator=generator,
        coordinator=IterationCoordinator.from_settings(store, generator, settings),
    )


async def start_services(services: AppServices) -> None:
    if services.settings.coordinator_enabled:
        await services.coordinator.start()
    else:
        logger.info("coordinator_disabled")


async def stop_services(services: AppServices, drain_timeout: float = 10.0) -> None:
    """Stop the coordinator, give queued work a chance to finish, close clients."""
    await services.coordinator.stop()

    if not services.queue.idle:
        logger.info("draining_task_queue", pending=services.queue.pending_count)
        try:
            await asyncio.wait_for(services.queue.join(), drain_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "task_queue_abandoned", pending=services.queue.pending_count
            )

    await services.generator.close()


def get_services(request: Request) -> AppServices:
    """Dependency to get the application services."""
    return request.app.state.services
