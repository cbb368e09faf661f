"""
Digit recognizer service.

All access to the shared model goes through the serial task queue: training
and prediction are queued units of work that run the numpy math in a worker
thread, so the event loop stays free while one unit holds the model.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Sequence, Tuple

import structlog

from ..core.task_queue import SerialTaskQueue
from .model import DigitClassifier, prepare_sample

logger = structlog.get_logger()


class RecognizerService:
    """Serialized training and prediction against one DigitClassifier."""

    def __init__(self, model: DigitClassifier, queue: SerialTaskQueue):
        self.model = model
        self.queue = queue

    def submit_training(self, digit: int, pixels: Sequence[float]) -> "asyncio.Future[Any]":
        """Queue one training step without waiting for it.

        Raises ValueError for a malformed sample before anything is queued.
        """
        sample = prepare_sample(pixels)
        label = f"train:{digit}"

        async def work() -> float:
            logger.info("training_started", digit=digit)
            loss = await asyncio.to_thread(self.model.train, sample, digit)
            logger.info("training_completed", digit=digit, loss=round(loss, 4))
            return loss

        return self.queue.enqueue_detached(work, label=label)

    async def train_batch(
        self, samples: Sequence[Tuple[int, Sequence[float]]]
    ) -> Dict[str, Any]:
        """Queue every sample, wait for all of them and report the outcome."""
        prepared = [(digit, prepare_sample(pixels)) for digit, pixels in samples]

        futures = [
            self.queue.enqueue(
                lambda d=digit, s=sample: asyncio.to_thread(self.model.train, s, d),
                label=f"train-batch:{digit}",
            )
            for digit, sample in prepared
        ]
        results = await asyncio.gather(*futures, return_exceptions=True)

        errors: List[str] = [str(r) for r in results if isinstance(r, BaseException)]
        trained = len(results) - len(errors)
        logger.info("training_batch_completed", trained=trained, failed=len(errors))
        return {
            "success": not errors,
            "trained": trained,
            "failed": len(errors),
            "errors": errors,
        }

    async def guess(self, pixels: Sequence[float]) -> Dict[str, Any]:
        """Predict a digit. Raises ModelNotTrainedError before any training."""
        sample = prepare_sample(pixels)
        probs = await self.queue.enqueue(
            lambda: asyncio.to_thread(self.model.predict, sample), label="guess"
        )

        digit = int(probs.argmax())
        confidence = float(probs[digit])
        logger.info("prediction", digit=digit, confidence=round(confidence, 4))
        return {
            "prediction": digit,
            "confidence": confidence,
            "probabilities": [float(p) for p in probs],
        }

    def get_status(self) -> Dict[str, Any]:
        return {
            "busy": self.queue.busy,
            "pending": self.queue.pending_count,
            "completed": self.queue.completed,
            "failed": self.queue.failed,
            "samples_seen": self.model.samples_seen,
            "last_loss": self.model.last_loss,
        }
