"""
Digit classifier.

A small fully connected network (784 -> hidden relu -> 10 softmax) trained
online with one SGD step per sample. Not thread-safe: every call that reads or
mutates the weights must go through the serial task queue.
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

IMAGE_SIDE = 28
INPUT_SIZE = IMAGE_SIDE * IMAGE_SIDE
NUM_CLASSES = 10


class ModelNotTrainedError(RuntimeError):
    """Raised when predicting before any sample was trained."""


def prepare_sample(pixels: Sequence[float]) -> np.ndarray:
    """Flatten and normalize a 28x28 image to floats in [0, 1].

    Accepts either 0..1 or 0..255 intensities.
    """
    sample = np.asarray(pixels, dtype=np.float64).reshape(-1)
    if sample.size != INPUT_SIZE:
        raise ValueError(f"Expected {INPUT_SIZE} pixels, got {sample.size}")
    if not np.all(np.isfinite(sample)):
        raise ValueError("Pixels must be finite numbers")

    if sample.max(initial=0.0) > 1.0:
        sample = sample / 255.0
    return np.clip(sample, 0.0, 1.0)


def _softmax(z: np.ndarray) -> np.ndarray:
    shifted = z - z.max()
    exp = np.exp(shifted)
    return exp / exp.sum()


class DigitClassifier:
    """Trainable model with ``train(sample, label)`` and ``predict(sample)``."""

    def __init__(
        self,
        hidden_units: int = 128,
        learning_rate: float = 0.05,
        seed: Optional[int] = None,
    ):
        rng = np.random.default_rng(seed)
        self.hidden_units = hidden_units
        self.learning_rate = learning_rate
        # He initialization for the relu layer
        self.w1 = rng.normal(0.0, np.sqrt(2.0 / INPUT_SIZE), (INPUT_SIZE, hidden_units))
        self.b1 = np.zeros(hidden_units)
        self.w2 = rng.normal(0.0, np.sqrt(2.0 / hidden_units), (hidden_units, NUM_CLASSES))
        self.b2 = np.zeros(NUM_CLASSES)
        self.samples_seen = 0
        self.last_loss: Optional[float] = None

    def _forward(self, x: np.ndarray):
        z1 = x @ self.w1 + self.b1
        a1 = np.maximum(z1, 0.0)
        probs = _softmax(a1 @ self.w2 + self.b2)
        return z1, a1, probs

    def train(self, sample: np.ndarray, label: int) -> float:
        """Take one gradient step on a single sample. Returns its loss."""
        if not 0 <= label < NUM_CLASSES:
            raise ValueError(f"Label must be in 0..{NUM_CLASSES - 1}, got {label}")

        z1, a1, probs = self._forward(sample)
        loss = float(-np.log(probs[label] + 1e-12))

        # Cross-entropy gradient through softmax
        dz2 = probs.copy()
        dz2[label] -= 1.0
        dw2 = np.outer(a1, dz2)
        dz1 = (self.w2 @ dz2) * (z1 > 0)
        dw1 = np.outer(sample, dz1)

        self.w2 -= self.learning_rate * dw2
        self.b2 -= self.learning_rate * dz2
        self.w1 -= self.learning_rate * dw1
        self.b1 -= self.learning_rate * dz1

        self.samples_seen += 1
        self.last_loss = loss
        return loss

    def predict(self, sample: np.ndarray) -> np.ndarray:
        """Class probabilities for a sample."""
        if self.samples_seen == 0:
            raise ModelNotTrainedError("Model not trained yet")
        _, _, probs = self._forward(sample)
        return probs
