"""
Text generation interface.

The coordinator only needs ``generate(prompt) -> text``; implementations can be
swapped without touching the iteration loop.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class GenerationError(RuntimeError):
    """Raised when a generator returns no usable text."""


class Generator(ABC):
    """Abstract base class for stateless text generators."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Generator name for logging and identification."""
        pass

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """Generate a response for a single prompt.

        Args:
            prompt: Full prompt text

        Returns:
            Raw response text, possibly containing a fenced code block
        """
        pass

    async def close(self) -> None:
        """Release client resources. Override if needed."""
        pass
