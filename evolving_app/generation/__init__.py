"""
Text generation backends for the program pipeline.
"""

from ..config import Settings
from .anthropic_client import AnthropicGenerator
from .base import GenerationError, Generator
from .stub import StubGenerator


def get_generator(settings: Settings) -> Generator:
    """Factory function to get a generator by configured backend.

    Raises:
        ValueError: If the backend is not supported
    """
    backend = settings.generator_backend
    if backend == "stub":
        return StubGenerator()
    if backend == "anthropic":
        return AnthropicGenerator(
            api_key=settings.anthropic_api_key,
            model=settings.generation_model,
            max_tokens=settings.generation_max_tokens,
            timeout=settings.external_call_timeout_seconds,
        )
    raise ValueError(
        f"Unsupported generator backend: {backend}. Supported: anthropic, stub"
    )


__all__ = [
    "AnthropicGenerator",
    "GenerationError",
    "Generator",
    "StubGenerator",
    "get_generator",
]
