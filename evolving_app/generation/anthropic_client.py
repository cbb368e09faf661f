"""
Anthropic-backed generator.
"""

from __future__ import annotations

from typing import Optional

import structlog
from anthropic import AsyncAnthropic

from .base import GenerationError, Generator

logger = structlog.get_logger()


class AnthropicGenerator(Generator):
    """Generator calling the Anthropic Messages API."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        max_tokens: int = 8000,
        timeout: float = 120.0,
        client: Optional[AsyncAnthropic] = None,
    ):
        self.model = model
        self.max_tokens = max_tokens
        # Retries are left to the next coordinator tick.
        self.client = client or AsyncAnthropic(
            api_key=api_key, max_retries=0, timeout=timeout
        )

    @property
    def name(self) -> str:
        return "anthropic"

    async def generate(self, prompt: str) -> str:
        resp = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            messages=[{"role": "user", "content": prompt}],
        )

        text = "".join(
            block.text for block in resp.content if getattr(block, "type", None) == "text"
        )
        if not text:
            raise GenerationError(f"Empty response from {self.model}")

        logger.debug(
            "generation_completed",
            generator=self.name,
            model=self.model,
            prompt_chars=len(prompt),
            response_chars=len(text),
        )
        return text

    async def close(self) -> None:
        await self.client.close()
