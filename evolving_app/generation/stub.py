"""
Offline generator for development and tests.
"""

from __future__ import annotations

import hashlib
from typing import List

from .base import Generator


class StubGenerator(Generator):
    """Deterministic generator that never touches the network.

    Every response is a small HTML page in a fenced block, stamped with a
    digest of the prompt so successive versions differ. Prompts are recorded
    in ``prompts`` for inspection.
    """

    def __init__(self) -> None:
        self.prompts: List[str] = []

    @property
    def name(self) -> str:
        return "stub"

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        digest = hashlib.sha256(prompt.encode("utf-8")).hexdigest()[:12]
        return (
            "Here is the app:\n"
            "```html\n"
            "<!doctype html>\n"
            f"<html><body><h1>Stub program {digest}</h1>"
            f"<p>Generated from a {len(prompt)} character prompt.</p></body></html>\n"
            "```\n"
        )
