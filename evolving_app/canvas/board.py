"""
Shared pixel canvas kept in memory.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

DEFAULT_COLOR = "#FFFFFF"

_HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")


class InvalidPixelError(ValueError):
    """Raised for out-of-range coordinates or a malformed colour."""


@dataclass
class Pixel:
    x: int
    y: int
    color: str
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {"x": self.x, "y": self.y, "color": self.color, "timestamp": self.timestamp}


class PixelBoard:
    """Grid of hex colours; only non-default pixels are reported."""

    def __init__(self, width: int = 50, height: int = 50):
        self.width = width
        self.height = height
        self._pixels: Dict[tuple, Pixel] = {}

    def place(self, x: int, y: int, color: str, timestamp: Optional[int] = None) -> Pixel:
        """Set one pixel. Placing the default colour clears it."""
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise InvalidPixelError("Invalid coordinates")
        if not _HEX_COLOR.match(color):
            raise InvalidPixelError("Invalid color format")

        pixel = Pixel(
            x=x,
            y=y,
            color=color.upper(),
            timestamp=timestamp if timestamp is not None else int(time.time() * 1000),
        )
        if pixel.color == DEFAULT_COLOR:
            self._pixels.pop((x, y), None)
        else:
            self._pixels[(x, y)] = pixel
        return pixel

    def color_at(self, x: int, y: int) -> str:
        pixel = self._pixels.get((x, y))
        return pixel.color if pixel else DEFAULT_COLOR

    def snapshot(self) -> Dict[str, Any]:
        """Non-default pixels in row-major order plus the canvas size."""
        pixels: List[Pixel] = sorted(self._pixels.values(), key=lambda p: (p.y, p.x))
        return {
            "pixels": [p.to_dict() for p in pixels],
            "width": self.width,
            "height": self.height,
        }
