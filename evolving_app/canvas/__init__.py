"""
Collaborative pixel canvas.
"""

from .board import DEFAULT_COLOR, InvalidPixelError, Pixel, PixelBoard

__all__ = ["DEFAULT_COLOR", "InvalidPixelError", "Pixel", "PixelBoard"]
