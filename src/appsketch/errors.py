"""Exception hierarchy for generation failures.

These are raised by the generation capability and caught at the layout
generator boundary, where they become state transitions and events.
"""

from __future__ import annotations


class AppSketchError(Exception):
    """Base class for all AppSketch errors."""


class GenerationError(AppSketchError):
    """Raised when the external generation service fails."""

    def __init__(self, message: str, *, stage: str = "layout") -> None:
        super().__init__(message)
        self.stage = stage


class LayoutParseError(GenerationError):
    """Raised when a layout response cannot be shaped into components."""

    def __init__(self, message: str) -> None:
        super().__init__(message, stage="layout")


class ImageGenerationError(GenerationError):
    """Raised when an image request returns no usable image."""

    def __init__(self, message: str) -> None:
        super().__init__(message, stage="image")


__all__ = ["AppSketchError", "GenerationError", "LayoutParseError", "ImageGenerationError"]
