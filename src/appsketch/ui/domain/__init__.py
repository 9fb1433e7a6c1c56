"""Domain layer for the builder.

Domain Managers:
    - DocumentStore: Owner of the live document snapshot
    - LayoutGenerator: AI layout generation state machine and image runs

Both receive their dependencies via constructor injection and report state
changes through the event bus.
"""

from __future__ import annotations

from .document_store import DocumentStore
from .layout_generator import LayoutGenerator

__all__: list[str] = [
    "DocumentStore",
    "LayoutGenerator",
]
