"""Transient editor state and generation lifecycle models.

None of this is part of the document: it lives only for the editing session
and is owned by the editor controller and the layout generator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from ...editor.document_model import AppDocument, AppElement


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EditorPanel(str, Enum):
    """Side panel tabs."""

    COMPONENTS = "components"
    DESIGN = "design"
    AI = "ai"


class GenerationStatus(Enum):
    """Status of a layout generation request.

    Values:
        IDLE: No request in flight.
        REQUESTING: Waiting on the layout service.
        SUCCEEDED: The layout replaced the document.
        FAILED: The request failed; the document was left untouched.
    """

    IDLE = "idle"
    REQUESTING = "requesting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(slots=True)
class EditorState:
    """UI state owned by the editor controller."""

    selected_id: str | None = None
    active_panel: EditorPanel = EditorPanel.COMPONENTS
    ai_prompt_text: str = ""
    is_generating: bool = False


@dataclass(slots=True)
class GenerationRecord:
    """Bookkeeping for one layout request and its image run.

    Attributes:
        request_id: Unique identifier for the request.
        prompt: The prompt as submitted.
        status: Terminal or current status of the layout phase.
        error: Failure message when the layout phase failed.
        element_ids: Ids assigned to the installed components.
        images_resolved: Count of successfully patched images.
        images_failed: Count of image requests that produced nothing.
    """

    request_id: str
    prompt: str
    status: GenerationStatus = GenerationStatus.REQUESTING
    error: str | None = None
    element_ids: tuple[str, ...] = ()
    images_resolved: int = 0
    images_failed: int = 0
    created_at: datetime = field(default_factory=_utcnow)
    completed_at: datetime | None = None

    @property
    def is_finished(self) -> bool:
        return self.status in (GenerationStatus.SUCCEEDED, GenerationStatus.FAILED)

    def mark_succeeded(self, element_ids: tuple[str, ...]) -> None:
        self.status = GenerationStatus.SUCCEEDED
        self.element_ids = element_ids
        self.completed_at = _utcnow()

    def mark_failed(self, error: str) -> None:
        self.status = GenerationStatus.FAILED
        self.error = error
        self.completed_at = _utcnow()


@dataclass(slots=True, frozen=True)
class PreviewFrame:
    """What the preview renderer draws: the document plus the selection."""

    document: AppDocument
    selected_id: str | None = None

    @property
    def selected_element(self) -> AppElement | None:
        return self.document.get(self.selected_id)

    def is_selected(self, element: AppElement) -> bool:
        return self.selected_id is not None and element.id == self.selected_id

    @staticmethod
    def is_loading(element: AppElement) -> bool:
        """True while the element's image is still being generated."""

        return element.has_pending_image


__all__ = [
    "EditorPanel",
    "GenerationStatus",
    "EditorState",
    "GenerationRecord",
    "PreviewFrame",
]
