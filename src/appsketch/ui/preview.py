"""Preview renderer boundary.

Renderers draw a :class:`PreviewFrame` and never write to the document.
:class:`PreviewBinding` pushes a fresh frame whenever the document or the
selection changes, and routes clicks on the preview back to the controller
as selection intents.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from .events import DocumentChanged, SelectionChanged
from .models.editor_models import PreviewFrame

if TYPE_CHECKING:  # pragma: no cover
    from .editor_controller import EditorController

LOGGER = logging.getLogger(__name__)


@runtime_checkable
class PreviewRenderer(Protocol):
    def render(self, frame: PreviewFrame) -> None:
        ...


class PreviewBinding:
    """Keeps a renderer in sync with the controller's document and selection."""

    def __init__(self, controller: EditorController, renderer: PreviewRenderer) -> None:
        self._controller = controller
        self._renderer = renderer
        self._attached = False
        self._frames_pushed = 0

    @property
    def frames_pushed(self) -> int:
        return self._frames_pushed

    def attach(self) -> None:
        """Subscribe to document/selection events and draw the current frame."""

        if self._attached:
            return
        bus = self._controller.event_bus
        bus.subscribe(DocumentChanged, self._on_document_changed)
        bus.subscribe(SelectionChanged, self._on_selection_changed)
        self._attached = True
        self.refresh()

    def detach(self) -> None:
        if not self._attached:
            return
        bus = self._controller.event_bus
        bus.unsubscribe(DocumentChanged, self._on_document_changed)
        bus.unsubscribe(SelectionChanged, self._on_selection_changed)
        self._attached = False

    def refresh(self) -> None:
        frame = self._controller.preview_frame()
        self._renderer.render(frame)
        self._frames_pushed += 1

    def select(self, element_id: str | None) -> None:
        """Selection intent emitted by the renderer (e.g. a tap on a block)."""

        LOGGER.debug("PreviewBinding.select: %s", element_id)
        self._controller.select_component(element_id)

    def _on_document_changed(self, event: DocumentChanged) -> None:
        self.refresh()

    def _on_selection_changed(self, event: SelectionChanged) -> None:
        self.refresh()


__all__ = ["PreviewRenderer", "PreviewBinding", "PreviewFrame"]
