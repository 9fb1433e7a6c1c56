"""Editor controller.

Turns user intents (toolbar clicks, property edits, prompt submission,
preview clicks) into document store calls and owns the transient editor
state: selection, active panel, prompt text and the generating flag.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from ..ai.capability import GenerationCapability
from ..editor.document_model import AppDocument, AppElement, ElementKind
from .domain.document_store import DocumentStore
from .domain.layout_generator import LayoutGenerator
from .events import EventBus, PanelChanged, SelectionChanged
from .models.editor_models import EditorPanel, EditorState, GenerationRecord, PreviewFrame

LOGGER = logging.getLogger(__name__)

_PANEL_FIELDS = ("title", "subtitle", "text", "label", "price")


class EditorController:
    """Mediates user intents into document mutations.

    Each intent makes at most one store call and at most one transient-state
    update. The controller reads component internals only to populate the
    property panel.
    """

    def __init__(
        self,
        store: DocumentStore,
        event_bus: EventBus,
        *,
        capability: GenerationCapability | None = None,
        state: EditorState | None = None,
    ) -> None:
        self._store = store
        self._bus = event_bus
        self._state = state or EditorState()
        self._generator = (
            LayoutGenerator(capability, store, event_bus, self._state) if capability is not None else None
        )

    @classmethod
    def create(
        cls,
        capability: GenerationCapability | None = None,
        *,
        document: AppDocument | None = None,
        event_bus: EventBus | None = None,
    ) -> "EditorController":
        """Build a controller with a fresh event bus and store."""

        bus = event_bus or EventBus()
        return cls(DocumentStore(bus, document), bus, capability=capability)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> EditorState:
        return self._state

    @property
    def store(self) -> DocumentStore:
        return self._store

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    @property
    def generator(self) -> LayoutGenerator | None:
        return self._generator

    @property
    def document(self) -> AppDocument:
        return self._store.document

    @property
    def selected_id(self) -> str | None:
        return self._state.selected_id

    @property
    def is_generating(self) -> bool:
        return self._state.is_generating

    # ------------------------------------------------------------------
    # Component intents
    # ------------------------------------------------------------------

    def add_component(self, kind: ElementKind | str) -> AppElement:
        """Append a component of ``kind`` with its kind defaults.

        Args:
            kind: An :class:`ElementKind` or its string value.

        Returns:
            The new component. The selection is left as it was.

        Raises:
            ValueError: If ``kind`` is not a known component kind.
        """
        element = self._store.add_component(kind)
        LOGGER.debug("EditorController.add_component: kind=%s, id=%s", element.kind.value, element.id)
        return element

    def update_component(self, element_id: str, patch: Mapping[str, Any]) -> AppDocument:
        """Merge ``patch`` into a component's content and style.

        Args:
            element_id: The component to update. Unknown ids are a no-op.
            patch: Wire-named fields such as ``title`` or ``backgroundColor``.

        Returns:
            The current document.
        """
        return self._store.update_component(element_id, patch)

    def update_selected(self, patch: Mapping[str, Any]) -> AppDocument:
        """Apply ``patch`` to the selected component; no-op without a selection."""

        selected = self._state.selected_id
        if selected is None:
            return self._store.document
        return self._store.update_component(selected, patch)

    def remove_component(self, element_id: str) -> AppDocument:
        """Remove a component.

        Args:
            element_id: The component to remove. Unknown ids are a no-op.

        Returns:
            The current document.

        Emits:
            SelectionChanged: If the removed component was selected.
        """

        document = self._store.remove_component(element_id)
        if self._state.selected_id == element_id:
            self._set_selection(None)
        return document

    def select_component(self, element_id: str | None) -> None:
        """Select ``element_id`` for the property panel.

        Args:
            element_id: The component to select. None or an unknown id
                clears the selection.

        Emits:
            SelectionChanged: If the selection changed.
        """

        if element_id is not None and not self._store.contains(element_id):
            LOGGER.debug("EditorController.select_component: unknown id %s", element_id)
            element_id = None
        self._set_selection(element_id)

    def clear_selection(self) -> None:
        self._set_selection(None)

    def _set_selection(self, element_id: str | None) -> None:
        previous = self._state.selected_id
        if previous == element_id:
            return
        self._state.selected_id = element_id
        self._bus.publish(SelectionChanged(selected_id=element_id, previous_id=previous))

    # ------------------------------------------------------------------
    # Design intents
    # ------------------------------------------------------------------

    def rename_app(self, app_name: str) -> AppDocument:
        """Rename the app; blank names are ignored."""
        return self._store.rename_app(app_name)

    def set_theme_color(self, theme_color: str) -> AppDocument:
        return self._store.set_theme_color(theme_color)

    # ------------------------------------------------------------------
    # Panel & prompt intents
    # ------------------------------------------------------------------

    def set_active_panel(self, panel: EditorPanel | str) -> None:
        """Switch the editor panel.

        Raises:
            ValueError: If ``panel`` is not a known panel name.

        Emits:
            PanelChanged: If the panel changed.
        """
        resolved = EditorPanel(panel)
        if self._state.active_panel is resolved:
            return
        self._state.active_panel = resolved
        self._bus.publish(PanelChanged(panel=resolved.value))

    def set_prompt_text(self, text: str) -> None:
        self._state.ai_prompt_text = text

    async def submit_prompt(self, prompt: str | None = None) -> GenerationRecord | None:
        """Submit the AI prompt (defaults to the stored prompt text).

        Args:
            prompt: Text to send instead of the stored prompt text.

        Returns:
            The request record, or None when nothing was sent: blank prompt,
            a request already in flight, or no generation capability.
            Generation failures come back as a failed record, never raised.
        """

        text = self._state.ai_prompt_text if prompt is None else prompt
        if not text or not text.strip():
            LOGGER.debug("EditorController.submit_prompt: blank prompt ignored")
            return None
        if self._state.is_generating:
            LOGGER.debug("EditorController.submit_prompt: generation already running")
            return None
        if self._generator is None:
            LOGGER.warning("AI generation unavailable: no generation capability configured")
            return None
        return await self._generator.generate(text)

    # ------------------------------------------------------------------
    # Property panel & preview
    # ------------------------------------------------------------------

    def selected_component(self) -> AppElement | None:
        return self._store.get(self._state.selected_id)

    def editable_fields(self, element_id: str | None = None) -> tuple[str, ...]:
        """Content fields the property panel shows for a component.

        Only text fields that currently hold a value are editable, so a
        product without a subtitle shows no subtitle input. Image references
        are never offered.
        """

        target = element_id if element_id is not None else self._state.selected_id
        element = self._store.get(target)
        if element is None:
            return ()
        present = element.content.set_fields()
        return tuple(name for name in _PANEL_FIELDS if name in present)

    def preview_frame(self) -> PreviewFrame:
        document = self._store.document
        selected = self._state.selected_id
        if selected is not None and document.index_of(selected) < 0:
            selected = None
        return PreviewFrame(document=document, selected_id=selected)


__all__ = ["EditorController"]
