"""Document store domain manager.

Holds the live :class:`AppDocument` and is the single write path for it.
Mutations are pure functions from :mod:`appsketch.editor.document_ops`,
applied to whatever snapshot is current at apply time.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Iterable, Mapping

from ...editor import document_ops
from ...editor.document_model import AppDocument, AppElement, ElementKind
from ..events import DocumentChanged, EventBus

LOGGER = logging.getLogger(__name__)

Mutation = Callable[..., AppDocument]


class DocumentStore:
    """Domain manager owning the canonical document snapshot.

    Every write goes through :meth:`apply`, which runs the mutation against
    the latest snapshot under a lock and publishes :class:`DocumentChanged`
    only when the snapshot actually changed.

    Events Emitted:
        - DocumentChanged: After each effective mutation
    """

    def __init__(self, event_bus: EventBus, document: AppDocument | None = None) -> None:
        """Initialize the document store.

        Args:
            event_bus: The event bus for publishing events.
            document: Optional starting document; a blank one when omitted.
        """
        self._bus = event_bus
        self._document = document if document is not None else AppDocument()
        self._lock = threading.RLock()

    @property
    def document(self) -> AppDocument:
        return self._document

    def apply(self, mutation: Mutation, *args: Any, reason: str | None = None, **kwargs: Any) -> AppDocument:
        """Apply ``mutation(latest, *args, **kwargs)`` atomically.

        Args:
            mutation: Pure function taking the current document first.
            reason: Label carried on the event; defaults to the function name.

        Returns:
            The document after the mutation, or the unchanged current one.

        Emits:
            DocumentChanged: When the result differs from the previous snapshot.
        """

        label = reason or getattr(mutation, "__name__", "mutation")
        with self._lock:
            previous = self._document
            updated = mutation(previous, *args, **kwargs)
            if updated == previous:
                LOGGER.debug("DocumentStore.apply: %s left the document unchanged", label)
                return previous
            self._document = updated

        LOGGER.debug(
            "DocumentStore.apply: %s (elements %d -> %d)",
            label,
            len(previous),
            len(updated),
        )
        self._bus.publish(DocumentChanged(document=updated, reason=label))
        return updated

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def add_component(self, kind: ElementKind | str) -> AppElement:
        """Append a component of ``kind`` seeded with its kind defaults.

        Args:
            kind: An :class:`ElementKind` or its string value.

        Returns:
            The newly appended component.

        Raises:
            ValueError: If ``kind`` is not a known component kind.

        Emits:
            DocumentChanged: After the component is appended.
        """

        document = self.apply(document_ops.add_component, kind)
        return document.elements[-1]

    def update_component(self, element_id: str, patch: Mapping[str, Any]) -> AppDocument:
        """Merge ``patch`` into one component's content and style.

        Args:
            element_id: The component to update. Unknown ids are a no-op.
            patch: Wire-named content and style keys; other keys are ignored.

        Returns:
            The current document.

        Emits:
            DocumentChanged: If any field actually changed.
        """
        return self.apply(document_ops.update_component, element_id, patch)

    def remove_component(self, element_id: str) -> AppDocument:
        """Remove one component, keeping the order of the rest.

        Emits:
            DocumentChanged: If ``element_id`` was present.
        """
        return self.apply(document_ops.remove_component, element_id)

    def replace_all(
        self,
        app_name: str | None,
        theme_color: str | None,
        components: Iterable[AppElement],
    ) -> AppDocument:
        """Swap in a generated layout in one step.

        Args:
            app_name: New name; blank keeps the current one.
            theme_color: New theme colour; blank falls back to the default.
            components: Components in display order. Their ids are replaced
                with fresh ones.

        Returns:
            The replaced document.

        Emits:
            DocumentChanged: After the swap.
        """
        return self.apply(document_ops.replace_all, app_name, theme_color, tuple(components))

    def patch_component_by_id(self, element_id: str, content_patch: Mapping[str, Any]) -> AppDocument:
        """Merge content keys into whichever component now holds ``element_id``.

        Emits:
            DocumentChanged: If the component still exists and changed.
        """
        return self.apply(document_ops.patch_component_by_id, element_id, content_patch)

    def rename_app(self, app_name: str) -> AppDocument:
        """Set the app name. Blank names are ignored.

        Emits:
            DocumentChanged: If the name changed.
        """
        return self.apply(document_ops.rename_app, app_name)

    def set_theme_color(self, theme_color: str) -> AppDocument:
        """Set the theme colour. Blank values are ignored.

        Emits:
            DocumentChanged: If the colour changed.
        """
        return self.apply(document_ops.set_theme_color, theme_color)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, element_id: str | None) -> AppElement | None:
        return self._document.get(element_id)

    def contains(self, element_id: str | None) -> bool:
        return self._document.index_of(element_id) >= 0


__all__ = ["DocumentStore"]
