"""Pure mutation operations over :class:`AppDocument` snapshots.

Every function takes the latest document plus an intent and returns a new
document; inputs are never mutated. Lookups by id happen at call time, so a
function applied to a newer snapshot than the one its caller observed still
targets the right component (or becomes a no-op when the component is gone).
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable, Iterable, Mapping

from .document_model import (
    DEFAULT_THEME_COLOR,
    Alignment,
    AppDocument,
    AppElement,
    ElementContent,
    ElementKind,
    ElementStyle,
    new_element_id,
)

LOGGER = logging.getLogger(__name__)

IdFactory = Callable[[], str]

# Content fields each kind actually renders.
KIND_FIELDS: Mapping[ElementKind, frozenset[str]] = {
    ElementKind.HEADER: frozenset({"title", "subtitle"}),
    ElementKind.HERO: frozenset({"title", "subtitle", "image_ref"}),
    ElementKind.TEXT: frozenset({"text"}),
    ElementKind.IMAGE: frozenset({"image_ref"}),
    ElementKind.BUTTON: frozenset({"label"}),
    ElementKind.PRODUCT: frozenset({"title", "subtitle", "price", "image_ref"}),
}

IMAGE_KINDS: frozenset[ElementKind] = frozenset(
    kind for kind, names in KIND_FIELDS.items() if "image_ref" in names
)

DEFAULT_CONTENT: Mapping[ElementKind, Mapping[str, str]] = {
    ElementKind.HEADER: {"title": "New Heading"},
    ElementKind.HERO: {"title": "New Heading"},
    ElementKind.TEXT: {"text": "Add your text here."},
    ElementKind.IMAGE: {},
    ElementKind.BUTTON: {"label": "Click Me"},
    ElementKind.PRODUCT: {"title": "Product Name", "price": "$19.99"},
}

DEFAULT_STYLE = ElementStyle(align=Alignment.LEFT, padding="medium")

# Patch keys routed into each bag; anything else in a patch is ignored.
CONTENT_PATCH_KEYS: Mapping[str, str] = {
    "title": "title",
    "subtitle": "subtitle",
    "text": "text",
    "label": "label",
    "price": "price",
    "imageRef": "image_ref",
    "image_ref": "image_ref",
    "src": "image_ref",
}
STYLE_PATCH_KEYS: Mapping[str, str] = {
    "backgroundColor": "background_color",
    "background_color": "background_color",
    "textColor": "text_color",
    "text_color": "text_color",
    "align": "align",
}


def _validate_defaults() -> None:
    for kind in ElementKind:
        defaults = DEFAULT_CONTENT.get(kind)
        if defaults is None:
            raise RuntimeError(f"Missing default content for kind {kind.value!r}")
        stray = set(defaults) - KIND_FIELDS[kind]
        if stray:
            raise RuntimeError(
                f"Default content for {kind.value!r} sets unrelated fields: {sorted(stray)}"
            )
        if "image_ref" in defaults:
            raise RuntimeError(f"Default content for {kind.value!r} must not set an image")


_validate_defaults()


# ----------------------------------------------------------------------
# Queries
# ----------------------------------------------------------------------


def find_component(doc: AppDocument, element_id: str | None) -> AppElement | None:
    return doc.get(element_id)


def pending_image_components(doc: AppDocument) -> tuple[AppElement, ...]:
    """Components whose image field still carries a generation marker, in order."""

    return tuple(element for element in doc.elements if element.has_pending_image)


# ----------------------------------------------------------------------
# Mutations
# ----------------------------------------------------------------------


def build_component(kind: ElementKind | str, *, id_factory: IdFactory = new_element_id) -> AppElement:
    """Return a new component of ``kind`` carrying its default content and style."""

    resolved = ElementKind.coerce(kind)
    if resolved is None:
        raise ValueError(f"Unknown component kind: {kind!r}")
    return AppElement(
        id=id_factory(),
        kind=resolved,
        content=ElementContent(**DEFAULT_CONTENT[resolved]),
        style=DEFAULT_STYLE,
    )


def add_component(
    doc: AppDocument,
    kind: ElementKind | str,
    *,
    id_factory: IdFactory = new_element_id,
) -> AppDocument:
    element = build_component(kind, id_factory=id_factory)
    return replace(doc, elements=doc.elements + (element,))


def _merge_content(content: ElementContent, patch: Mapping[str, Any]) -> ElementContent:
    updates: dict[str, Any] = {}
    for key, value in patch.items():
        attr = CONTENT_PATCH_KEYS.get(key)
        if attr is None:
            continue
        if value is not None and not isinstance(value, str):
            value = str(value)
        updates[attr] = value
    if not updates:
        return content
    return replace(content, **updates)


def _merge_style(style: ElementStyle, patch: Mapping[str, Any]) -> ElementStyle:
    updates: dict[str, Any] = {}
    for key, value in patch.items():
        attr = STYLE_PATCH_KEYS.get(key)
        if attr is None:
            continue
        if attr == "align" and value is not None:
            value = Alignment.coerce(value)
            if value is None:
                LOGGER.debug("Ignoring unsupported alignment %r", patch[key])
                continue
        elif value is not None and not isinstance(value, str):
            value = str(value)
        updates[attr] = value
    if not updates:
        return style
    return replace(style, **updates)


def _replace_at(doc: AppDocument, index: int, element: AppElement) -> AppDocument:
    if doc.elements[index] == element:
        return doc
    elements = list(doc.elements)
    elements[index] = element
    return replace(doc, elements=tuple(elements))


def update_component(doc: AppDocument, element_id: str, patch: Mapping[str, Any]) -> AppDocument:
    """Field-level upsert of ``patch`` into the component's content and style."""

    index = doc.index_of(element_id)
    if index < 0:
        LOGGER.debug("update_component: unknown id %s", element_id)
        return doc
    current = doc.elements[index]
    updated = replace(
        current,
        content=_merge_content(current.content, patch),
        style=_merge_style(current.style, patch),
    )
    return _replace_at(doc, index, updated)


def remove_component(doc: AppDocument, element_id: str) -> AppDocument:
    if doc.index_of(element_id) < 0:
        LOGGER.debug("remove_component: unknown id %s", element_id)
        return doc
    return replace(doc, elements=tuple(e for e in doc.elements if e.id != element_id))


def replace_all(
    doc: AppDocument,
    app_name: str | None,
    theme_color: str | None,
    components: Iterable[AppElement],
    *,
    id_factory: IdFactory = new_element_id,
) -> AppDocument:
    """Swap in a whole new component list, assigning a fresh id to each entry.

    Ids carried by ``components`` are discarded.
    """

    name = app_name.strip() if isinstance(app_name, str) else ""
    color = theme_color.strip() if isinstance(theme_color, str) else ""
    elements = tuple(replace(component, id=id_factory()) for component in components)
    return AppDocument(
        app_name=name or doc.app_name,
        theme_color=color or DEFAULT_THEME_COLOR,
        elements=elements,
    )


def patch_component_by_id(
    doc: AppDocument,
    element_id: str,
    content_patch: Mapping[str, Any],
) -> AppDocument:
    """Merge ``content_patch`` into the component currently holding ``element_id``."""

    index = doc.index_of(element_id)
    if index < 0:
        LOGGER.debug("patch_component_by_id: id %s no longer present", element_id)
        return doc
    current = doc.elements[index]
    return _replace_at(doc, index, replace(current, content=_merge_content(current.content, content_patch)))


def rename_app(doc: AppDocument, app_name: str) -> AppDocument:
    if not isinstance(app_name, str) or not app_name.strip():
        LOGGER.debug("rename_app: ignoring blank name")
        return doc
    if app_name == doc.app_name:
        return doc
    return replace(doc, app_name=app_name)


def set_theme_color(doc: AppDocument, theme_color: str) -> AppDocument:
    if not isinstance(theme_color, str) or not theme_color.strip():
        return doc
    if theme_color == doc.theme_color:
        return doc
    return replace(doc, theme_color=theme_color)


__all__ = [
    "KIND_FIELDS",
    "IMAGE_KINDS",
    "DEFAULT_CONTENT",
    "DEFAULT_STYLE",
    "CONTENT_PATCH_KEYS",
    "STYLE_PATCH_KEYS",
    "IdFactory",
    "find_component",
    "pending_image_components",
    "build_component",
    "add_component",
    "update_component",
    "remove_component",
    "replace_all",
    "patch_component_by_id",
    "rename_app",
    "set_theme_color",
]
