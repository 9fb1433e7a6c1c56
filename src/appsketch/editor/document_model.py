"""Dataclasses representing the app mockup document and its components."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Mapping, Optional

PENDING_IMAGE_PREFIX = "GENERATE_IMAGE:"
DEFAULT_APP_NAME = "My New App"
DEFAULT_THEME_COLOR = "#4f46e5"
THEME_PALETTE: tuple[str, ...] = (
    "#4f46e5",
    "#10b981",
    "#ef4444",
    "#f59e0b",
    "#ec4899",
    "#3b82f6",
    "#111827",
)


def new_element_id() -> str:
    """Return a fresh opaque component identifier."""

    return uuid.uuid4().hex


class ElementKind(str, Enum):
    """Closed set of block variants a mockup can contain."""

    HEADER = "header"
    HERO = "hero"
    TEXT = "text"
    IMAGE = "image"
    BUTTON = "button"
    PRODUCT = "product"

    @classmethod
    def coerce(cls, value: Any) -> "ElementKind | None":
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class Alignment(str, Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"

    @classmethod
    def coerce(cls, value: Any) -> "Alignment | None":
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


def is_pending_image(ref: str | None) -> bool:
    """Return True when ``ref`` is a placeholder awaiting AI generation."""

    return isinstance(ref, str) and ref.startswith(PENDING_IMAGE_PREFIX)


def pending_image_prompt(ref: str | None) -> str | None:
    """Return the sub-prompt carried by a pending image marker."""

    if not is_pending_image(ref):
        return None
    assert ref is not None
    return ref[len(PENDING_IMAGE_PREFIX):].strip()


def make_pending_image(prompt: str) -> str:
    return f"{PENDING_IMAGE_PREFIX} {prompt.strip()}"


# Wire names for the generic field bags. ``src`` is what older payloads used.
_CONTENT_KEYS: Mapping[str, str] = {
    "title": "title",
    "subtitle": "subtitle",
    "text": "text",
    "imageRef": "image_ref",
    "image_ref": "image_ref",
    "src": "image_ref",
    "label": "label",
    "price": "price",
}
_STYLE_KEYS: Mapping[str, str] = {
    "backgroundColor": "background_color",
    "background_color": "background_color",
    "textColor": "text_color",
    "text_color": "text_color",
    "align": "align",
    "padding": "padding",
    "borderRadius": "border_radius",
    "border_radius": "border_radius",
}


def _as_optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


@dataclass(slots=True, frozen=True)
class ElementContent:
    """Variant-shaped bag of optional text/image fields."""

    title: Optional[str] = None
    subtitle: Optional[str] = None
    text: Optional[str] = None
    image_ref: Optional[str] = None
    label: Optional[str] = None
    price: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "ElementContent":
        if not isinstance(payload, Mapping):
            return cls()
        values: Dict[str, str] = {}
        for key, attr in _CONTENT_KEYS.items():
            if key in payload:
                value = _as_optional_str(payload[key])
                if value is not None:
                    values[attr] = value
        return cls(**values)

    def set_fields(self) -> tuple[str, ...]:
        """Names of the fields that currently hold a value."""

        return tuple(item.name for item in fields(self) if getattr(self, item.name) is not None)

    def to_payload(self) -> Dict[str, str]:
        payload: Dict[str, str] = {}
        for key in ("title", "subtitle", "text", "label", "price"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        if self.image_ref is not None:
            payload["imageRef"] = self.image_ref
        return payload


@dataclass(slots=True, frozen=True)
class ElementStyle:
    """Presentation fields shared by every kind."""

    background_color: Optional[str] = None
    text_color: Optional[str] = None
    align: Optional[Alignment] = None
    padding: Optional[str] = None
    border_radius: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "ElementStyle":
        if not isinstance(payload, Mapping):
            return cls()
        values: Dict[str, Any] = {}
        for key, attr in _STYLE_KEYS.items():
            if key not in payload:
                continue
            if attr == "align":
                align = Alignment.coerce(payload[key])
                if align is not None:
                    values[attr] = align
                continue
            value = _as_optional_str(payload[key])
            if value is not None:
                values[attr] = value
        return cls(**values)

    def to_payload(self) -> Dict[str, str]:
        payload: Dict[str, str] = {}
        if self.background_color is not None:
            payload["backgroundColor"] = self.background_color
        if self.text_color is not None:
            payload["textColor"] = self.text_color
        if self.align is not None:
            payload["align"] = self.align.value
        if self.padding is not None:
            payload["padding"] = self.padding
        if self.border_radius is not None:
            payload["borderRadius"] = self.border_radius
        return payload


@dataclass(slots=True, frozen=True)
class AppElement:
    """One visual block of the mockup."""

    id: str
    kind: ElementKind
    content: ElementContent = field(default_factory=ElementContent)
    style: ElementStyle = field(default_factory=ElementStyle)

    @property
    def has_pending_image(self) -> bool:
        return is_pending_image(self.content.image_ref)

    @classmethod
    def from_payload(cls, payload: Any, *, element_id: str | None = None) -> "AppElement | None":
        """Build an element from a loosely shaped mapping.

        Returns ``None`` when the payload is not a mapping or its kind is not
        one of :class:`ElementKind`. ``type`` is accepted in place of ``kind``.
        """

        if not isinstance(payload, Mapping):
            return None
        kind = ElementKind.coerce(payload.get("kind", payload.get("type")))
        if kind is None:
            return None
        raw_id = payload.get("id")
        resolved_id = element_id or (raw_id if isinstance(raw_id, str) and raw_id else new_element_id())
        return cls(
            id=resolved_id,
            kind=kind,
            content=ElementContent.from_payload(payload.get("content")),
            style=ElementStyle.from_payload(payload.get("style")),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "content": self.content.to_payload(),
            "style": self.style.to_payload(),
        }


@dataclass(slots=True, frozen=True)
class AppDocument:
    """Full editable app description: name, theme and ordered components."""

    app_name: str = DEFAULT_APP_NAME
    theme_color: str = DEFAULT_THEME_COLOR
    elements: tuple[AppElement, ...] = ()

    def __post_init__(self) -> None:
        if not self.app_name or not self.app_name.strip():
            raise ValueError("app_name must be a non-empty string")

    def __len__(self) -> int:
        return len(self.elements)

    def ids(self) -> tuple[str, ...]:
        return tuple(element.id for element in self.elements)

    def index_of(self, element_id: str | None) -> int:
        """Return the current position of ``element_id`` or ``-1``."""

        if element_id is None:
            return -1
        for index, element in enumerate(self.elements):
            if element.id == element_id:
                return index
        return -1

    def get(self, element_id: str | None) -> AppElement | None:
        index = self.index_of(element_id)
        return self.elements[index] if index >= 0 else None

    def snapshot(self) -> Dict[str, Any]:
        """Return a JSON-compatible snapshot consumed by renderers and tooling."""

        return {
            "appName": self.app_name,
            "themeColor": self.theme_color,
            "elements": [element.to_payload() for element in self.elements],
        }


__all__ = [
    "PENDING_IMAGE_PREFIX",
    "DEFAULT_APP_NAME",
    "DEFAULT_THEME_COLOR",
    "THEME_PALETTE",
    "ElementKind",
    "Alignment",
    "ElementContent",
    "ElementStyle",
    "AppElement",
    "AppDocument",
    "new_element_id",
    "is_pending_image",
    "pending_image_prompt",
    "make_pending_image",
]
