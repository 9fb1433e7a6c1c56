"""Prompt text and response schema for layout generation."""

from __future__ import annotations

from typing import Any, Dict

from ..editor.document_model import PENDING_IMAGE_PREFIX, ElementKind

_KIND_NAMES = [kind.value for kind in ElementKind]

LAYOUT_SYSTEM_PROMPT = (
    "You design mobile app screens as an ordered list of visual components. "
    "Reply with JSON only."
)


def layout_user_prompt(prompt: str) -> str:
    """Wrap the user's description with the layout instructions."""

    kinds = ", ".join(f"'{name}'" for name in _KIND_NAMES)
    return (
        f"Create a mobile app layout for: {prompt.strip()}. "
        "Return a JSON structure representing the visual components.\n"
        f"The components must be one of: {kinds}.\n"
        "For components that require an image (image, hero, product), set the 'imageRef' field "
        f'to a string starting with "{PENDING_IMAGE_PREFIX}" followed by a descriptive prompt for the image '
        f'(e.g., "{PENDING_IMAGE_PREFIX} A modern minimalist hero image of a coffee shop").\n'
        "Provide realistic text content and professional styling."
    )


def _nullable_string() -> Dict[str, Any]:
    return {"type": ["string", "null"]}


def layout_response_format() -> Dict[str, Any]:
    """JSON-schema ``response_format`` mirroring the layout wire shape."""

    content_props = {
        name: _nullable_string() for name in ("title", "subtitle", "text", "imageRef", "label", "price")
    }
    style_props = {
        "backgroundColor": _nullable_string(),
        "textColor": _nullable_string(),
        "align": {"type": ["string", "null"], "enum": ["left", "center", "right", None]},
        "padding": _nullable_string(),
        "borderRadius": _nullable_string(),
    }
    element_schema = {
        "type": "object",
        "properties": {
            "kind": {"type": "string", "enum": list(_KIND_NAMES)},
            "content": {
                "type": "object",
                "properties": content_props,
                "required": list(content_props),
                "additionalProperties": False,
            },
            "style": {
                "type": "object",
                "properties": style_props,
                "required": list(style_props),
                "additionalProperties": False,
            },
        },
        "required": ["kind", "content", "style"],
        "additionalProperties": False,
    }
    return {
        "type": "json_schema",
        "json_schema": {
            "name": "app_layout",
            "strict": True,
            "schema": {
                "type": "object",
                "properties": {
                    "appName": {"type": "string"},
                    "themeColor": {"type": "string"},
                    "elements": {"type": "array", "items": element_schema},
                },
                "required": ["appName", "themeColor", "elements"],
                "additionalProperties": False,
            },
        },
    }


__all__ = ["LAYOUT_SYSTEM_PROMPT", "layout_user_prompt", "layout_response_format"]
