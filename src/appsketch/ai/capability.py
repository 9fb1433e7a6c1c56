"""Generation capability consumed by the layout generator.

The layout generator never talks to a network client directly; it is handed
an object implementing :class:`GenerationCapability`. The OpenAI-backed
implementation lives here, and tests substitute fakes.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Protocol, runtime_checkable

from ..editor.document_model import DEFAULT_THEME_COLOR, AppElement
from ..errors import ImageGenerationError, LayoutParseError
from .client import AIClient
from .prompts import LAYOUT_SYSTEM_PROMPT, layout_response_format, layout_user_prompt

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class LayoutProposal:
    """A generated layout. Element ids are untrusted and get replaced on install."""

    app_name: str
    theme_color: str
    elements: tuple[AppElement, ...]


@runtime_checkable
class GenerationCapability(Protocol):
    """External text/image generation service."""

    async def generate_layout(self, prompt: str) -> LayoutProposal | None:
        """Return a layout for ``prompt`` or ``None`` when nothing usable came back."""
        ...

    async def generate_image(self, prompt: str) -> str | None:
        """Return an embeddable image reference for ``prompt`` or ``None``."""
        ...


def parse_layout_payload(payload: Any) -> LayoutProposal | None:
    """Shape a raw layout response into a :class:`LayoutProposal`.

    Accepts a JSON string or a mapping. Elements that are not mappings or
    whose kind is outside the closed set are dropped. Returns ``None`` when
    the payload is empty, unparseable, or has no usable elements.
    """

    if payload is None:
        return None
    if isinstance(payload, (str, bytes)):
        text = payload.decode("utf-8", errors="replace") if isinstance(payload, bytes) else payload
        if not text.strip():
            return None
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            LOGGER.debug("Layout payload is not valid JSON: %s", exc)
            return None
    if not isinstance(payload, Mapping):
        return None

    raw_elements = payload.get("elements")
    if not isinstance(raw_elements, list):
        return None

    elements: list[AppElement] = []
    for index, raw in enumerate(raw_elements):
        element = AppElement.from_payload(raw)
        if element is None:
            LOGGER.debug("Dropping unusable layout element at index %d", index)
            continue
        elements.append(element)
    if not elements:
        return None

    app_name = payload.get("appName")
    theme_color = payload.get("themeColor")
    return LayoutProposal(
        app_name=app_name.strip() if isinstance(app_name, str) else "",
        theme_color=theme_color.strip() if isinstance(theme_color, str) and theme_color.strip() else DEFAULT_THEME_COLOR,
        elements=tuple(elements),
    )


class OpenAIGenerationCapability:
    """:class:`GenerationCapability` backed by an OpenAI-compatible :class:`AIClient`."""

    def __init__(self, client: AIClient, *, temperature: float | None = 0.7) -> None:
        self._client = client
        self._temperature = temperature

    @property
    def client(self) -> AIClient:
        return self._client

    async def generate_layout(self, prompt: str) -> LayoutProposal | None:
        messages = [
            {"role": "system", "content": LAYOUT_SYSTEM_PROMPT},
            {"role": "user", "content": layout_user_prompt(prompt)},
        ]
        content = await self._client.complete_json(
            messages,
            response_format=layout_response_format(),
            temperature=self._temperature,
        )
        proposal = parse_layout_payload(content)
        if proposal is None:
            raise LayoutParseError("Layout response was empty or could not be parsed")
        LOGGER.debug("Layout response parsed into %d element(s)", len(proposal.elements))
        return proposal

    async def generate_image(self, prompt: str) -> str | None:
        image = await self._client.generate_image(prompt)
        reference = image.as_reference() if image is not None else None
        if reference is None:
            raise ImageGenerationError(f"No image returned for prompt {prompt[:60]!r}")
        return reference


__all__ = [
    "LayoutProposal",
    "GenerationCapability",
    "parse_layout_payload",
    "OpenAIGenerationCapability",
]
