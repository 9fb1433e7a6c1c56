"""Test doubles shared across the suite."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Iterable, Mapping

from appsketch.ai.capability import LayoutProposal, parse_layout_payload
from appsketch.ui import events as ev
from appsketch.ui.events import Event, EventBus
from appsketch.ui.models.editor_models import PreviewFrame

_ALL_EVENTS: tuple[type[Event], ...] = (
    ev.DocumentChanged,
    ev.SelectionChanged,
    ev.PanelChanged,
    ev.GenerationStarted,
    ev.GenerationSucceeded,
    ev.GenerationFailed,
    ev.ImageResolved,
    ev.ImageResolutionFailed,
    ev.ImageResolutionFinished,
)


def layout_payload(elements: Iterable[Mapping[str, Any]], *, app_name: str = "FitTrack", theme_color: str = "#10b981") -> dict:
    return {"appName": app_name, "themeColor": theme_color, "elements": list(elements)}


def proposal(elements: Iterable[Mapping[str, Any]], **kwargs: Any) -> LayoutProposal:
    result = parse_layout_payload(layout_payload(elements, **kwargs))
    assert result is not None
    return result


class EventRecorder:
    """Records every domain event published on a bus, in order."""

    def __init__(self, bus: EventBus) -> None:
        self.events: list[Event] = []
        for event_type in _ALL_EVENTS:
            bus.subscribe(event_type, self._record)

    def _record(self, event: Event) -> None:
        self.events.append(event)

    def of_type(self, event_type: type[Event]) -> list[Any]:
        return [event for event in self.events if isinstance(event, event_type)]

    def clear(self) -> None:
        self.events.clear()


class FakeCapability:
    """In-memory :class:`GenerationCapability` that records its calls.

    ``layout`` may be a proposal, a raw payload, ``None`` or an exception
    instance. ``images`` maps sub-prompts to a reference, ``None`` or an
    exception; unmapped prompts get ``data:image/png;base64,<prompt>``.
    ``on_image`` runs before each image reply, which lets tests change the
    document while a request is "in flight".
    """

    def __init__(
        self,
        layout: Any = None,
        *,
        images: Mapping[str, Any] | None = None,
        on_image: Callable[[str], None] | None = None,
    ) -> None:
        self.layout = layout
        self.images = dict(images or {})
        self.on_image = on_image
        self.layout_calls: list[str] = []
        self.image_calls: list[str] = []
        self.layout_gate: asyncio.Event | None = None

    async def generate_layout(self, prompt: str) -> Any:
        self.layout_calls.append(prompt)
        if self.layout_gate is not None:
            await self.layout_gate.wait()
        if isinstance(self.layout, BaseException):
            raise self.layout
        return self.layout

    async def generate_image(self, prompt: str) -> str | None:
        self.image_calls.append(prompt)
        await asyncio.sleep(0)
        if self.on_image is not None:
            self.on_image(prompt)
        reply = self.images.get(prompt, f"data:image/png;base64,{prompt.replace(' ', '_')}")
        if isinstance(reply, BaseException):
            raise reply
        return reply


class RecordingRenderer:
    """Preview renderer that keeps every frame it was asked to draw."""

    def __init__(self) -> None:
        self.frames: list[PreviewFrame] = []

    def render(self, frame: PreviewFrame) -> None:
        self.frames.append(frame)

    @property
    def last(self) -> PreviewFrame:
        return self.frames[-1]
