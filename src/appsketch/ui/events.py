"""Event bus and the events published by the builder's domain layer.

The document store, editor controller and layout generator publish these
events; the preview binding, status sinks and tests subscribe to them.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Generic, TypeVar
from weakref import WeakMethod

if TYPE_CHECKING:  # pragma: no cover
    from ..editor.document_model import AppDocument

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all events in the system."""


# --- Document & editor events ---


@dataclass(slots=True)
class DocumentChanged(Event):
    """Emitted after the store swaps in a new document snapshot.

    Attributes:
        document: The new snapshot.
        reason: Name of the mutation that produced it (e.g. ``"add_component"``).
    """

    document: AppDocument
    reason: str


@dataclass(slots=True)
class SelectionChanged(Event):
    """Emitted when the selected component id changes (``None`` = cleared)."""

    selected_id: str | None
    previous_id: str | None = None


@dataclass(slots=True)
class PanelChanged(Event):
    """Emitted when the side panel switches."""

    panel: str


# --- Generation events ---


@dataclass(slots=True)
class GenerationStarted(Event):
    request_id: str
    prompt: str


@dataclass(slots=True)
class GenerationSucceeded(Event):
    """Emitted once the generated layout replaced the document.

    Attributes:
        request_id: Identifier of the generation request.
        element_count: Number of components installed.
        pending_images: Number of components waiting for an image.
    """

    request_id: str
    element_count: int
    pending_images: int


@dataclass(slots=True)
class GenerationFailed(Event):
    request_id: str
    error: str


@dataclass(slots=True)
class ImageResolved(Event):
    request_id: str
    element_id: str


@dataclass(slots=True)
class ImageResolutionFailed(Event):
    request_id: str
    element_id: str
    error: str


@dataclass(slots=True)
class ImageResolutionFinished(Event):
    """Emitted when a background image run ends (completed or canceled)."""

    request_id: str
    resolved: int
    failed: int
    canceled: bool = False


class EventBus(Generic[E]):
    """Synchronous typed publish/subscribe hub.

    Handlers are called in the order they subscribed, on the publishing
    thread. A bound method is tracked through a weak reference, so a
    subscriber object that goes away stops receiving events without having
    to unsubscribe. Plain functions and lambdas are kept alive by the bus.
    """

    __slots__ = ("_routes",)

    def __init__(self) -> None:
        self._routes: dict[type[Event], list[_Subscription]] = {}

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        self._routes.setdefault(event_type, []).append(_Subscription.wrap(handler))
        logger.debug("%s <- %s", event_type.__name__, _describe(handler))

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Drop the earliest subscription of ``handler``; unknown handlers are ignored."""

        route = self._routes.get(event_type, [])
        position = next((i for i, sub in enumerate(route) if sub.points_to(handler)), None)
        if position is None:
            return
        del route[position]
        logger.debug("%s -/- %s", event_type.__name__, _describe(handler))

    def publish(self, event: E) -> None:
        """Call every live handler registered for ``type(event)``.

        Exceptions raised by a handler are logged; delivery continues.
        """

        route = self._routes.get(type(event))
        if not route:
            return

        stale: list[_Subscription] = []
        for subscription in tuple(route):
            target = subscription.target()
            if target is None:
                stale.append(subscription)
                continue
            try:
                target(event)
            except Exception:
                logger.exception("%s failed while handling %s", _describe(target), type(event).__name__)

        for subscription in stale:
            if subscription in route:
                route.remove(subscription)

    def clear(self) -> None:
        self._routes.clear()

    def handler_count(self, event_type: type[E] | None = None) -> int:
        if event_type is None:
            return sum(map(len, self._routes.values()))
        return len(self._routes.get(event_type, ()))


class _Subscription:
    __slots__ = ("_held", "_weak")

    def __init__(self, held: Any, weak: bool) -> None:
        self._held = held
        self._weak = weak

    @classmethod
    def wrap(cls, handler: Handler) -> _Subscription:
        if inspect.ismethod(handler):
            return cls(WeakMethod(handler), weak=True)
        return cls(handler, weak=False)

    def target(self) -> Handler | None:
        return self._held() if self._weak else self._held

    def points_to(self, handler: Handler) -> bool:
        current = self.target()
        return current is not None and current == handler


def _describe(handler: Handler) -> str:
    if inspect.ismethod(handler):
        return f"{type(handler.__self__).__name__}.{handler.__name__}"
    return getattr(handler, "__qualname__", None) or repr(handler)


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "DocumentChanged",
    "SelectionChanged",
    "PanelChanged",
    "GenerationStarted",
    "GenerationSucceeded",
    "GenerationFailed",
    "ImageResolved",
    "ImageResolutionFailed",
    "ImageResolutionFinished",
]
