"""Editor controller, domain managers, events and the preview boundary."""

from .editor_controller import EditorController
from .events import EventBus
from .preview import PreviewBinding, PreviewRenderer

__all__ = ["EditorController", "EventBus", "PreviewBinding", "PreviewRenderer"]
