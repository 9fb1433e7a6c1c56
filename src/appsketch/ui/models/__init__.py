"""Transient editor state models."""

from .editor_models import EditorPanel, EditorState, GenerationRecord, GenerationStatus, PreviewFrame

__all__ = ["EditorPanel", "EditorState", "GenerationRecord", "GenerationStatus", "PreviewFrame"]
