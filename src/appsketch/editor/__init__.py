"""Document model and pure mutation operations for app mockups."""

from .document_model import AppDocument, AppElement, ElementContent, ElementKind, ElementStyle

__all__ = ["AppDocument", "AppElement", "ElementContent", "ElementKind", "ElementStyle"]
