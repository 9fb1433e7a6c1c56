"""AI client and generation capability wiring."""

from .capability import GenerationCapability, LayoutProposal, OpenAIGenerationCapability, parse_layout_payload
from .client import AIClient, ClientSettings, GeneratedImage

__all__ = [
    "AIClient",
    "ClientSettings",
    "GeneratedImage",
    "GenerationCapability",
    "LayoutProposal",
    "OpenAIGenerationCapability",
    "parse_layout_payload",
]
