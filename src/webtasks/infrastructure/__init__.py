"""Infrastructure layer for external services."""

from .surface import ScriptSurface, PlaywrightSurface, normalize_target_url
from .reasoning import ReasoningClient
from .speech import Narrator, SilentNarrator, Pyttsx3Narrator

__all__ = [
    "ScriptSurface",
    "PlaywrightSurface",
    "normalize_target_url",
    "ReasoningClient",
    "Narrator",
    "SilentNarrator",
    "Pyttsx3Narrator",
]
