"""In-page operations: script compilation, element resolution, snapshots."""

from .compiler import ScriptCompiler
from .resolver import (
    CANDIDATE_SELECTOR,
    SELECTOR_SYNTAX_CHARS,
    ElementResolver,
    LocatedElement,
    StaticElementResolver,
    looks_like_selector,
)
from .runner import PresetRunner, default_presets
from .snapshot import CAPTURE_SCRIPT, SnapshotSerializer

__all__ = [
    "ScriptCompiler",
    "CANDIDATE_SELECTOR",
    "SELECTOR_SYNTAX_CHARS",
    "ElementResolver",
    "LocatedElement",
    "StaticElementResolver",
    "looks_like_selector",
    "PresetRunner",
    "default_presets",
    "CAPTURE_SCRIPT",
    "SnapshotSerializer",
]
