"""Script and markup helpers."""

from .js import escape_js, js_string, render_script
from .dom import (
    RESOURCE_ATTRIBUTES,
    collect_resources,
    ensure_base_href,
    normalize_text,
    parse_html,
    resolve_reference,
)

__all__ = [
    "escape_js",
    "js_string",
    "render_script",
    "RESOURCE_ATTRIBUTES",
    "collect_resources",
    "ensure_base_href",
    "normalize_text",
    "parse_html",
    "resolve_reference",
]
