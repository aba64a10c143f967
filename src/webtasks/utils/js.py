"""
Escaping and templating helpers for page scripts.

Every value interpolated into a script goes through ``js_string`` so the
script stays syntactically valid whatever the value contains. Templates use
``string.Template`` placeholders (``$name``); JavaScript itself never needs
a literal ``$`` in the templates of this package.
"""

from string import Template
from typing import Union

# Backslash first so escapes added below are not escaped twice.
_ESCAPES = (
    ("\\", "\\\\"),
    ("'", "\\'"),
    ('"', '\\"'),
    ("\n", "\\n"),
    ("\r", "\\r"),
    ("\t", "\\t"),
    ("\u2028", "\\u2028"),
    ("\u2029", "\\u2029"),
    ("\x00", "\\x00"),
)


def escape_js(value: str) -> str:
    """Escape ``value`` for use inside a single- or double-quoted JS literal."""
    for raw, escaped in _ESCAPES:
        value = value.replace(raw, escaped)
    return value


def js_string(value: str) -> str:
    """Return ``value`` as a complete single-quoted JS string literal."""
    return f"'{escape_js(value)}'"


def js_bool(value: bool) -> str:
    return "true" if value else "false"


def render_script(template: Union[str, Template], **values: Union[str, bool]) -> str:
    """
    Substitute placeholders with JS literals.

    Strings become quoted, escaped literals and booleans become ``true`` /
    ``false``. A missing placeholder raises ``KeyError``.

    Example:
        render_script("document.querySelector($sel)", sel="#q")
        returns document.querySelector('#q')
    """
    if isinstance(template, str):
        template = Template(template)
    literals = {
        name: js_bool(value) if isinstance(value, bool) else js_string(value)
        for name, value in values.items()
    }
    return template.substitute(literals)
