"""
HTML helpers built on BeautifulSoup.

Used on markup returned by the page: the snapshot serializer finishes its
document here (base href, fallback resource table) and the static
resolver walks it to preview what a token would click.
"""

import re
from typing import List, Optional
from urllib.parse import urldefrag, urljoin, urlsplit

from bs4 import BeautifulSoup, Tag

from ..core.models import ResourceReference

# (tag, attribute) pairs whose values are collected as resources, in order.
RESOURCE_ATTRIBUTES = (
    ("img", "src"),
    ("script", "src"),
    ("link", "href"),
    ("a", "href"),
    ("source", "src"),
    ("video", "src"),
    ("audio", "src"),
    ("iframe", "src"),
)

_WHITESPACE = re.compile(r"\s+")
_HIDDEN_STYLE = re.compile(r"(display\s*:\s*none|visibility\s*:\s*hidden)", re.IGNORECASE)

# URL-parser preprocessing (WHATWG URL standard).
SPECIAL_SCHEMES = ("http", "https", "ws", "wss", "ftp", "file")
_URL_STRIP = "".join(chr(c) for c in range(0x21))
_URL_TAB_OR_NEWLINE = re.compile(r"[\t\n\r]")
_URL_SCHEME = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.\-]*):")


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def normalize_text(value: Optional[str]) -> str:
    """Collapse whitespace, trim and lower-case."""
    return _WHITESPACE.sub(" ", value or "").strip().lower()


def resolve_reference(raw: str, base_href: str) -> str:
    """
    Resolve ``raw`` against ``base_href`` the way a browser would.

    Surrounding control characters and spaces are dropped and embedded tabs
    or newlines removed. Under special schemes (http, https, ...) a
    backslash counts as a slash. An empty reference resolves to the base
    without its fragment. Values that cannot be parsed are returned
    unchanged.
    """
    try:
        value = _URL_TAB_OR_NEWLINE.sub("", raw.strip(_URL_STRIP))
        if not value:
            return urldefrag(base_href)[0]
        match = _URL_SCHEME.match(value)
        scheme = match.group(1) if match else urlsplit(base_href).scheme
        if scheme.lower() in SPECIAL_SCHEMES:
            value = value.replace("\\", "/")
        return urljoin(base_href, value)
    except ValueError:
        return raw


def in_shadow_template(tag: Tag) -> bool:
    """True for elements that came from a flattened shadow root."""
    for parent in tag.parents:
        if parent.name == "template" and parent.has_attr("shadowrootmode"):
            return True
    return False


def ensure_base_href(soup: BeautifulSoup, base_href: str) -> bool:
    """
    Make sure the document head carries a ``<base>``.

    When none exists, one pointing at ``base_href`` is prepended to the head
    (or to the first element of the document when there is no head).

    Returns:
        True if a base element was inserted
    """
    head = soup.find("head")
    if head is not None and head.find("base") is not None:
        return False
    if head is None:
        root = soup.find("html") or soup
        head = next((child for child in root.children if isinstance(child, Tag)), None)
        if head is None:
            return False
    base = soup.new_tag("base", href=base_href)
    head.insert(0, base)
    return True


def collect_resources(soup: BeautifulSoup, base_href: str) -> List[ResourceReference]:
    """
    Collect resource references, grouped by RESOURCE_ATTRIBUTES order.

    Elements with an empty target attribute and elements inside flattened
    shadow content are skipped.
    """
    resources = []
    for tag_name, attribute in RESOURCE_ATTRIBUTES:
        for element in soup.find_all(tag_name):
            raw = element.get(attribute)
            if not raw or in_shadow_template(element):
                continue
            resources.append(ResourceReference(
                tag=tag_name,
                attribute=attribute,
                raw_value=raw,
                absolute_url=resolve_reference(raw, base_href),
            ))
    return resources


def element_text(tag: Tag) -> str:
    return tag.get_text()


def is_statically_hidden(tag: Tag) -> bool:
    """
    Best guess at whether an element renders with zero size.

    Only markup is available here, so this looks at the ``hidden``
    attribute, hidden inputs and inline ``display:none`` /
    ``visibility:hidden`` on the element or an ancestor.
    """
    if tag.name == "input" and (tag.get("type") or "").lower() == "hidden":
        return True
    for node in [tag, *tag.parents]:
        if not isinstance(node, Tag) or node.name == "[document]":
            break
        if node.has_attr("hidden"):
            return True
        if _HIDDEN_STYLE.search(node.get("style") or ""):
            return True
    return False
