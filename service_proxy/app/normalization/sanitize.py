"""
Output string sanitizing.
"""

import html
import re
from typing import Any

_TAG_PATTERN = re.compile(r"<[^>]*>?")


def strip_tags(value: str) -> str:
    """Remove anything that looks like an HTML/XML tag."""
    return _TAG_PATTERN.sub("", value)


def sanitize_string(value: Any) -> str:
    """Strip tags and HTML-escape a value destined for a rendered page."""
    text = "" if value is None else str(value)
    return html.escape(strip_tags(text), quote=True)
