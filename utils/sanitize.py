"""HTML stripping for user supplied text."""

from __future__ import annotations

import html
import re

import bleach

# bleach keeps the text inside tags it strips, so executable/style blocks are
# removed wholesale first.
_NON_TEXT_BLOCKS = re.compile(
    r"<(script|style|textarea|noscript|iframe)\b[^>]*>.*?(</\1\s*>|$)",
    re.IGNORECASE | re.DOTALL,
)


def strip_html(value: str | None) -> str:
    """Return ``value`` as plain text with every HTML tag removed."""

    if not value:
        return ""
    without_blocks = _NON_TEXT_BLOCKS.sub("", value)
    cleaned = bleach.clean(without_blocks, tags=set(), attributes={}, strip=True)
    return html.unescape(cleaned)
