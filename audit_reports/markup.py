"""Rich-text to HTML conversion for free-text audit fields.

Supported grammar, applied after HTML-escaping the input:

* each non-blank line becomes a ``<p>`` paragraph
* ```code``` becomes ``<code>code</code>`` and is not formatted further
* ``**bold**`` becomes ``<strong>bold</strong>``
* ``*italic*`` becomes ``<em>italic</em>``
"""

from __future__ import annotations

import html
import re
from typing import Any

INLINE_PATTERN = re.compile(r"`([^`]+)`|\*\*(.+?)\*\*|\*([^*]+?)\*")


def _render_inline(text: str) -> str:
    def _sub(match: re.Match) -> str:
        code, bold, italic = match.groups()
        if code is not None:
            return f"<code>{code}</code>"
        if bold is not None:
            return f"<strong>{_render_inline(bold)}</strong>"
        return f"<em>{_render_inline(italic)}</em>"

    return INLINE_PATTERN.sub(_sub, text)


def render_inline(text: Any) -> str:
    """Escape and format a single line without wrapping it in a paragraph."""
    if text is None:
        return ""
    return _render_inline(html.escape(str(text), quote=False))


def render_rich_text(text: Any) -> str:
    """Convert a free-text field to paragraphs with inline formatting."""
    if text is None:
        return ""
    lines = str(text).replace("\r\n", "\n").split("\n")
    return "".join(f"<p>{render_inline(line.strip())}</p>" for line in lines if line.strip())
