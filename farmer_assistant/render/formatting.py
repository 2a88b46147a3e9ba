"""
Markdown-lite formatting for backend message text.

Only three constructs are supported: ``**bold**``, ``*italic*`` and line
breaks. Text is HTML-escaped first, so markup in backend text is never
interpreted.
"""

import html
import re

_BOLD = re.compile(r"\*\*(.+?)\*\*", re.DOTALL)
_ITALIC = re.compile(r"\*(.+?)\*", re.DOTALL)


def escape(value) -> str:
    if value is None:
        return ""
    return html.escape(str(value), quote=True)


def format_message(text) -> str:
    """
    Render message text as an HTML fragment.

    Example:
        >>> format_message("**Neem oil**\\nspray *weekly*")
        '<strong>Neem oil</strong><br>spray <em>weekly</em>'
    """
    formatted = escape(text)
    formatted = _BOLD.sub(r"<strong>\1</strong>", formatted)
    formatted = _ITALIC.sub(r"<em>\1</em>", formatted)
    return formatted.replace("\r\n", "\n").replace("\n", "<br>")
