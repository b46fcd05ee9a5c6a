"""
HTML Escaping Utilities for notification emails

Prevents HTML injection when customer-controlled or catalog data
(titles, names) is embedded in HTML email bodies.

- ALWAYS use safe_html() for data coming from the database or the request
- NEVER escape static template markup
"""

import html
from typing import Optional


def safe_html(text: Optional[str]) -> str:
    """
    Escapes HTML special characters.

    Examples:
        >>> safe_html("Intro <script>alert(1)</script>")
        'Intro &lt;script&gt;alert(1)&lt;/script&gt;'

        >>> safe_html(None)
        ''
    """
    if text is None:
        return ""
    return html.escape(str(text), quote=True)


def safe_url(url: Optional[str]) -> str:
    """
    Sanitizes URLs for use in <a href> attributes.

    Only http(s) URLs are kept, anything else (javascript:, data:) becomes "".
    """
    if not url:
        return ""

    url_str = str(url).strip()
    if not url_str.startswith(("http://", "https://")):
        return ""

    return html.escape(url_str, quote=True)
