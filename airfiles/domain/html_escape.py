"""Single escaping routine for text interpolated into generated HTML."""

import html


def escape_html(text: str) -> str:
    """Escape &, <, >, double and single quotes."""
    return html.escape(text, quote=True)
