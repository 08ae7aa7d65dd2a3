"""Draft newsletter text from a short prompt.

Produces a templated plain-text body and an HTML rendition; no external
model is involved.
"""
from __future__ import annotations

import html
from datetime import datetime

from ..timeutil import utcnow

_STYLE = (
    "body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; "
    "max-width: 600px; margin: 0 auto; padding: 20px; }\n"
    "    p { margin-bottom: 15px; }"
)

_MONTHS = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


def default_title(now: datetime | None = None) -> str:
    now = now or utcnow()
    return f"Newsletter for {_MONTHS[now.month - 1]} {now.year}"


def compose_body(prompt: str) -> str:
    return (
        "Dear Alumni,\n\n"
        "We are excited to share the latest updates from our university community.\n\n"
        f"{prompt.strip()}\n\n"
        "This newsletter includes recent achievements, upcoming events, and stories from our "
        "alumni network. Stay connected and engaged with your alma mater.\n\n"
        "Best regards,\nUniversity Communications Team"
    )


def render_html(content: str, title: str | None = None) -> str:
    """Wrap each blank-line separated paragraph of ``content`` in escaped ``<p>`` tags."""
    paragraphs = [p.strip() for p in content.split("\n\n") if p.strip()]
    body = "\n  ".join(
        "<p>" + html.escape(p).replace("\n", "<br>\n") + "</p>" for p in paragraphs
    )
    head_title = f"\n  <title>{html.escape(title)}</title>" if title else ""
    return (
        "<!DOCTYPE html>\n"
        "<html>\n"
        "<head>\n"
        '  <meta charset="UTF-8">\n'
        '  <meta name="viewport" content="width=device-width, initial-scale=1.0">'
        f"{head_title}\n"
        "  <style>\n"
        f"    {_STYLE}\n"
        "  </style>\n"
        "</head>\n"
        "<body>\n"
        f"  {body}\n"
        "</body>\n"
        "</html>"
    )
