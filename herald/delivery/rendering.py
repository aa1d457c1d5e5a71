"""Render report content into email subject and bodies.

Research backends return lightly structured Markdown. The HTML body keeps
that structure (headings, paragraphs, bullet lists) and escapes everything
else, so report text can never inject markup.

Usage
-----
>>> build_subject("Acme Corp", "daily", "2024-06-01")
'Acme Corp: daily research report for 2024-06-01'
>>> render_html("# Title\\n\\n- one")
'<h1>Title</h1>\\n<ul>\\n<li>one</li>\\n</ul>'

"""

from __future__ import annotations

import html
import re

_HEADING = re.compile(r"(#{1,6})\s+(.*)")
_BULLET = re.compile(r"[-*]\s+(.*)")


def build_subject(title: str, cadence: str, period_key: str) -> str:
    """Return the subject line for a report delivery."""
    return f"{title}: {cadence} research report for {period_key}"


def render_text(content: str) -> str:
    """Return the plain-text body, normalised to end with one newline."""
    return content.strip() + "\n"


def _flush_paragraph(blocks: list[str], paragraph: list[str]) -> None:
    if paragraph:
        blocks.append(f"<p>{html.escape(' '.join(paragraph))}</p>")
        paragraph.clear()


def _flush_list(blocks: list[str], items: list[str]) -> None:
    if items:
        rendered = "\n".join(f"<li>{html.escape(item)}</li>" for item in items)
        blocks.append(f"<ul>\n{rendered}\n</ul>")
        items.clear()


def render_html(content: str) -> str:
    """Render Markdown-flavoured ``content`` as escaped HTML blocks.

    Recognises ATX headings (``#`` to ``######``), ``-``/``*`` bullet
    items and blank-line separated paragraphs. Any other Markdown syntax is
    passed through as escaped text.
    """
    blocks: list[str] = []
    paragraph: list[str] = []
    items: list[str] = []

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line:
            _flush_paragraph(blocks, paragraph)
            _flush_list(blocks, items)
            continue

        if heading := _HEADING.fullmatch(line):
            _flush_paragraph(blocks, paragraph)
            _flush_list(blocks, items)
            level = len(heading.group(1))
            text = html.escape(heading.group(2).strip())
            blocks.append(f"<h{level}>{text}</h{level}>")
        elif bullet := _BULLET.fullmatch(line):
            _flush_paragraph(blocks, paragraph)
            items.append(bullet.group(1).strip())
        else:
            _flush_list(blocks, items)
            paragraph.append(line)

    _flush_paragraph(blocks, paragraph)
    _flush_list(blocks, items)
    return "\n".join(blocks)
