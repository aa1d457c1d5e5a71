"""Prompt templates for the OpenAI research model."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from herald.research.models import ResearchRequest

SYSTEM_PROMPT = """\
You are a research analyst writing periodic briefings. Summarise notable, \
verifiable developments for the requested topics within the reporting window.

## Output Requirements

Respond in Markdown using only:

- `#`/`##` headings for sections (one section per topic)
- plain paragraphs
- `-` bullet lists for individual findings

## Content Guidelines

1. Only include developments dated inside the reporting window.
2. Give keyword matches priority when choosing what to include.
3. Say plainly when nothing notable happened for a topic.
4. Do not invent sources, figures or quotes.
"""


def build_user_prompt(request: ResearchRequest) -> str:
    """Render the user message for ``request``.

    Parameters
    ----------
    request
        Research request carrying topics, keywords and the window.

    Returns
    -------
    str
        Prompt text listing the window, topics and keywords.

    """
    window = request.window
    lines = [
        "# Research request",
        "",
        f"Reporting window: {window.start.isoformat()} to {window.end.isoformat()}",
        "",
        "## Topics",
        "",
    ]
    lines.extend(f"- {topic}" for topic in request.topics)
    if request.keywords:
        lines.extend(["", "## Keywords", ""])
        lines.extend(f"- {keyword}" for keyword in request.keywords)
    return "\n".join(lines)
