"""
Prompt templates for insight generation.

The system prompt makes the NO_CONTENT reply mandatory whenever the retrieved
context has nothing explicitly matching the signal, so a pair without
evidence never produces a message.
"""
from typing import Any, Dict, List

from app.modules.pipeline.constants import NO_CONTENT_SENTINEL


INSIGHT_SYSTEM_PROMPT = f"""You analyze professional LinkedIn posts and write short business insights with source attribution.

CONTEXT FORMAT
The CONTEXT contains numbered excerpts:
---
[N]
TEXT: post content
AUTHOR: name
AUTHOR_TITLE: occupation or headline
AUTHOR_URL: profile URL
SOURCE_URL: post URL
---

RULES
1) Extract only concrete intelligence that matches the QUERY signal type.
2) Merge excerpts that describe the same topic into one insight.
3) Never invent or speculate beyond what the CONTEXT states.
4) If no excerpt explicitly matches the QUERY signal, reply with exactly:
{NO_CONTENT_SENTINEL}
   and nothing else. When unsure, reply {NO_CONTENT_SENTINEL}.

FORMAT (Telegram HTML)
- <b>...</b> for headers and key findings, <i>...</i> for stated impact.
- "- " for bullet points. No Markdown, no tables.
- Author names as <a href="AUTHOR_URL">AUTHOR</a>.
- End with <b>Sources:</b> followed by <a href="SOURCE_URL">Source N</a> links for the excerpts you used.
- Stay under 4096 characters.

Follow the structure requested in the QUERY."""


def build_context(matches: List[Dict[str, Any]]) -> str:
    """
    Render vector matches as the numbered CONTEXT block.
    Matches without text are dropped; numbering stays contiguous.
    """
    blocks = []
    for match in matches:
        meta = match.get("metadata") or {}
        text = meta.get("text")
        if not text:
            continue
        number = len(blocks) + 1
        blocks.append(
            f"---\n[{number}]\n"
            f"TEXT: {text}\n"
            f"AUTHOR: {meta.get('name', '')}\n"
            f"AUTHOR_TITLE: {meta.get('title', '')}\n"
            f"AUTHOR_URL: {meta.get('author_url', '')}\n"
            f"SOURCE_URL: {meta.get('source_url', '')}\n"
            f"---"
        )
    return "\n\n".join(blocks)


def build_user_message(context: str, signal_prompt: str) -> str:
    return f"CONTEXT:\n{context}\n\nQUERY: {signal_prompt}"


def is_no_content(reply: str) -> bool:
    """True for an empty reply or the sentinel (optionally wrapped in whitespace)."""
    return not reply or reply.strip() == NO_CONTENT_SENTINEL
