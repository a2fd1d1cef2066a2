"""Prompt assembly for retrieval-augmented answers.

Retrieved sections go only into the leading system message; the client's
conversation follows verbatim, latest user turn included.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from askaussie.core.ai_constants import CONSTITUTION_SYSTEM_PROMPT, SECTION_DELIMITER
from askaussie.knowledge.models import ScoredSection

_NON_ASCII = re.compile(r"[^\x00-\x7F]")


@dataclass
class PromptBundle:
    """Messages for the completion model plus retrieval metadata."""

    messages: list[dict[str, str]]
    section_ids: str = ""


def format_section(section: ScoredSection) -> str:
    """Render one section with its labels and text."""
    parts: list[str] = []
    if section.section:
        parts.append(f"• Section: {section.section}")
    if section.chapter:
        parts.append(f"• Chapter: {section.chapter}")
    if section.part:
        parts.append(f"• Part: {section.part}")
    if section.content:
        parts.append(f"• Text:\n{section.content}")
    return "\n".join(parts)


def build_context(sections: Sequence[ScoredSection]) -> str:
    """Join rendered sections in ranking order."""
    return SECTION_DELIMITER.join(format_section(s) for s in sections)


def build_system_prompt(context: str) -> str:
    """Fill the system prompt, adding a context block only when non-empty."""
    context_block = f"\n\nRelevant Sections:\n{context}" if context else ""
    return CONSTITUTION_SYSTEM_PROMPT.format(context_block=context_block)


def sanitize_header_value(value: str) -> str:
    """Remove non-ASCII characters (e.g., '§51' -> '51')."""
    return _NON_ASCII.sub("", value)


def relevant_section_ids(sections: Sequence[ScoredSection]) -> str:
    """Comma-joined, ASCII-only section identifiers for the response header."""
    labels = (sanitize_header_value(str(s.section)) for s in sections if s.section)
    return ", ".join(label for label in labels if label)


def build_messages(
    sections: Sequence[ScoredSection],
    conversation: Sequence[Any],
) -> PromptBundle:
    """Assemble the ordered message list for the completion call.

    Args:
        sections: Retrieved sections, highest similarity first.
        conversation: Client messages (objects with ``role`` and ``content``
            attributes, or dicts with those keys).

    Returns:
        PromptBundle with one system message followed by the conversation.
    """
    system_prompt = build_system_prompt(build_context(sections))

    messages: list[dict[str, str]] = [{"role": "system", "content": system_prompt}]
    for message in conversation:
        if isinstance(message, dict):
            messages.append({"role": message["role"], "content": message["content"]})
        else:
            messages.append({"role": message.role, "content": message.content})

    return PromptBundle(
        messages=messages,
        section_ids=relevant_section_ids(sections),
    )
