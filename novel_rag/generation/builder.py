"""Prompt construction from an assembled AIContext."""
from __future__ import annotations

from typing import Optional

from novel_rag.generation.prompts import (
    DEFAULT_WRITING_STYLE,
    EXPANSION_PROMPT,
    EXPANSION_RECENT_TEMPLATE,
    NO_BACKGROUND_EXPANSION,
    NO_BACKGROUND_OUTLINE,
    NO_RECENT_CHAPTERS,
    OUTLINE_PROMPT,
    OUTLINE_RECENT_TEMPLATE,
)
from novel_rag.schemas import AIContext, RecentChapter
from novel_rag.utils.helpers import truncate_text


def build_outline_prompt(
    context: AIContext,
    chapter_number: int,
    preview_chars: int = 500,
) -> str:
    """
    Outline request for `chapter_number`.

    Each recent chapter contributes its title and the first `preview_chars`
    characters of its content.
    """
    recent = "\n\n".join(
        OUTLINE_RECENT_TEMPLATE.format(
            number=ch.number,
            title=ch.title,
            excerpt=truncate_text(ch.content, preview_chars),
        )
        for ch in context.recent_chapters
    )
    return OUTLINE_PROMPT.format(
        background=context.rag_context or NO_BACKGROUND_OUTLINE,
        recent=recent or NO_RECENT_CHAPTERS,
        chapter_number=chapter_number,
    )


def build_expansion_prompt(
    outline: str,
    writing_style: Optional[str],
    recent_chapters: list[RecentChapter],
    rag_context: str,
    target_words: int = 4000,
    preview_chars: int = 300,
    background_chars: int = 1000,
    default_style: str = DEFAULT_WRITING_STYLE,
) -> str:
    """
    Expansion request turning `outline` into roughly `target_words` of prose.

    Recent chapters are cut to `preview_chars` and the background block to
    `background_chars`.
    """
    recent = "\n\n".join(
        EXPANSION_RECENT_TEMPLATE.format(
            number=ch.number,
            excerpt=truncate_text(ch.content, preview_chars),
        )
        for ch in recent_chapters
    )
    return EXPANSION_PROMPT.format(
        style=writing_style or default_style,
        recent=recent or NO_RECENT_CHAPTERS,
        background=rag_context[:background_chars] or NO_BACKGROUND_EXPANSION,
        outline=outline,
        target_words=target_words,
    )
