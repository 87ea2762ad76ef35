"""
Chapter Generator
------------------
The two AI writing flows, both grounded in the novel's own text:

  generate_outline -- context -> outline prompt -> gateway -> 4-section parse
  expand_chapter   -- context -> expansion prompt -> gateway -> prose

Context building and gateway errors propagate: the user is waiting on
these calls and should see a failure rather than empty output.
"""
from __future__ import annotations

from typing import Optional

from langsmith import traceable
from loguru import logger

from novel_rag.config import GenerationConfig
from novel_rag.generation.builder import build_expansion_prompt, build_outline_prompt
from novel_rag.generation.gateway import GenerationGateway
from novel_rag.generation.parser import parse_outline_response
from novel_rag.retrieval.assembler import ContextAssembler
from novel_rag.schemas import ChapterOutline, ExpandedChapter, ModelConfig
from novel_rag.utils.helpers import count_words


class ChapterGenerator:

    def __init__(
        self,
        assembler: ContextAssembler,
        gateway: GenerationGateway,
        config: GenerationConfig | None = None,
        recent_limit: int = 3,
    ) -> None:
        self.assembler = assembler
        self.gateway = gateway
        self.config = config or GenerationConfig()
        self.recent_limit = recent_limit

    @traceable(name="generate_outline", run_type="chain")
    async def generate_outline(
        self,
        novel_id: int,
        chapter_number: int,
        model_config: Optional[ModelConfig] = None,
    ) -> ChapterOutline:
        context = await self.assembler.build_context(
            novel_id, chapter_number, recent_limit=self.recent_limit
        )
        prompt = build_outline_prompt(
            context,
            chapter_number,
            preview_chars=self.config.outline_preview_chars,
        )
        logger.debug(
            f"[Generator] Outline | novel={novel_id} chapter={chapter_number} | "
            f"background={'yes' if context.has_background else 'no'}"
        )

        response = await self.gateway.complete(prompt, model_config)
        outline = parse_outline_response(response)

        logger.info(
            f"[Generator] Outline ready | novel={novel_id} chapter={chapter_number} | "
            f"partial={outline.is_partial}"
        )
        return outline

    @traceable(name="expand_chapter", run_type="chain")
    async def expand_chapter(
        self,
        novel_id: int,
        outline: str,
        writing_style: Optional[str] = None,
        target_words: Optional[int] = None,
        model_config: Optional[ModelConfig] = None,
    ) -> ExpandedChapter:
        target = target_words or self.config.target_words
        context = await self.assembler.build_context(novel_id, recent_limit=self.recent_limit)
        # recent_chapters is already newest first, so the style excerpts are
        # the highest-numbered chapters.
        style_chapters = context.recent_chapters[: self.config.expansion_recent_chapters]

        prompt = build_expansion_prompt(
            outline=outline,
            writing_style=writing_style,
            recent_chapters=style_chapters,
            rag_context=context.rag_context,
            target_words=target,
            preview_chars=self.config.expansion_preview_chars,
            background_chars=self.config.background_max_chars,
            default_style=self.config.default_writing_style,
        )
        logger.debug(f"[Generator] Expansion | novel={novel_id} | target={target} words")

        content = await self.gateway.complete(prompt, model_config)
        expanded = ExpandedChapter(content=content, word_count=count_words(content))

        logger.info(
            f"[Generator] Expansion ready | novel={novel_id} | "
            f"{expanded.word_count} words (target {target})"
        )
        return expanded
