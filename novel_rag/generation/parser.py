"""
Outline response parsing.

Each section runs from its 【label】 to the next 【 (or end of text).  A
section the model left out gets its placeholder; a partial answer never
fails the parse.
"""
from __future__ import annotations

import re

from loguru import logger

from novel_rag.generation.prompts import OUTLINE_SECTIONS
from novel_rag.schemas import ChapterOutline

_SECTION_PATTERNS: dict[str, re.Pattern[str]] = {
    field: re.compile(rf"【{label}】\s*(.*?)(?=【|$)", re.S)
    for field, label, _ in OUTLINE_SECTIONS
}


def parse_outline_response(response: str) -> ChapterOutline:
    values: dict[str, str] = {}
    missing: list[str] = []

    for field, label, placeholder in OUTLINE_SECTIONS:
        match = _SECTION_PATTERNS[field].search(response or "")
        if match:
            values[field] = match.group(1).strip()
        else:
            values[field] = placeholder
            missing.append(label)

    if missing:
        logger.warning(f"[Parser] Outline missing section(s) {missing}, placeholders used")

    return ChapterOutline(**values, missing_sections=missing)
