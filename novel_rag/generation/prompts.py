"""
Prompt templates for chapter outline and expansion.

Keeping templates in a separate module makes them easy to iterate on
without touching generation logic.
"""

# ---------------------------------------------------------------------------
# Outline sections: (field name, bracket label, placeholder when missing)
# ---------------------------------------------------------------------------

OUTLINE_SECTIONS: list[tuple[str, str, str]] = [
    ("theme",        "章节主题", "暂无主题建议"),
    ("framework",    "情节框架", "暂无框架建议"),
    ("conflicts",    "关键冲突", "暂无冲突建议"),
    ("interactions", "人物互动", "暂无互动建议"),
]

# ---------------------------------------------------------------------------
# Outline prompt
# ---------------------------------------------------------------------------

OUTLINE_PROMPT = """\
你是一位资深小说编辑,正在帮助作者规划下一章节。

【小说背景】
{background}

【前文回顾】
{recent}

【任务】
请为第 {chapter_number} 章提供详细的章节规划,包括:

1. 章节主题建议
2. 情节发展框架
3. 关键冲突点
4. 人物互动要点

要求:
- 保持与前文的连贯性
- 推动主线剧情发展
- 符合小说整体风格
- 具体且可操作

请按照以下格式输出:

【章节主题】
(在此填写章节主题)

【情节框架】
(在此填写情节发展框架)

【关键冲突】
(在此填写关键冲突点)

【人物互动】
(在此填写人物互动要点)"""

OUTLINE_RECENT_TEMPLATE = "【第 {number} 章：{title}】\n{excerpt}"

# ---------------------------------------------------------------------------
# Expansion prompt
# ---------------------------------------------------------------------------

EXPANSION_PROMPT = """\
你是一位专业的小说作家,需要根据章节大纲扩写为完整的章节内容。

【写作风格】
{style}

【前文参考】
{recent}

【相关背景】
{background}

【章节大纲】
{outline}

【任务要求】
1. 根据大纲扩写为约 {target_words} 字的完整章节
2. 模仿上述写作风格
3. 保持与前文的连贯性
4. 情节生动,对话自然
5. 注重细节描写和心理刻画

请直接输出完整的章节内容,不要包含任何说明文字:"""

EXPANSION_RECENT_TEMPLATE = "【第 {number} 章片段】\n{excerpt}"

# ---------------------------------------------------------------------------
# Fallbacks for empty context
# ---------------------------------------------------------------------------

NO_BACKGROUND_OUTLINE = "暂无背景信息"
NO_BACKGROUND_EXPANSION = "暂无背景"
NO_RECENT_CHAPTERS = "这是第一章"
DEFAULT_WRITING_STYLE = "简洁明快,注重情节推进"
