"""
Novel RAG - CLI Entry Point
----------------------------
Exposes Typer commands over a JSON-file-backed pipeline.

Usage:
    python -m novel_rag.main add-novel "长夜将明"
    python -m novel_rag.main add-chapter 1 1 "开篇" --file chapter1.txt
    python -m novel_rag.main reindex 3
    python -m novel_rag.main context 1 --chapter 4
    python -m novel_rag.main outline 1 4
    python -m novel_rag.main expand 1 --outline-file outline.txt --words 3000
    python -m novel_rag.main count-words "Hello world 你好世界"
    python -m novel_rag.main status
"""
from __future__ import annotations

import sys

# Windows cp1252 terminal fix: force UTF-8 so Chinese text does not crash
# the Rich console renderer.
if sys.platform == "win32":
    sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    sys.stderr.reconfigure(encoding="utf-8", errors="replace")

import asyncio
from collections import Counter
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from loguru import logger
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from novel_rag.config import DEFAULT_CONFIG_PATH, AppConfig, load_config
from novel_rag.exceptions import GatewayError, NotFoundError
from novel_rag.schemas import ModelConfig
from novel_rag.serving.pipeline import NovelRAGPipeline
from novel_rag.utils.helpers import count_words
from novel_rag.utils.logger import setup_logger

app = typer.Typer(
    name="novel-rag",
    help="Novel writing assistant - chapter indexing and AI drafting CLI",
    add_completion=False,
)
console = Console()

CONFIG_OPTION = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to config YAML")


# --- Helpers ------------------------------------------------------------------

def _bootstrap(config_path: str) -> AppConfig:
    load_dotenv()
    cfg = load_config(config_path)
    setup_logger(cfg.logging)
    return cfg


def _run(coro) -> None:
    """Run a command coroutine, turning domain errors into exit code 1."""
    try:
        asyncio.run(coro)
    except NotFoundError as exc:
        console.print(f"[red]{exc.message}[/red]")
        raise typer.Exit(1)
    except GatewayError as exc:
        console.print(f"[red]Generation failed:[/red] {exc}")
        raise typer.Exit(1)


def _model_config(api_key: Optional[str], base_url: Optional[str], model: Optional[str]) -> ModelConfig:
    return ModelConfig(api_key=api_key, base_url=base_url, model=model)


# --- Commands -----------------------------------------------------------------

@app.command("add-novel")
def add_novel(
    title: str = typer.Argument(..., help="Novel title"),
    description: str = typer.Option("", "--description", "-d"),
    config: str = CONFIG_OPTION,
) -> None:
    """Create a novel."""
    cfg = _bootstrap(config)

    async def _go() -> None:
        async with NovelRAGPipeline(cfg) as pipeline:
            novel = await pipeline.chapters.create_novel(title, description)
        console.print(f"[green][OK] Novel {novel.id} created:[/green] {novel.title}")

    _run(_go())


@app.command("add-chapter")
def add_chapter(
    novel_id: int = typer.Argument(..., help="Owning novel id"),
    number: int = typer.Argument(..., help="Chapter number"),
    title: str = typer.Argument(..., help="Chapter title"),
    file: Path = typer.Option(..., "--file", "-f", exists=True, readable=True, help="UTF-8 chapter text"),
    config: str = CONFIG_OPTION,
) -> None:
    """Save a chapter from a text file and index it."""
    cfg = _bootstrap(config)
    content = file.read_text(encoding="utf-8")

    async def _go() -> None:
        async with NovelRAGPipeline(cfg) as pipeline:
            chapter = await pipeline.chapters.create_chapter(novel_id, number, title, content)
        console.print(
            f"[green][OK] Chapter {chapter.id} saved[/green] | "
            f"#{chapter.chapter_number} {chapter.title} | {chapter.word_count:,} words"
        )

    _run(_go())


@app.command("update-chapter")
def update_chapter(
    chapter_id: int = typer.Argument(...),
    title: Optional[str] = typer.Option(None, "--title"),
    file: Optional[Path] = typer.Option(None, "--file", "-f", exists=True, readable=True),
    config: str = CONFIG_OPTION,
) -> None:
    """Update a chapter's title and/or content (content changes trigger a reindex)."""
    cfg = _bootstrap(config)
    content = file.read_text(encoding="utf-8") if file else None

    async def _go() -> None:
        async with NovelRAGPipeline(cfg) as pipeline:
            chapter = await pipeline.chapters.update_chapter(chapter_id, title=title, content=content)
        console.print(f"[green][OK] Chapter {chapter.id} updated[/green] | {chapter.word_count:,} words")

    _run(_go())


@app.command("delete-chapter")
def delete_chapter(chapter_id: int = typer.Argument(...), config: str = CONFIG_OPTION) -> None:
    """Delete a chapter and its embeddings."""
    cfg = _bootstrap(config)

    async def _go() -> None:
        async with NovelRAGPipeline(cfg) as pipeline:
            await pipeline.chapters.delete_chapter(chapter_id)
        console.print(f"[green][OK] Chapter {chapter_id} deleted[/green]")

    _run(_go())


@app.command()
def reindex(chapter_id: int = typer.Argument(...), config: str = CONFIG_OPTION) -> None:
    """Rebuild one chapter's embeddings in the foreground."""
    cfg = _bootstrap(config)

    async def _go() -> None:
        async with NovelRAGPipeline(cfg) as pipeline:
            stored = await pipeline.assembler.reindex(chapter_id)
        console.print(f"[green][OK] Chapter {chapter_id} reindexed[/green] | {stored} chunk(s)")

    _run(_go())


@app.command()
def context(
    novel_id: int = typer.Argument(...),
    chapter: Optional[int] = typer.Option(None, "--chapter", help="Chapter about to be written"),
    recent: Optional[int] = typer.Option(None, "--recent", help="Recent chapters to include"),
    config: str = CONFIG_OPTION,
) -> None:
    """Show the retrieval context that generation would receive."""
    cfg = _bootstrap(config)

    async def _go() -> None:
        async with NovelRAGPipeline(cfg) as pipeline:
            ctx = await pipeline.assembler.build_context(novel_id, chapter, recent_limit=recent)

        table = Table("No.", "Chapter", "Score", "Excerpt", box=box.SIMPLE, header_style="bold dim")
        for i, result in enumerate(ctx.results, start=1):
            excerpt = result.text.replace("\n", " ")
            table.add_row(
                str(i),
                str(result.chapter_id),
                f"{result.score:.4f}",
                excerpt[:60] + ("..." if len(excerpt) > 60 else ""),
            )
        console.print(table if ctx.results else "[yellow]No stored embeddings for this novel.[/yellow]")
        console.print(
            "[dim]Recent chapters: "
            + (", ".join(f"#{ch.number} {ch.title}" for ch in ctx.recent_chapters) or "none")
            + "[/dim]"
        )

    _run(_go())


@app.command()
def outline(
    novel_id: int = typer.Argument(...),
    chapter_number: int = typer.Argument(..., help="Chapter to plan"),
    api_key: Optional[str] = typer.Option(None, "--api-key", envvar="NOVEL_RAG_USER_API_KEY"),
    base_url: Optional[str] = typer.Option(None, "--base-url", envvar="NOVEL_RAG_USER_BASE_URL"),
    model: Optional[str] = typer.Option(None, "--model"),
    config: str = CONFIG_OPTION,
) -> None:
    """Draft a four-part outline for the next chapter."""
    cfg = _bootstrap(config)

    async def _go() -> None:
        async with NovelRAGPipeline(cfg) as pipeline:
            with console.status("[cyan]Generating outline...[/cyan]"):
                result = await pipeline.generator.generate_outline(
                    novel_id, chapter_number, _model_config(api_key, base_url, model)
                )

        for label, body in (
            ("章节主题", result.theme),
            ("情节框架", result.framework),
            ("关键冲突", result.conflicts),
            ("人物互动", result.interactions),
        ):
            console.print(Panel(body, title=f"[bold green]{label}[/bold green]", border_style="green"))
        if result.is_partial:
            console.print(f"[yellow]Missing from model output:[/yellow] {', '.join(result.missing_sections)}")

    _run(_go())


@app.command()
def expand(
    novel_id: int = typer.Argument(...),
    outline_file: Path = typer.Option(..., "--outline-file", exists=True, readable=True),
    style: Optional[str] = typer.Option(None, "--style", help="Writing style description"),
    words: Optional[int] = typer.Option(None, "--words", help="Target word count"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write prose to this file"),
    api_key: Optional[str] = typer.Option(None, "--api-key", envvar="NOVEL_RAG_USER_API_KEY"),
    base_url: Optional[str] = typer.Option(None, "--base-url", envvar="NOVEL_RAG_USER_BASE_URL"),
    model: Optional[str] = typer.Option(None, "--model"),
    config: str = CONFIG_OPTION,
) -> None:
    """Expand an outline into full chapter prose."""
    cfg = _bootstrap(config)
    outline_text = outline_file.read_text(encoding="utf-8")

    async def _go() -> None:
        async with NovelRAGPipeline(cfg) as pipeline:
            with console.status("[cyan]Writing chapter...[/cyan]"):
                result = await pipeline.generator.expand_chapter(
                    novel_id,
                    outline_text,
                    writing_style=style,
                    target_words=words,
                    model_config=_model_config(api_key, base_url, model),
                )

        if output:
            output.write_text(result.content, encoding="utf-8")
            console.print(f"[green][OK] {result.word_count:,} words written to {output}[/green]")
        else:
            console.print(result.content)
            console.print(f"[dim]{result.word_count:,} words[/dim]")

    _run(_go())


@app.command("count-words")
def count_words_cmd(text: str = typer.Argument(..., help="Text to count")) -> None:
    """Count words (CJK characters + Latin words)."""
    console.print(count_words(text))


@app.command()
def status(config: str = CONFIG_OPTION) -> None:
    """List novels, chapters and indexed chunk counts."""
    cfg = _bootstrap(config)

    async def _go() -> None:
        pipeline = NovelRAGPipeline(cfg)
        store = pipeline.store
        novels = await store.list_novels()
        if not novels:
            console.print(f"[yellow]No novels in {cfg.storage.path}.  Run: python -m novel_rag.main add-novel[/yellow]")
            return

        table = Table("Novel", "Chapter", "Title", "Words", "Chunks", box=box.SIMPLE, header_style="bold dim")
        for novel in novels:
            table.add_row(f"{novel.id} {novel.title}", "", "", f"{novel.total_words:,}", "")
            chunks = Counter(row.chapter_id for row in await store.get_all_embeddings(novel.id))
            for ch in await store.list_chapters(novel.id):
                table.add_row(
                    "",
                    f"#{ch.chapter_number} (id {ch.id})",
                    ch.title,
                    f"{ch.word_count:,}",
                    str(chunks[ch.id]),
                )
        console.print(table)
        logger.debug(f"[CLI] status | {len(novels)} novel(s)")

    _run(_go())


# --- Entry Point --------------------------------------------------------------

if __name__ == "__main__":
    app()
