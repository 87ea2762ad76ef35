"""
Novel RAG - Web API Server
---------------------------
FastAPI server wrapping NovelRAGPipeline.

Endpoints:
  GET    /api/health                  -> pipeline status and config summary
  POST   /api/novels                  -> create a novel
  POST   /api/novels/{id}/chapters    -> create a chapter (reindex queued)
  PUT    /api/chapters/{id}           -> update a chapter (reindex if content changed)
  DELETE /api/chapters/{id}           -> delete a chapter and its embeddings
  POST   /api/ai/outline              -> four-part outline for a chapter
  POST   /api/ai/expand               -> expand an outline into prose

Run from the project root:
    uvicorn app.server:app --reload --port 8000
"""
from __future__ import annotations

import sys
from contextlib import asynccontextmanager
from typing import Optional

# Windows cp1252 terminal fix
if sys.platform == "win32":
    sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    sys.stderr.reconfigure(encoding="utf-8", errors="replace")

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, Field

from novel_rag.config import load_config
from novel_rag.exceptions import GatewayError, NotFoundError
from novel_rag.schemas import Chapter, ChapterOutline, ExpandedChapter, ModelConfig, Novel

load_dotenv()

# ---------------------------------------------------------------------------
# Pipeline singleton
# ---------------------------------------------------------------------------

_pipeline = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build and start the pipeline once at startup; drain and persist on shutdown."""
    global _pipeline
    from novel_rag.serving.pipeline import NovelRAGPipeline
    from novel_rag.utils.logger import setup_logger

    cfg = load_config()
    setup_logger(cfg.logging)
    logger.info("[Server] Starting pipeline...")
    _pipeline = NovelRAGPipeline(cfg)
    await _pipeline.start()
    yield
    await _pipeline.stop()
    _pipeline = None
    logger.info("[Server] Pipeline stopped.")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Novel RAG API",
    description="Chapter indexing and retrieval-grounded outline/expansion",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": exc.message})


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError):
    logger.error(f"[API] Generation failed on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=502,
        content={"detail": exc.message, "upstream_status": exc.status_code},
    )


def _require_pipeline():
    if _pipeline is None:
        raise HTTPException(status_code=503, detail="Pipeline not ready")
    return _pipeline


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class NovelCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = ""


class ChapterCreate(BaseModel):
    chapter_number: int = Field(..., ge=1)
    title: str = Field(..., min_length=1)
    content: str = ""


class ChapterUpdate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    chapter_number: Optional[int] = Field(None, ge=1)


class OutlineRequest(BaseModel):
    novel_id: int
    chapter_number: int = Field(..., ge=1)
    ai_config: Optional[ModelConfig] = None


class ExpandRequest(BaseModel):
    novel_id: int
    outline: str = Field(..., min_length=1)
    writing_style: Optional[str] = None
    target_words: int = Field(4000, gt=0)
    ai_config: Optional[ModelConfig] = None


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.get("/api/health")
async def health():
    pipeline = _require_pipeline()
    cfg = pipeline.config
    return {
        "status": "ok",
        "embedder": type(pipeline.embedder).__name__,
        "dimensions": pipeline.embedder.dimensions,
        "chunk_size": cfg.chunking.chunk_size,
        "overlap": cfg.chunking.overlap,
        "top_k": cfg.retrieval.top_k,
        "model": cfg.generation.model,
        "reindex_pending": pipeline.reindex_queue.pending,
        "reindex_failed": pipeline.reindex_queue.failed_count,
    }


@app.post("/api/novels", response_model=Novel, status_code=201)
async def create_novel(body: NovelCreate):
    pipeline = _require_pipeline()
    novel = await pipeline.chapters.create_novel(body.title, body.description)
    pipeline.persist()
    return novel


@app.post("/api/novels/{novel_id}/chapters", response_model=Chapter, status_code=201)
async def create_chapter(novel_id: int, body: ChapterCreate):
    pipeline = _require_pipeline()
    chapter = await pipeline.chapters.create_chapter(
        novel_id, body.chapter_number, body.title, body.content
    )
    pipeline.persist()
    return chapter


@app.put("/api/chapters/{chapter_id}", response_model=Chapter)
async def update_chapter(chapter_id: int, body: ChapterUpdate):
    pipeline = _require_pipeline()
    chapter = await pipeline.chapters.update_chapter(
        chapter_id,
        title=body.title,
        content=body.content,
        chapter_number=body.chapter_number,
    )
    pipeline.persist()
    return chapter


@app.delete("/api/chapters/{chapter_id}", status_code=204)
async def delete_chapter(chapter_id: int):
    pipeline = _require_pipeline()
    await pipeline.chapters.delete_chapter(chapter_id)
    pipeline.persist()


@app.post("/api/ai/outline", response_model=ChapterOutline)
async def generate_outline(body: OutlineRequest):
    pipeline = _require_pipeline()
    logger.info(f"[API] Outline | novel={body.novel_id} chapter={body.chapter_number}")
    return await pipeline.generator.generate_outline(
        body.novel_id, body.chapter_number, body.ai_config
    )


@app.post("/api/ai/expand", response_model=ExpandedChapter)
async def expand_chapter(body: ExpandRequest):
    pipeline = _require_pipeline()
    logger.info(f"[API] Expand | novel={body.novel_id} target={body.target_words}")
    return await pipeline.generator.expand_chapter(
        body.novel_id,
        body.outline,
        writing_style=body.writing_style,
        target_words=body.target_words,
        model_config=body.ai_config,
    )
