"""
Application configuration.

Settings live in a YAML file (config/config.yaml by default) and are
validated into pydantic models.  Any section or key left out of the file
falls back to the defaults below, so an absent file is a valid config.

Secrets (OPENAI_API_KEY, OPENAI_BASE_URL) are read from the environment by
the OpenAI SDK and never belong in the YAML.
"""
from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from loguru import logger
from pydantic import BaseModel, Field, model_validator

DEFAULT_CONFIG_PATH = "config/config.yaml"


class ChunkingConfig(BaseModel):
    chunk_size: int = Field(800, gt=0)
    overlap: int = Field(100, ge=0)

    @model_validator(mode="after")
    def _overlap_below_chunk_size(self) -> "ChunkingConfig":
        if self.overlap >= self.chunk_size:
            raise ValueError(
                f"chunking.overlap ({self.overlap}) must be smaller than "
                f"chunking.chunk_size ({self.chunk_size})"
            )
        return self


class EmbeddingConfig(BaseModel):
    provider: Literal["hash", "openai"] = "hash"
    dimensions: int = Field(1536, gt=0)
    model: str = "text-embedding-3-small"
    batch_size: int = Field(512, gt=0)


class RetrievalConfig(BaseModel):
    top_k: int = Field(15, gt=0)
    recent_limit: int = Field(3, ge=0)


class GenerationConfig(BaseModel):
    model: str = "gpt-4o-mini"              # built-in default model
    user_default_model: str = "gpt-4"       # used when a user endpoint omits a model
    temperature: float = 0.7
    outline_preview_chars: int = 500
    expansion_preview_chars: int = 300
    background_max_chars: int = 1000
    expansion_recent_chapters: int = 2
    target_words: int = 4000
    default_writing_style: str = "简洁明快,注重情节推进"


class StorageConfig(BaseModel):
    path: str = "data/store.json"


class IndexingConfig(BaseModel):
    workers: int = Field(2, gt=0)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file: str = "logs/novel_rag.log"      # empty string disables the file sink
    rotation: str = "10 MB"
    retention: str = "7 days"


class AppConfig(BaseModel):
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    indexing: IndexingConfig = Field(default_factory=IndexingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(path: str | Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    """Read and validate the YAML config; a missing file yields defaults."""
    p = Path(path)
    if not p.exists():
        logger.debug(f"[Config] {p} not found, using defaults")
        return AppConfig()

    with open(p, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    return AppConfig.model_validate(raw)
