"""
JSON-file store
----------------
InMemoryStore persisted to a single JSON document with orjson, for the CLI
and single-user deployments.

Layout of the document:
  - novels      -> list of Novel dicts
  - chapters    -> list of Chapter dicts
  - embeddings  -> list of rows; `embedding` is a JSON-encoded float array
  - next_ids    -> id counters

Writes are explicit: call save() after a batch of changes.
"""
from __future__ import annotations

from pathlib import Path

from loguru import logger

from novel_rag.schemas import Chapter, Novel
from novel_rag.storage.memory import InMemoryStore
from novel_rag.utils.helpers import load_json, save_json


class JsonFileStore(InMemoryStore):

    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self.path = Path(path)

    def save(self) -> None:
        """Persist all novels, chapters and embedding rows to self.path."""
        payload = {
            "novels": [n.model_dump(mode="json") for n in self.novels.values()],
            "chapters": [c.model_dump(mode="json") for c in self.chapters.values()],
            "embeddings": self.embeddings,
            "next_ids": self._next_ids,
        }
        save_json(payload, self.path)
        logger.debug(
            f"[Store] Saved {len(self.novels)} novels, {len(self.chapters)} chapters, "
            f"{len(self.embeddings)} embeddings -> {self.path}"
        )

    @classmethod
    def load(cls, path: str | Path) -> "JsonFileStore":
        """Load a store from disk; a missing file yields an empty store."""
        instance = cls(path)
        if not instance.path.exists():
            logger.debug(f"[Store] {instance.path} not found, starting empty")
            return instance

        raw = load_json(instance.path)
        instance.novels = {n["id"]: Novel(**n) for n in raw.get("novels", [])}
        instance.chapters = {c["id"]: Chapter(**c) for c in raw.get("chapters", [])}
        instance.embeddings = list(raw.get("embeddings", []))
        instance._next_ids.update(raw.get("next_ids", {}))

        logger.info(
            f"[Store] Loaded {len(instance.novels)} novels, {len(instance.chapters)} chapters, "
            f"{len(instance.embeddings)} embeddings from {instance.path}"
        )
        return instance
