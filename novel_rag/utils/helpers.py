"""Shared utility functions used across the core."""
from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Sequence

import numpy as np
import orjson


# --- Text Utilities -----------------------------------------------------------

_CJK_CHAR = re.compile(r"[\u4e00-\u9fa5]")
_LATIN_WORD = re.compile(r"[a-zA-Z]+")


def count_words(text: str) -> int:
    """
    Count words across Chinese and Latin script.

    Each CJK ideograph counts as one unit and each maximal run of Latin
    letters counts as one unit.  Digits and punctuation count as nothing.

        count_words("这是一个测试文本")        -> 8
        count_words("Hello world 你好世界")   -> 6
    """
    if not text:
        return 0
    return len(_CJK_CHAR.findall(text)) + len(_LATIN_WORD.findall(text))


def truncate_text(text: str, max_chars: int = 300) -> str:
    """Truncate text for prompt excerpts and display."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars].rstrip() + "..."


# --- Vector Codec -------------------------------------------------------------

def encode_vector(vector: Sequence[float] | np.ndarray) -> str:
    """Serialise a vector as a JSON float array (stores have no vector column)."""
    return orjson.dumps(np.asarray(vector, dtype=np.float64).tolist()).decode("utf-8")


def decode_vector(payload: str | bytes) -> list[float]:
    """Inverse of encode_vector."""
    values = orjson.loads(payload)
    if not isinstance(values, list):
        raise ValueError(f"Expected a JSON array for a vector, got {type(values).__name__}")
    return [float(v) for v in values]


# --- File I/O -----------------------------------------------------------------

def save_json(data: Any, path: str | Path) -> None:
    """Serialise data to JSON using orjson (fast, handles datetime/UUID)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        f.write(orjson.dumps(data, option=orjson.OPT_INDENT_2 | orjson.OPT_NON_STR_KEYS))


def load_json(path: str | Path) -> Any:
    """Load JSON data from file."""
    with open(Path(path), "rb") as f:
        return orjson.loads(f.read())
