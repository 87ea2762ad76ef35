"""
Exception hierarchy for the novel context-retrieval core.

Every error carries a `details` dict so log lines and API responses can
report the offending ids without string parsing.
"""
from __future__ import annotations

from typing import Any, Optional


class NovelRagError(Exception):
    """Base exception for all novel_rag errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class NotFoundError(NovelRagError):
    """Raised when a referenced chapter or novel does not exist."""

    def __init__(self, entity: str, entity_id: int) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"{entity.capitalize()} not found: {entity_id}",
            {"entity": entity, "id": entity_id},
        )


class DimensionMismatchError(NovelRagError):
    """
    Raised when a stored vector's length differs from the query vector's.

    Indicates corrupted rows or a corpus embedded by a different provider.
    Never coerced silently.
    """

    def __init__(self, expected: int, actual: int, details: dict[str, Any] | None = None) -> None:
        self.expected = expected
        self.actual = actual
        details = dict(details or {})
        details.update({"expected": expected, "actual": actual})
        super().__init__(
            f"Vector dimension mismatch: expected {expected}, got {actual}",
            details,
        )


class GatewayError(NovelRagError):
    """Raised when the text-generation call fails (network, auth, rate limit, non-2xx)."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.status_code = status_code
        details = dict(details or {})
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, details)
