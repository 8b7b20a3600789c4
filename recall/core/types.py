"""
Recall shared types.

Plain dataclasses for values returned to callers, pydantic for validated
caller input (search options).
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, Field

from recall.core.errors import ErrorKind


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Memories
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

MAX_KEY_LENGTH = 255


@dataclass(frozen=True, slots=True)
class Memory:
    """A stored key/value pair with its value already decoded."""

    key: str
    value: str


@dataclass(frozen=True, slots=True)
class SearchResult:
    """One hit from a streamed search."""

    memory: Memory
    relevance_score: float
    metadata: dict[str, Any] = field(default_factory=dict)


class SearchOptions(BaseModel):
    """Optional search parameters. Unset fields are not sent."""

    limit: int | None = Field(default=None, ge=1, le=100)
    offset: int | None = Field(default=None, ge=0)
    min_relevance_score: float | None = Field(default=None, ge=0.0, le=1.0)
    max_age_hours: float | None = Field(default=None, gt=0)
    filters: dict[str, Any] | None = None

    def to_params(self) -> dict[str, str]:
        params: dict[str, str] = {}
        if self.limit is not None:
            params["limit"] = str(self.limit)
        if self.offset is not None:
            params["offset"] = str(self.offset)
        if self.min_relevance_score is not None:
            params["minRelevanceScore"] = str(self.min_relevance_score)
        if self.max_age_hours is not None:
            params["maxAgeHours"] = str(self.max_age_hours)
        if self.filters:
            params["filters"] = json.dumps(self.filters, separators=(",", ":"))
        return params


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Batches
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass(frozen=True, slots=True)
class BatchItemResult:
    """One entry of a batch response's results array."""

    id: str
    status: int = 200
    value: str | None = None
    error: str | None = None

    @property
    def failed(self) -> bool:
        return bool(self.error) or self.status >= 400

    @staticmethod
    def from_dict(data: dict[str, Any]) -> BatchItemResult:
        """Build from a results entry. An unusable status marks the item failed."""
        raw_status = data.get("status", 200)
        error = data.get("error")
        try:
            status = int(raw_status)
        except (TypeError, ValueError):
            status = 0
            error = error or f"Invalid status {raw_status!r}"
        return BatchItemResult(
            id=str(data.get("id", "")),
            status=status,
            value=data.get("value"),
            error=error,
        )


@dataclass(slots=True)
class BatchOutcome:
    """Reconciled batch result: success when failures is empty."""

    success_count: int
    failures: list[tuple[str, ErrorKind]] = field(default_factory=list)
    correlation_id: str | None = None

    @property
    def ok(self) -> bool:
        return not self.failures
