"""Schemas for the shared memory store: the entry envelope and the records it wraps."""

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from agentrag.schemas.content import Complexity, ContentType


class MemoryType(str, Enum):
    PERFORMANCE_RECORD = "performance_record"
    CONTENT_PATTERN = "content_pattern"
    CONTENT_ANALYSIS = "content_analysis"
    USER_PREFERENCES = "user_preferences"


class MemoryEntry(BaseModel):
    """Envelope around any persisted record. The store's only physical storage unit."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(..., min_length=1)
    type: MemoryType
    data: dict[str, Any] = Field(default_factory=dict)
    tags: tuple[str, ...] = ()
    source: str = "unknown"
    confidence: float = Field(0.5, ge=0.0, le=1.0)
    created_at: datetime
    expires_at: datetime

    @model_validator(mode="after")
    def _expiry_not_before_creation(self) -> "MemoryEntry":
        if self.expires_at < self.created_at:
            raise ValueError("expires_at must be >= created_at")
        return self


class PerformanceMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    predicted_latency_ms: float = 0.0
    actual_latency_ms: float = 0.0
    predicted_accuracy: float = Field(0.0, ge=0.0, le=1.0)
    actual_accuracy: float = Field(0.0, ge=0.0, le=1.0)


class PerformanceRecord(BaseModel):
    """One observed outcome of running a strategy. Append-only; never mutated, only expired."""

    model_config = ConfigDict(frozen=True)

    strategy_name: str
    content_type: ContentType
    complexity: Complexity
    device_type: str = "desktop"
    performance: PerformanceMetrics
    success: bool = True
    fingerprint: str = ""
    workflow_id: str | None = None
    timestamp: datetime


class ContentPattern(BaseModel):
    """Aggregated summary of performance records for one (type, complexity, fingerprint) tuple."""

    model_config = ConfigDict(frozen=True)

    content_type: ContentType
    complexity: Complexity
    fingerprint: str = ""
    occurrences: int = 0
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    optimal_strategy: str | None = None
    last_seen: datetime


class MemoryQuery(BaseModel):
    """Query criteria; anything left unset is ignored."""

    type: MemoryType | None = None
    tags: list[str] | None = None
    source: str | None = None
    min_confidence: float | None = None
    max_age_seconds: float | None = None
    limit: int | None = Field(None, ge=0)
    sort_by: Literal["created_at", "expires_at", "confidence"] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"


class MemoryStats(BaseModel):
    entry_count: int
    memory_usage_estimate: int = Field(..., description="Rough size in bytes of the serialized entries.")
    oldest_entry: datetime | None = None
    newest_entry: datetime | None = None
    entries_by_type: dict[str, int] = Field(default_factory=dict)
    average_confidence: float = 0.0
