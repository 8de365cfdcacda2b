"""
Shared-memory inspection endpoints: store stats, entry queries, strategy performance
summaries and content patterns, plus the cleanup/clear admin actions.
Mounted under /shared-memory.
"""

import logging
from collections import defaultdict
from typing import Any, Literal

from fastapi import APIRouter, Depends, Query

from agentrag.api.handlers import (
    get_services,
    handle_memory_cleanup,
    handle_memory_clear,
    handle_memory_entry,
    handle_memory_query,
)
from agentrag.core.container import Services
from agentrag.schemas.content import Complexity, ContentType
from agentrag.schemas.memory import ContentPattern, MemoryEntry, MemoryQuery, MemoryStats, MemoryType

logger = logging.getLogger(__name__)

memory_router = APIRouter(tags=["shared-memory"])


@memory_router.get("/stats", response_model=MemoryStats, summary="Memory store statistics")
def memory_stats(services: Services = Depends(get_services)) -> MemoryStats:
    return services.memory.stats()


@memory_router.get("/query", summary="Query memory entries", description="Unset criteria are ignored. Tags match when any listed tag is present.")
def memory_query(
    type: MemoryType | None = None,
    tags: list[str] | None = Query(None),
    source: str | None = None,
    min_confidence: float | None = None,
    max_age_seconds: float | None = None,
    limit: int | None = Query(None, ge=0),
    sort_by: Literal["created_at", "expires_at", "confidence"] = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    criteria = MemoryQuery(
        type=type,
        tags=tags,
        source=source,
        min_confidence=min_confidence,
        max_age_seconds=max_age_seconds,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    entries = handle_memory_query(services, criteria)
    return {"count": len(entries), "entries": [e.model_dump(mode="json") for e in entries]}


@memory_router.get(
    "/strategy-performance",
    summary="Observed performance per strategy",
    description="Aggregates live performance records: runs, success rate, mean accuracy and latency.",
)
def strategy_performance(
    strategy_name: str | None = None,
    content_type: ContentType | None = None,
    complexity: Complexity | None = None,
    device_type: str | None = None,
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    records = services.memory.performance_records(strategy_name, content_type, complexity, device_type)
    grouped: dict[str, list] = defaultdict(list)
    for record in records:
        grouped[record.strategy_name].append(record)
    summary = {}
    for name, rows in sorted(grouped.items()):
        summary[name] = {
            "runs": len(rows),
            "success_rate": round(sum(1 for r in rows if r.success) / len(rows), 4),
            "avg_accuracy": round(sum(r.performance.actual_accuracy for r in rows) / len(rows), 4),
            "avg_latency_ms": round(sum(r.performance.actual_latency_ms for r in rows) / len(rows), 2),
        }
    logger.info("[memory_routes:strategy_performance] OUT strategies=%d records=%d", len(summary), len(records))
    return {"total_records": len(records), "strategies": summary}


@memory_router.get("/content-patterns", response_model=list[ContentPattern], summary="Aggregated content patterns")
def content_patterns(
    content_type: ContentType | None = None,
    complexity: Complexity | None = None,
    services: Services = Depends(get_services),
) -> list[ContentPattern]:
    return services.memory.content_patterns(content_type, complexity)


@memory_router.get("/entry/{key}", response_model=MemoryEntry, summary="Get one memory entry")
def memory_entry(key: str, services: Services = Depends(get_services)) -> MemoryEntry:
    return handle_memory_entry(services, key)


@memory_router.post("/cleanup", summary="Remove expired entries")
def memory_cleanup(services: Services = Depends(get_services)) -> dict:
    removed = handle_memory_cleanup(services)
    return {"removed": removed}


@memory_router.delete("/clear", summary="Remove all memory entries")
def memory_clear(services: Services = Depends(get_services)) -> dict:
    handle_memory_clear(services)
    logger.info("[memory_routes:clear] memory cleared")
    return {"cleared": True}
