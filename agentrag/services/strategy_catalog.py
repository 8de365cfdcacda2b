"""
Strategy catalog: the read-only registry of retrieval/answering strategies.

Populated once at startup; descriptors are immutable. A descriptor listing the
"mixed" content type matches any content type.
"""

import logging
from typing import Iterable

from agentrag.core.errors import StrategyNotFoundError
from agentrag.schemas.content import Complexity, ContentType
from agentrag.schemas.strategy import ChunkingMethod, PerformanceProfile, StrategyDescriptor

logger = logging.getLogger(__name__)

ALL_COMPLEXITIES = frozenset(Complexity)


class StrategyCatalog:
    def __init__(self, strategies: Iterable[StrategyDescriptor]):
        ordered: dict[str, StrategyDescriptor] = {}
        for strategy in strategies:
            if strategy.name in ordered:
                raise ValueError(f"Duplicate strategy name: {strategy.name!r}")
            ordered[strategy.name] = strategy
        self._strategies = ordered
        logger.info("[strategy_catalog] loaded strategies=%s", list(ordered))

    def __len__(self) -> int:
        return len(self._strategies)

    def __contains__(self, name: object) -> bool:
        return name in self._strategies

    def list_strategies(self) -> list[StrategyDescriptor]:
        return list(self._strategies.values())

    def by_profile(self, content_type: ContentType, complexity: Complexity) -> list[StrategyDescriptor]:
        """Strategies supporting the given content type (or the mixed wildcard) and complexity."""
        return [s for s in self._strategies.values() if s.supports(content_type, complexity)]

    def by_name(self, name: str) -> StrategyDescriptor:
        try:
            return self._strategies[name]
        except KeyError:
            raise StrategyNotFoundError(name) from None

    def by_tier(self, tier: PerformanceProfile) -> list[StrategyDescriptor]:
        return [s for s in self._strategies.values() if s.performance_profile == tier]

    def device_optimized(self) -> list[StrategyDescriptor]:
        return [s for s in self._strategies.values() if s.device_optimized]


def default_strategies() -> list[StrategyDescriptor]:
    return [
        StrategyDescriptor(
            name="conversational-quick",
            description="Sentence chunks and a short answer for chat-like or short prose content.",
            performance_profile=PerformanceProfile.FAST,
            content_types=frozenset({ContentType.CONVERSATIONAL, ContentType.ARTICLE}),
            complexity_levels=frozenset({Complexity.SIMPLE, Complexity.MEDIUM}),
            device_optimized=True,
            latency_estimate_ms=600,
            cost=0.1,
            accuracy_estimate=0.6,
            chunking_method=ChunkingMethod.SENTENCE,
            chunk_size=256,
            chunk_overlap=32,
            top_k=3,
            max_tokens=200,
        ),
        StrategyDescriptor(
            name="mobile-optimized",
            description="Small chunks and few sources to keep payload and latency low on handheld devices.",
            performance_profile=PerformanceProfile.FAST,
            content_types=frozenset({ContentType.ARTICLE, ContentType.CONVERSATIONAL, ContentType.TECHNICAL}),
            complexity_levels=frozenset({Complexity.SIMPLE, Complexity.MEDIUM}),
            device_optimized=True,
            latency_estimate_ms=700,
            cost=0.15,
            accuracy_estimate=0.62,
            chunking_method=ChunkingMethod.SENTENCE,
            chunk_size=256,
            chunk_overlap=50,
            top_k=3,
            max_tokens=250,
        ),
        StrategyDescriptor(
            name="fast",
            description="Sentence chunking with a small context window.",
            performance_profile=PerformanceProfile.FAST,
            content_types=frozenset({ContentType.MIXED}),
            complexity_levels=frozenset({Complexity.SIMPLE, Complexity.MEDIUM}),
            device_optimized=True,
            latency_estimate_ms=800,
            cost=0.2,
            accuracy_estimate=0.65,
            chunking_method=ChunkingMethod.SENTENCE,
            chunk_size=512,
            chunk_overlap=100,
            top_k=4,
            max_tokens=300,
        ),
        StrategyDescriptor(
            name="balanced",
            description="Paragraph chunking; the general-purpose default.",
            performance_profile=PerformanceProfile.BALANCED,
            content_types=frozenset({ContentType.MIXED}),
            complexity_levels=ALL_COMPLEXITIES,
            device_optimized=True,
            latency_estimate_ms=2000,
            cost=0.5,
            accuracy_estimate=0.78,
            chunking_method=ChunkingMethod.PARAGRAPH,
            chunk_size=1024,
            chunk_overlap=150,
            top_k=5,
            max_tokens=400,
        ),
        StrategyDescriptor(
            name="structured-extract",
            description="Semantic chunks that keep rows and records together for tables and data files.",
            performance_profile=PerformanceProfile.BALANCED,
            content_types=frozenset({ContentType.STRUCTURED_DATA}),
            complexity_levels=ALL_COMPLEXITIES,
            latency_estimate_ms=2500,
            cost=0.6,
            accuracy_estimate=0.85,
            chunking_method=ChunkingMethod.SEMANTIC,
            chunk_size=2048,
            chunk_overlap=200,
            top_k=5,
            max_tokens=500,
        ),
        StrategyDescriptor(
            name="technical-deep",
            description="Section chunking along headings for documentation and code-heavy content.",
            performance_profile=PerformanceProfile.COMPREHENSIVE,
            content_types=frozenset({ContentType.TECHNICAL, ContentType.STRUCTURED_DATA}),
            complexity_levels=frozenset({Complexity.MEDIUM, Complexity.COMPLEX}),
            latency_estimate_ms=4000,
            cost=0.8,
            accuracy_estimate=0.88,
            chunking_method=ChunkingMethod.SECTION,
            chunk_size=1536,
            chunk_overlap=200,
            top_k=6,
            max_tokens=700,
        ),
        StrategyDescriptor(
            name="comprehensive",
            description="Large semantic chunks and many sources for long, complex documents.",
            performance_profile=PerformanceProfile.COMPREHENSIVE,
            content_types=frozenset({ContentType.MIXED}),
            complexity_levels=frozenset({Complexity.MEDIUM, Complexity.COMPLEX}),
            latency_estimate_ms=5000,
            cost=0.9,
            accuracy_estimate=0.9,
            chunking_method=ChunkingMethod.SEMANTIC,
            chunk_size=2048,
            chunk_overlap=300,
            top_k=8,
            max_tokens=800,
        ),
    ]


def default_catalog() -> StrategyCatalog:
    return StrategyCatalog(default_strategies())
