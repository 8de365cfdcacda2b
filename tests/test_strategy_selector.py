"""
Tests for the strategy catalog and the strategy selector.

Memory is an in-process MemoryStore with a fixed clock, so history weights are exact.
"""

from datetime import datetime, timezone
from typing import get_type_hints
from unittest.mock import patch

import pytest

from agentrag.agents.strategy_selector import StrategySelector, device_capacity, predict_performance
from agentrag.core.errors import NoStrategiesAvailable, StoreError, StrategyNotFoundError
from agentrag.schemas.content import Complexity, ContentProfile, ContentSignals, ContentType
from agentrag.schemas.memory import PerformanceMetrics, PerformanceRecord
from agentrag.schemas.strategy import (
    Connectivity,
    DeviceConstraints,
    FormFactor,
    PerformanceProfile,
    ProcessingPower,
    SelectionPreferences,
    StrategyDescriptor,
)
from agentrag.services.memory_store import MemoryStore
from agentrag.services.strategy_catalog import StrategyCatalog, default_catalog

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

MOBILE_LOW = DeviceConstraints(
    processing_power=ProcessingPower.LOW,
    memory_mb=2048,
    connectivity=Connectivity.CELLULAR,
    form_factor=FormFactor.MOBILE,
)
DESKTOP_MEDIUM = DeviceConstraints(
    processing_power=ProcessingPower.MEDIUM,
    connectivity=Connectivity.ETHERNET,
    form_factor=FormFactor.DESKTOP,
)


def make_profile(content_type: ContentType, complexity: Complexity, fingerprint: str = "") -> ContentProfile:
    return ContentProfile(
        type=content_type,
        complexity=complexity,
        confidence=0.8,
        signals=ContentSignals(word_count=400),
        fingerprint=fingerprint,
    )


def make_record(strategy: str, accuracy: float, latency: float, profile: ContentProfile) -> PerformanceRecord:
    return PerformanceRecord(
        strategy_name=strategy,
        content_type=profile.type,
        complexity=profile.complexity,
        device_type="mobile",
        performance=PerformanceMetrics(actual_latency_ms=latency, actual_accuracy=accuracy),
        fingerprint=profile.fingerprint,
        timestamp=NOW,
    )


@pytest.fixture
def memory() -> MemoryStore:
    return MemoryStore(clock=lambda: NOW)


@pytest.fixture
def selector(memory: MemoryStore) -> StrategySelector:
    return StrategySelector(default_catalog(), memory)


class TestCatalog:
    def test_default_catalog_names_are_unique_and_complete(self) -> None:
        catalog = default_catalog()
        names = [s.name for s in catalog.list_strategies()]
        assert len(names) == len(set(names)) == 7
        assert "balanced" in catalog

    def test_list_annotations_resolve_to_builtin_list(self) -> None:
        """Method names on the catalog must not shadow the builtin used in return annotations."""
        for method in (StrategyCatalog.list_strategies, StrategyCatalog.by_profile, StrategyCatalog.by_tier):
            assert get_type_hints(method)["return"] == list[StrategyDescriptor]
        assert [s.name for s in default_catalog().list_strategies()][:2] == ["conversational-quick", "mobile-optimized"]

    def test_by_profile_includes_mixed_wildcard(self) -> None:
        names = {s.name for s in default_catalog().by_profile(ContentType.CONVERSATIONAL, Complexity.SIMPLE)}
        assert names == {"conversational-quick", "mobile-optimized", "fast", "balanced"}

    def test_by_name_unknown_raises(self) -> None:
        with pytest.raises(StrategyNotFoundError):
            default_catalog().by_name("nope")

    def test_by_tier_and_device_optimized(self) -> None:
        catalog = default_catalog()
        assert {s.name for s in catalog.by_tier(PerformanceProfile.COMPREHENSIVE)} == {"technical-deep", "comprehensive"}
        assert all(s.device_optimized for s in catalog.device_optimized())

    def test_duplicate_names_rejected(self) -> None:
        strategy = default_catalog().by_name("fast")
        with pytest.raises(ValueError):
            StrategyCatalog([strategy, strategy])


class TestSelectStatic:
    def test_mobile_low_power_simple_picks_cheapest_match(self, selector: StrategySelector) -> None:
        profile = make_profile(ContentType.CONVERSATIONAL, Complexity.SIMPLE)
        result = selector.select(profile, MOBILE_LOW)
        candidates = default_catalog().by_profile(profile.type, profile.complexity)
        assert result.selected_strategy.name == "conversational-quick"
        assert result.selected_strategy.cost == min(s.cost for s in candidates)
        assert not result.used_fallback_catalog
        assert [s.strategy.name for s in result.alternatives] == ["mobile-optimized", "fast", "balanced"]
        assert any(r.startswith("device-optimization bonus applied (mobile)") for r in result.reasoning)

    def test_predicted_latency_reflects_device(self, selector: StrategySelector) -> None:
        profile = make_profile(ContentType.CONVERSATIONAL, Complexity.SIMPLE)
        result = selector.select(profile, MOBILE_LOW)
        # 600 ms estimate, x1.5 mobile, x1.3 low power, plus 0.05 ms per word
        assert result.performance.latency_ms == pytest.approx(600 * 1.5 * 1.3 + 0.05 * 400)

    def test_balanced_default_on_desktop(self, selector: StrategySelector) -> None:
        result = selector.select(make_profile(ContentType.TECHNICAL, Complexity.MEDIUM), DESKTOP_MEDIUM)
        assert result.selected_strategy.name == "balanced"

    def test_accuracy_preference_shifts_to_costlier_strategy(self, selector: StrategySelector) -> None:
        profile = make_profile(ContentType.TECHNICAL, Complexity.MEDIUM)
        result = selector.select(profile, DESKTOP_MEDIUM, {"prioritize_accuracy": True, "theme": "dark"})
        assert result.selected_strategy.name == "technical-deep"
        assert "accuracy prioritized: favoring higher-cost strategies" in result.reasoning

    def test_max_processing_time_filters_slow_candidates(self, selector: StrategySelector) -> None:
        profile = make_profile(ContentType.CONVERSATIONAL, Complexity.SIMPLE)
        result = selector.select(profile, MOBILE_LOW, SelectionPreferences(max_processing_time_ms=1400))
        assert {s.strategy.name for s in result.ranking} == {"conversational-quick", "mobile-optimized"}

    def test_no_exact_match_falls_back_to_full_catalog(self, memory: MemoryStore) -> None:
        only = StrategyDescriptor(
            name="tech-only",
            performance_profile=PerformanceProfile.BALANCED,
            content_types=frozenset({ContentType.TECHNICAL}),
            complexity_levels=frozenset({Complexity.COMPLEX}),
            latency_estimate_ms=1000,
            cost=0.5,
        )
        result = StrategySelector(StrategyCatalog([only]), memory).select(
            make_profile(ContentType.ARTICLE, Complexity.SIMPLE), DESKTOP_MEDIUM
        )
        assert result.used_fallback_catalog
        assert result.selected_strategy.name == "tech-only"
        assert result.reasoning[0] == "no exact match; using full catalog"
        # Single candidate: margin over an absent runner-up is capped
        assert result.confidence == 0.95

    def test_empty_catalog_raises(self, memory: MemoryStore) -> None:
        with pytest.raises(NoStrategiesAvailable):
            StrategySelector(StrategyCatalog([]), memory).select(
                make_profile(ContentType.ARTICLE, Complexity.SIMPLE), DESKTOP_MEDIUM
            )

    def test_selection_is_deterministic(self, selector: StrategySelector) -> None:
        profile = make_profile(ContentType.TECHNICAL, Complexity.MEDIUM)
        first = selector.select(profile, MOBILE_LOW)
        second = selector.select(profile, MOBILE_LOW)
        assert [(s.strategy.name, s.score) for s in first.ranking] == [(s.strategy.name, s.score) for s in second.ranking]
        assert first.confidence == second.confidence

    def test_confidence_bounds(self, selector: StrategySelector) -> None:
        for content_type in (ContentType.ARTICLE, ContentType.TECHNICAL, ContentType.STRUCTURED_DATA):
            for complexity in Complexity:
                result = selector.select(make_profile(content_type, complexity), MOBILE_LOW)
                assert 0.1 <= result.confidence <= 0.95
                assert len(result.alternatives) <= 3


class TestSelectWithHistory:
    def test_history_overrides_static_preference(self, memory: MemoryStore, selector: StrategySelector) -> None:
        profile = make_profile(ContentType.TECHNICAL, Complexity.MEDIUM)
        for _ in range(100):
            memory.record_performance(make_record("balanced", 0.9, 1500, profile))
        for _ in range(5):
            memory.record_performance(make_record("fast", 0.4, 800, profile))

        result = selector.select(profile, MOBILE_LOW)

        assert result.selected_strategy.name == "balanced"
        balanced = next(s for s in result.ranking if s.strategy.name == "balanced")
        fast = next(s for s in result.ranking if s.strategy.name == "fast")
        assert balanced.history_weight == pytest.approx(100 / 105)
        assert fast.history_weight == pytest.approx(0.5)
        assert balanced.pattern_bonus > 0
        assert fast.score < balanced.score
        assert any(r.startswith("historical evidence dominates for balanced") for r in result.reasoning)
        assert "history moved balanced above static favorite mobile-optimized" in result.reasoning

    def test_history_moves_predicted_accuracy_toward_observed(self, memory: MemoryStore, selector: StrategySelector) -> None:
        profile = make_profile(ContentType.TECHNICAL, Complexity.MEDIUM)
        for _ in range(45):
            memory.record_performance(make_record("balanced", 0.95, 1500, profile))
        result = selector.select(profile, DESKTOP_MEDIUM)
        assert result.selected_strategy.name == "balanced"
        # w = 45 / 50 = 0.9 -> 0.1 * 0.78 + 0.9 * 0.95
        assert result.performance.accuracy == pytest.approx(0.933)

    def test_memory_failure_degrades_to_static_scoring(self, memory: MemoryStore, selector: StrategySelector) -> None:
        profile = make_profile(ContentType.CONVERSATIONAL, Complexity.SIMPLE)
        with patch.object(memory, "performance_records", side_effect=StoreError("db locked")):
            result = selector.select(profile, MOBILE_LOW)
        assert result.selected_strategy.name == "conversational-quick"
        assert result.warnings == ["memory store unavailable: db locked"]
        assert "memory store unavailable; static scoring only" in result.reasoning
        assert all(s.history_weight == 0 for s in result.ranking)


class TestHelpers:
    def test_device_capacity(self) -> None:
        assert device_capacity(MOBILE_LOW, SelectionPreferences()) == 0.0
        assert device_capacity(DESKTOP_MEDIUM, SelectionPreferences()) == 0.5
        assert device_capacity(DESKTOP_MEDIUM, SelectionPreferences(prioritize_speed=True)) == 0.25

    def test_predict_performance_memory_estimate(self) -> None:
        strategy = default_catalog().by_name("balanced")
        predicted = predict_performance(strategy, DESKTOP_MEDIUM, make_profile(ContentType.ARTICLE, Complexity.SIMPLE))
        assert predicted.memory_mb == pytest.approx(16 + 5 * 1024 / 1024 * 4)
        assert predicted.accuracy == strategy.accuracy_estimate
