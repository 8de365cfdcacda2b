"""
Strategy selector: ranks catalog strategies for a content profile and device.

score = (1 - w) * static_fit + w * historical + device_bonus + pattern_prior

static_fit compares a strategy's cost with the device's capacity; historical is the
mean observed accuracy minus a latency penalty; w grows with the amount and recency
of matching performance records, so with no history the static term decides alone.
Memory is read once per call, so a ranking is computed from a single snapshot.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Any

from agentrag.agents.scoring import clamp, evidence_weight, normalized_margin, recency_weight
from agentrag.core import config
from agentrag.core.errors import NoStrategiesAvailable, StoreError
from agentrag.schemas.content import ContentProfile
from agentrag.schemas.memory import PerformanceRecord
from agentrag.schemas.strategy import (
    Connectivity,
    DeviceConstraints,
    FormFactor,
    PredictedPerformance,
    ProcessingPower,
    ScoredStrategy,
    SelectionPreferences,
    StrategyDescriptor,
    StrategySelectionResult,
)
from agentrag.services.memory_store import MemoryStore
from agentrag.services.strategy_catalog import StrategyCatalog

logger = logging.getLogger(__name__)

POWER_CAPACITY = {ProcessingPower.LOW: 0.0, ProcessingPower.MEDIUM: 0.5, ProcessingPower.HIGH: 1.0}
CONNECTIVITY_PENALTY = {Connectivity.CELLULAR: 0.25, Connectivity.OFFLINE: 0.5}
FORM_FACTOR_LATENCY = {FormFactor.MOBILE: 1.5, FormFactor.TABLET: 1.2, FormFactor.DESKTOP: 1.0}
LOW_POWER_LATENCY = 1.3
LATENCY_PER_WORD_MS = 0.05


def device_capacity(device: DeviceConstraints, preferences: SelectionPreferences) -> float:
    """How much cost the device/user can absorb, in [0, 1]."""
    capacity = POWER_CAPACITY[device.processing_power]
    capacity -= CONNECTIVITY_PENALTY.get(device.connectivity, 0.0)
    if preferences.prioritize_speed:
        capacity -= 0.25
    if preferences.prioritize_accuracy:
        capacity += 0.25
    return clamp(capacity)


def static_fit(strategy: StrategyDescriptor, capacity: float) -> float:
    return 1.0 - abs(strategy.cost - capacity)


def historical_value(records: list[PerformanceRecord]) -> float:
    accuracy = sum(r.performance.actual_accuracy for r in records) / len(records)
    latency = sum(r.performance.actual_latency_ms for r in records) / len(records)
    return accuracy - config.LATENCY_PENALTY_WEIGHT * min(1.0, latency / config.LATENCY_NORMALIZER_MS)


def history_evidence(records: list[PerformanceRecord], now: datetime) -> float:
    return sum(
        recency_weight((now - r.timestamp).total_seconds(), config.HISTORY_HALF_LIFE_SECONDS)
        for r in records
    )


def device_bonus(strategy: StrategyDescriptor, device: DeviceConstraints) -> float:
    return config.DEVICE_BONUS if strategy.device_optimized and device.is_mobile else 0.0


def predict_performance(
    strategy: StrategyDescriptor,
    device: DeviceConstraints,
    profile: ContentProfile,
    history_weight: float = 0.0,
    observed_accuracy: float | None = None,
) -> PredictedPerformance:
    multiplier = FORM_FACTOR_LATENCY[device.form_factor]
    if device.processing_power == ProcessingPower.LOW:
        multiplier *= LOW_POWER_LATENCY
    latency = strategy.latency_estimate_ms * multiplier + LATENCY_PER_WORD_MS * profile.signals.word_count
    accuracy = strategy.accuracy_estimate
    if observed_accuracy is not None:
        accuracy = (1 - history_weight) * accuracy + history_weight * observed_accuracy
    # Context window plus per-chunk working set
    memory_mb = 16 + strategy.top_k * strategy.chunk_size / 1024 * 4
    return PredictedPerformance(latency_ms=round(latency, 1), accuracy=clamp(accuracy), memory_mb=round(memory_mb, 1))


class StrategySelector:
    def __init__(self, catalog: StrategyCatalog, memory: MemoryStore):
        self.catalog = catalog
        self.memory = memory

    def select(
        self,
        profile: ContentProfile,
        device: DeviceConstraints,
        preferences: dict[str, Any] | SelectionPreferences | None = None,
    ) -> StrategySelectionResult:
        """
        Rank candidate strategies and pick one.
        Raises NoStrategiesAvailable if the catalog is empty.
        """
        prefs = _coerce_preferences(preferences)
        logger.info(
            "[strategy_selector:select] IN  type=%s complexity=%s device=%s power=%s",
            profile.type.value, profile.complexity.value, device.device_type, device.processing_power.value,
        )
        all_strategies = self.catalog.list_strategies()
        if not all_strategies:
            raise NoStrategiesAvailable("Strategy catalog is empty")

        reasoning: list[str] = []
        warnings: list[str] = []
        candidates = self.catalog.by_profile(profile.type, profile.complexity)
        used_fallback = not candidates
        if used_fallback:
            candidates = all_strategies
            reasoning.append("no exact match; using full catalog")

        if prefs.max_processing_time_ms is not None:
            within = [
                s for s in candidates
                if predict_performance(s, device, profile).latency_ms <= prefs.max_processing_time_ms
            ]
            if within and len(within) < len(candidates):
                candidates = within
                reasoning.append(f"dropped strategies predicted slower than {prefs.max_processing_time_ms:.0f} ms")

        history, pattern = self._read_memory(profile, warnings)
        if warnings:
            reasoning.append("memory store unavailable; static scoring only")

        now = self.memory.now()
        capacity = device_capacity(device, prefs)
        ranking: list[ScoredStrategy] = []
        for strategy in candidates:
            static = static_fit(strategy, capacity)
            records = history.get(strategy.name, [])
            weight = evidence_weight(history_evidence(records, now), config.HISTORY_EVIDENCE_PRIOR) if records else 0.0
            hist = historical_value(records) if records else None
            bonus = device_bonus(strategy, device)
            prior = 0.0
            if pattern is not None and pattern.optimal_strategy == strategy.name:
                prior = config.PATTERN_PRIOR_WEIGHT * pattern.confidence
            blended = (1 - weight) * static + weight * hist if hist is not None else static
            ranking.append(
                ScoredStrategy(
                    strategy=strategy,
                    score=blended + bonus + prior,
                    static_score=static,
                    historical_score=hist,
                    history_weight=weight,
                    device_bonus=bonus,
                    pattern_bonus=prior,
                )
            )
        ranking.sort(key=_rank_key)

        reasoning.extend(_explain(ranking, device, prefs))
        best = ranking[0]
        runner_up = ranking[1].score if len(ranking) > 1 else 0.0
        confidence = min(
            config.SELECTION_CONFIDENCE_CAP,
            max(config.SELECTION_CONFIDENCE_FLOOR, normalized_margin(best.score, runner_up)),
        )
        observed = None
        best_records = history.get(best.strategy.name)
        if best_records:
            observed = sum(r.performance.actual_accuracy for r in best_records) / len(best_records)
        result = StrategySelectionResult(
            selected_strategy=best.strategy,
            alternatives=ranking[1 : 1 + config.MAX_ALTERNATIVES],
            ranking=ranking,
            confidence=confidence,
            reasoning=reasoning,
            performance=predict_performance(best.strategy, device, profile, best.history_weight, observed),
            used_fallback_catalog=used_fallback,
            warnings=warnings,
        )
        logger.info(
            "[strategy_selector:select] OUT selected=%s score=%.3f confidence=%.3f candidates=%d",
            best.strategy.name, best.score, confidence, len(ranking),
        )
        return result

    def _read_memory(self, profile: ContentProfile, warnings: list[str]):
        history: dict[str, list[PerformanceRecord]] = defaultdict(list)
        try:
            for record in self.memory.performance_records(
                content_type=profile.type, complexity=profile.complexity
            ):
                history[record.strategy_name].append(record)
            pattern = self.memory.get_pattern(profile.type, profile.complexity, profile.fingerprint)
        except StoreError as e:
            logger.warning("[strategy_selector:select] memory unavailable, static scoring only: %s", e.message)
            warnings.append(f"memory store unavailable: {e.message}")
            return {}, None
        return history, pattern


def _rank_key(scored: ScoredStrategy) -> tuple[float, float, str]:
    return (-scored.score, scored.strategy.latency_estimate_ms, scored.strategy.name)


def _coerce_preferences(preferences: dict[str, Any] | SelectionPreferences | None) -> SelectionPreferences:
    if preferences is None:
        return SelectionPreferences()
    if isinstance(preferences, SelectionPreferences):
        return preferences
    known = {k: v for k, v in preferences.items() if k in SelectionPreferences.model_fields}
    return SelectionPreferences.model_validate(known)


def _explain(ranking: list[ScoredStrategy], device: DeviceConstraints, prefs: SelectionPreferences) -> list[str]:
    """Factors that changed the order relative to static fit alone."""
    factors: list[str] = []
    if prefs.prioritize_speed:
        factors.append("speed prioritized: favoring lower-cost strategies")
    if prefs.prioritize_accuracy:
        factors.append("accuracy prioritized: favoring higher-cost strategies")

    static_best = min(ranking, key=lambda s: (-s.static_score, s.strategy.latency_estimate_ms, s.strategy.name))
    dominant = [s for s in ranking if s.history_weight >= 0.5]
    if dominant:
        names = ", ".join(f"{s.strategy.name} (w={s.history_weight:.2f})" for s in dominant)
        factors.append(f"historical evidence dominates for {names}")
    if static_best.strategy.name != ranking[0].strategy.name and any(s.history_weight > 0 for s in ranking):
        factors.append(
            f"history moved {ranking[0].strategy.name} above static favorite {static_best.strategy.name}"
        )

    boosted = [s.strategy.name for s in ranking if s.device_bonus > 0]
    if boosted:
        factors.append(f"device-optimization bonus applied ({device.device_type}): {', '.join(boosted)}")
    patterned = [s for s in ranking if s.pattern_bonus > 0]
    if patterned:
        factors.append(f"content pattern prior favors {patterned[0].strategy.name}")
    return factors
