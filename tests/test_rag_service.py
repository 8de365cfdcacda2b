"""
Tests for the execution dispatcher: extractive and LLM answers, and the performance
record written back to memory for every run.
"""

from unittest.mock import patch

import pytest

from agentrag.agents.llm import LLMResponse
from agentrag.core.errors import ExecutionError, LLMError, StoreError
from agentrag.schemas.content import Complexity, ContentProfile, ContentType
from agentrag.schemas.strategy import PerformanceProfile, PredictedPerformance, SourceChunk, StrategyDescriptor
from agentrag.services.memory_store import MemoryStore
from agentrag.services.rag_service import (
    NOT_FOUND_ANSWER,
    ExecutionDispatcher,
    build_context,
    estimate_accuracy,
    extractive_answer,
)
from agentrag.services.strategy_catalog import default_catalog

CONTENT = (
    "Solar panels convert sunlight into electricity. Wind turbines use moving air.\n\n"
    "Batteries store surplus energy for the night."
)
QUESTION = "How do batteries store energy?"
PROFILE = ContentProfile(
    type=ContentType.ARTICLE,
    complexity=Complexity.SIMPLE,
    confidence=0.8,
    fingerprint="h0-t0-l0-c0-n0",
)


class FakeLLM:
    def __init__(self, text: str = "", error: Exception | None = None):
        self.text = text
        self.error = error
        self.prompts: list[str] = []

    def complete(self, prompt: str, max_tokens: int = 256) -> LLMResponse:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return LLMResponse(text=self.text, prompt_tokens=120, completion_tokens=5, latency_ms=40.0)


@pytest.fixture
def memory() -> MemoryStore:
    return MemoryStore()


def make_dispatcher(memory: MemoryStore, llm: FakeLLM | None = None) -> ExecutionDispatcher:
    return ExecutionDispatcher(default_catalog(), memory, llm)


class TestExecute:
    def test_extractive_answer_without_llm(self, memory: MemoryStore) -> None:
        strategy = default_catalog().by_name("fast")
        result = make_dispatcher(memory).execute(strategy, CONTENT, QUESTION, PROFILE, device_type="mobile", workflow_id="wf-1")
        assert result.answer == "Batteries store surplus energy for the night."
        assert result.extractive
        assert result.strategy_name == "fast"
        assert result.confidence == pytest.approx(1.0)
        assert result.sources[0].chunk_id == 0
        assert result.metadata["chunking_method"] == "sentence"

        records = memory.performance_records()
        assert len(records) == 1
        assert records[0].success
        assert records[0].device_type == "mobile"
        assert records[0].workflow_id == "wf-1"
        assert records[0].performance.actual_accuracy == pytest.approx(1.0)
        assert records[0].performance.predicted_latency_ms == strategy.latency_estimate_ms

    def test_llm_answer_reports_token_counts(self, memory: MemoryStore) -> None:
        llm = FakeLLM(text="Batteries store surplus energy.")
        predicted = PredictedPerformance(latency_ms=1234, accuracy=0.7)
        result = make_dispatcher(memory, llm).execute(
            default_catalog().by_name("balanced"), CONTENT, QUESTION, PROFILE, predicted=predicted
        )
        assert result.answer == "Batteries store surplus energy."
        assert not result.extractive
        assert (result.prompt_tokens, result.completion_tokens) == (120, 5)
        assert "Question: How do batteries store energy?" in llm.prompts[0]
        assert "[1] " in llm.prompts[0]
        assert memory.performance_records()[0].performance.predicted_latency_ms == 1234

    def test_llm_failure_records_zero_accuracy_and_raises(self, memory: MemoryStore) -> None:
        llm = FakeLLM(error=LLMError("HF API timeout"))
        with pytest.raises(ExecutionError) as exc_info:
            make_dispatcher(memory, llm).execute(default_catalog().by_name("fast"), CONTENT, QUESTION, PROFILE)
        assert "HF API timeout" in exc_info.value.message
        records = memory.performance_records()
        assert len(records) == 1
        assert not records[0].success
        assert records[0].performance.actual_accuracy == 0.0

    def test_markup_only_content_fails_execution(self, memory: MemoryStore) -> None:
        with pytest.raises(ExecutionError):
            make_dispatcher(memory).execute(default_catalog().by_name("fast"), "<div></div>", QUESTION, PROFILE)
        assert len(memory.performance_records()) == 1

    def test_unknown_strategy_raises_without_record(self, memory: MemoryStore) -> None:
        ghost = StrategyDescriptor(
            name="ghost",
            performance_profile=PerformanceProfile.FAST,
            content_types=frozenset({ContentType.MIXED}),
            complexity_levels=frozenset(Complexity),
            latency_estimate_ms=10,
            cost=0.1,
        )
        with pytest.raises(ExecutionError):
            make_dispatcher(memory).execute(ghost, CONTENT, QUESTION, PROFILE)
        assert memory.performance_records() == []

    def test_memory_write_failure_does_not_fail_execution(self, memory: MemoryStore) -> None:
        with patch.object(memory, "record_performance", side_effect=StoreError("disk full")):
            result = make_dispatcher(memory).execute(default_catalog().by_name("fast"), CONTENT, QUESTION, PROFILE)
        assert result.answer.startswith("Batteries")

    def test_unanswerable_question(self, memory: MemoryStore) -> None:
        result = make_dispatcher(memory).execute(
            default_catalog().by_name("fast"), CONTENT, "quantum chromodynamics", PROFILE
        )
        assert result.answer == NOT_FOUND_ANSWER
        assert result.confidence == 0.1


class TestHelpers:
    def test_extractive_answer_keeps_source_order(self) -> None:
        sources = [
            SourceChunk(chunk_id=1, text="Cats eat fish. Dogs chase cats."),
            SourceChunk(chunk_id=0, text="Cats sleep a lot."),
        ]
        assert extractive_answer("cats", sources, max_sentences=2) == "Cats sleep a lot. Cats eat fish."

    def test_build_context_respects_budget(self) -> None:
        sources = [SourceChunk(chunk_id=i, text="x" * 40) for i in range(5)]
        context = build_context(sources, char_budget=100)
        assert context.count("[") == 2

    def test_estimate_accuracy(self) -> None:
        sources = [SourceChunk(chunk_id=0, text="Paris is the capital of France.")]
        assert estimate_accuracy("Paris is the capital.", "capital of France?", sources) == pytest.approx(1.0)
        assert estimate_accuracy(NOT_FOUND_ANSWER, "capital?", sources) == 0.1
        assert estimate_accuracy("anything", "capital?", []) == 0.1
