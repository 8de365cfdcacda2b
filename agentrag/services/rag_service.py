"""
Execution dispatcher: runs a selected strategy against the content and question.

Pipeline: clean → chunk (per the strategy's chunking method) → keyword rank → top_k
sources → prompt → LLM. Without an LLM client the answer is extracted from the best
matching sentences. Every execution, successful or not, is written back to the
memory store as a performance record so future selections can learn from it.
"""

import logging
import re
import time

from agentrag.agents.llm import LLMClient
from agentrag.core import config
from agentrag.core.errors import ExecutionError, StoreError
from agentrag.schemas.content import ContentProfile
from agentrag.schemas.memory import PerformanceMetrics, PerformanceRecord
from agentrag.schemas.strategy import ExecutionResult, PredictedPerformance, SourceChunk, StrategyDescriptor
from agentrag.services.memory_store import MemoryStore
from agentrag.services.retrieval_service import keyword_score, query_terms, rank_chunks
from agentrag.services.strategy_catalog import StrategyCatalog
from agentrag.services.text_processing import chunk_text, clean_text

logger = logging.getLogger(__name__)

NOT_FOUND_ANSWER = "No passage in the content answers this question."
EXTRACTIVE_SENTENCES = 3
_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+|\n+")
_WORD_RE = re.compile(r"[^\W_]{4,}", re.UNICODE)

PROMPT_TEMPLATE = """You are answering with the {name} strategy ({profile} profile): {description}

Use only the context below. If the context does not contain the answer, say so.

Context ({count} source{plural}):
{context}

Question: {question}

Answer:"""


def build_context(sources: list[SourceChunk], char_budget: int = config.CONTEXT_CHAR_BUDGET) -> str:
    parts: list[str] = []
    used = 0
    for i, source in enumerate(sources, start=1):
        block = f"[{i}] {source.text}"
        if parts and used + len(block) > char_budget:
            break
        parts.append(block[:char_budget])
        used += len(block)
    return "\n\n".join(parts)


def build_prompt(strategy: StrategyDescriptor, context: str, question: str, source_count: int) -> str:
    return PROMPT_TEMPLATE.format(
        name=strategy.name,
        profile=strategy.performance_profile.value,
        description=strategy.description or "general question answering",
        count=source_count,
        plural="" if source_count == 1 else "s",
        context=context,
        question=question.strip(),
    )


def extractive_answer(question: str, sources: list[SourceChunk], max_sentences: int = EXTRACTIVE_SENTENCES) -> str:
    """Best-matching sentences from the sources, in source order."""
    terms = query_terms(question)
    candidates: list[tuple[float, int, str]] = []
    seen: set[str] = set()
    order = 0
    for source in sorted(sources, key=lambda s: s.chunk_id):
        for sentence in _SENTENCE_RE.split(source.text):
            sentence = sentence.strip()
            if not sentence or sentence in seen:
                continue
            seen.add(sentence)
            score = keyword_score(terms, sentence)
            if score > 0:
                candidates.append((score, order, sentence))
            order += 1
    if not candidates:
        return NOT_FOUND_ANSWER
    best = sorted(candidates, key=lambda c: (-c[0], c[1]))[:max_sentences]
    return " ".join(sentence for _, _, sentence in sorted(best, key=lambda c: c[1]))


def estimate_accuracy(answer: str, question: str, sources: list[SourceChunk]) -> float:
    """
    Grounding-based estimate: share of the answer's content words found in the sources,
    blended with how many question terms the sources cover.
    """
    if not answer.strip() or answer == NOT_FOUND_ANSWER or not sources:
        return 0.1
    source_text = " ".join(s.text for s in sources).lower()
    source_words = set(_WORD_RE.findall(source_text))
    answer_words = _WORD_RE.findall(answer.lower())
    grounding = sum(1 for w in answer_words if w in source_words) / len(answer_words) if answer_words else 0.0
    terms = query_terms(question)
    coverage = sum(1 for t in terms if t in source_text) / len(terms) if terms else 0.5
    return round(max(0.0, min(1.0, 0.6 * grounding + 0.4 * coverage)), 4)


class ExecutionDispatcher:
    def __init__(self, catalog: StrategyCatalog, memory: MemoryStore, llm: LLMClient | None = None):
        self.catalog = catalog
        self.memory = memory
        self.llm = llm

    def execute(
        self,
        strategy: StrategyDescriptor,
        content: str,
        question: str,
        profile: ContentProfile,
        *,
        device_type: str = "desktop",
        predicted: PredictedPerformance | None = None,
        workflow_id: str | None = None,
    ) -> ExecutionResult:
        """
        Answer the question with the given strategy and record the outcome.
        Raises ExecutionError on failure (after writing a zero-accuracy record), or when the
        strategy is not in the catalog (nothing is recorded then).
        """
        if strategy.name not in self.catalog:
            raise ExecutionError(f"Strategy {strategy.name!r} is not in the catalog")
        predicted = predicted or PredictedPerformance(
            latency_ms=strategy.latency_estimate_ms, accuracy=strategy.accuracy_estimate
        )
        logger.info(
            "[dispatcher:execute] IN  strategy=%s question=%r content_chars=%d workflow=%s",
            strategy.name, question, len(content or ""), workflow_id,
        )
        start = time.perf_counter()
        try:
            result = self._run(strategy, content, question)
        except Exception as e:
            latency_ms = (time.perf_counter() - start) * 1000
            logger.warning("[dispatcher:execute] strategy=%s failed after %.0f ms: %s", strategy.name, latency_ms, e)
            self._record(strategy, profile, device_type, predicted, latency_ms, 0.0, False, workflow_id)
            message = getattr(e, "message", None) or str(e) or type(e).__name__
            raise ExecutionError(f"Strategy {strategy.name!r} failed: {message}") from e

        latency_ms = (time.perf_counter() - start) * 1000
        result = result.model_copy(update={"actual_latency_ms": round(latency_ms, 2)})
        self._record(strategy, profile, device_type, predicted, latency_ms, result.confidence, True, workflow_id)
        logger.info(
            "[dispatcher:execute] OUT strategy=%s latency_ms=%.0f confidence=%.3f sources=%d extractive=%s",
            strategy.name, latency_ms, result.confidence, len(result.sources), result.extractive,
        )
        return result

    def _run(self, strategy: StrategyDescriptor, content: str, question: str) -> ExecutionResult:
        cleaned = clean_text(content)
        if not cleaned:
            raise ExecutionError("Content is empty after cleaning")
        chunks = chunk_text(cleaned, strategy.chunk_size, strategy.chunk_overlap, strategy.chunking_method)
        sources = rank_chunks(question, chunks, strategy.top_k)

        prompt_tokens = completion_tokens = 0
        if self.llm is not None:
            prompt = build_prompt(strategy, build_context(sources), question, len(sources))
            response = self.llm.complete(prompt, max_tokens=strategy.max_tokens)
            answer = response.text
            prompt_tokens, completion_tokens = response.prompt_tokens, response.completion_tokens
        else:
            answer = extractive_answer(question, sources)

        return ExecutionResult(
            answer=answer,
            sources=sources,
            confidence=estimate_accuracy(answer, question, sources),
            actual_latency_ms=0.0,
            strategy_name=strategy.name,
            chunks_considered=len(chunks),
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            extractive=self.llm is None,
            metadata={
                "chunking_method": strategy.chunking_method.value,
                "chunk_size": strategy.chunk_size,
                "top_k": strategy.top_k,
            },
        )

    def _record(
        self,
        strategy: StrategyDescriptor,
        profile: ContentProfile,
        device_type: str,
        predicted: PredictedPerformance,
        latency_ms: float,
        accuracy: float,
        success: bool,
        workflow_id: str | None,
    ) -> None:
        record = PerformanceRecord(
            strategy_name=strategy.name,
            content_type=profile.type,
            complexity=profile.complexity,
            device_type=device_type,
            performance=PerformanceMetrics(
                predicted_latency_ms=predicted.latency_ms,
                actual_latency_ms=round(latency_ms, 2),
                predicted_accuracy=predicted.accuracy,
                actual_accuracy=accuracy,
            ),
            success=success,
            fingerprint=profile.fingerprint,
            workflow_id=workflow_id,
            timestamp=self.memory.now(),
        )
        try:
            self.memory.record_performance(record)
        except StoreError as e:
            logger.warning("[dispatcher:record] performance write failed (kept in-process only): %s", e.message)
