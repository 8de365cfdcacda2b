"""
LangGraph pipeline: analyze_content → select_strategy → execute_strategy.

Each node reports request/response/error messages to the workflow coordinator, which
drives the workflow state. Recoverable failures degrade the result instead of
aborting: a failed analysis falls back to the default profile, a failed execution
returns a labeled degraded answer, and memory outages only cost the cache,
preferences or history. Only an empty strategy catalog aborts the run.
"""

import logging
from typing import Any, TypedDict

from langgraph.graph import END, StateGraph

from agentrag.agents.content_analyzer import ContentAnalyzer
from agentrag.agents.coordinator import WorkflowCoordinator
from agentrag.agents.strategy_selector import StrategySelector
from agentrag.core.errors import AnalysisError, ExecutionError, NoStrategiesAvailable, StoreError, ValidationError
from agentrag.schemas.content import ContentProfile, default_profile
from agentrag.schemas.strategy import DeviceConstraints, ExecutionResult, StrategySelectionResult
from agentrag.schemas.workflow import (
    AgentId,
    AnalysisRequest,
    AnalysisResponse,
    ErrorBody,
    ExecutionOutcome,
    ExecutionRequest,
    SelectionRequest,
    SelectionResponse,
    make_message,
)
from agentrag.services.memory_store import MemoryStore
from agentrag.services.rag_service import ExecutionDispatcher

logger = logging.getLogger(__name__)

ERROR_STRATEGY = "error"


class PipelineState(TypedDict, total=False):
    workflow_id: str
    content: str
    question: str
    url: str | None
    metadata: dict[str, Any]
    device: DeviceConstraints
    preferences: dict[str, Any]
    profile: ContentProfile
    selection: StrategySelectionResult
    execution: ExecutionResult | None
    answer: str
    strategy_name: str
    error: str | None


def degraded_answer(reason: str) -> str:
    return f"[degraded] The answer could not be produced: {reason}"


class WorkflowPipeline:
    """Runs one request through the agents as a traced workflow. The graph is compiled once."""

    def __init__(
        self,
        analyzer: ContentAnalyzer,
        selector: StrategySelector,
        dispatcher: ExecutionDispatcher,
        coordinator: WorkflowCoordinator,
        memory: MemoryStore,
    ):
        self.analyzer = analyzer
        self.selector = selector
        self.dispatcher = dispatcher
        self.coordinator = coordinator
        self.memory = memory
        self._graph = self._build_graph()

    def _build_graph(self):
        graph = StateGraph(PipelineState)
        graph.add_node("analyze_content", self._analyze_content)
        graph.add_node("select_strategy", self._select_strategy)
        graph.add_node("execute_strategy", self._execute_strategy)
        graph.set_entry_point("analyze_content")
        graph.add_edge("analyze_content", "select_strategy")
        graph.add_edge("select_strategy", "execute_strategy")
        graph.add_edge("execute_strategy", END)
        return graph.compile()

    def run(
        self,
        content: str,
        question: str,
        device: DeviceConstraints,
        url: str | None = None,
        metadata: dict[str, Any] | None = None,
        preferences: dict[str, Any] | None = None,
        workflow_id: str | None = None,
    ) -> PipelineState:
        wid = self.coordinator.start_workflow(workflow_id)
        logger.info("[pipeline:run] IN  workflow=%s chars=%d question=%r", wid, len(content), question)
        initial: PipelineState = {
            "workflow_id": wid,
            "content": content,
            "question": question,
            "url": url,
            "metadata": dict(metadata or {}),
            "device": device,
            "preferences": dict(preferences or {}),
            "error": None,
        }
        try:
            final = self._graph.invoke(initial)
        except Exception as e:
            if self.coordinator.is_active(wid):
                self.coordinator.fail_workflow(wid, f"{type(e).__name__}: {e}", error_kind="internal")
            raise
        logger.info("[pipeline:run] OUT workflow=%s strategy=%s", wid, final.get("strategy_name"))
        return final

    # --- nodes ---

    def _send(self, workflow_id: str, sender: AgentId, recipient: AgentId, body, **metadata) -> None:
        try:
            self.coordinator.record_message(workflow_id, make_message(sender, recipient, body, metadata or None))
        except ValidationError:
            # Abandoned past the active limit, then pushed out of the bounded history.
            logger.warning(
                "[pipeline:send] workflow=%s no longer tracked; dropping %s message", workflow_id, body.kind
            )

    def _report_error(
        self,
        workflow_id: str,
        sender: AgentId,
        error_kind: str,
        message: str,
        *,
        fatal: bool = False,
        degrades_result: bool = True,
    ) -> None:
        body = ErrorBody(error_kind=error_kind, message=message, fatal=fatal, degrades_result=degrades_result)
        self._send(workflow_id, sender, AgentId.COORDINATOR, body)

    def _analyze_content(self, state: PipelineState) -> dict:
        wid = state["workflow_id"]
        content = state["content"]
        self._send(
            wid, AgentId.COORDINATOR, AgentId.CONTENT_ANALYZER,
            AnalysisRequest(content_length=len(content), url=state.get("url")),
        )
        profile = None
        try:
            profile = self.memory.recall_analysis(content, state.get("url"), state.get("metadata"))
        except StoreError as e:
            self._report_error(wid, AgentId.CONTENT_ANALYZER, "store_unavailable", e.message, degrades_result=False)
        cached = profile is not None

        if profile is None:
            try:
                profile = self.analyzer.analyze(content, state.get("url"), state.get("metadata"))
            except AnalysisError as e:
                logger.warning("[pipeline:analyze] workflow=%s analysis failed, using default profile: %s", wid, e.message)
                self._report_error(wid, AgentId.CONTENT_ANALYZER, "analysis_error", e.message)
                profile = default_profile()
            else:
                try:
                    self.memory.remember_analysis(content, profile, state.get("url"), state.get("metadata"))
                except StoreError as e:
                    self._report_error(wid, AgentId.CONTENT_ANALYZER, "store_unavailable", e.message, degrades_result=False)

        self._send(wid, AgentId.CONTENT_ANALYZER, AgentId.COORDINATOR, AnalysisResponse(profile=profile, cached=cached))
        return {"profile": profile}

    def _select_strategy(self, state: PipelineState) -> dict:
        wid = state["workflow_id"]
        device = state["device"]
        preferences = self._merged_preferences(wid, state.get("metadata") or {}, state.get("preferences") or {})
        self._send(
            wid, AgentId.COORDINATOR, AgentId.STRATEGY_SELECTOR,
            SelectionRequest(device=device, preferences=preferences),
        )
        try:
            selection = self.selector.select(state["profile"], device, preferences)
        except NoStrategiesAvailable as e:
            self._report_error(wid, AgentId.STRATEGY_SELECTOR, "no_strategies", e.message, fatal=True)
            raise
        for warning in selection.warnings:
            self._report_error(wid, AgentId.STRATEGY_SELECTOR, "store_unavailable", warning, degrades_result=False)
        self._send(wid, AgentId.STRATEGY_SELECTOR, AgentId.COORDINATOR, SelectionResponse(selection=selection))
        return {"selection": selection, "preferences": preferences}

    def _execute_strategy(self, state: PipelineState) -> dict:
        wid = state["workflow_id"]
        selection = state["selection"]
        strategy = selection.selected_strategy
        self._send(
            wid, AgentId.COORDINATOR, AgentId.DISPATCHER,
            ExecutionRequest(strategy_name=strategy.name, question=state["question"]),
        )
        try:
            result = self.dispatcher.execute(
                strategy,
                state["content"],
                state["question"],
                state["profile"],
                device_type=state["device"].device_type,
                predicted=selection.performance,
                workflow_id=wid,
            )
        except ExecutionError as e:
            self._report_error(wid, AgentId.DISPATCHER, "execution_error", e.message)
            self._send(
                wid, AgentId.DISPATCHER, AgentId.COORDINATOR,
                ExecutionOutcome(strategy_name=strategy.name, success=False),
            )
            return {
                "execution": None,
                "answer": degraded_answer(e.message),
                "strategy_name": ERROR_STRATEGY,
                "error": e.message,
            }

        self._send(
            wid, AgentId.DISPATCHER, AgentId.COORDINATOR,
            ExecutionOutcome(
                strategy_name=strategy.name,
                success=True,
                actual_latency_ms=result.actual_latency_ms,
                confidence=result.confidence,
                sources_count=len(result.sources),
            ),
        )
        return {"execution": result, "answer": result.answer, "strategy_name": strategy.name}

    def _merged_preferences(self, workflow_id: str, metadata: dict[str, Any], request_prefs: dict[str, Any]) -> dict[str, Any]:
        """Stored user/session preferences overlaid with the request's; the merge is stored back."""
        user_id = metadata.get("user_id")
        session_id = metadata.get("session_id")
        if not user_id and not session_id:
            return dict(request_prefs)
        try:
            stored = self.memory.get_preferences(user_id, session_id) or {}
            merged = {**stored, **request_prefs}
            if request_prefs:
                self.memory.store_preferences(merged, user_id, session_id)
        except StoreError as e:
            self._report_error(workflow_id, AgentId.COORDINATOR, "store_unavailable", e.message, degrades_result=False)
            return dict(request_prefs)
        return merged
