"""
Agent service: the orchestration core's facade for the API layer.

Responsibility: validate input, resolve the device, run the workflow pipeline and
shape its results. No HTTP types here; errors are raised as core exceptions.
"""

import logging
from datetime import datetime
from typing import Any

from agentrag.agents.content_analyzer import ContentAnalyzer
from agentrag.agents.coordinator import WorkflowCoordinator, aggregate_confidence
from agentrag.agents.graph import PipelineState, WorkflowPipeline
from agentrag.agents.strategy_selector import StrategySelector
from agentrag.core import config
from agentrag.core.errors import ValidationError
from agentrag.schemas.api import MetricsResponse, ProcessResponse, WorkflowStatusResponse, WorkflowSummary
from agentrag.schemas.content import ContentProfile
from agentrag.schemas.strategy import DeviceConstraints, StrategyDescriptor, StrategySelectionResult
from agentrag.schemas.workflow import WorkflowRecord, WorkflowState
from agentrag.services.device_service import detect_device
from agentrag.services.memory_store import MemoryStore
from agentrag.services.strategy_catalog import StrategyCatalog

logger = logging.getLogger(__name__)


def summarize(record: WorkflowRecord) -> WorkflowSummary:
    return WorkflowSummary(
        workflow_id=record.workflow_id,
        state=record.state,
        state_history=list(record.state_history),
        confidence=record.confidence,
        degraded=record.degraded,
        total_latency_ms=record.total_latency_ms,
        message_count=len(record.messages),
        created_at=record.created_at,
        completed_at=record.completed_at,
    )


def untracked_summary(final: PipelineState, now: datetime) -> WorkflowSummary:
    """
    Summary for a workflow the coordinator no longer holds: it was abandoned past the
    active limit and then aged out of the bounded history while still running.
    """
    profile = final.get("profile")
    selection = final.get("selection")
    return WorkflowSummary(
        workflow_id=final["workflow_id"],
        state=WorkflowState.FAILED,
        state_history=[WorkflowState.CREATED, WorkflowState.FAILED],
        confidence=aggregate_confidence(
            profile.confidence if profile else None,
            selection.confidence if selection else None,
        ),
        degraded=True,
        created_at=now,
        completed_at=now,
    )


class AgentService:
    def __init__(
        self,
        catalog: StrategyCatalog,
        memory: MemoryStore,
        analyzer: ContentAnalyzer,
        selector: StrategySelector,
        coordinator: WorkflowCoordinator,
        pipeline: WorkflowPipeline,
    ):
        self.catalog = catalog
        self.memory = memory
        self.analyzer = analyzer
        self.selector = selector
        self.coordinator = coordinator
        self.pipeline = pipeline

    def analyze_content(self, content: str, url: str | None = None, metadata: dict[str, Any] | None = None) -> ContentProfile:
        return self.analyzer.analyze(content, url, metadata)

    def select_strategy(
        self,
        profile: ContentProfile,
        device: DeviceConstraints | None = None,
        preferences: dict[str, Any] | None = None,
    ) -> StrategySelectionResult:
        return self.selector.select(profile, device or DeviceConstraints(), preferences)

    def list_strategies(self) -> list[StrategyDescriptor]:
        return self.catalog.list_strategies()

    def run_workflow(
        self,
        content: str,
        question: str,
        device: DeviceConstraints | None = None,
        url: str | None = None,
        metadata: dict[str, Any] | None = None,
        preferences: dict[str, Any] | None = None,
        workflow_id: str | None = None,
        user_agent: str | None = None,
        connection_type: str | None = None,
    ) -> ProcessResponse:
        """
        Run analyze → select → execute as one workflow and return the composite result.
        Raises ValidationError for missing content/question (before any workflow starts)
        and NoStrategiesAvailable when the catalog is empty.
        """
        if not content or not content.strip():
            raise ValidationError("content is required")
        if not question or not question.strip():
            raise ValidationError("question is required")
        if device is None:
            device = detect_device(user_agent, connection_type)
        logger.info(
            "[agent_service:run_workflow] IN  chars=%d question=%r device=%s/%s",
            len(content), question, device.device_type, device.processing_power.value,
        )
        final = self.pipeline.run(
            content,
            question.strip(),
            device,
            url=url,
            metadata=metadata,
            preferences=preferences,
            workflow_id=workflow_id,
        )
        record = self.coordinator.get_workflow(final["workflow_id"])
        if record is None:
            logger.warning("[agent_service:run_workflow] workflow=%s no longer tracked", final["workflow_id"])
            summary = untracked_summary(final, self.memory.now())
        else:
            summary = summarize(record)
        execution = final.get("execution")
        response = ProcessResponse(
            answer=final["answer"],
            sources=execution.sources if execution else [],
            strategy=final["strategy_name"],
            confidence=summary.confidence if summary.confidence is not None else 0.0,
            profile=final["profile"],
            selection=final["selection"],
            execution=execution,
            workflow=summary,
        )
        logger.info(
            "[agent_service:run_workflow] OUT workflow=%s state=%s strategy=%s confidence=%.3f",
            summary.workflow_id, summary.state.value, response.strategy, response.confidence,
        )
        return response

    def get_workflow_status(self, workflow_id: str) -> WorkflowStatusResponse | None:
        record = self.coordinator.get_workflow(workflow_id)
        if record is None:
            return None
        return WorkflowStatusResponse(
            workflow_id=record.workflow_id,
            is_active=self.coordinator.is_active(workflow_id),
            state=record.state,
            messages=record.messages,
        )

    def get_metrics(self) -> MetricsResponse:
        active, history = self.coordinator.counts()
        return MetricsResponse(
            active_count=active,
            history_count=history,
            config={
                **self.coordinator.get_config(),
                "strategies": len(self.catalog),
                "device_bonus": config.DEVICE_BONUS,
                "history_evidence_prior": config.HISTORY_EVIDENCE_PRIOR,
                "history_half_life_seconds": config.HISTORY_HALF_LIFE_SECONDS,
                "memory_max_entries": config.MEMORY_MAX_ENTRIES,
            },
            memory=self.memory.stats(),
        )
