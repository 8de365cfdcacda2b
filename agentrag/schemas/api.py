"""Schemas for the HTTP endpoints (request bodies and composite responses)."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from agentrag.schemas.content import ContentProfile
from agentrag.schemas.memory import MemoryStats
from agentrag.schemas.strategy import (
    DeviceConstraints,
    ExecutionResult,
    SourceChunk,
    StrategyDescriptor,
    StrategySelectionResult,
)
from agentrag.schemas.workflow import AgentMessage, WorkflowState


class ProcessRequest(BaseModel):
    """Request body for POST /agent-rag/process. Device is inferred from the User-Agent when omitted."""

    content: str = Field("", description="Document content (text, Markdown or HTML).")
    question: str = Field("", description="Question to answer from the content.")
    device: DeviceConstraints | None = Field(None, description="Client device constraints.")
    connection_type: str | None = Field(None, description="wifi | cellular | ethernet | offline; used with User-Agent detection.")
    url: str | None = Field(None, description="Where the content came from; used as a type hint and for the domain.")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Optional hints, e.g. type, user_id, session_id.")
    preferences: dict[str, Any] = Field(default_factory=dict, description="prioritize_speed, prioritize_accuracy, max_processing_time_ms.")
    workflow_id: str | None = Field(None, description="Caller-supplied workflow id for client-side correlation.")


class AnalyzeRequest(BaseModel):
    """Request body for POST /agent-rag/analyze."""

    content: str = Field("", description="Content to analyze.")
    url: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class SelectStrategyRequest(BaseModel):
    """Request body for POST /agent-rag/select-strategy."""

    profile: ContentProfile
    device: DeviceConstraints | None = None
    preferences: dict[str, Any] = Field(default_factory=dict)


class WorkflowSummary(BaseModel):
    workflow_id: str
    state: WorkflowState
    state_history: list[WorkflowState] = Field(default_factory=list)
    confidence: float | None = None
    degraded: bool = False
    total_latency_ms: float | None = None
    message_count: int = 0
    created_at: datetime
    completed_at: datetime | None = None


class ProcessResponse(BaseModel):
    """Composite result of one orchestrated workflow."""

    answer: str = Field(..., description="Answer, or a labeled degraded answer when execution failed.")
    sources: list[SourceChunk] = Field(default_factory=list)
    strategy: str = Field(..., description="Executed strategy name, or 'error' when execution failed.")
    confidence: float = Field(..., description="Aggregate workflow confidence.")
    profile: ContentProfile
    selection: StrategySelectionResult
    execution: ExecutionResult | None = None
    workflow: WorkflowSummary


class WorkflowStatusResponse(BaseModel):
    workflow_id: str
    is_active: bool
    state: WorkflowState
    messages: list[AgentMessage] = Field(default_factory=list)


class MetricsResponse(BaseModel):
    active_count: int
    history_count: int
    config: dict[str, Any] = Field(default_factory=dict)
    memory: MemoryStats | None = None


class StrategiesResponse(BaseModel):
    count: int
    strategies: list[StrategyDescriptor]
