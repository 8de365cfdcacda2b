"""
Schemas for workflow tracing: agent messages (a tagged union over message kinds)
and the per-request workflow record.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from agentrag.schemas.content import ContentProfile
from agentrag.schemas.strategy import DeviceConstraints, StrategySelectionResult


class AgentId(str, Enum):
    CONTENT_ANALYZER = "content-analyzer"
    STRATEGY_SELECTOR = "strategy-selector"
    COORDINATOR = "coordinator"
    DISPATCHER = "dispatcher"


class MessageType(str, Enum):
    REQUEST = "request"
    RESPONSE = "response"
    ERROR = "error"


class WorkflowState(str, Enum):
    CREATED = "created"
    ANALYZING = "analyzing"
    SELECTING = "selecting"
    DISPATCHED = "dispatched"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATES = frozenset({WorkflowState.COMPLETED, WorkflowState.FAILED})


# --- Message bodies (discriminated by "kind") ---

class AnalysisRequest(BaseModel):
    kind: Literal["analysis_request"] = "analysis_request"
    content_length: int
    url: str | None = None


class AnalysisResponse(BaseModel):
    kind: Literal["analysis_response"] = "analysis_response"
    profile: ContentProfile
    cached: bool = False


class SelectionRequest(BaseModel):
    kind: Literal["selection_request"] = "selection_request"
    device: DeviceConstraints
    preferences: dict[str, Any] = Field(default_factory=dict)


class SelectionResponse(BaseModel):
    kind: Literal["selection_response"] = "selection_response"
    selection: StrategySelectionResult


class ExecutionRequest(BaseModel):
    kind: Literal["execution_request"] = "execution_request"
    strategy_name: str
    question: str


class ExecutionOutcome(BaseModel):
    kind: Literal["execution_outcome"] = "execution_outcome"
    strategy_name: str
    success: bool
    actual_latency_ms: float = 0.0
    confidence: float = 0.0
    sources_count: int = 0


class ErrorBody(BaseModel):
    kind: Literal["error"] = "error"
    error_kind: str
    message: str
    fatal: bool = False
    degrades_result: bool = True


MessageBody = Annotated[
    Union[
        AnalysisRequest,
        AnalysisResponse,
        SelectionRequest,
        SelectionResponse,
        ExecutionRequest,
        ExecutionOutcome,
        ErrorBody,
    ],
    Field(discriminator="kind"),
]

_MESSAGE_TYPE_BY_KIND = {
    "analysis_request": MessageType.REQUEST,
    "selection_request": MessageType.REQUEST,
    "execution_request": MessageType.REQUEST,
    "analysis_response": MessageType.RESPONSE,
    "selection_response": MessageType.RESPONSE,
    "execution_outcome": MessageType.RESPONSE,
    "error": MessageType.ERROR,
}


class AgentMessage(BaseModel):
    """One entry in a workflow's append-only message log."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    sender: AgentId = Field(..., alias="from")
    recipient: AgentId = Field(..., alias="to")
    type: MessageType
    data: MessageBody
    metadata: dict[str, Any] = Field(default_factory=dict, description="Diagnostics only.")


def make_message(
    sender: AgentId,
    recipient: AgentId,
    body: BaseModel,
    metadata: dict[str, Any] | None = None,
) -> AgentMessage:
    """Build a message whose type (request/response/error) follows from the body kind."""
    kind = getattr(body, "kind")
    return AgentMessage(
        sender=sender,
        recipient=recipient,
        type=_MESSAGE_TYPE_BY_KIND[kind],
        data=body,
        metadata=metadata or {},
    )


class WorkflowRecord(BaseModel):
    """One orchestrated request. Mutated only by the workflow coordinator."""

    workflow_id: str
    state: WorkflowState = WorkflowState.CREATED
    state_history: list[WorkflowState] = Field(default_factory=lambda: [WorkflowState.CREATED])
    messages: list[AgentMessage] = Field(default_factory=list)
    confidence: float | None = None
    degraded: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None
    total_latency_ms: float | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES
