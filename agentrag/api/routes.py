"""
API route aggregator: register endpoints; no logic, only delegate to handlers.
"""

import logging

from fastapi import APIRouter, Depends, Header

from agentrag.api.handlers import (
    get_services,
    handle_analyze,
    handle_process,
    handle_select,
    handle_strategy,
    handle_workflow_status,
)
from agentrag.core.container import Services
from agentrag.schemas.api import (
    AnalyzeRequest,
    MetricsResponse,
    ProcessRequest,
    ProcessResponse,
    SelectStrategyRequest,
    StrategiesResponse,
    WorkflowStatusResponse,
)
from agentrag.schemas.content import ContentProfile
from agentrag.schemas.strategy import StrategyDescriptor, StrategySelectionResult

logger = logging.getLogger(__name__)
router = APIRouter()


# --- System ---

@router.get("/", tags=["system"])
def root():
    return {"status": "Agent RAG orchestration service running"}


@router.get("/health", tags=["system"])
def health():
    return {"ok": True}


# --- Agent RAG ---

@router.post(
    "/agent-rag/process",
    response_model=ProcessResponse,
    tags=["agent-rag"],
    summary="Answer a question about content with an adaptively selected strategy",
    description="Runs analyze → select → execute as one traced workflow. Device comes from the body, else from the User-Agent header. 400 on missing content/question, 503 when no strategy is available.",
)
def post_process(
    body: ProcessRequest,
    user_agent: str | None = Header(None),
    services: Services = Depends(get_services),
) -> ProcessResponse:
    logger.info("[api:post_process] IN  chars=%d question=%r workflow_id=%s", len(body.content), body.question, body.workflow_id)
    result = handle_process(services, body, user_agent)
    logger.info("[api:post_process] OUT workflow=%s strategy=%s", result.workflow.workflow_id, result.strategy)
    return result


@router.get("/agent-rag/strategies", response_model=StrategiesResponse, tags=["agent-rag"], summary="List available strategies")
def get_strategies(services: Services = Depends(get_services)) -> StrategiesResponse:
    strategies = services.agent.list_strategies()
    return StrategiesResponse(count=len(strategies), strategies=strategies)


@router.get(
    "/agent-rag/strategies/{name}",
    response_model=StrategyDescriptor,
    tags=["agent-rag"],
    summary="Get one strategy by name",
)
def get_strategy(name: str, services: Services = Depends(get_services)) -> StrategyDescriptor:
    return handle_strategy(services, name)


@router.post(
    "/agent-rag/analyze",
    response_model=ContentProfile,
    tags=["agent-rag"],
    summary="Analyze content structure and complexity",
    description="Returns the content profile only. 422 when content is empty or too large.",
)
def post_analyze(body: AnalyzeRequest, services: Services = Depends(get_services)) -> ContentProfile:
    return handle_analyze(services, body)


@router.post(
    "/agent-rag/select-strategy",
    response_model=StrategySelectionResult,
    tags=["agent-rag"],
    summary="Rank strategies for a content profile and device",
)
def post_select_strategy(body: SelectStrategyRequest, services: Services = Depends(get_services)) -> StrategySelectionResult:
    return handle_select(services, body)


@router.get(
    "/agent-rag/workflow/{workflow_id}",
    response_model=WorkflowStatusResponse,
    tags=["agent-rag"],
    summary="Workflow status and message log",
)
def get_workflow(workflow_id: str, services: Services = Depends(get_services)) -> WorkflowStatusResponse:
    return handle_workflow_status(services, workflow_id)


@router.get("/agent-rag/metrics", response_model=MetricsResponse, tags=["agent-rag"], summary="Coordinator and memory metrics")
def get_metrics(services: Services = Depends(get_services)) -> MetricsResponse:
    return services.agent.get_metrics()
