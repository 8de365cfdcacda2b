"""
API handlers: call the core services and map results/errors to HTTP.

Responsibility: Bridge HTTP types and services. Exception-to-HTTP mapping lives
here so services stay free of FastAPI/HTTP types.
"""

import logging

from fastapi import HTTPException, Request

from agentrag.core.container import Services
from agentrag.core.errors import (
    AnalysisError,
    NoStrategiesAvailable,
    StoreError,
    StrategyNotFoundError,
    ValidationError,
)
from agentrag.schemas.api import (
    AnalyzeRequest,
    ProcessRequest,
    ProcessResponse,
    SelectStrategyRequest,
    WorkflowStatusResponse,
)
from agentrag.schemas.content import ContentProfile
from agentrag.schemas.memory import MemoryEntry, MemoryQuery
from agentrag.schemas.strategy import StrategySelectionResult

logger = logging.getLogger(__name__)


def get_services(request: Request) -> Services:
    """FastAPI dependency: the component graph built at startup."""
    return request.app.state.services


def handle_process(services: Services, body: ProcessRequest, user_agent: str | None) -> ProcessResponse:
    """Run one workflow. 400 on invalid input, 503 when no strategy exists, 500 otherwise."""
    try:
        return services.agent.run_workflow(
            body.content,
            body.question,
            device=body.device,
            url=body.url,
            metadata=body.metadata,
            preferences=body.preferences,
            workflow_id=body.workflow_id,
            user_agent=user_agent,
            connection_type=body.connection_type,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message) from e
    except NoStrategiesAvailable as e:
        raise HTTPException(status_code=503, detail=e.message) from e
    except Exception as e:
        logger.exception("Workflow failed")
        raise HTTPException(status_code=500, detail=str(e)) from e


def handle_analyze(services: Services, body: AnalyzeRequest) -> ContentProfile:
    try:
        return services.agent.analyze_content(body.content, body.url, body.metadata)
    except AnalysisError as e:
        raise HTTPException(status_code=422, detail=e.message) from e


def handle_select(services: Services, body: SelectStrategyRequest) -> StrategySelectionResult:
    try:
        return services.agent.select_strategy(body.profile, body.device, body.preferences)
    except NoStrategiesAvailable as e:
        raise HTTPException(status_code=503, detail=e.message) from e


def handle_strategy(services: Services, name: str):
    try:
        return services.catalog.by_name(name)
    except StrategyNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message) from e


def handle_workflow_status(services: Services, workflow_id: str) -> WorkflowStatusResponse:
    status = services.agent.get_workflow_status(workflow_id)
    if status is None:
        raise HTTPException(status_code=404, detail=f"Workflow not found: {workflow_id!r}")
    return status


# --- shared memory ---

def handle_memory_query(services: Services, criteria: MemoryQuery) -> list[MemoryEntry]:
    return services.memory.query(criteria)


def handle_memory_entry(services: Services, key: str) -> MemoryEntry:
    entry = services.memory.get(key)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"Memory entry not found: {key!r}")
    return entry


def handle_memory_cleanup(services: Services) -> int:
    try:
        return services.memory.cleanup_expired()
    except StoreError as e:
        raise HTTPException(status_code=503, detail=e.message) from e


def handle_memory_clear(services: Services) -> None:
    try:
        services.memory.clear_all()
    except StoreError as e:
        raise HTTPException(status_code=503, detail=e.message) from e
