"""
Component graph: builds the process-wide services once at startup.

Order follows the dependencies: memory and catalog, then analyzer and selector,
then coordinator, dispatcher and the pipeline that ties them together.
"""

import logging
from dataclasses import dataclass

from agentrag.agents.content_analyzer import ContentAnalyzer
from agentrag.agents.coordinator import WorkflowCoordinator
from agentrag.agents.graph import WorkflowPipeline
from agentrag.agents.llm import LLMClient, build_llm_client
from agentrag.agents.strategy_selector import StrategySelector
from agentrag.core import config
from agentrag.core.memory_backend import InMemoryBackend, MemoryBackend, SqliteBackend
from agentrag.services.agent_service import AgentService
from agentrag.services.memory_store import MemoryStore
from agentrag.services.rag_service import ExecutionDispatcher
from agentrag.services.strategy_catalog import StrategyCatalog, default_catalog

logger = logging.getLogger(__name__)


@dataclass
class Services:
    catalog: StrategyCatalog
    memory: MemoryStore
    analyzer: ContentAnalyzer
    selector: StrategySelector
    coordinator: WorkflowCoordinator
    dispatcher: ExecutionDispatcher
    agent: AgentService


def build_backend(kind: str = config.MEMORY_BACKEND, db_path: str = config.MEMORY_DB_PATH) -> MemoryBackend:
    if kind == "sqlite":
        return SqliteBackend(db_path)
    if kind != "memory":
        logger.warning("[container] unknown MEMORY_BACKEND=%r; using in-process memory", kind)
    return InMemoryBackend()


def build_services(
    catalog: StrategyCatalog | None = None,
    memory: MemoryStore | None = None,
    llm: LLMClient | None = None,
    use_configured_llm: bool = True,
    coordinator: WorkflowCoordinator | None = None,
) -> Services:
    """
    Build the component graph. Anything not supplied comes from config; pass
    use_configured_llm=False to run without a provider (extractive answers).
    """
    if catalog is None:
        catalog = default_catalog()
    if memory is None:
        memory = MemoryStore(build_backend())
    if llm is None and use_configured_llm:
        llm = build_llm_client()
    analyzer = ContentAnalyzer(llm=llm)
    selector = StrategySelector(catalog, memory)
    if coordinator is None:
        coordinator = WorkflowCoordinator(clock=memory.now)
    dispatcher = ExecutionDispatcher(catalog, memory, llm)
    pipeline = WorkflowPipeline(analyzer, selector, dispatcher, coordinator, memory)
    agent = AgentService(catalog, memory, analyzer, selector, coordinator, pipeline)
    logger.info(
        "[container] services ready strategies=%d memory_entries=%d llm=%s",
        len(catalog), memory.stats().entry_count, type(llm).__name__ if llm else "none",
    )
    return Services(
        catalog=catalog,
        memory=memory,
        analyzer=analyzer,
        selector=selector,
        coordinator=coordinator,
        dispatcher=dispatcher,
        agent=agent,
    )
