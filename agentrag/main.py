# Run from project root: uvicorn agentrag.main:app --reload

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from agentrag.api.memory_routes import memory_router
from agentrag.api.routes import router
from agentrag.core import config
from agentrag.core.container import Services, build_services
from agentrag.core.errors import StoreError

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)


async def _cleanup_loop(services: Services, interval: float) -> None:
    """Periodically drop expired memory entries."""
    while True:
        await asyncio.sleep(interval)
        try:
            removed = await asyncio.to_thread(services.memory.cleanup_expired)
        except StoreError as e:
            logger.warning("[main:cleanup] memory cleanup failed: %s", e.message)
            continue
        logger.info("[main:cleanup] removed %d expired memory entries", removed)


@asynccontextmanager
async def lifespan(app: FastAPI):
    task = None
    if config.MEMORY_CLEANUP_INTERVAL_SECONDS > 0:
        task = asyncio.create_task(_cleanup_loop(app.state.services, config.MEMORY_CLEANUP_INTERVAL_SECONDS))
    yield
    if task is not None:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


def create_app(services: Services | None = None) -> FastAPI:
    app = FastAPI(title="Agent RAG Orchestration Service", lifespan=lifespan)
    app.state.services = services if services is not None else build_services()
    app.include_router(router)
    app.include_router(memory_router, prefix="/shared-memory")
    return app


app = create_app()
