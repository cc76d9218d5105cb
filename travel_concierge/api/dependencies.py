from contextlib import asynccontextmanager
from functools import lru_cache
from typing import AsyncGenerator

from fastapi import FastAPI

from travel_concierge.api.service import OrchestratorBundle
from travel_concierge.core.config import OrchestratorSettings, configure_logging


@lru_cache(maxsize=1)
def get_orchestrator_bundle() -> OrchestratorBundle:
    settings = OrchestratorSettings.from_env()
    configure_logging(settings.log_level)
    return OrchestratorBundle(settings)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    try:
        yield
    finally:
        # only close a bundle that was actually built during this process
        if get_orchestrator_bundle.cache_info().currsize:
            bundle = get_orchestrator_bundle()
            await bundle.close()
