"""Application lifespan: release adapter connections on shutdown."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    services = app.state.services
    logger.info("Hubship API starting", courier=type(services.courier).__name__)
    yield

    logger.info("Hubship API shutting down")
    for adapter in (services.courier, services.refunds):
        try:
            adapter.close()
        except Exception:
            logger.exception("Adapter close failed", adapter=type(adapter).__name__)
