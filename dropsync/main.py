# dropsync/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from dropsync.core.config import get_settings
from dropsync.core.logging_config import configure_logging
from dropsync.core.security import require_auth
from dropsync.database import dispose_engine, init_models
from dropsync.routes import ebay, status
from dropsync.scheduler import start_scheduler, stop_scheduler

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    # Store-initialization failures propagate and stop startup
    await init_models()
    if settings.SCHEDULER_ENABLED:
        await start_scheduler()
    logger.info("dropsync started")
    yield
    await stop_scheduler()
    await dispose_engine()


app = FastAPI(title="dropsync", lifespan=lifespan)

# eBay redirects the user's browser here, so no auth
app.include_router(ebay.router)
app.include_router(status.router, dependencies=[require_auth()])


@app.get("/health", tags=["health"])
async def health_check():
    """Basic health check"""
    return {"status": "healthy", "service": "dropsync"}
