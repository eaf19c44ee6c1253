"""FastAPI application."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from tripsync.api.deps import close_planner_session
from tripsync.api.routes.health import router as health_router
from tripsync.api.routes.metrics import router as metrics_router
from tripsync.api.routes.planner import router as planner_router
from tripsync.config import get_settings

logging.basicConfig(level=get_settings().log_level)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    yield
    # Final write on shutdown
    close_planner_session()


app = FastAPI(title="Trip Sync API", version="0.1.0", lifespan=lifespan)

# Register routes
app.include_router(health_router, tags=["health"])
app.include_router(metrics_router, tags=["metrics"])
app.include_router(planner_router, tags=["planner"])


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Trip Sync API", "version": "0.1.0"}
