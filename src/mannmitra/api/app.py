"""
FastAPI application for the MannMitra activity engine.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI

# Configure logging to show INFO from mannmitra modules
logging.basicConfig(level=logging.INFO, format="%(name)s - %(levelname)s - %(message)s")
logging.getLogger("mannmitra").setLevel(logging.INFO)
from fastapi.middleware.cors import CORSMiddleware

from ..core.errors import ActivityEngineError
from .routes import engine_error_handler, expiry_loop, get_engine, router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Sweep idle sessions in the background while the server is up."""
    interval = get_engine().settings.expiry_sweep_seconds
    task = asyncio.create_task(expiry_loop(interval)) if interval > 0 else None
    if task is not None:
        logger.info(f"[API] Idle-session sweep every {interval:g}s")
    yield
    if task is not None:
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
    get_engine().shutdown()


app = FastAPI(
    title="MannMitra Activity Engine",
    description="Adaptive, culturally aware therapeutic activities",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(ActivityEngineError, engine_error_handler)

# API routes
app.include_router(router)


@app.get("/")
async def root():
    return {"message": "MannMitra Activity Engine API", "docs": "/docs"}
