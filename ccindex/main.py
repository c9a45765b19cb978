"""ccindex FastAPI application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ccindex import config
from ccindex.observability import initialize as initialize_observability, shutdown as shutdown_observability
from ccindex.routers.session_index import session_index_router
from ccindex.watcher import session_watcher

logging.basicConfig(level=getattr(logging, config.LOG_LEVEL, logging.INFO))
logger = logging.getLogger("ccindex")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("ccindex starting up")
    initialize_observability(app)

    yield

    logger.info("ccindex shutting down")
    await session_watcher.stop_all()
    shutdown_observability(app)


app = FastAPI(
    title="ccindex API",
    description="Incremental index over coding-agent session transcripts",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        config.FRONTEND_ORIGIN,
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(session_index_router)


@app.get("/api/health")
def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "watchedSessions": session_watcher.active_count,
    }
