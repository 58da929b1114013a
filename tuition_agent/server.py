"""FastAPI server for the tuition centre agent.

Run with:
    uvicorn tuition_agent.server:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from tuition_agent.agent import create_tuition_agent
from tuition_agent.api.routes import router
from tuition_agent.config import (
    CORS_ORIGINS,
    KNOWLEDGE_SHEET,
    MAX_LLM_CALLS,
    MODEL_NAME,
    SCHEDULE_SHEET,
    SERVER_HOST,
    SERVER_PORT,
)
from tuition_agent.services.metrics import metrics

# ── Logging ──────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI):
    """Compile the conversation graph once; flush buffered metrics on shutdown.

    Requests are stateless, so the compiled graph is the only thing kept
    between them.
    """
    logger.info(
        "Starting — model: %s, max %d model calls/request, schedule tab '%s', knowledge tab '%s'",
        MODEL_NAME, MAX_LLM_CALLS, SCHEDULE_SHEET, KNOWLEDGE_SHEET,
    )
    application.state.agent = create_tuition_agent()
    logger.info("Agent ready.")
    try:
        yield
    finally:
        application.state.agent = None
        sent = metrics.flush()
        logger.info("Shutdown complete (%d buffered metrics flushed)", sent)


app = FastAPI(
    title="Tuition Centre Agent",
    description=(
        "Chat assistant for a tuition centre — answers questions, checks "
        "and books lesson slots, and lets admins manage the schedule."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

# ── CORS (chat widget is served from another origin) ────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_request_id(request: Request, call_next) -> Response:
    """Attach a request ID for log correlation and echo it back.

    The elapsed time is reported in ``X-Response-Time-Ms``.
    """
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    t0 = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - t0) * 1000
    logger.info(
        "[%s] %s %s -> %d (%.0fms)",
        request_id, request.method, request.url.path, response.status_code, elapsed_ms,
    )
    response.headers["X-Request-ID"] = request_id
    response.headers["X-Response-Time-Ms"] = f"{elapsed_ms:.0f}"
    return response


app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "service": "Tuition Centre Agent",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/health",
    }


if __name__ == "__main__":
    logger.info("Starting tuition centre API server on %s:%d", SERVER_HOST, SERVER_PORT)
    uvicorn.run(
        "tuition_agent.server:app",
        host=SERVER_HOST,
        port=SERVER_PORT,
        reload=True,
    )
