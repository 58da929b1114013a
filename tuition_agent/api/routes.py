"""FastAPI route definitions for the tuition centre agent API."""

from __future__ import annotations

import asyncio
import hmac
import logging

from fastapi import APIRouter, Header, HTTPException, Request

from tuition_agent.agent import reply_text, respond
from tuition_agent.api.schemas import ChatRequest, ChatResponse, HealthResponse, SyncResponse
from tuition_agent.config import ADMIN_PASSWORD
from tuition_agent.diagnostics import run_diagnostics
from tuition_agent.tools.knowledge import sync_knowledge_base

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_agent(request: Request):
    """Retrieve the compiled graph from app state (set in the lifespan)."""
    agent = getattr(request.app.state, "agent", None)
    if agent is None:
        raise HTTPException(
            status_code=503,
            detail="The agent is still starting up. Please try again in a moment.",
        )
    return agent


# ── Endpoints ────────────────────────────────────────────────────────


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse()


@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest, http_request: Request):
    """Answer the latest message of the client-supplied history.

    The graph run is blocking (model and spreadsheet calls), so it is
    offloaded to a worker thread.
    """
    request_id = getattr(http_request.state, "request_id", "?")
    if not request.messages:
        logger.warning("[%s] Chat request with no messages", request_id)
        raise HTTPException(status_code=500, detail="No messages provided")

    agent = _get_agent(http_request)

    try:
        history = [m for m in (msg.to_langchain() for msg in request.messages) if m is not None]
        if not history:
            raise HTTPException(status_code=500, detail="No messages provided")

        reply = await asyncio.to_thread(respond, agent, history)
        return ChatResponse(content=reply_text(reply))

    except HTTPException:
        raise
    except Exception as e:
        # Full traceback stays in the server log
        logger.exception("[%s] Error processing chat request", request_id)
        raise HTTPException(
            status_code=500,
            detail="An internal error occurred. Please try again.",
        ) from e


@router.post("/sync", response_model=SyncResponse)
async def sync_knowledge(x_admin_password: str = Header(default="")):
    """Re-index the knowledge tab into the vector store (admin only)."""
    if not hmac.compare_digest(x_admin_password.encode("utf-8"), ADMIN_PASSWORD.encode("utf-8")):
        raise HTTPException(status_code=403, detail="Invalid admin password.")

    try:
        count = await asyncio.to_thread(sync_knowledge_base)
    except Exception as e:
        logger.exception("Knowledge sync failed")
        raise HTTPException(status_code=500, detail="Knowledge sync failed.") from e

    return SyncResponse(
        synced=count,
        message=f"Successfully synced {count} items from Google Sheets to Supabase.",
    )


@router.get("/diagnostics")
async def diagnostics():
    """Report connectivity to Google Sheets, Supabase and Gemini."""
    return await asyncio.to_thread(run_diagnostics)
