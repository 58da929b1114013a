"""Connectivity checks for the three external services.

Each check runs independently and reports ``{"success": bool, ...}``; one
failing service never hides the result of another.
"""

from __future__ import annotations

import logging
from typing import Any

from tuition_agent.config import KNOWLEDGE_SHEET
from tuition_agent.services.embeddings import get_embeddings
from tuition_agent.services.knowledge_store import get_knowledge_store
from tuition_agent.services.sheets_client import get_sheets_client

logger = logging.getLogger(__name__)


def _check_sheets() -> dict[str, Any]:
    info = get_sheets_client().get_spreadsheet_info()
    return {
        "success": True,
        "title": info["title"],
        "hasKnowledgeTab": KNOWLEDGE_SHEET in info["sheets"],
        "sheets": info["sheets"],
    }


def _check_supabase() -> dict[str, Any]:
    get_knowledge_store().ping()
    return {"success": True, "message": "Connected and table 'documents' exists"}


def _check_gemini() -> dict[str, Any]:
    get_embeddings().embed_query("test")
    return {"success": True, "message": "Embedding generated successfully"}


CHECKS = {
    "googleSheets": _check_sheets,
    "supabase": _check_supabase,
    "gemini": _check_gemini,
}


def run_diagnostics() -> dict[str, dict[str, Any]]:
    results = {}
    for name, check in CHECKS.items():
        try:
            results[name] = check()
        except Exception as exc:
            logger.warning("Diagnostic %s failed: %s", name, exc)
            results[name] = {"success": False, "error": str(exc) or type(exc).__name__}
    return results
