"""Vector store for the knowledge base, hosted on Supabase.

Expects a ``documents`` table (``id``, ``content``, ``embedding``,
``metadata``) and a ``match_documents(query_embedding, match_threshold,
match_count)`` SQL function returning the nearest rows by cosine
similarity.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from supabase import Client, create_client

from tuition_agent.config import (
    MATCH_COUNT,
    MATCH_THRESHOLD,
    SUPABASE_SERVICE_ROLE_KEY,
    SUPABASE_URL,
)
from tuition_agent.services.metrics import metrics

logger = logging.getLogger(__name__)

DOCUMENTS_TABLE = "documents"
MATCH_FUNCTION = "match_documents"


class KnowledgeStore:
    def __init__(self, client: Client | None = None):
        self._client = client or create_client(SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY)

    def match_documents(
        self,
        embedding: list[float],
        *,
        threshold: float = MATCH_THRESHOLD,
        count: int = MATCH_COUNT,
    ) -> list[dict[str, Any]]:
        """Return up to *count* documents with similarity >= *threshold*."""
        with metrics.track("supabase", "rpc.match_documents"):
            response = self._client.rpc(
                MATCH_FUNCTION,
                {
                    "query_embedding": embedding,
                    "match_threshold": threshold,
                    "match_count": count,
                },
            ).execute()
        return response.data or []

    def clear_documents(self) -> None:
        """Delete every indexed document."""
        with metrics.track("supabase", "documents.delete"):
            self._client.table(DOCUMENTS_TABLE).delete().neq("id", 0).execute()

    def insert_document(
        self,
        content: str,
        embedding: list[float],
        metadata: dict[str, Any],
    ) -> None:
        with metrics.track("supabase", "documents.insert"):
            self._client.table(DOCUMENTS_TABLE).insert(
                {"content": content, "embedding": embedding, "metadata": metadata},
            ).execute()

    def ping(self) -> None:
        """Raise if the documents table cannot be read."""
        with metrics.track("supabase", "documents.select"):
            self._client.table(DOCUMENTS_TABLE).select("id").limit(1).execute()


# ── Module-level singleton (thread-safe) ────────────────────────────
_store: KnowledgeStore | None = None
_store_lock = threading.Lock()


def get_knowledge_store() -> KnowledgeStore:
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                _store = KnowledgeStore()
    return _store
