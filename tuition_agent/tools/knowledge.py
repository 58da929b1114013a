"""Knowledge base retrieval and indexing.

The question/answer pairs live in the ``knowledge`` tab of the spreadsheet.
``sync_knowledge_base`` re-indexes them into the Supabase vector store, one
document per pair formatted as ``Q: <question>\\nA: <answer>``.
``retrieve_context`` embeds the student's latest message and returns the
closest documents as prompt context.

Retrieval is best-effort: any failure yields an empty context and the
conversation carries on without it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from tuition_agent.config import KNOWLEDGE_SHEET
from tuition_agent.services.embeddings import get_embeddings
from tuition_agent.services.knowledge_store import KnowledgeStore, get_knowledge_store
from tuition_agent.services.metrics import metrics
from tuition_agent.services.sheets_client import SheetsClient, get_sheets_client

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KnowledgeEntry:
    question: str
    answer: str

    @property
    def content(self) -> str:
        return f"Q: {self.question}\nA: {self.answer}"


def read_knowledge_entries(client: SheetsClient, sheet: str = KNOWLEDGE_SHEET) -> list[KnowledgeEntry]:
    _, records = client.get_table(sheet)
    return [
        KnowledgeEntry(
            question=rec.get("Question", "").strip(),
            answer=rec.get("Answer", "").strip(),
        )
        for _, rec in records
    ]


def retrieve_context(query: str, *, store: KnowledgeStore | None = None, embeddings=None) -> str:
    """Return the best-matching knowledge documents joined by blank lines.

    Never raises.
    """
    try:
        embeddings = embeddings or get_embeddings()
        with metrics.track("gemini", "embed_query"):
            vector = embeddings.embed_query(query)

        documents = (store or get_knowledge_store()).match_documents(vector)
    except Exception:
        logger.exception("Knowledge retrieval failed; continuing without context")
        return ""

    if not documents:
        logger.debug("No knowledge matches for query")
        return ""
    return "\n\n".join(doc["content"] for doc in documents if doc.get("content"))


def sync_knowledge_base(
    *,
    sheets: SheetsClient | None = None,
    store: KnowledgeStore | None = None,
    embeddings=None,
) -> int:
    """Rebuild the vector index from the knowledge tab.

    Returns the number of documents inserted.  Reading the sheet must
    succeed; a failed delete is logged and the sync continues, and a failed
    embed or insert only skips that pair.
    """
    entries = read_knowledge_entries(sheets or get_sheets_client())
    if not entries:
        logger.info("No knowledge found in Google Sheets.")
        return 0

    store = store or get_knowledge_store()
    embeddings = embeddings or get_embeddings()

    try:
        store.clear_documents()
    except Exception:
        logger.exception("Error clearing indexed documents")

    count = 0
    for entry in entries:
        if not entry.question or not entry.answer:
            continue
        try:
            with metrics.track("gemini", "embed_documents"):
                vector = embeddings.embed_documents([entry.content])[0]
            store.insert_document(entry.content, vector, {"question": entry.question})
        except Exception:
            logger.exception("Error indexing knowledge entry %r", entry.question)
            continue
        count += 1

    logger.info("Synced %d of %d knowledge entries", count, len(entries))
    return count
