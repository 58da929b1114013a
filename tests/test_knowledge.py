"""Tests for knowledge retrieval and the knowledge sync job."""

from __future__ import annotations

from unittest.mock import MagicMock

from tuition_agent.services.knowledge_store import KnowledgeStore
from tuition_agent.tools.knowledge import (
    KnowledgeEntry,
    read_knowledge_entries,
    retrieve_context,
    sync_knowledge_base,
)


def _embeddings(vector=None) -> MagicMock:
    embeddings = MagicMock()
    embeddings.embed_query.return_value = vector or [0.1, 0.2]
    embeddings.embed_documents.side_effect = lambda texts: [[0.3, 0.4] for _ in texts]
    return embeddings


def _sheets(rows) -> MagicMock:
    sheets = MagicMock()
    sheets.get_table.return_value = (
        ["Question", "Answer"],
        [(i + 2, {"Question": q, "Answer": a}) for i, (q, a) in enumerate(rows)],
    )
    return sheets


class TestRetrieveContext:
    def test_joins_matches_with_blank_lines(self):
        store = MagicMock()
        store.match_documents.return_value = [
            {"content": "Q: Fees?\nA: $200"},
            {"content": "Q: Where?\nA: Tampines"},
        ]
        context = retrieve_context("how much", store=store, embeddings=_embeddings([1.0]))

        assert context == "Q: Fees?\nA: $200\n\nQ: Where?\nA: Tampines"
        store.match_documents.assert_called_once_with([1.0])

    def test_no_matches_gives_empty_context(self):
        store = MagicMock()
        store.match_documents.return_value = []
        assert retrieve_context("hello", store=store, embeddings=_embeddings()) == ""

    def test_embedding_failure_gives_empty_context(self):
        embeddings = MagicMock()
        embeddings.embed_query.side_effect = RuntimeError("Gemini unavailable")
        store = MagicMock()

        assert retrieve_context("hello", store=store, embeddings=embeddings) == ""
        store.match_documents.assert_not_called()

    def test_store_failure_gives_empty_context(self):
        store = MagicMock()
        store.match_documents.side_effect = ConnectionError("Supabase unreachable")
        assert retrieve_context("hello", store=store, embeddings=_embeddings()) == ""


class TestKnowledgeStore:
    def test_match_uses_fixed_policy(self):
        client = MagicMock()
        client.rpc.return_value.execute.return_value.data = [{"content": "x"}]
        docs = KnowledgeStore(client).match_documents([0.5])

        assert docs == [{"content": "x"}]
        client.rpc.assert_called_once_with(
            "match_documents",
            {"query_embedding": [0.5], "match_threshold": 0.5, "match_count": 3},
        )

    def test_match_none_data_is_empty_list(self):
        client = MagicMock()
        client.rpc.return_value.execute.return_value.data = None
        assert KnowledgeStore(client).match_documents([0.5]) == []

    def test_insert_document_payload(self):
        client = MagicMock()
        KnowledgeStore(client).insert_document("Q: a\nA: b", [0.1], {"question": "a"})
        client.table.return_value.insert.assert_called_once_with(
            {"content": "Q: a\nA: b", "embedding": [0.1], "metadata": {"question": "a"}},
        )


class TestSync:
    def test_reads_entries_from_knowledge_tab(self):
        entries = read_knowledge_entries(_sheets([(" Fees? ", " $200 ")]))
        assert entries == [KnowledgeEntry("Fees?", "$200")]

    def test_document_content_format(self):
        assert KnowledgeEntry("Fees?", "$200").content == "Q: Fees?\nA: $200"

    def test_clears_then_inserts_every_pair(self):
        store = MagicMock()
        count = sync_knowledge_base(
            sheets=_sheets([("Fees?", "$200"), ("Where?", "Tampines")]),
            store=store,
            embeddings=_embeddings(),
        )

        assert count == 2
        store.clear_documents.assert_called_once()
        store.insert_document.assert_any_call("Q: Fees?\nA: $200", [0.3, 0.4], {"question": "Fees?"})

    def test_skips_incomplete_pairs(self):
        store = MagicMock()
        count = sync_knowledge_base(
            sheets=_sheets([("Fees?", ""), ("", "orphan answer"), ("Where?", "Tampines")]),
            store=store,
            embeddings=_embeddings(),
        )
        assert count == 1
        assert store.insert_document.call_count == 1

    def test_failed_insert_skips_only_that_pair(self):
        store = MagicMock()
        store.insert_document.side_effect = [RuntimeError("insert failed"), None, None]
        count = sync_knowledge_base(
            sheets=_sheets([("A?", "1"), ("B?", "2"), ("C?", "3")]),
            store=store,
            embeddings=_embeddings(),
        )
        assert count == 2

    def test_failed_embedding_skips_only_that_pair(self):
        embeddings = _embeddings()
        embeddings.embed_documents.side_effect = [RuntimeError("quota"), [[0.1]]]
        store = MagicMock()
        count = sync_knowledge_base(
            sheets=_sheets([("A?", "1"), ("B?", "2")]), store=store, embeddings=embeddings,
        )
        assert count == 1

    def test_failed_clear_does_not_abort(self):
        store = MagicMock()
        store.clear_documents.side_effect = RuntimeError("delete failed")
        count = sync_knowledge_base(
            sheets=_sheets([("A?", "1")]), store=store, embeddings=_embeddings(),
        )
        assert count == 1

    def test_empty_sheet_touches_nothing(self):
        store = MagicMock()
        assert sync_knowledge_base(sheets=_sheets([]), store=store, embeddings=_embeddings()) == 0
        store.clear_documents.assert_not_called()
