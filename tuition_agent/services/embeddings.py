"""Gemini embedding model shared by retrieval and the knowledge sync."""

from __future__ import annotations

import threading

from langchain_google_genai import GoogleGenerativeAIEmbeddings

from tuition_agent.config import EMBEDDING_MODEL, GEMINI_API_KEY

_embeddings: GoogleGenerativeAIEmbeddings | None = None
_embeddings_lock = threading.Lock()


def get_embeddings() -> GoogleGenerativeAIEmbeddings:
    global _embeddings
    if _embeddings is None:
        with _embeddings_lock:
            if _embeddings is None:
                _embeddings = GoogleGenerativeAIEmbeddings(
                    model=EMBEDDING_MODEL,
                    google_api_key=GEMINI_API_KEY,
                )
    return _embeddings
