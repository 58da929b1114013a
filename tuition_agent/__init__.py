"""Tuition centre agent — a chat assistant for students and admins.

Architecture Overview
=====================

The assistant is a **LangGraph** loop over Claude with four scheduling
tools:

1. **chatbot** — calls the model with the conversation, a system prompt
   (persona, today's date, knowledge context) and the tool schema.

2. **tools** — runs the requested tools through the ``ToolRegistry`` and
   feeds the results back to the chatbot.

The loop ends when the model stops asking for tools, or after five model
calls.

Key Design Decisions
--------------------
- **Stateless requests**: the client resends the whole history each turn;
  nothing is kept server-side between requests.
- **Schedule in Google Sheets**: one row per slot, free while
  ``Student_Name`` is blank.  Bookings re-read the row before writing and
  never overwrite a taken slot.
- **Admin tools**: ``addSlot`` and ``createBatchSchedule`` require the admin
  password; a wrong password is reported to the model, never raised.
- **Knowledge base**: Q&A pairs from the spreadsheet are embedded with
  Gemini and stored in Supabase; the top matches for the latest user
  message are injected into the system prompt.  Retrieval is best-effort.

Package Structure
-----------------
- ``tuition_agent/agent.py`` — LangGraph StateGraph and ``respond`` entry point
- ``tuition_agent/config.py`` — configuration from env / SSM
- ``tuition_agent/prompts.py`` — system prompt
- ``tuition_agent/server.py`` — FastAPI application
- ``tuition_agent/main.py`` — CLI chat and knowledge sync
- ``tuition_agent/diagnostics.py`` — external service checks
- ``tuition_agent/services/`` — Sheets, Supabase, embeddings, metrics
- ``tuition_agent/tools/`` — tool registry, scheduling ops, knowledge base
- ``tuition_agent/api/`` — FastAPI routes and Pydantic schemas
"""
