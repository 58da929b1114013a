"""LangGraph conversation loop for the tuition centre assistant.

Architecture:
  A two-node StateGraph:

    1. **chatbot** — calls the chat model with the system prompt, the
                     conversation so far and the four scheduling tools
    2. **tools**   — executes every tool call from the last assistant
                     message through the ``ToolRegistry`` and appends one
                     tool message per call

  Routing:
    chatbot → (has tool calls and under the call ceiling?) → tools → chatbot
            → (otherwise)                                  → END

  At most ``MAX_LLM_CALLS`` model calls are made per request.  When the
  ceiling is hit the last assistant message is returned as-is, even if it
  still asks for tools.

  State:
    Nothing is kept between requests.  The client resends the full history
    each time; ``respond`` retrieves knowledge context for the latest user
    message and runs the graph once.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Annotated, Any

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import (
    AIMessage,
    AnyMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)
from langgraph.graph import END, StateGraph
from langgraph.graph.message import add_messages
from typing_extensions import TypedDict

from tuition_agent.config import ANTHROPIC_API_KEY, MAX_LLM_CALLS, MODEL_NAME
from tuition_agent.prompts import get_system_prompt
from tuition_agent.services.metrics import metrics
from tuition_agent.tools.knowledge import retrieve_context
from tuition_agent.tools.registry import TOOL_SCHEMA, ToolRegistry, ToolResult

logger = logging.getLogger(__name__)

# Shown when the run ends without any assistant text (e.g. the call ceiling
# was hit while the model was still asking for tools)
INCOMPLETE_REPLY = "Sorry, I couldn't finish that request. Please try again."


# ── State schema ─────────────────────────────────────────────────────


class AgentState(TypedDict):
    """The state that flows through the graph.

    ``messages`` uses the ``add_messages`` reducer so nodes append rather
    than overwrite.  ``context`` is the knowledge text for the system
    prompt.  ``llm_calls`` counts model calls made so far in this run.
    """

    messages: Annotated[list[AnyMessage], add_messages]
    context: str
    llm_calls: int


# ── Message helpers ──────────────────────────────────────────────────


def message_text(message: BaseMessage) -> str:
    """Plain text of a message whose content may be a list of blocks."""
    content = message.content
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def reply_text(message: BaseMessage) -> str:
    """Text to show the user for a final message; never empty."""
    text = message_text(message).strip()
    if not text:
        logger.warning("Final message has no text; sending fallback reply")
        return INCOMPLETE_REPLY
    return text


def _pending_calls(message: BaseMessage) -> list[dict[str, Any]]:
    """Tool calls (valid or not) requested by an assistant message."""
    if not isinstance(message, AIMessage):
        return []
    return list(message.tool_calls or []) + list(message.invalid_tool_calls or [])


# ── LLM builder ──────────────────────────────────────────────────────


def _build_llm():
    """Build the chat model with the tool schema bound."""
    llm = ChatAnthropic(
        model=MODEL_NAME,
        api_key=ANTHROPIC_API_KEY,
        temperature=0.1,
        max_tokens=1024,
    )
    return llm.bind_tools(TOOL_SCHEMA)


# ── Node: chatbot ────────────────────────────────────────────────────


def _make_chatbot_node():
    """Create the chatbot node.

    The bound model is captured in the closure so every loop iteration
    reuses one client.  Provider errors propagate and fail the request.
    """
    llm_with_tools = _build_llm()

    def chatbot_node(state: AgentState) -> dict:
        calls = state.get("llm_calls", 0) + 1
        system = SystemMessage(content=get_system_prompt(state.get("context", "")))
        logger.debug("chatbot call %d/%d — model: %s", calls, MAX_LLM_CALLS, MODEL_NAME)
        with metrics.track("anthropic", "llm_invoke"):
            response = llm_with_tools.invoke([system] + state["messages"])
        return {"messages": [response], "llm_calls": calls}

    return chatbot_node


# ── Node: tools ──────────────────────────────────────────────────────


def _make_tools_node(registry: ToolRegistry):
    """Create the node that answers every tool call of the last message."""

    def tools_node(state: AgentState) -> dict:
        last = state["messages"][-1]
        results: list[ToolMessage] = []

        for call in last.tool_calls:
            result = registry.execute(call["name"], call.get("args"))
            results.append(_tool_message(call, result))

        # Calls whose arguments the SDK could not parse still need an answer
        for call in last.invalid_tool_calls:
            logger.warning("Unparsable arguments for tool %r", call.get("name"))
            result = ToolResult.failure(
                f"Could not parse arguments for tool {call.get('name')}: {call.get('error')}"
            )
            results.append(_tool_message(call, result))

        return {"messages": results}

    return tools_node


def _tool_message(call: dict[str, Any], result: ToolResult) -> ToolMessage:
    return ToolMessage(
        content=result.to_json(),
        tool_call_id=call.get("id") or "",
        name=call.get("name") or "",
        status="success" if result.ok else "error",
    )


# ── Conditional edge ─────────────────────────────────────────────────


def should_use_tools(state: AgentState) -> str:
    """Route to tools while the model asks for them and calls remain."""
    if not _pending_calls(state["messages"][-1]):
        return END
    if state.get("llm_calls", 0) >= MAX_LLM_CALLS:
        logger.warning(
            "Tool loop stopped after %d model calls; returning last response",
            MAX_LLM_CALLS,
        )
        return END
    return "tools"


# ── Graph assembly ───────────────────────────────────────────────────


def create_tuition_agent(registry: ToolRegistry | None = None):
    """Build and compile the conversation graph.

    Invoke with:
        graph.invoke({"messages": history, "context": context, "llm_calls": 0})
    """
    registry = registry or ToolRegistry()
    graph = StateGraph(AgentState)

    graph.add_node("chatbot", _make_chatbot_node())
    graph.add_node("tools", _make_tools_node(registry))

    graph.set_entry_point("chatbot")
    graph.add_conditional_edges("chatbot", should_use_tools, {"tools": "tools", END: END})
    graph.add_edge("tools", "chatbot")

    compiled = graph.compile()
    logger.debug("Tuition agent compiled — model: %s, tools: %d", MODEL_NAME, len(TOOL_SCHEMA))
    return compiled


# ── Entry point ──────────────────────────────────────────────────────


def respond(
    agent,
    messages: list[AnyMessage],
    *,
    retriever: Callable[[str], str] = retrieve_context,
) -> AIMessage:
    """Answer the latest turn of *messages* and return the final assistant message.

    Knowledge context is retrieved only when the history ends with a user
    message that has text.  Raises ``ValueError`` for an empty history.
    """
    if not messages:
        raise ValueError("No messages provided")

    context = ""
    last = messages[-1]
    if isinstance(last, HumanMessage):
        query = message_text(last).strip()
        if query:
            context = retriever(query)

    result = agent.invoke({"messages": list(messages), "context": context, "llm_calls": 0})
    return result["messages"][-1]
