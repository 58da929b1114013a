"""Pydantic schemas for the FastAPI endpoints."""

from __future__ import annotations

import json
from typing import Any, Literal

from langchain_core.messages import AIMessage, AnyMessage, HumanMessage, ToolMessage
from pydantic import BaseModel, Field


class FunctionCall(BaseModel):
    name: str
    arguments: str = "{}"


class ToolCallPayload(BaseModel):
    """A tool call as it appears in an OpenAI-style assistant message."""

    id: str
    type: Literal["function"] = "function"
    function: FunctionCall


class ChatMessage(BaseModel):
    """One message of the history resent by the client on every turn."""

    role: Literal["user", "assistant", "system", "tool"]
    content: str | list[dict[str, Any]] | None = Field(default=None, description="Text or text parts")
    tool_calls: list[ToolCallPayload] | None = None
    tool_call_id: str | None = None

    def text(self) -> str:
        if self.content is None:
            return ""
        if isinstance(self.content, str):
            return self.content
        return " ".join(
            part.get("text", "") for part in self.content if part.get("type") == "text"
        ).strip()

    def to_langchain(self) -> AnyMessage | None:
        """Convert to a LangChain message; ``system`` messages map to ``None``."""
        if self.role == "user":
            return HumanMessage(content=self.text())
        if self.role == "assistant":
            calls = [
                {
                    "name": call.function.name,
                    "args": json.loads(call.function.arguments or "{}"),
                    "id": call.id,
                }
                for call in self.tool_calls or []
            ]
            return AIMessage(content=self.text(), tool_calls=calls)
        if self.role == "tool":
            return ToolMessage(content=self.text(), tool_call_id=self.tool_call_id or "")
        return None


class ChatRequest(BaseModel):
    """Full conversation history from the chat widget."""

    messages: list[ChatMessage] = Field(default_factory=list, max_length=200)


class ChatResponse(BaseModel):
    """The final assistant message."""

    role: Literal["assistant"] = "assistant"
    content: str = Field(..., description="The assistant's reply")


class SyncResponse(BaseModel):
    synced: int
    message: str


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    service: str = "tuition-centre-agent"
