# src/llm/models.py — v2
"""LLM-specific types: Message, ToolSpec, stream events, LLMResponse.

Stream events form a discriminated union on ``kind``. Textual output
always lives in ``MessageOutputEvent.message.content``.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


class Message(BaseModel):
    """Single message in a conversation."""

    role: Literal["user", "assistant", "system"]
    content: str


class ToolSpec(BaseModel):
    """Function tool exposed to a model.

    ``hosted`` tools (e.g. web search) are executed by the provider and
    carry no parameter schema.
    """

    name: str
    description: str = ""
    parameters: dict[str, Any] = Field(default_factory=dict)
    hosted: bool = False


class ToolCalledEvent(BaseModel):
    """The model invoked a function tool with fully assembled arguments."""

    kind: Literal["tool_called"] = "tool_called"
    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    call_id: str | None = None


class MessageOutputEvent(BaseModel):
    """The model produced an assistant message."""

    kind: Literal["message_output_created"] = "message_output_created"
    message: Message


StreamEvent = Annotated[
    Union[ToolCalledEvent, MessageOutputEvent],
    Field(discriminator="kind"),
]

STREAM_EVENT_ADAPTER: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)


class LLMResponse(BaseModel):
    """Normalized response from any LLM provider."""

    content: str
    input_tokens: int
    output_tokens: int
    model: str
    provider: str
    latency_ms: int
    raw_response: Any = None
