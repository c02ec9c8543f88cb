# src/pipeline/continuation.py — v1
"""Versioned continuation state for the paused outline pipeline.

Stored in OutlineSession.agent_state as plain JSON so that a run paused
for clarification can be resumed by any process and any provider.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from postpilot.core.errors import InvalidSessionStateError
from postpilot.llm.models import Message

AGENT_STATE_SCHEMA_VERSION = 1


class AgentState(BaseModel):
    """Where a paused outline run stands and what it has said so far."""

    schema_version: int = AGENT_STATE_SCHEMA_VERSION
    phase: Literal["awaiting_clarification"] = "awaiting_clarification"
    next_agent: str
    history: list[Message] = Field(default_factory=list)
    questions: list[str] = Field(default_factory=list)

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_record(cls, data: dict[str, Any] | None) -> AgentState:
        """Load persisted state.

        Raises:
            InvalidSessionStateError: If nothing is stored or the schema
                version is not supported.
        """
        if not data:
            raise InvalidSessionStateError("Session not found or invalid state")
        version = data.get("schema_version")
        if version != AGENT_STATE_SCHEMA_VERSION:
            raise InvalidSessionStateError(
                f"Unsupported agent state version: {version!r}"
            )
        return cls.model_validate(data)
