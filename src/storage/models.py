# src/storage/models.py — v2
"""Session records persisted by the session stores.

One record per pipeline run. Records are plain pydantic models so every
backend stores them as JSON via model_dump_json / model_validate.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, ClassVar, Literal
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator

from postpilot.llm.models import Message

LinkStatus = Literal["initializing", "phase1", "phase2", "phase3", "completed", "failed"]
OutlineStatus = Literal[
    "triaging", "clarifying", "researching", "completed", "error", "cancelled"
]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Citation(BaseModel):
    """A URL or named source found in a research outline."""

    type: Literal["url", "source"]
    value: str


class SessionRecord(BaseModel):
    """Fields shared by every session kind."""

    store_name: ClassVar[str] = "sessions"

    id: str = Field(default_factory=lambda: str(uuid4()))
    workflow_id: str
    version: int = Field(default=1, ge=1)
    status: str
    error_message: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    started_at: datetime | None = None
    completed_at: datetime | None = None


class LinkSession(SessionRecord):
    """Checkpointed state of one link orchestration run."""

    store_name: ClassVar[str] = "link_sessions"

    status: LinkStatus = "initializing"
    current_phase: int = Field(default=0, ge=0, le=3)

    # Invocation snapshot, enough to rebuild the input on resume
    original_article: str
    target_domain: str
    client_name: str
    client_url: str
    anchor_text: str | None = None
    guest_post_site: str
    target_keyword: str

    # Phase 1
    phase1_start: datetime | None = None
    phase1_complete: datetime | None = None
    article_after_phase1: str | None = None
    internal_links_result: list[dict[str, Any]] | None = None
    client_mention_result: list[dict[str, Any]] | None = None

    # Phase 2
    phase2_start: datetime | None = None
    phase2_complete: datetime | None = None
    article_after_phase2: str | None = None
    client_link_result: dict[str, Any] | None = None
    client_link_conversation: list[Message] | None = None

    # Phase 3
    phase3_start: datetime | None = None
    phase3_complete: datetime | None = None
    image_strategy: dict[str, Any] | None = None
    images: list[dict[str, Any]] | None = None
    link_requests: str | None = None
    url_suggestion: str | None = None

    final_article: str | None = None

    @model_validator(mode="after")
    def check_phase_order(self) -> LinkSession:
        if self.phase2_complete is not None and self.phase1_complete is None:
            raise ValueError("phase2_complete requires phase1_complete")
        if self.phase3_complete is not None and self.phase2_complete is None:
            raise ValueError("phase3_complete requires phase2_complete")
        if self.status == "completed" and self.phase3_complete is None:
            raise ValueError("completed status requires phase3_complete")
        return self

    def first_incomplete_phase(self) -> int | None:
        """1-3 for the first phase lacking a completion timestamp, None if all done."""
        for phase, done in (
            (1, self.phase1_complete),
            (2, self.phase2_complete),
            (3, self.phase3_complete),
        ):
            if done is None:
                return phase
        return None


class OutlineSession(SessionRecord):
    """State of one outline generation run, including a clarification pause."""

    store_name: ClassVar[str] = "outline_sessions"

    status: OutlineStatus = "triaging"
    outline_prompt: str
    session_metadata: dict[str, str | None] = Field(default_factory=dict)
    clarification_questions: list[str] | None = None
    clarification_answers: str | None = None
    agent_state: dict[str, Any] | None = None
    research_instructions: str | None = None
    final_outline: str | None = None
    citations: list[Citation] | None = None
    is_active: bool = True
    # Set when a newer run or the stale timeout retires the session
    superseded: bool = False

    @model_validator(mode="after")
    def check_pause_state(self) -> OutlineSession:
        if self.status == "clarifying" and self.agent_state is None:
            raise ValueError("clarifying status requires agent_state")
        return self
