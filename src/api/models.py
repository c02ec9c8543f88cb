# src/api/models.py — v2
"""API-level models: invocation inputs, results and progress projections."""

from __future__ import annotations

from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field

from postpilot.storage.models import Citation

ProgressCallback = Callable[[int, str], Any]


class OutlineInput(BaseModel):
    """Request for a research outline."""

    workflow_id: str
    prompt: str = Field(min_length=1)
    keyword: str | None = None
    post_title: str | None = None
    client_target_url: str | None = None

    def session_metadata(self) -> dict[str, str | None]:
        return {
            "keyword": self.keyword,
            "post_title": self.post_title,
            "client_target_url": self.client_target_url,
        }


class OutlineStartResult(BaseModel):
    """Return value of starting outline generation."""

    session_id: str
    version: int
    needs_clarification: bool = False
    questions: list[str] | None = None
    outline: str | None = None
    citations: list[Citation] = Field(default_factory=list)
    already_active: bool = False
    status: str = "triaging"


class OutlineResult(BaseModel):
    """Completed outline after clarification answers."""

    outline: str
    citations: list[Citation] = Field(default_factory=list)


class OutlineProgress(BaseModel):
    """Read-only status projection for polling callers."""

    session_id: str
    status: str
    needs_clarification: bool
    questions: list[str] | None = None
    outline: str | None = None
    citations: list[Citation] | None = None
    error: str | None = None


class LinkOrchestrationInput(BaseModel):
    """Article plus client metadata for a link orchestration run."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    workflow_id: str
    article: str = Field(min_length=1)
    target_domain: str
    client_name: str
    client_url: str
    anchor_text: str | None = None
    guest_post_site: str
    target_keyword: str
    on_progress: ProgressCallback | None = Field(default=None, exclude=True)


class LinkModifications(BaseModel):
    """Edits recorded by the link agents (tool arguments, as dicts)."""

    internal_links: list[dict[str, Any]] = Field(default_factory=list)
    client_mentions: list[dict[str, Any]] = Field(default_factory=list)
    client_link: dict[str, Any] | None = None


class LinkOrchestrationResult(BaseModel):
    """Outcome of orchestrate / resume. Never raised, always returned."""

    session_id: str | None = None
    success: bool
    error: str | None = None
    final_article: str
    modifications: LinkModifications = Field(default_factory=LinkModifications)
    image_strategy: dict[str, Any] | None = None
    images: list[dict[str, Any]] = Field(default_factory=list)
    link_requests: str = ""
    url_suggestion: str = ""


class LinkProgress(BaseModel):
    """Read-only status projection of a link session."""

    session_id: str
    status: str
    current_phase: int
    phases_completed: list[int] = Field(default_factory=list)
    error: str | None = None
