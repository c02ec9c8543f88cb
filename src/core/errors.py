# src/core/errors.py — v1
"""Domain exceptions shared by the orchestrators, stores and agent runner."""

from __future__ import annotations


class PostPilotError(Exception):
    """Base class for all postpilot domain errors."""


class SessionStoreError(PostPilotError):
    """Raised when a session write violates the store contract."""


class SessionNotFoundError(SessionStoreError):
    """Raised when a session id does not exist in the store."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class InvalidSessionStateError(PostPilotError):
    """Raised when a session cannot be resumed from its persisted state."""


class AgentDecisionError(PostPilotError):
    """Raised when a decision agent returns an unusable decision."""

    def __init__(self, agent: str, reason: str) -> None:
        self.agent = agent
        self.reason = reason
        super().__init__(f"Agent '{agent}' returned an invalid decision: {reason}")
