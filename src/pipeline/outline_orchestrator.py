# src/pipeline/outline_orchestrator.py — v2
"""Outline generation pipeline.

An explicit state machine over agent decisions:

    triage --handoff--> clarifier --output--> (pause, status=clarifying)
       \\--handoff--> instruction_builder --handoff--> research --> completed

The clarifier's questions pause the run: an AgentState continuation is
stored on the session and control returns to the caller. The run is
resumed only by continue_with_answers, or retired by cancel. Unlike the
link pipeline, any failure after the session exists marks it as error and
is re-raised.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from postpilot.agents.definitions import AgentCatalog, AgentSpec, ClarificationQuestions
from postpilot.agents.prompts import outline_request_prompt
from postpilot.agents.runner import AgentRunner, HandoffDecision
from postpilot.api.models import OutlineInput, OutlineProgress, OutlineResult, OutlineStartResult
from postpilot.config.settings import Settings
from postpilot.core.errors import AgentDecisionError, InvalidSessionStateError
from postpilot.llm.models import Message
from postpilot.logging.context import set_phase_context, set_session_context
from postpilot.pipeline.continuation import AgentState
from postpilot.pipeline.text_utils import (
    extract_citations,
    format_clarification_answers,
    sanitize_text,
)
from postpilot.progress.base_broker import BaseProgressBroker, ProgressEvent
from postpilot.storage.base_session_store import BaseSessionStore
from postpilot.storage.models import OutlineSession, utcnow

logger = logging.getLogger(__name__)

INVALID_STATE = "Session not found or invalid state"
EMPTY_OUTLINE = "No research content generated"
CANCELLED = "Research cancelled by user"

_STALE_STATUSES = ("triaging", "researching")
_TERMINAL_STATUSES = ("completed", "error", "cancelled")
_RESUMABLE_STATUSES = ("clarifying", "error")


class OutlineOrchestrator:
    """Start, pause and resume outline generation sessions."""

    def __init__(
        self,
        settings: Settings,
        store: BaseSessionStore[OutlineSession],
        runner: AgentRunner,
        broker: BaseProgressBroker | None = None,
        catalog: AgentCatalog | None = None,
    ) -> None:
        self._settings = settings
        self._store = store
        self._runner = runner
        self._broker = broker
        self._catalog = catalog or AgentCatalog(settings)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def start(self, inp: OutlineInput, force: bool = False) -> OutlineStartResult:
        """Create a session and drive it to a clarification pause or completion.

        Args:
            inp: The outline request.
            force: Supersede any live session of the same workflow.

        Returns:
            The paused or completed session. When the workflow already has a
            live session it is returned with ``already_active=True``.
        """
        active = await self._claim_workflow(inp.workflow_id, force)
        if active is not None:
            logger.warning(
                "Outline generation already active for workflow %s: %s",
                inp.workflow_id, active.id,
            )
            return self._start_result(active, already_active=True)

        version = await self._store.next_version(inp.workflow_id)
        session = OutlineSession(
            workflow_id=inp.workflow_id,
            version=version,
            outline_prompt=sanitize_text(inp.prompt),
            session_metadata=inp.session_metadata(),
            started_at=utcnow(),
        )
        await self._store.create(session)
        set_session_context(session.id, "outline")
        logger.info(
            "Starting outline generation session %s (v%d) for workflow %s",
            session.id, version, inp.workflow_id,
        )
        await self._status(session.id, "triaging", "Analyzing your request...")

        history = [
            Message(
                role="user",
                content=outline_request_prompt(
                    session.outline_prompt,
                    keyword=inp.keyword,
                    post_title=inp.post_title,
                    client_target_url=inp.client_target_url,
                ),
            )
        ]
        try:
            session = await self._drive(session, history, "triage")
        except Exception as e:
            await self._fail(session.id, e)
            raise
        return self._start_result(session)

    async def continue_with_answers(self, session_id: str, answers: str) -> OutlineResult:
        """Resume a paused session with the caller's clarification answers.

        Raises:
            InvalidSessionStateError: If the session does not exist or has no
                resumable continuation state, or was retired by a newer run.
        """
        session = await self._store.get(session_id)
        if (
            session is None
            or session.agent_state is None
            or session.status not in _RESUMABLE_STATUSES
            or session.superseded
        ):
            raise InvalidSessionStateError(INVALID_STATE)
        state = AgentState.from_record(session.agent_state)

        set_session_context(session.id, "outline")
        logger.info("Continuing session %s with clarification answers", session_id)
        try:
            session = await self._store.update(
                session_id,
                status="researching",
                clarification_answers=sanitize_text(answers),
                is_active=True,
            )
            await self._status(
                session_id, "researching", "Building research instructions based on your answers..."
            )
            history = list(state.history)
            history.append(
                Message(role="user", content=format_clarification_answers(state.questions, answers))
            )
            session = await self._drive(session, history, state.next_agent)
            if session.final_outline is None:
                raise AgentDecisionError(state.next_agent, "run paused again after answers")
        except Exception as e:
            await self._fail(session_id, e)
            raise
        return OutlineResult(outline=session.final_outline, citations=session.citations or [])

    async def get_session_progress(self, session_id: str) -> OutlineProgress | None:
        session = await self._store.get(session_id)
        if session is None:
            return None
        return OutlineProgress(
            session_id=session.id,
            status=session.status,
            needs_clarification=session.status == "clarifying",
            questions=session.clarification_questions,
            outline=session.final_outline,
            citations=session.citations,
            error=session.error_message,
        )

    async def get_latest_session(self, workflow_id: str) -> OutlineSession | None:
        """Highest-version session of a workflow."""
        return await self._store.latest_for_parent(workflow_id)

    async def cancel(self, session_id: str) -> OutlineProgress:
        """Retire a session so it can no longer be resumed or block its workflow.

        Raises:
            InvalidSessionStateError: If the session does not exist or has
                already completed or been cancelled.
        """
        session = await self._store.get(session_id)
        if session is None or session.status in ("completed", "cancelled"):
            raise InvalidSessionStateError(INVALID_STATE)

        await self._store.update(
            session_id, status="cancelled", error_message=CANCELLED, is_active=False
        )
        logger.info("Outline session %s cancelled", session_id)
        await self._publish(ProgressEvent(
            type="cancelled", session_id=session_id, status="cancelled", message=CANCELLED,
        ))
        await self._close(session_id)
        return await self.get_session_progress(session_id)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    async def _drive(
        self, session: OutlineSession, history: list[Message], agent: str
    ) -> OutlineSession:
        """Follow decisions from ``agent`` until a pause or the research result."""
        max_hops = self._settings.outline_max_handoffs
        current = agent

        for _ in range(max_hops):
            set_phase_context(current)
            spec = self._catalog.build(current)

            if spec.kind == "research":
                return await self._research(session, spec, history)

            decision = await self._runner.decide(spec, history)

            if isinstance(decision, HandoffDecision):
                session = await self._handoff(session, current, decision, history)
                current = decision.target
                continue

            if isinstance(decision.value, ClarificationQuestions):
                return await self._pause(session, history, decision.value.questions)

            raise AgentDecisionError(current, f"unexpected output {type(decision.value).__name__}")

        raise AgentDecisionError(current, f"no result after {max_hops} handoffs")

    async def _handoff(
        self,
        session: OutlineSession,
        source: str,
        decision: HandoffDecision,
        history: list[Message],
    ) -> OutlineSession:
        fields: dict[str, object] = {}
        if decision.target in ("instruction_builder", "research") and session.status != "researching":
            fields["status"] = "researching"
        if source == "instruction_builder" and decision.message:
            fields["research_instructions"] = sanitize_text(decision.message)
        if decision.message:
            history.append(Message(role="assistant", content=decision.message))
        if fields:
            session = await self._store.update(session.id, **fields)

        messages = {
            "clarifier": "Preparing clarification questions...",
            "instruction_builder": "Building research instructions...",
            "research": "Conducting deep research...",
        }
        await self._status(session.id, session.status, messages.get(decision.target, ""))
        return session

    async def _pause(
        self, session: OutlineSession, history: list[Message], questions: list[str]
    ) -> OutlineSession:
        state = AgentState(
            next_agent="instruction_builder", history=history, questions=questions
        )
        session = await self._store.update(
            session.id,
            status="clarifying",
            clarification_questions=questions,
            agent_state=state.to_record(),
        )
        logger.info("Session %s paused for %d clarification question(s)", session.id, len(questions))
        await self._publish(ProgressEvent(
            type="status",
            session_id=session.id,
            status="clarifying",
            message="Clarification needed",
            data={"questions": questions},
        ))
        await self._close(session.id)
        return session

    async def _research(
        self, session: OutlineSession, spec: AgentSpec, history: list[Message]
    ) -> OutlineSession:
        text = await self._runner.research(
            spec, [Message(role="user", content=self._research_brief(session, history))]
        )
        await self._status(session.id, "researching", "Processing research results...")

        outline = sanitize_text(text).strip() or EMPTY_OUTLINE
        citations = extract_citations(outline)
        session = await self._store.update(
            session.id,
            status="completed",
            final_outline=outline,
            citations=citations,
            completed_at=utcnow(),
            is_active=False,
        )
        logger.info("Outline completed: %d chars, %d citation(s)", len(outline), len(citations))
        await self._publish(ProgressEvent(
            type="completed",
            session_id=session.id,
            status="completed",
            message="Research outline completed successfully!",
            data={
                "outline": outline,
                "citations": [c.model_dump() for c in citations],
            },
        ))
        await self._close(session.id)
        set_phase_context(None)
        return session

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _claim_workflow(self, workflow_id: str, force: bool) -> OutlineSession | None:
        """Return the live session of a workflow, retiring dead ones on the way."""
        stale_after = timedelta(minutes=self._settings.outline_stale_after_minutes)
        now = utcnow()

        for record in await self._store.list_for_parent(workflow_id):
            if not record.is_active:
                continue
            if force and record.status not in _TERMINAL_STATUSES:
                await self._store.update(
                    record.id,
                    is_active=False,
                    superseded=True,
                    status="error",
                    error_message="Superseded by a new outline generation",
                )
                continue
            if record.status in _TERMINAL_STATUSES:
                await self._store.update(record.id, is_active=False)
                continue
            started = record.started_at or record.created_at
            if record.status in _STALE_STATUSES and now - started > stale_after:
                logger.warning("Retiring stuck outline session %s", record.id)
                await self._store.update(
                    record.id,
                    is_active=False,
                    superseded=True,
                    status="error",
                    error_message=(
                        f"Session timed out after {self._settings.outline_stale_after_minutes} minutes"
                    ),
                )
                continue
            return record
        return None

    async def _fail(self, session_id: str, error: Exception) -> None:
        logger.error("Outline generation failed for session %s: %s", session_id, error)
        try:
            await self._store.update(
                session_id, status="error", error_message=str(error), is_active=False
            )
        except Exception:
            logger.exception("Could not mark session %s as error", session_id)
        await self._publish(ProgressEvent(
            type="error", session_id=session_id, status="error", error=str(error),
        ))
        await self._close(session_id)
        set_phase_context(None)

    @staticmethod
    def _research_brief(session: OutlineSession, history: list[Message]) -> str:
        """The builder's instructions, else every user turn of the conversation."""
        if session.research_instructions:
            return session.research_instructions
        turns = [m.content for m in history if m.role == "user" and m.content]
        return "\n\n".join(turns) or session.outline_prompt

    @staticmethod
    def _start_result(session: OutlineSession, already_active: bool = False) -> OutlineStartResult:
        return OutlineStartResult(
            session_id=session.id,
            version=session.version,
            needs_clarification=session.status == "clarifying",
            questions=session.clarification_questions,
            outline=session.final_outline,
            citations=session.citations or [],
            already_active=already_active,
            status=session.status,
        )

    async def _status(self, session_id: str, status: str, message: str) -> None:
        await self._publish(ProgressEvent(
            type="status", session_id=session_id, status=status, message=message,
        ))

    async def _publish(self, event: ProgressEvent) -> None:
        if self._broker is not None:
            await self._broker.publish(event.session_id, event)

    async def _close(self, session_id: str) -> None:
        if self._broker is not None:
            await self._broker.close_session(session_id)
