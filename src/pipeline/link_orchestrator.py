# src/pipeline/link_orchestrator.py — v2
"""Link orchestration pipeline.

Drives the three checkpointed phases of a link-building run:
  Phase 1: internal links + client mentions (parallel, isolated)
  Phase 2: client link, an initial turn plus scripted refinement turns
           on one growing conversation (sequential, phase-fatal)
  Phase 3: image strategy + link requests + URL suggestion (parallel)

Each phase writes a checkpoint when it starts and when it completes;
phase N+1 only starts after phase N's snapshot is stored. resume_session
re-enters the same session row at the first phase without a completion
timestamp. Failures never raise out of orchestrate/resume_session: the
session is marked failed and a result with success=False is returned.
"""

from __future__ import annotations

import inspect
import logging
import time
from typing import Any

from postpilot.agents.definitions import AgentCatalog
from postpilot.agents.prompts import (
    CLIENT_LINK_FOLLOWUPS,
    client_link_prompt,
    client_mention_prompt,
    images_prompt,
    internal_links_prompt,
    link_requests_prompt,
    url_suggestion_prompt,
)
from postpilot.agents.runner import AgentRunner
from postpilot.agents.tools import (
    InsertClientLinkArgs,
    OutputImageStrategyArgs,
    OutputLinkRequestsArgs,
    SuggestUrlArgs,
    TextEditArgs,
)
from postpilot.api.models import (
    LinkModifications,
    LinkOrchestrationInput,
    LinkOrchestrationResult,
    LinkProgress,
    ProgressCallback,
)
from postpilot.config.agents import CLIENT_LINK_FOLLOWUP_TURNS
from postpilot.config.settings import Settings
from postpilot.llm.models import Message
from postpilot.logging.context import set_phase_context, set_session_context
from postpilot.pipeline.extractor import ExtractionResult
from postpilot.pipeline.merger import TextModification, merge_text_modifications
from postpilot.pipeline.parallel import run_isolated
from postpilot.progress.base_broker import BaseProgressBroker, ProgressEvent
from postpilot.storage.base_session_store import BaseSessionStore
from postpilot.storage.models import LinkSession, utcnow

logger = logging.getLogger(__name__)

SESSION_NOT_FOUND = "Session not found"


def _to_modifications(calls: list[Any], source: str) -> list[TextModification]:
    return [
        TextModification(target=c.original_text, replacement=c.modified_text, source=source)
        for c in calls
        if isinstance(c, TextEditArgs)
    ]


def _dump(calls: list[Any]) -> list[dict[str, Any]]:
    return [c.model_dump() for c in calls]


class LinkOrchestrator:
    """Run and resume link orchestration sessions."""

    def __init__(
        self,
        settings: Settings,
        store: BaseSessionStore[LinkSession],
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

    async def orchestrate(self, inp: LinkOrchestrationInput) -> LinkOrchestrationResult:
        """Run all three phases on a new session."""
        session = LinkSession(
            workflow_id=inp.workflow_id,
            original_article=inp.article,
            target_domain=inp.target_domain,
            client_name=inp.client_name,
            client_url=inp.client_url,
            anchor_text=inp.anchor_text,
            guest_post_site=inp.guest_post_site,
            target_keyword=inp.target_keyword,
            started_at=utcnow(),
        )
        set_session_context(session.id, "links")
        logger.info("Starting link orchestration for workflow %s", inp.workflow_id)

        try:
            await self._store.create(session)
        except Exception as e:
            logger.error("Could not create link session: %s", e)
            return self._failure(None, inp.article, e)

        try:
            return await self._run(session, inp.on_progress)
        except Exception as e:
            return await self._fail(session, e)

    async def resume_session(
        self, session_id: str, on_progress: ProgressCallback | None = None
    ) -> LinkOrchestrationResult:
        """Continue a session from its first incomplete phase.

        A completed session returns its stored artifacts without running
        any agent.
        """
        try:
            session = await self._store.get(session_id)
        except Exception as e:
            logger.error("Could not load link session %s: %s", session_id, e)
            return self._failure(session_id, "", e)
        if session is None:
            return LinkOrchestrationResult(
                session_id=session_id, success=False, error=SESSION_NOT_FOUND, final_article=""
            )
        if session.status == "completed":
            return self._result_from(session)

        set_session_context(session.id, "links")
        logger.info(
            "Resuming link session %s at phase %s",
            session_id, session.first_incomplete_phase() or "finalize",
        )
        try:
            return await self._run(session, on_progress)
        except Exception as e:
            return await self._fail(session, e)

    async def get_session_progress(self, session_id: str) -> LinkProgress | None:
        session = await self._store.get(session_id)
        if session is None:
            return None
        completed = [
            phase
            for phase, stamp in (
                (1, session.phase1_complete),
                (2, session.phase2_complete),
                (3, session.phase3_complete),
            )
            if stamp is not None
        ]
        return LinkProgress(
            session_id=session.id,
            status=session.status,
            current_phase=session.current_phase,
            phases_completed=completed,
            error=session.error_message if session.status == "failed" else None,
        )

    # ------------------------------------------------------------------
    # Phase sequencing
    # ------------------------------------------------------------------

    async def _run(
        self, session: LinkSession, on_progress: ProgressCallback | None
    ) -> LinkOrchestrationResult:
        start = time.monotonic()

        if session.phase1_complete is None:
            session = await self._phase1(session, on_progress)
        if session.phase2_complete is None:
            session = await self._phase2(session, on_progress)
        if session.phase3_complete is None:
            session = await self._phase3(session, on_progress)

        set_phase_context(None)
        session = await self._store.update(
            session.id,
            status="completed",
            final_article=session.article_after_phase2,
            completed_at=utcnow(),
        )
        logger.info("Link orchestration complete in %.1fs", time.monotonic() - start)
        await self._publish(ProgressEvent(
            type="completed",
            session_id=session.id,
            status="completed",
            phase=3,
            message="Link orchestration completed",
        ))
        await self._close(session.id)
        return self._result_from(session)

    async def _phase1(
        self, session: LinkSession, on_progress: ProgressCallback | None
    ) -> LinkSession:
        set_phase_context("phase1")
        await self._report(
            session.id, 1, "Starting Phase 1: Internal Links & Client Mentions", on_progress
        )
        session = await self._store.update(
            session.id, status="phase1", current_phase=1, phase1_start=utcnow()
        )

        article = session.original_article
        internal_prompt = internal_links_prompt(article, session.guest_post_site)
        mention_prompt = client_mention_prompt(
            article, session.client_name, session.target_domain
        )
        outcomes = await run_isolated([
            ("internal_links", lambda: self._collect("internal_links", [internal_prompt])),
            ("client_mention", lambda: self._collect("client_mention", [mention_prompt])),
        ])
        internal, mentions = (o.value_or(ExtractionResult()) for o in outcomes)

        internal_links = internal.get("insert_internal_link")
        client_mentions = mentions.get("insert_client_mention")
        # Declaration order, never completion order.
        modifications = _to_modifications(internal_links, "insert_internal_link")
        modifications += _to_modifications(client_mentions, "insert_client_mention")
        merged = merge_text_modifications(article, modifications)

        session = await self._store.update(
            session.id,
            article_after_phase1=merged,
            internal_links_result=_dump(internal_links),
            client_mention_result=_dump(client_mentions),
            phase1_complete=utcnow(),
        )
        await self._report(
            session.id, 1, "Phase 1 completed: Internal links and client mentions added", on_progress
        )
        return session

    async def _phase2(
        self, session: LinkSession, on_progress: ProgressCallback | None
    ) -> LinkSession:
        set_phase_context("phase2")
        await self._report(session.id, 2, "Starting Phase 2: Client Link Placement", on_progress)
        session = await self._store.update(
            session.id, status="phase2", current_phase=2, phase2_start=utcnow()
        )

        article = session.article_after_phase1 or session.original_article
        spec = self._catalog.build("client_link")
        history = [
            Message(
                role="user",
                content=client_link_prompt(
                    article, session.client_name, session.client_url, session.anchor_text
                ),
            )
        ]
        client_link: InsertClientLinkArgs | None = None

        for turn in range(CLIENT_LINK_FOLLOWUP_TURNS + 1):
            if turn > 0:
                await self._report(
                    session.id, 2,
                    f"Refining client link placement ({turn}/{CLIENT_LINK_FOLLOWUP_TURNS})",
                    on_progress,
                )
                history.append(Message(
                    role="user",
                    content=CLIENT_LINK_FOLLOWUPS.for_turn(turn - 1, session.client_url),
                ))
            result = await self._runner.collect(spec, list(history))
            history.extend(result.messages)
            latest = result.last("insert_client_link")
            if isinstance(latest, InsertClientLinkArgs):
                client_link = latest
                # The model must see its own placement on the next turn.
                history.append(Message(
                    role="assistant",
                    content=f"Placed client link: {latest.modified_text}",
                ))

        merged = (
            merge_text_modifications(
                article, _to_modifications([client_link], "insert_client_link")
            )
            if client_link is not None
            else article
        )
        session = await self._store.update(
            session.id,
            article_after_phase2=merged,
            client_link_result=client_link.model_dump() if client_link else None,
            client_link_conversation=history,
            phase2_complete=utcnow(),
        )
        await self._report(
            session.id, 2, "Phase 2 completed: Client link optimized and placed", on_progress
        )
        return session

    async def _phase3(
        self, session: LinkSession, on_progress: ProgressCallback | None
    ) -> LinkSession:
        set_phase_context("phase3")
        await self._report(
            session.id, 3, "Starting Phase 3: Images, Link Requests & URL Suggestion", on_progress
        )
        session = await self._store.update(
            session.id, status="phase3", current_phase=3, phase3_start=utcnow()
        )

        article = session.article_after_phase2 or session.original_article
        site, keyword = session.guest_post_site, session.target_keyword
        outcomes = await run_isolated([
            ("images", lambda: self._collect("images", [images_prompt(article, site)])),
            (
                "link_requests",
                lambda: self._collect(
                    "link_requests", [link_requests_prompt(article, site, keyword)]
                ),
            ),
            (
                "url_suggestion",
                lambda: self._collect(
                    "url_suggestion", [url_suggestion_prompt(article, keyword, site)]
                ),
            ),
        ])
        images_out, requests_out, url_out = (o.value_or(ExtractionResult()) for o in outcomes)

        strategy = images_out.last("output_image_strategy")
        requests = requests_out.last("output_link_requests")
        suggestion = url_out.last("suggest_url")

        session = await self._store.update(
            session.id,
            image_strategy=(
                strategy.image_strategy.model_dump()
                if isinstance(strategy, OutputImageStrategyArgs)
                else None
            ),
            images=_dump(images_out.get("generate_image") + images_out.get("find_stock_image")),
            link_requests=(
                requests.plain_text_output if isinstance(requests, OutputLinkRequestsArgs) else ""
            ),
            url_suggestion=(
                suggestion.suggested_url if isinstance(suggestion, SuggestUrlArgs) else ""
            ),
            phase3_complete=utcnow(),
        )
        await self._report(
            session.id, 3, "Phase 3 completed: All link building tasks finished", on_progress
        )
        return session

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _collect(self, agent: str, prompts: list[str]) -> ExtractionResult:
        spec = self._catalog.build(agent)
        messages = [Message(role="user", content=p) for p in prompts]
        return await self._runner.collect(spec, messages)

    async def _fail(self, session: LinkSession, error: Exception) -> LinkOrchestrationResult:
        logger.error("Link orchestration failed for session %s: %s", session.id, error)
        try:
            await self._store.update(session.id, status="failed", error_message=str(error))
        except Exception:
            logger.exception("Could not mark session %s as failed", session.id)
        await self._publish(ProgressEvent(
            type="error", session_id=session.id, status="failed", error=str(error),
        ))
        await self._close(session.id)
        set_phase_context(None)
        return self._failure(session.id, session.original_article, error)

    @staticmethod
    def _failure(
        session_id: str | None, article: str, error: Exception
    ) -> LinkOrchestrationResult:
        return LinkOrchestrationResult(
            session_id=session_id,
            success=False,
            error=str(error),
            final_article=article,
        )

    @staticmethod
    def _result_from(session: LinkSession) -> LinkOrchestrationResult:
        return LinkOrchestrationResult(
            session_id=session.id,
            success=True,
            final_article=(
                session.final_article
                or session.article_after_phase2
                or session.original_article
            ),
            modifications=LinkModifications(
                internal_links=session.internal_links_result or [],
                client_mentions=session.client_mention_result or [],
                client_link=session.client_link_result,
            ),
            image_strategy=session.image_strategy,
            images=session.images or [],
            link_requests=session.link_requests or "",
            url_suggestion=session.url_suggestion or "",
        )

    async def _report(
        self,
        session_id: str,
        phase: int,
        message: str,
        on_progress: ProgressCallback | None,
    ) -> None:
        logger.info(message)
        if on_progress is not None:
            try:
                outcome = on_progress(phase, message)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                logger.warning("Progress callback failed", exc_info=True)
        await self._publish(ProgressEvent(
            type="progress",
            session_id=session_id,
            status=f"phase{phase}",
            phase=phase,
            message=message,
        ))

    async def _publish(self, event: ProgressEvent) -> None:
        if self._broker is not None:
            await self._broker.publish(event.session_id, event)

    async def _close(self, session_id: str) -> None:
        if self._broker is not None:
            await self._broker.close_session(session_id)
