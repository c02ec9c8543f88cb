# src/api/facade.py — v3
"""Public API facade — entry points for both agent pipelines.

Usage:
    from postpilot.api.facade import create_services, orchestrate_links
    services = create_services()
    result = await orchestrate_links(inp, services)

Each function accepts an optional Services bundle; without one, services
are built from Settings loaded from .env.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from postpilot.agents.definitions import AgentCatalog
from postpilot.agents.runner import AgentRunner, ClientFactory
from postpilot.api.models import (
    LinkOrchestrationInput,
    LinkOrchestrationResult,
    LinkProgress,
    OutlineInput,
    OutlineProgress,
    OutlineResult,
    OutlineStartResult,
    ProgressCallback,
)
from postpilot.config.settings import Settings
from postpilot.pipeline.link_orchestrator import LinkOrchestrator
from postpilot.pipeline.outline_orchestrator import OutlineOrchestrator
from postpilot.progress.base_broker import BaseProgressBroker
from postpilot.progress.broker_factory import create_progress_broker
from postpilot.storage.base_session_store import BaseSessionStore
from postpilot.storage.models import LinkSession, OutlineSession
from postpilot.storage.store_factory import create_session_store

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Wired orchestrators and their shared collaborators."""

    settings: Settings
    outline: OutlineOrchestrator
    links: LinkOrchestrator
    broker: BaseProgressBroker
    outline_store: BaseSessionStore[OutlineSession]
    link_store: BaseSessionStore[LinkSession]

    async def aclose(self) -> None:
        """Release store and broker resources."""
        await self.outline_store.close()
        await self.link_store.close()
        await self.broker.close()


def create_services(
    settings: Settings | None = None,
    client_factory: ClientFactory | None = None,
    broker: BaseProgressBroker | None = None,
    outline_store: BaseSessionStore[OutlineSession] | None = None,
    link_store: BaseSessionStore[LinkSession] | None = None,
) -> Services:
    """Build orchestrators from settings, with optional injected collaborators.

    Args:
        settings: Global settings. Loaded from .env if None.
        client_factory: LLM client factory (defaults to create_llm_client).
        broker: Progress broker. Built from PROGRESS_BACKEND if None.
        outline_store: Outline session store. Built from settings if None.
        link_store: Link session store. Built from settings if None.
    """
    settings = settings or Settings()
    broker = broker or create_progress_broker(settings)
    outline_store = outline_store or create_session_store(settings, OutlineSession)
    link_store = link_store or create_session_store(settings, LinkSession)

    runner = AgentRunner(settings, client_factory=client_factory)
    catalog = AgentCatalog(settings)

    logger.debug(
        "Services ready: store=%s, progress=%s",
        settings.session_store_backend, settings.progress_backend,
    )
    return Services(
        settings=settings,
        outline=OutlineOrchestrator(settings, outline_store, runner, broker, catalog),
        links=LinkOrchestrator(settings, link_store, runner, broker, catalog),
        broker=broker,
        outline_store=outline_store,
        link_store=link_store,
    )


async def start_outline_generation(
    inp: OutlineInput, services: Services | None = None, force: bool = False
) -> OutlineStartResult:
    """Start an outline run; it either pauses for clarification or completes."""
    services = services or create_services()
    return await services.outline.start(inp, force=force)


async def continue_outline_with_answers(
    session_id: str, answers: str, services: Services | None = None
) -> OutlineResult:
    """Resume a paused outline run with clarification answers."""
    services = services or create_services()
    return await services.outline.continue_with_answers(session_id, answers)


async def cancel_outline_generation(
    session_id: str, services: Services | None = None
) -> OutlineProgress:
    """Retire an outline session so it no longer blocks its workflow."""
    services = services or create_services()
    return await services.outline.cancel(session_id)


async def orchestrate_links(
    inp: LinkOrchestrationInput, services: Services | None = None
) -> LinkOrchestrationResult:
    """Run the three link phases. Failures come back as success=False."""
    services = services or create_services()
    return await services.links.orchestrate(inp)


async def resume_link_session(
    session_id: str,
    services: Services | None = None,
    on_progress: ProgressCallback | None = None,
) -> LinkOrchestrationResult:
    """Re-enter a link session at its first incomplete phase."""
    services = services or create_services()
    return await services.links.resume_session(session_id, on_progress=on_progress)


async def get_outline_progress(
    session_id: str, services: Services | None = None
) -> OutlineProgress | None:
    services = services or create_services()
    return await services.outline.get_session_progress(session_id)


async def get_link_progress(
    session_id: str, services: Services | None = None
) -> LinkProgress | None:
    services = services or create_services()
    return await services.links.get_session_progress(session_id)
