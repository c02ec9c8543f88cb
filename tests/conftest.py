# tests/conftest.py — v2
"""Shared test fixtures for unit tests.

Provides a scripted LLM client, memory-backed settings, stores and a
recording progress broker. No network: every agent is routed to the
"fake" provider and answered from per-agent scripts.
"""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator

import pytest
from pydantic import BaseModel

from postpilot.agents.definitions import AGENT_NAMES, AgentCatalog
from postpilot.agents.runner import AgentRunner
from postpilot.api.models import LinkOrchestrationInput
from postpilot.config.settings import Settings
from postpilot.llm.base_client import BaseLLMClient
from postpilot.llm.models import (
    LLMResponse,
    Message,
    MessageOutputEvent,
    StreamEvent,
    ToolCalledEvent,
    ToolSpec,
)
from postpilot.pipeline.link_orchestrator import LinkOrchestrator
from postpilot.pipeline.outline_orchestrator import OutlineOrchestrator
from postpilot.progress.base_broker import ProgressEvent
from postpilot.progress.memory_broker import MemoryProgressBroker
from postpilot.storage.memory_store import MemorySessionStore
from postpilot.storage.models import LinkSession, OutlineSession

# Every agent resolves to provider "fake" with the agent name as model.
FAKE_ROUTING = {f"llm_{name}": f"fake:{name}" for name in AGENT_NAMES}

ARTICLE = (
    "Project management tools help teams ship faster.\n\n"
    "Planning sprints is easier with shared boards.\n\n"
    "Many teams still track bugs in spreadsheets.\n\n"
    "Automation reduces repetitive work."
)
CLIENT_URL = "https://acme.example/product"
EXPECTED_FINAL_ARTICLE = (
    f"Project management tools help teams [ship faster]({CLIENT_URL}).\n\n"
    "Planning sprints is easier with [shared boards](https://blog.example.com/boards).\n\n"
    "Many teams still track bugs in spreadsheets, while others switched to Acme.\n\n"
    "Automation, like the workflows in Acme, reduces repetitive work."
)


# === Scripted LLM ===


class ScriptedLLM:
    """Per-agent scripted responses shared by every client it creates."""

    def __init__(self) -> None:
        self.turns: dict[str, list[list[StreamEvent]]] = {}
        self.decisions: dict[str, list[BaseModel | str]] = {}
        self.texts: dict[str, list[str]] = {}
        self.failures: dict[str, Exception | list[Exception]] = {}
        self.delays: dict[str, float] = {}
        self.calls: list[tuple[str, list[Message]]] = []
        self.clients_created = 0

    # --- Script builders ---

    @staticmethod
    def tool(name: str, **arguments: Any) -> ToolCalledEvent:
        return ToolCalledEvent(tool_name=name, arguments=arguments)

    @staticmethod
    def say(text: str) -> MessageOutputEvent:
        return MessageOutputEvent(message=Message(role="assistant", content=text))

    def on_turns(self, agent: str, *turns: list[StreamEvent]) -> None:
        """Events per streamed turn; the last turn repeats once exhausted."""
        self.turns[agent] = [list(t) for t in turns]

    def on_decide(self, agent: str, *values: BaseModel | str) -> None:
        self.decisions[agent] = list(values)

    def on_research(self, agent: str, *texts: str) -> None:
        self.texts[agent] = list(texts)

    def fail(self, agent: str, error: Exception | list[Exception]) -> None:
        """Raise ``error`` on every call, or pop one per call from a list."""
        self.failures[agent] = error

    def calls_for(self, agent: str) -> list[list[Message]]:
        return [messages for name, messages in self.calls if name == agent]

    # --- Client plumbing ---

    def factory(
        self, provider: str, model: str, settings: Settings | None = None, **kwargs: Any
    ) -> ScriptedClient:
        self.clients_created += 1
        return ScriptedClient(self, agent=model)

    async def enter(self, agent: str, messages: list[Message]) -> int:
        """Record a call, apply delay and failure, return its per-agent index."""
        self.calls.append((agent, list(messages)))
        index = len(self.calls_for(agent)) - 1
        delay = self.delays.get(agent)
        if delay:
            await asyncio.sleep(delay)
        failure = self.failures.get(agent)
        if isinstance(failure, list):
            if failure:
                raise failure.pop(0)
        elif failure is not None:
            raise failure
        return index

    @staticmethod
    def pick(script: list[Any] | None, index: int, default: Any) -> Any:
        if not script:
            return default
        return script[min(index, len(script) - 1)]


class ScriptedClient(BaseLLMClient):
    def __init__(self, script: ScriptedLLM, agent: str) -> None:
        self._script = script
        self._agent = agent

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
        response_format: type[BaseModel] | None = None,
    ) -> LLMResponse:
        index = await self._script.enter(self._agent, messages)
        value = self._script.pick(self._script.decisions.get(self._agent), index, "{}")
        content = value if isinstance(value, str) else value.model_dump_json()
        return self._response(content)

    async def stream(
        self,
        messages: list[Message],
        system: str | None = None,
        tools: list[ToolSpec] | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
    ) -> AsyncIterator[StreamEvent]:
        index = await self._script.enter(self._agent, messages)
        for event in self._script.pick(self._script.turns.get(self._agent), index, []):
            yield event

    async def research(
        self,
        messages: list[Message],
        system: str | None = None,
        tools: list[ToolSpec] | None = None,
        max_tokens: int = 16000,
    ) -> LLMResponse:
        index = await self._script.enter(self._agent, messages)
        return self._response(self._script.pick(self._script.texts.get(self._agent), index, ""))

    @property
    def provider_name(self) -> str:
        return "fake"

    def _response(self, content: str) -> LLMResponse:
        return LLMResponse(
            content=content,
            input_tokens=10,
            output_tokens=20,
            model=self._agent,
            provider="fake",
            latency_ms=1,
        )


class RecordingBroker(MemoryProgressBroker):
    """Memory broker that also keeps every published event."""

    def __init__(self) -> None:
        super().__init__()
        self.events: list[ProgressEvent] = []
        self.closed: list[str] = []

    async def publish(self, session_id: str, event: ProgressEvent) -> None:
        self.events.append(event)
        await super().publish(session_id, event)

    async def close_session(self, session_id: str) -> None:
        self.closed.append(session_id)
        await super().close_session(session_id)

    def events_for(self, session_id: str) -> list[ProgressEvent]:
        return [e for e in self.events if e.session_id == session_id]


# === FIXTURES: Settings and collaborators ===


@pytest.fixture
def settings_factory():
    """Build memory-backed test settings with optional overrides."""

    def _make(**overrides: Any) -> Settings:
        values: dict[str, Any] = {
            **FAKE_ROUTING,
            "session_store_backend": "memory",
            "progress_backend": "memory",
            "agent_max_retries": 0,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def settings(settings_factory) -> Settings:
    return settings_factory()


@pytest.fixture
def scripted_llm() -> ScriptedLLM:
    return ScriptedLLM()


@pytest.fixture
def runner(settings: Settings, scripted_llm: ScriptedLLM) -> AgentRunner:
    return AgentRunner(settings, client_factory=scripted_llm.factory)


@pytest.fixture
def catalog(settings: Settings) -> AgentCatalog:
    return AgentCatalog(settings)


@pytest.fixture
def broker() -> RecordingBroker:
    return RecordingBroker()


@pytest.fixture
def link_store() -> MemorySessionStore[LinkSession]:
    return MemorySessionStore(LinkSession)


@pytest.fixture
def outline_store() -> MemorySessionStore[OutlineSession]:
    return MemorySessionStore(OutlineSession)


@pytest.fixture
def link_orchestrator(settings, link_store, runner, broker) -> LinkOrchestrator:
    return LinkOrchestrator(settings, link_store, runner, broker)


@pytest.fixture
def outline_orchestrator(settings, outline_store, runner, broker) -> OutlineOrchestrator:
    return OutlineOrchestrator(settings, outline_store, runner, broker)


# === FIXTURES: Sample data ===


@pytest.fixture
def link_input() -> LinkOrchestrationInput:
    return LinkOrchestrationInput(
        workflow_id="wf-links",
        article=ARTICLE,
        target_domain="acme.example",
        client_name="Acme",
        client_url=CLIENT_URL,
        anchor_text="ship faster",
        guest_post_site="blog.example.com",
        target_keyword="project management tools",
    )


@pytest.fixture
def scripted_links(scripted_llm: ScriptedLLM) -> ScriptedLLM:
    """Happy-path scripts for all six link agents."""
    s = scripted_llm
    s.on_turns("internal_links", [
        s.tool(
            "insert_internal_link",
            original_text="Planning sprints is easier with shared boards.",
            modified_text=(
                "Planning sprints is easier with "
                "[shared boards](https://blog.example.com/boards)."
            ),
            url="https://blog.example.com/boards",
            anchor_text="shared boards",
        ),
    ])
    s.on_turns("client_mention", [
        s.tool(
            "insert_client_mention",
            original_text="Many teams still track bugs in spreadsheets.",
            modified_text="Many teams still track bugs in spreadsheets, while others switched to Acme.",
        ),
        s.tool(
            "insert_client_mention",
            original_text="Automation reduces repetitive work.",
            modified_text="Automation, like the workflows in Acme, reduces repetitive work.",
        ),
    ])
    early_link = s.tool(
        "insert_client_link",
        original_text="Project management tools",
        modified_text=f"[Project management tools]({CLIENT_URL})",
        anchor_text="Project management tools",
        url=CLIENT_URL,
    )
    final_link = s.tool(
        "insert_client_link",
        original_text="help teams ship faster",
        modified_text=f"help teams [ship faster]({CLIENT_URL})",
        anchor_text="ship faster",
        url=CLIENT_URL,
    )
    s.on_turns(
        "client_link",
        [s.say("Placement 1"), early_link],
        [s.say("Placement 2"), early_link],
        [s.say("Placement 3"), early_link],
        [s.say("Placement 4"), final_link],
    )
    s.on_turns("images", [
        s.tool("generate_image", prompt="Team around a kanban board", placement="after intro"),
        s.tool("find_stock_image", query="sprint planning meeting", placement="section 2"),
        s.tool(
            "output_image_strategy",
            image_strategy={"article_type": "how-to", "rationale": "Walkthrough", "images": []},
        ),
    ])
    s.on_turns("link_requests", [
        s.tool(
            "output_link_requests",
            link_requests=[
                {"source_url": "https://blog.example.com/agile", "source_title": "Agile basics"},
            ],
            plain_text_output="Link from 'Agile basics' with anchor 'project management tools'.",
        ),
    ])
    s.on_turns("url_suggestion", [
        s.tool(
            "suggest_url",
            suggested_url="https://blog.example.com/project-management-tools",
            slug="project-management-tools",
        ),
    ])
    return s


@pytest.fixture
def expected_final_article() -> str:
    """Article after the scripted link agents' edits."""
    return EXPECTED_FINAL_ARTICLE
