# tests/unit/agents/test_unit_definitions.py — v1
"""Tests for agents/definitions.py and agents/tools.py."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from postpilot.agents.definitions import (
    AGENT_NAMES,
    AgentCatalog,
    ClarificationQuestions,
    UnknownAgentError,
)
from postpilot.agents.prompts import CLIENT_LINK_FOLLOWUPS, INSTRUCTIONS
from postpilot.agents.tools import (
    TOOL_REGISTRY,
    WEB_SEARCH,
    InsertInternalLinkArgs,
    tool_models,
    tool_spec,
)
from postpilot.config.settings import Settings


def _catalog(**kwargs) -> AgentCatalog:
    return AgentCatalog(Settings(_env_file=None, **kwargs))


class TestAgentCatalog:
    def test_every_agent_has_instructions(self):
        catalog = _catalog()
        for name in AGENT_NAMES:
            assert catalog.build(name).instructions == INSTRUCTIONS[name]

    def test_research_uses_hosted_search(self):
        spec = _catalog().build("research")
        assert spec.kind == "research"
        assert spec.tools == (WEB_SEARCH,)
        assert spec.tool_names == ()
        assert spec.max_tokens >= 16000

    def test_tool_agents(self):
        spec = _catalog().build("images")
        assert spec.kind == "tool"
        assert spec.tool_names == ("generate_image", "find_stock_image", "output_image_strategy")

    def test_decision_handoffs(self):
        catalog = _catalog()
        assert catalog.build("triage").handoffs == ("clarifier", "instruction_builder")
        assert catalog.build("instruction_builder").handoffs == ("research",)
        assert catalog.build("clarifier").handoffs == ()
        assert catalog.build("clarifier").output_schema is ClarificationQuestions

    def test_per_agent_routing(self):
        spec = _catalog(llm_client_link="anthropic:claude-sonnet-4-20250514").build("client_link")
        assert spec.provider == "anthropic"
        assert spec.model == "claude-sonnet-4-20250514"

    def test_temperature_from_settings(self):
        assert _catalog(llm_default_temperature=0.7).build("triage").temperature == 0.7

    def test_unknown_agent(self):
        with pytest.raises(UnknownAgentError):
            _catalog().build("editor")

    def test_fresh_spec_per_build(self):
        catalog = _catalog()
        assert catalog.build("triage") is not catalog.build("triage")


class TestClarificationQuestions:
    def test_two_to_three_questions(self):
        assert len(ClarificationQuestions(questions=["a", "b", "c"]).questions) == 3

    @pytest.mark.parametrize("questions", [["a"], ["a", "b", "c", "d"]])
    def test_out_of_range_rejected(self, questions):
        with pytest.raises(ValidationError):
            ClarificationQuestions(questions=questions)


class TestTools:
    def test_tool_spec_has_schema(self):
        spec = tool_spec("insert_internal_link")
        assert spec.hosted is False
        assert "original_text" in spec.parameters["properties"]
        assert spec.description

    def test_unknown_tool(self):
        with pytest.raises(KeyError):
            tool_spec("delete_article")

    def test_tool_models(self):
        models = tool_models(["insert_internal_link"])
        assert models == {"insert_internal_link": InsertInternalLinkArgs}

    def test_registry_covers_link_agents(self):
        assert set(TOOL_REGISTRY) >= {
            "insert_internal_link",
            "insert_client_mention",
            "insert_client_link",
            "suggest_url",
        }

    def test_empty_original_text_rejected(self):
        with pytest.raises(ValidationError):
            InsertInternalLinkArgs(
                original_text="", modified_text="x", url="https://a.io", anchor_text="a"
            )


class TestClientLinkFollowups:
    def test_three_turns(self):
        assert CLIENT_LINK_FOLLOWUPS.for_turn(0, "https://a.io") == CLIENT_LINK_FOLLOWUPS.prompt1
        assert CLIENT_LINK_FOLLOWUPS.for_turn(1, "https://a.io") == CLIENT_LINK_FOLLOWUPS.prompt2
        assert "https://a.io" in CLIENT_LINK_FOLLOWUPS.for_turn(2, "https://a.io")
