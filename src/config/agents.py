# src/config/agents.py — v2
"""Declarative agent configuration.

Lists the agents of each pipeline in declaration order. The link phases
use this order to merge edits deterministically, and llm/config.py uses
the pipeline mapping for per-pipeline model routing.
"""

from __future__ import annotations

# Outline pipeline: decision agents first, research agent last.
OUTLINE_AGENTS: list[str] = [
    "triage",
    "clarifier",
    "instruction_builder",
    "research",
]

# Link pipeline agents grouped by phase, in merge order.
LINK_PHASE_AGENTS: dict[int, list[str]] = {
    1: ["internal_links", "client_mention"],
    2: ["client_link"],
    3: ["images", "link_requests", "url_suggestion"],
}

# Pipeline-to-agent mapping for LLM routing.
PIPELINE_AGENT_MAP: dict[str, list[str]] = {
    "outline": OUTLINE_AGENTS,
    "links": [name for names in LINK_PHASE_AGENTS.values() for name in names],
}

# Number of scripted follow-up turns for the client-link conversation.
CLIENT_LINK_FOLLOWUP_TURNS = 3
