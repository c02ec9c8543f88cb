# src/agents/tools.py — v1
"""Function tools exposed to the link agents.

Tools record edits and artifacts; the orchestrator interprets the
validated arguments. Each tool is described by a pydantic args model
whose JSON schema is sent to the provider as the tool's parameters.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from postpilot.llm.models import ToolSpec


class TextEditArgs(BaseModel):
    """Base for tools that replace a passage of the article."""

    original_text: str = Field(min_length=1, description="Exact passage from the article to replace")
    modified_text: str = Field(description="Replacement passage containing the edit")


class InsertInternalLinkArgs(TextEditArgs):
    url: str
    anchor_text: str
    reason: str = ""


class InsertClientMentionArgs(TextEditArgs):
    reason: str = ""


class InsertClientLinkArgs(TextEditArgs):
    anchor_text: str
    url: str
    reason: str = ""


class GenerateImageArgs(BaseModel):
    prompt: str
    placement: str
    alt_text: str = ""


class FindStockImageArgs(BaseModel):
    query: str
    placement: str
    alt_text: str = ""


class ImageStrategy(BaseModel):
    article_type: str
    rationale: str = ""
    images: list[dict[str, Any]] = Field(default_factory=list)


class OutputImageStrategyArgs(BaseModel):
    image_strategy: ImageStrategy


class LinkRequest(BaseModel):
    source_url: str
    source_title: str = ""
    anchor_text: str = ""
    placement_hint: str = ""


class OutputLinkRequestsArgs(BaseModel):
    link_requests: list[LinkRequest] = Field(default_factory=list)
    plain_text_output: str = ""


class SuggestUrlArgs(BaseModel):
    suggested_url: str
    slug: str = ""
    rationale: str = ""


# Tool name -> (args model, description)
TOOL_REGISTRY: dict[str, tuple[type[BaseModel], str]] = {
    "insert_internal_link": (
        InsertInternalLinkArgs,
        "Insert a link to an existing page of the guest post site into a passage of the article.",
    ),
    "insert_client_mention": (
        InsertClientMentionArgs,
        "Rewrite a passage of the article so it mentions the client brand naturally.",
    ),
    "insert_client_link": (
        InsertClientLinkArgs,
        "Insert the single client link into a passage of the article.",
    ),
    "generate_image": (
        GenerateImageArgs,
        "Request an AI-generated image for a placement in the article.",
    ),
    "find_stock_image": (
        FindStockImageArgs,
        "Request a stock photo search for a placement in the article.",
    ),
    "output_image_strategy": (
        OutputImageStrategyArgs,
        "Report the overall image strategy for the article.",
    ),
    "output_link_requests": (
        OutputLinkRequestsArgs,
        "Report existing articles on the site that should link to the new post.",
    ),
    "suggest_url": (
        SuggestUrlArgs,
        "Suggest an SEO friendly URL for the article.",
    ),
}

# Provider-hosted tools carry no parameter schema.
WEB_SEARCH = ToolSpec(name="web_search", description="Search the web", hosted=True)


def tool_spec(name: str) -> ToolSpec:
    """Build the provider-facing ToolSpec for a registered tool.

    Raises:
        KeyError: If the tool is not registered.
    """
    args_model, description = TOOL_REGISTRY[name]
    return ToolSpec(
        name=name,
        description=description,
        parameters=args_model.model_json_schema(),
    )


def tool_models(names: list[str] | tuple[str, ...]) -> dict[str, type[BaseModel]]:
    """Map tool names to their args models, for the extractor."""
    return {name: TOOL_REGISTRY[name][0] for name in names}
