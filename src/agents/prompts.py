# src/agents/prompts.py — v1
"""System instructions and user-turn templates for every agent."""

from __future__ import annotations

INSTRUCTIONS: dict[str, str] = {
    "triage": (
        "You receive a request for a research outline for a guest post. Decide "
        "whether the request states a clear topic, audience and depth. If anything "
        "essential is missing or ambiguous, hand off to 'clarifier'. Otherwise hand "
        "off to 'instruction_builder'. Put a one-sentence reason in the message."
    ),
    "clarifier": (
        "Ask the requester 2 or 3 short, concrete questions that would most improve "
        "the research outline (audience, scope, angle, must-cover points). Do not "
        "answer the questions yourself."
    ),
    "instruction_builder": (
        "Turn the request, and any clarification answers, into detailed research "
        "instructions for a deep-research agent: objective, audience, sections to "
        "cover, sources to prefer, and the expected outline format. Always hand off "
        "to 'research' with the full instructions as the message."
    ),
    "research": (
        "You perform deep empirical research based on the user's question and "
        "create comprehensive research outlines. Cite sources with full URLs."
    ),
    "internal_links": (
        "You add internal links to a guest post article. Choose up to 3 pages of the "
        "guest post site that are genuinely relevant and call insert_internal_link "
        "once per link. original_text must be copied exactly from the article and "
        "modified_text must be the same passage with the link added in markdown. "
        "If no placement is natural, make no call."
    ),
    "client_mention": (
        "You add 2-3 strategic, non-promotional mentions of the client brand to a "
        "guest post article. Mentions are plain text, never links. Call "
        "insert_client_mention once per mention, copying original_text exactly "
        "from the article."
    ),
    "client_link": (
        "You place exactly ONE link to the client URL in a guest post article. "
        "The link must read naturally and add value for the reader. Call "
        "insert_client_link with the passage copied exactly from the article and "
        "the same passage containing the markdown link. When asked to refine, call "
        "insert_client_link again with your improved placement."
    ),
    "images": (
        "You plan images for a guest post article. Identify the article type, then "
        "call generate_image or find_stock_image for each placement, and finish by "
        "calling output_image_strategy with the overall strategy."
    ),
    "link_requests": (
        "You find existing articles on the guest post site that should link to a new "
        "guest post. Call output_link_requests with up to 3 requests and a plain-text "
        "version ready to send to the site owner."
    ),
    "url_suggestion": (
        "You suggest an SEO friendly URL for a guest post article on the given site. "
        "Call suggest_url once."
    ),
}


class ClientLinkFollowups:
    """Scripted refinement turns for the client-link conversation."""

    prompt1 = (
        "Review the client link you just placed. Is it the most natural and "
        "valuable spot in the article? If a better placement exists, call "
        "insert_client_link again with the improved placement."
    )
    prompt2 = (
        "Check the anchor text. It should be descriptive, not over-optimized, and "
        "fit the sentence grammatically. Adjust it with insert_client_link if needed."
    )

    @staticmethod
    def prompt3(client_url: str) -> str:
        return (
            f"Final check: confirm the link points exactly to {client_url} and that "
            "the surrounding sentence reads naturally. Call insert_client_link one "
            "last time with the final version."
        )

    def for_turn(self, index: int, client_url: str) -> str:
        """Follow-up prompt for turn ``index`` (0-based)."""
        if index == 0:
            return self.prompt1
        if index == 1:
            return self.prompt2
        return self.prompt3(client_url)


CLIENT_LINK_FOLLOWUPS = ClientLinkFollowups()


def outline_request_prompt(
    prompt: str,
    keyword: str | None = None,
    post_title: str | None = None,
    client_target_url: str | None = None,
) -> str:
    lines = [prompt]
    context = [
        ("Target keyword", keyword),
        ("Post title", post_title),
        ("Client target URL", client_target_url),
    ]
    extra = [f"{label}: {value}" for label, value in context if value]
    if extra:
        lines.append("")
        lines.extend(extra)
    return "\n".join(lines)


def internal_links_prompt(article: str, guest_post_site: str) -> str:
    return (
        f"Article to enhance with internal links:\n\n{article}\n\n"
        f"Target guest post site: {guest_post_site}\n"
        "Please find and add 3 relevant internal links from the guest post site."
    )


def client_mention_prompt(article: str, client_name: str, target_domain: str) -> str:
    return (
        f"Article to enhance with client mentions:\n\n{article}\n\n"
        f"Client name: {client_name}\n"
        f"Target domain: {target_domain}\n"
        "Please add 2-3 strategic brand mentions following the provided guidelines."
    )


def client_link_prompt(
    article: str, client_name: str, client_url: str, anchor_text: str | None
) -> str:
    return (
        f"Article to add client link to:\n\n{article}\n\n"
        f"Client name: {client_name}\n"
        f"Client URL: {client_url}\n"
        f"Suggested anchor text: {anchor_text or 'Choose natural anchor text'}\n\n"
        "Please add ONE strategic client link that feels natural and valuable."
    )


def images_prompt(article: str, guest_post_site: str) -> str:
    return (
        f"Article to add images to:\n\n{article}\n\n"
        f"Guest post site: {guest_post_site}\n"
        "Please analyze the article type and create an appropriate image strategy."
    )


def link_requests_prompt(article: str, guest_post_site: str, target_keyword: str) -> str:
    return (
        f"New guest post article:\n\n{article}\n\n"
        f"Guest post site: {guest_post_site}\n"
        f"Target keyword: {target_keyword}\n\n"
        f"Find 3 existing articles on {guest_post_site} that should link TO this new guest post."
    )


def url_suggestion_prompt(article: str, target_keyword: str, guest_post_site: str) -> str:
    return (
        f"Article:\n\n{article}\n\n"
        f"Target keyword: {target_keyword}\n"
        f"Guest post site: {guest_post_site}\n\n"
        "Suggest an SEO-optimized URL for this article."
    )
