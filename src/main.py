# src/main.py — v3
"""CLI entry point — outline, answer, cancel, links, resume, status commands.

Usage:
    postpilot outline "<prompt>" --workflow-id <id> [options]
    postpilot answer <session_id> --answers-file answers.txt
    postpilot cancel <session_id>
    postpilot links --workflow-id <id> --article-file post.md [options]
    postpilot resume <session_id>
    postpilot status <session_id> --pipeline links
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from postpilot.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        _setup_logging(args.verbose)
        return asyncio.run(_dispatch(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="postpilot",
        description=f"postpilot v{__version__} — Guest-post agent pipelines",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- outline ---
    p_outline = subparsers.add_parser("outline", help="Start outline generation")
    p_outline.add_argument("prompt", nargs="?", default=None, help="Outline request")
    p_outline.add_argument("--prompt-file", type=Path, default=None, help="Read the request from a file")
    p_outline.add_argument("--workflow-id", required=True)
    p_outline.add_argument("--keyword", default=None)
    p_outline.add_argument("--post-title", default=None)
    p_outline.add_argument("--client-url", default=None, help="Client target URL")
    p_outline.add_argument(
        "--force", action="store_true",
        help="Supersede an outline generation already active for the workflow",
    )
    p_outline.set_defaults(func=_cmd_outline)

    # --- answer ---
    p_answer = subparsers.add_parser("answer", help="Answer clarification questions")
    p_answer.add_argument("session_id")
    p_answer.add_argument("answers", nargs="?", default=None, help="One answer per line")
    p_answer.add_argument("--answers-file", type=Path, default=None)
    p_answer.set_defaults(func=_cmd_answer)

    # --- cancel ---
    p_cancel = subparsers.add_parser("cancel", help="Cancel an outline generation session")
    p_cancel.add_argument("session_id")
    p_cancel.set_defaults(func=_cmd_cancel)

    # --- links ---
    p_links = subparsers.add_parser("links", help="Run link orchestration on an article")
    p_links.add_argument("--workflow-id", required=True)
    p_links.add_argument("--article-file", type=Path, required=True)
    p_links.add_argument("--target-domain", required=True)
    p_links.add_argument("--client-name", required=True)
    p_links.add_argument("--client-url", required=True)
    p_links.add_argument("--anchor-text", default=None)
    p_links.add_argument("--site", dest="guest_post_site", required=True, help="Guest post site")
    p_links.add_argument("--keyword", dest="target_keyword", required=True, help="Target keyword")
    p_links.add_argument(
        "-o", "--output", type=Path, default=None,
        help="Write the final article to this file",
    )
    p_links.set_defaults(func=_cmd_links)

    # --- resume ---
    p_resume = subparsers.add_parser("resume", help="Resume a link orchestration session")
    p_resume.add_argument("session_id")
    p_resume.set_defaults(func=_cmd_resume)

    # --- status ---
    p_status = subparsers.add_parser("status", help="Show session progress")
    p_status.add_argument("session_id")
    p_status.add_argument(
        "--pipeline", choices=["outline", "links"], default="outline",
    )
    p_status.set_defaults(func=_cmd_status)

    return parser


async def _dispatch(args: argparse.Namespace) -> int:
    from postpilot.api.facade import create_services

    services = create_services()
    try:
        return await args.func(args, services)
    finally:
        await services.aclose()


async def _cmd_outline(args: argparse.Namespace, services) -> int:
    """Start outline generation and print questions or the outline."""
    from postpilot.api.facade import start_outline_generation
    from postpilot.api.models import OutlineInput

    prompt = _read_text_arg(args.prompt, args.prompt_file)
    if not prompt:
        logger.error("An outline request is required (argument or --prompt-file)")
        return 1

    result = await start_outline_generation(
        OutlineInput(
            workflow_id=args.workflow_id,
            prompt=prompt,
            keyword=args.keyword,
            post_title=args.post_title,
            client_target_url=args.client_url,
        ),
        services,
        force=args.force,
    )

    print(f"\nSession: {result.session_id} (v{result.version}, {result.status})")
    if result.already_active:
        print("  An outline generation is already in progress for this workflow.")
    if result.needs_clarification:
        print("  Clarification needed:")
        for i, question in enumerate(result.questions or [], 1):
            print(f"    {i}. {question}")
        print(f"  Answer with: postpilot answer {result.session_id} --answers-file <file>")
    elif result.outline:
        print(result.outline)
    return 0


async def _cmd_answer(args: argparse.Namespace, services) -> int:
    from postpilot.api.facade import continue_outline_with_answers

    answers = _read_text_arg(args.answers, args.answers_file)
    if not answers:
        logger.error("Answers are required (argument or --answers-file)")
        return 1

    result = await continue_outline_with_answers(args.session_id, answers, services)
    print(result.outline)
    if result.citations:
        print(f"\nCitations ({len(result.citations)}):")
        for citation in result.citations:
            print(f"  - {citation.value}")
    return 0


async def _cmd_cancel(args: argparse.Namespace, services) -> int:
    from postpilot.api.facade import cancel_outline_generation

    progress = await cancel_outline_generation(args.session_id, services)
    print(f"Session {progress.session_id}: {progress.status} ({progress.error})")
    return 0


async def _cmd_links(args: argparse.Namespace, services) -> int:
    from postpilot.api.facade import orchestrate_links
    from postpilot.api.models import LinkOrchestrationInput

    if not args.article_file.is_file():
        logger.error("File not found: %s", args.article_file)
        return 1

    result = await orchestrate_links(
        LinkOrchestrationInput(
            workflow_id=args.workflow_id,
            article=args.article_file.read_text(encoding="utf-8"),
            target_domain=args.target_domain,
            client_name=args.client_name,
            client_url=args.client_url,
            anchor_text=args.anchor_text,
            guest_post_site=args.guest_post_site,
            target_keyword=args.target_keyword,
            on_progress=_print_progress,
        ),
        services,
    )
    return _print_link_result(result, args.output)


async def _cmd_resume(args: argparse.Namespace, services) -> int:
    from postpilot.api.facade import resume_link_session

    result = await resume_link_session(args.session_id, services, on_progress=_print_progress)
    return _print_link_result(result, None)


async def _cmd_status(args: argparse.Namespace, services) -> int:
    from postpilot.api.facade import get_link_progress, get_outline_progress

    if args.pipeline == "links":
        progress = await get_link_progress(args.session_id, services)
    else:
        progress = await get_outline_progress(args.session_id, services)

    if progress is None:
        logger.error("Session not found: %s", args.session_id)
        return 1
    print(progress.model_dump_json(indent=2))
    return 0


def _read_text_arg(value: str | None, path: Path | None) -> str:
    if path is not None:
        return path.read_text(encoding="utf-8")
    return value or ""


def _print_progress(phase: int, message: str) -> None:
    print(f"  [phase {phase}] {message}")


def _print_link_result(result, output: Path | None) -> int:
    """Print a human-readable summary of a LinkOrchestrationResult."""
    if not result.success:
        print(f"\nLink orchestration failed: {result.error}")
        return 1

    mods = result.modifications
    print("\nLink orchestration complete:")
    print(f"  Session:          {result.session_id}")
    print(f"  Internal links:   {len(mods.internal_links)}")
    print(f"  Client mentions:  {len(mods.client_mentions)}")
    print(f"  Client link:      {'yes' if mods.client_link else 'no'}")
    print(f"  Suggested URL:    {result.url_suggestion or '-'}")
    if output is not None:
        output.write_text(result.final_article, encoding="utf-8")
        print(f"  Article written:  {output}")
    return 0


def _setup_logging(verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from postpilot.config.settings import Settings
    from postpilot.logging.logger import setup_logging

    settings = Settings()
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format="text" if verbose else settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


if __name__ == "__main__":
    sys.exit(main())
