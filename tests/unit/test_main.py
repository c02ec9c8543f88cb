# tests/unit/test_main.py — v3
"""Tests for main.py — CLI entry point."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from postpilot.api.facade import create_services
from postpilot.main import _build_parser, main


@pytest.fixture(autouse=True)
def memory_env(monkeypatch):
    monkeypatch.setenv("SESSION_STORE_BACKEND", "memory")
    monkeypatch.setenv("PROGRESS_BACKEND", "memory")
    monkeypatch.setenv("LOG_FORMAT", "text")


# ---------------------------------------------------------------------------
# Parser tests
# ---------------------------------------------------------------------------


class TestBuildParser:
    def test_version_flag(self):
        parser = _build_parser()
        with pytest.raises(SystemExit) as exc_info:
            parser.parse_args(["--version"])
        assert exc_info.value.code == 0

    def test_outline_subcommand(self):
        args = _build_parser().parse_args(
            ["outline", "Write about kanban", "--workflow-id", "wf-1", "--force"]
        )
        assert args.command == "outline"
        assert args.prompt == "Write about kanban"
        assert args.force is True

    def test_links_subcommand(self):
        args = _build_parser().parse_args([
            "links", "--workflow-id", "wf-1", "--article-file", "post.md",
            "--target-domain", "acme.example", "--client-name", "Acme",
            "--client-url", "https://acme.example", "--site", "blog.example.com",
            "--keyword", "kanban", "-o", "out.md",
        ])
        assert args.article_file == Path("post.md")
        assert args.guest_post_site == "blog.example.com"
        assert args.target_keyword == "kanban"
        assert args.output == Path("out.md")

    def test_cancel_subcommand(self):
        args = _build_parser().parse_args(["cancel", "s1"])
        assert args.command == "cancel"
        assert args.session_id == "s1"

    def test_status_defaults_to_outline(self):
        args = _build_parser().parse_args(["status", "s1"])
        assert args.pipeline == "outline"

    def test_links_requires_workflow(self):
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["links", "--article-file", "post.md"])


# ---------------------------------------------------------------------------
# main() tests
# ---------------------------------------------------------------------------


class TestMain:
    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out.lower()

    def test_status_unknown_session(self):
        assert main(["status", "missing", "--pipeline", "links"]) == 1

    def test_cancel_unknown_session(self):
        assert main(["cancel", "missing"]) == 1

    def test_outline_without_prompt(self):
        assert main(["outline", "--workflow-id", "wf-1"]) == 1

    def test_links_missing_file(self, tmp_path):
        rc = main([
            "links", "--workflow-id", "wf-1", "--article-file", str(tmp_path / "nope.md"),
            "--target-domain", "acme.example", "--client-name", "Acme",
            "--client-url", "https://acme.example", "--site", "blog.example.com",
            "--keyword", "kanban",
        ])
        assert rc == 1

    def test_links_end_to_end(
        self, tmp_path, settings, scripted_links, link_input, expected_final_article, capsys
    ):
        article = tmp_path / "post.md"
        article.write_text(link_input.article, encoding="utf-8")
        output = tmp_path / "final.md"
        services = create_services(settings, client_factory=scripted_links.factory)

        with patch("postpilot.api.facade.create_services", return_value=services):
            rc = main([
                "links", "--workflow-id", "wf-1", "--article-file", str(article),
                "--target-domain", "acme.example", "--client-name", "Acme",
                "--client-url", link_input.client_url, "--anchor-text", "ship faster",
                "--site", "blog.example.com", "--keyword", "project management tools",
                "-o", str(output),
            ])

        assert rc == 0
        assert output.read_text(encoding="utf-8") == expected_final_article
        out = capsys.readouterr().out
        assert "Link orchestration complete" in out
        assert "[phase 2] Refining client link placement (3/3)" in out

    def test_unexpected_error_returns_1(self):
        with patch("postpilot.api.facade.create_services", side_effect=RuntimeError("boom")):
            assert main(["status", "s1"]) == 1
