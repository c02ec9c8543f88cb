# src/config/settings.py — v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for provider keys, per-agent model routing,
timeouts, session persistence, progress transport and logging.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === LLM PROVIDERS ===
    llm_default_provider: str = "openai"
    llm_default_model: str = "gpt-4.1"
    llm_default_temperature: float = 0.2
    llm_max_tokens_per_agent: int = 4096

    # Provider API keys
    openai_api_key: str = ""
    anthropic_api_key: str = ""

    # Per-pipeline LLM assignment ("provider:model")
    llm_pipeline_outline: str = ""
    llm_pipeline_links: str = ""

    # Per-agent LLM assignment (highest priority)
    llm_triage: str = ""
    llm_clarifier: str = ""
    llm_instruction_builder: str = ""
    llm_research: str = "openai:o3-deep-research"
    llm_internal_links: str = ""
    llm_client_mention: str = ""
    llm_client_link: str = ""
    llm_images: str = ""
    llm_link_requests: str = ""
    llm_url_suggestion: str = ""

    # === Agent execution ===
    agent_timeout_decision_s: float = 120.0
    agent_timeout_tool_s: float = 300.0
    agent_timeout_research_s: float = 1800.0
    agent_max_retries: int = 2
    outline_max_handoffs: int = 6
    outline_stale_after_minutes: int = 30

    # === Session store ===
    session_store_backend: Literal["memory", "json", "sqlite"] = "json"
    session_store_root: Path = Path("~/.postpilot/sessions")

    # === Progress channel ===
    progress_backend: Literal["memory", "redis"] = "memory"
    progress_redis_url: str = ""
    progress_channel_prefix: str = "postpilot:progress:"

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator(
        "agent_timeout_decision_s",
        "agent_timeout_tool_s",
        "agent_timeout_research_s",
    )
    @classmethod
    def validate_timeout(cls, v: float) -> float:  # noqa: N805
        if v <= 0:
            raise ValueError("agent timeouts must be > 0")
        return v

    @field_validator("agent_max_retries", "outline_max_handoffs")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:  # noqa: N805
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Cross-field consistency rules."""
        errors: list[str] = []

        if self.progress_backend == "redis" and not self.progress_redis_url:
            errors.append("PROGRESS_BACKEND=redis requires PROGRESS_REDIS_URL")

        # Triage -> instruction_builder -> research is the shortest outline path.
        if self.outline_max_handoffs < 3:
            errors.append("OUTLINE_MAX_HANDOFFS must be >= 3")

        for name in self.agent_assignment_fields:
            value = getattr(self, name)
            if value and ":" not in value:
                errors.append(f"{name.upper()} must use 'provider:model' format")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def agent_assignment_fields(self) -> list[str]:
        """Names of all llm_* routing fields holding 'provider:model' values."""
        return [
            name
            for name in type(self).model_fields
            if name.startswith("llm_")
            and not name.startswith("llm_default_")
            and name != "llm_max_tokens_per_agent"
        ]

    def timeout_for(self, kind: str) -> float:
        """Per-invocation timeout for an agent kind (decision, tool, research)."""
        return {
            "decision": self.agent_timeout_decision_s,
            "tool": self.agent_timeout_tool_s,
            "research": self.agent_timeout_research_s,
        }.get(kind, self.agent_timeout_tool_s)


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-run config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
