# src/pipeline/merger.py — v1
"""Text modification merger.

Applies an ordered list of (target -> replacement) edits to a base
document. Every edit is located in the base document, never in an
intermediate result, so the outcome is independent of application
order. On overlapping spans the later edit in the list wins and evicts
the earlier one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class TextModification(BaseModel):
    """A single edit against a base document."""

    target: str = Field(min_length=1)
    replacement: str
    source: str = ""
    occurrence: int = Field(default=1, ge=1)


@dataclass(frozen=True)
class _Span:
    start: int
    end: int
    modification: TextModification

    def overlaps(self, other: _Span) -> bool:
        return self.start < other.end and other.start < self.end


@dataclass
class MergePlan:
    """Outcome of planning a merge."""

    applied: list[TextModification] = field(default_factory=list)
    evicted: list[TextModification] = field(default_factory=list)
    not_found: list[TextModification] = field(default_factory=list)
    result: str = ""


def _locate(base: str, target: str, occurrence: int) -> int:
    index = -1
    for _ in range(occurrence):
        index = base.find(target, index + 1)
        if index < 0:
            return -1
    return index


def plan_merge(base: str, modifications: list[TextModification]) -> MergePlan:
    """Resolve modifications against ``base`` and build the merged text."""
    plan = MergePlan()
    accepted: list[_Span] = []

    for mod in modifications:
        start = _locate(base, mod.target, mod.occurrence)
        if start < 0:
            plan.not_found.append(mod)
            continue
        span = _Span(start, start + len(mod.target), mod)
        kept: list[_Span] = []
        for existing in accepted:
            if existing.overlaps(span):
                plan.evicted.append(existing.modification)
            else:
                kept.append(existing)
        kept.append(span)
        accepted = kept

    result = base
    for span in sorted(accepted, key=lambda s: s.start, reverse=True):
        result = result[: span.start] + span.modification.replacement + result[span.end :]

    # Applied in list order, for reporting.
    plan.applied = [s.modification for s in accepted]
    plan.result = result

    if plan.not_found or plan.evicted:
        logger.warning(
            "Merge: %d applied, %d evicted on overlap, %d target(s) not found",
            len(plan.applied), len(plan.evicted), len(plan.not_found),
        )
    return plan


def merge_text_modifications(base: str, modifications: list[TextModification]) -> str:
    """Apply ``modifications`` to ``base`` and return the new document."""
    return plan_merge(base, modifications).result
