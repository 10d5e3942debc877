"""
ASCII terminal formatters for CLI commands.

All formatters accept already-computed results and return plain multi-line
strings suitable for ``typer.echo()``.
"""

from __future__ import annotations

from typing import Any

from event_matchmaker.dedup.deduplicator import DuplicateCheck
from event_matchmaker.models.batch import BatchSummary
from event_matchmaker.models.recommendation import Recommendation
from event_matchmaker.models.workflow import WorkflowStep

_RULE = "-" * 78


def format_recommendations(recommendations: list[Recommendation], title: str = "Recommendations") -> str:
    """One row per recommendation, in the given (ranked) order."""
    if not recommendations:
        return f"{title}: none."
    lines = [
        f"{title} ({len(recommendations)})",
        _RULE,
        f"  {'#':>3}  {'provider':<18} {'seeker':<18} {'score':>6}  {'conf':<6}  top reason",
        _RULE,
    ]
    for rank, rec in enumerate(recommendations, start=1):
        reason = rec.reasons[0] if rec.reasons else "-"
        lines.append(
            f"  {rank:>3}  {rec.provider_id[:18]:<18} {rec.seeker_id[:18]:<18} "
            f"{rec.score:>6.3f}  {str(rec.confidence):<6}  {reason}"
        )
    return "\n".join(lines)


def format_duplicate_check(check: DuplicateCheck) -> str:
    if check.exists:
        head = f"  DUPLICATE  matched={check.matched_id}  confidence={check.confidence:.2f}  tier={check.tier}"
    else:
        head = "  No blocking duplicate."
    lines = [head]
    for suggestion in check.suggestions:
        lines.append(f"    - {suggestion}")
    return "\n".join(lines)


def format_workflow(steps: list[WorkflowStep]) -> str:
    lines = [
        f"  {'step':>4}  {'day':>3}  {'type':<8} {'priority':<9} {'template':<24} title",
        "  " + "-" * 76,
    ]
    for s in steps:
        lines.append(
            f"  {s.step_index:>4}  {s.day_offset:>3}  {str(s.type):<8} "
            f"{str(s.priority):<9} {s.template_id:<24} {s.title}"
        )
    return "\n".join(lines)


def format_batch_summary(summary: BatchSummary) -> str:
    lines = [
        f"  {summary.operation}: attempted={summary.attempted} "
        f"succeeded={summary.succeeded} failed={summary.failed}"
    ]
    for kind, count in sorted(summary.by_kind().items()):
        lines.append(f"    {kind}: {count}")
    return "\n".join(lines)


def format_analytics(title: str, stats: dict[str, Any]) -> str:
    """Render a flat/nested analytics dict as indented ``key: value`` lines."""
    lines = [title, _RULE]

    def walk(value: Any, indent: int) -> None:
        pad = "  " * indent
        if isinstance(value, dict):
            for key, inner in value.items():
                if isinstance(inner, (dict, list)):
                    lines.append(f"{pad}{key}:")
                    walk(inner, indent + 1)
                else:
                    lines.append(f"{pad}{key}: {inner}")
        elif isinstance(value, list):
            for item in value:
                if isinstance(item, dict):
                    lines.append(pad + ", ".join(f"{k}={v}" for k, v in item.items()))
                else:
                    lines.append(f"{pad}{item}")

    walk(stats, 1)
    return "\n".join(lines)
