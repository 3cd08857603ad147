"""Output rendering."""

from __future__ import annotations

import json
from typing import Any

import click

from diff_sense import __version__
from diff_sense.models import (
    AnalysisWarning,
    Report,
    ScoredChange,
    ScoreFactor,
    SemanticDelta,
    SuggestedCommit,
)

OUTPUT_FORMATS = ("human", "json", "markdown")
TYPE_COLORS = {
    "feat": "green",
    "fix": "red",
    "refactor": "cyan",
    "docs": "blue",
    "test": "magenta",
    "chore": "white",
}


def render(report: Report, output_format: str) -> str:
    if output_format == "json":
        return render_json(report)
    if output_format == "markdown":
        return render_markdown(report)
    if output_format == "human":
        return render_human(report)
    raise ValueError(f"format must be one of: {', '.join(OUTPUT_FORMATS)}")


def render_json(report: Report) -> str:
    """Render stable JSON output for CI and automation.

    Keys are sorted and no timestamps are emitted, so identical runs produce
    byte-identical output.
    """
    return json.dumps(report_to_dict(report), sort_keys=True, indent=2)


def report_to_dict(report: Report) -> dict[str, Any]:
    """Structured (camelCase) form of a Report for library consumers."""
    return {
        "filesAnalyzed": [_serialize_change(item) for item in report.files_analyzed],
        "summary": dict(report.summary),
        "primaryType": report.primary_type,
        "hasBreakingChanges": report.has_breaking_changes,
        "suggestedCommit": _serialize_commit(report.suggested_commit),
        "warnings": [_serialize_warning(item) for item in report.warnings],
        "degradedFiles": list(report.degraded_files),
        "complete": report.complete,
        "stagesCompleted": list(report.stages_completed),
        "meta": {
            "base": report.base,
            "head": report.head,
            "version": __version__,
        },
    }


def render_markdown(report: Report) -> str:
    """Render a changelog-style Markdown document."""
    lines: list[str] = ["# DiffSense Report", ""]
    if not report.complete:
        stages = ", ".join(report.stages_completed) or "none"
        lines.extend([f"> Incomplete run (stages completed: {stages}).", ""])
    if not report.files_analyzed:
        lines.append("No changes detected.")
        return "\n".join(lines) + "\n"

    lines.extend(["## Suggested commit", "", "```", report.suggested_commit.message, "```", ""])
    lines.extend(["## Summary", ""])
    for commit_type, count in report.summary.items():
        marker = " (primary)" if commit_type == report.primary_type else ""
        lines.append(f"- **{commit_type}**: {count}{marker}")
    lines.append("")

    breaking = [item for item in report.files_analyzed if item.breaking]
    if breaking:
        lines.extend([f"## Breaking changes ({len(breaking)})", ""])
        for item in breaking:
            lines.append(f"- `{item.path}`: {item.breaking_change_reason}")
        lines.append("")

    lines.extend(["## Changes", ""])
    for item in _by_score(report.files_analyzed):
        flag = " **(breaking)**" if item.breaking else ""
        lines.append(f"### `{item.path}`")
        lines.append("")
        lines.append(f"- Type: {item.commit_type}{flag}")
        lines.append(f"- Score: {item.score:.2f}")
        lines.append(f"- Description: {item.description}")
        if item.applied_rules:
            lines.append(f"- Rules: {', '.join(item.applied_rules)}")
        for delta in item.semantic_changes:
            lines.append(f"  - {delta.description} ({delta.severity})")
        lines.append("")

    if report.warnings:
        lines.extend(["## Warnings", ""])
        for warning in report.warnings:
            lines.append(f"- `{warning.path}` [{warning.stage}/{warning.kind}] {warning.message}")
        lines.append("")
    return "\n".join(lines)


def render_human(report: Report, *, limit: int = 10) -> str:
    """Render a compact colorized summary."""
    if not report.files_analyzed:
        return click.style("No changes detected.", bold=True)

    commit = report.suggested_commit
    color = "red" if report.has_breaking_changes else TYPE_COLORS.get(commit.type, "white")
    lines: list[str] = [click.style(f"Suggested commit: {commit.header}", fg=color, bold=True)]
    if not report.complete:
        lines.append(click.style("Run cancelled: report is incomplete.", fg="yellow", bold=True))

    summary = ", ".join(f"{commit_type}={count}" for commit_type, count in report.summary.items())
    lines.append(f"{len(report.files_analyzed)} files ({summary})")

    lines.append(click.style("Top changes:", bold=True))
    for index, item in enumerate(_by_score(report.files_analyzed)[:limit], start=1):
        label = click.style(item.commit_type, fg=TYPE_COLORS.get(item.commit_type, "white"))
        bang = click.style(" BREAKING", fg="red", bold=True) if item.breaking else ""
        if item.degraded:
            bang += click.style(" DEGRADED", fg="yellow")
        lines.append(f"{index}. [{label}]{bang} {item.path} ({item.score:.2f})")
        lines.append(f"   {item.description}")

    if report.warnings:
        lines.append(click.style(f"Warnings ({len(report.warnings)}):", fg="yellow", bold=True))
        for warning in report.warnings:
            lines.append(f"- {warning.path}: {warning.kind}: {warning.message}")
    return "\n".join(lines)


def _by_score(changes: tuple[ScoredChange, ...]) -> list[ScoredChange]:
    return sorted(changes, key=lambda item: item.score, reverse=True)


def _serialize_change(item: ScoredChange) -> dict[str, Any]:
    metadata = item.metadata
    return {
        "path": item.path,
        "status": item.status,
        "previousPath": item.previous_path,
        "relatedFiles": list(item.related_files),
        "dependencies": list(item.dependencies),
        "metadata": {
            "linesAdded": metadata.lines_added,
            "linesRemoved": metadata.lines_removed,
            "fileType": metadata.file_type,
            "language": metadata.language,
            "extension": metadata.extension,
            "isBinary": metadata.is_binary,
            "scopeHint": metadata.scope_hint,
        },
        "semanticChanges": [_serialize_delta(delta) for delta in item.semantic_changes],
        "affectedSymbols": sorted(item.affected_symbols),
        "commitType": item.commit_type,
        "commitScope": item.commit_scope,
        "breaking": item.breaking,
        "breakingChangeReason": item.breaking_change_reason,
        "appliedRules": list(item.applied_rules),
        "description": item.description,
        "reason": item.reason,
        "score": item.score,
        "scoreFactors": [_serialize_factor(factor) for factor in item.score_factors],
        "degraded": item.degraded,
        "warnings": [_serialize_warning(warning) for warning in item.warnings],
    }


def _serialize_delta(delta: SemanticDelta) -> dict[str, Any]:
    return {
        "type": delta.type,
        "description": delta.description,
        "severity": delta.severity,
        "affectedSymbol": delta.affected_symbol,
        "symbolKind": delta.symbol_kind,
        "exported": delta.exported,
        "detail": delta.detail,
    }


def _serialize_factor(factor: ScoreFactor) -> dict[str, Any]:
    return {"name": factor.name, "value": factor.value, "weight": factor.weight}


def _serialize_commit(commit: SuggestedCommit) -> dict[str, Any]:
    return {
        "type": commit.type,
        "scope": commit.scope,
        "subject": commit.subject,
        "breaking": commit.breaking,
        "body": commit.body,
        "header": commit.header,
    }


def _serialize_warning(warning: AnalysisWarning) -> dict[str, Any]:
    return {
        "path": warning.path,
        "stage": warning.stage,
        "kind": warning.kind,
        "message": warning.message,
    }
