"""Report synthesis: per-type summary, primary type and commit suggestion."""

from __future__ import annotations

import posixpath
from collections.abc import Sequence

from diff_sense.models import (
    COMMIT_TYPES,
    AnalysisWarning,
    CommitType,
    Report,
    ScoredChange,
    SuggestedCommit,
)
from diff_sense.rules.engine import SCOPE_ROOTS

EMPTY_SUBJECT = "no changes detected"
FALLBACK_SUBJECT = "update code"


class Reporter:
    """Aggregates scored changes into a single Report value.

    Every output format is rendered from the Report this returns, so no
    renderer can alter a classification.
    """

    def generate_report(
        self,
        changes: Sequence[ScoredChange],
        *,
        base: str | None = None,
        head: str | None = None,
        complete: bool = True,
        stages_completed: Sequence[str] = (),
        warnings: Sequence[AnalysisWarning] = (),
    ) -> Report:
        files = tuple(changes)
        primary = primary_type(files)
        collected = list(warnings)
        for change in files:
            collected.extend(change.warnings)
        return Report(
            files_analyzed=files,
            summary=summarize(files),
            primary_type=primary,
            has_breaking_changes=any(change.breaking for change in files),
            suggested_commit=suggest_commit(files, primary),
            warnings=tuple(collected),
            complete=complete,
            stages_completed=tuple(stages_completed),
            base=base,
            head=head,
        )


def summarize(changes: Sequence[ScoredChange]) -> dict[str, int]:
    """Count changes per commit type, in priority order, omitting empty types."""
    counts = {commit_type: 0 for commit_type in COMMIT_TYPES}
    for change in changes:
        counts[change.commit_type] += 1
    return {commit_type: count for commit_type, count in counts.items() if count}


def primary_type(changes: Sequence[ScoredChange]) -> CommitType:
    """Highest combined score, then highest count, then type priority."""
    if not changes:
        return "chore"
    totals: dict[CommitType, float] = {}
    counts: dict[CommitType, int] = {}
    for change in changes:
        totals[change.commit_type] = totals.get(change.commit_type, 0.0) + change.score
        counts[change.commit_type] = counts.get(change.commit_type, 0) + 1
    return min(
        totals,
        key=lambda commit_type: (
            -round(totals[commit_type], 6),
            -counts[commit_type],
            COMMIT_TYPES.index(commit_type),
        ),
    )


def suggest_commit(changes: Sequence[ScoredChange], commit_type: CommitType) -> SuggestedCommit:
    if not changes:
        return SuggestedCommit(type="chore", subject=EMPTY_SUBJECT)

    group = [change for change in changes if change.commit_type == commit_type]
    # max() keeps the first of equal scores, so ties resolve in detection order.
    leader = max(group, key=lambda change: change.score)
    breaking = [change for change in changes if change.breaking]
    body_lines: list[str] = []
    for change in breaking:
        line = f"BREAKING CHANGE: {change.breaking_change_reason or change.description}"
        if line not in body_lines:
            body_lines.append(line)

    return SuggestedCommit(
        type=commit_type,
        subject=leader.description or FALLBACK_SUBJECT,
        breaking=bool(breaking),
        scope=infer_scope([change.path for change in group]),
        body="\n".join(body_lines) or None,
    )


def infer_scope(paths: Sequence[str]) -> str | None:
    """Return the first meaningful directory shared by every path, if any."""
    directories = [posixpath.dirname(path) for path in paths]
    if not directories or any(not directory for directory in directories):
        return None
    common = posixpath.commonpath(directories)
    for segment in common.split("/"):
        if segment and segment not in SCOPE_ROOTS and not segment.startswith("."):
            return segment
    return None
