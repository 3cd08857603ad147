"""Six-stage analysis pipeline with a discriminated result."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from diff_sense.cache import ResultCache
from diff_sense.config import AppConfig
from diff_sense.context import CancellationToken, PipelineContext
from diff_sense.correlator import ContextCorrelator
from diff_sense.detector import ChangeDetector
from diff_sense.errors import RevisionResolutionError, RuleConfigError
from diff_sense.git import WORKING_TREE, GitRepository, RevisionReader
from diff_sense.logging import get_logger
from diff_sense.models import (
    ClassifiedChange,
    ContextualizedChange,
    FileChange,
    Report,
    SemanticChange,
)
from diff_sense.reporter import Reporter
from diff_sense.rules import RulesEngine, load_rule_set
from diff_sense.rules.schema import RuleSet
from diff_sense.scoring import ScoringSystem
from diff_sense.semantic import SemanticAnalyzer

CANCELLED_REASON = "analysis cancelled"

FailureKind = Literal["revision", "rule_config"]

logger = get_logger("pipeline")


@dataclass(frozen=True, slots=True)
class AnalysisSuccess:
    report: Report
    ok: Literal[True] = True


@dataclass(frozen=True, slots=True)
class AnalysisFailure:
    error: Exception
    kind: FailureKind
    ok: Literal[False] = False

    @property
    def message(self) -> str:
        return str(self.error)


AnalysisResult = AnalysisSuccess | AnalysisFailure


def run_pipeline(
    repo: Path | None = None,
    base: str = "HEAD",
    head: str = WORKING_TREE,
    *,
    config: AppConfig | None = None,
    reader: RevisionReader | None = None,
    rules: RuleSet | None = None,
    cancel_token: CancellationToken | None = None,
) -> AnalysisResult:
    """Run detection through reporting for one revision pair.

    Revision and rule-config errors come back as ``AnalysisFailure``; per-file
    problems are carried as warnings inside the report. A run cancelled
    between stages returns a report with ``complete=False``.
    """
    config = config or AppConfig()
    if reader is None:
        if repo is None:
            raise ValueError("run_pipeline needs a repository path or a RevisionReader")
        reader = GitRepository(repo)

    try:
        rule_set = rules if rules is not None else load_rule_set(config.rules, repo)
        engine = RulesEngine(rule_set)
    except RuleConfigError as exc:
        logger.error("invalid rule configuration: %s", exc)
        return AnalysisFailure(error=exc, kind="rule_config")

    ctx = PipelineContext(
        reader=reader,
        rules=rule_set,
        config=config,
        base=base,
        head=head,
        cache=_open_cache(config, repo),
        cancel_token=cancel_token or CancellationToken(),
    )

    try:
        ctx.revision_key = f"{reader.resolve(base)}..{reader.resolve(head)}"
        changes = ChangeDetector(reader).detect(base, head)
    except RevisionResolutionError as exc:
        logger.error("%s", exc)
        return AnalysisFailure(error=exc, kind="revision")

    try:
        return AnalysisSuccess(report=_run_stages(ctx, engine, changes))
    finally:
        if ctx.cache is not None:
            ctx.cache.persist()


def _run_stages(ctx: PipelineContext, engine: RulesEngine, changes: list[FileChange]) -> Report:
    token = ctx.cancel_token
    scoring = ScoringSystem(ctx.config.scoring)
    completed = ["detect"]

    def finish(items: Sequence[object], *, complete: bool) -> Report:
        if complete:
            completed.append("report")
        else:
            logger.warning("run cancelled after stage %r", completed[-1])
            items = [scoring.score_one(_cancelled(item)) for item in items]
        return Reporter().generate_report(
            items,
            base=ctx.base,
            head=ctx.head,
            complete=complete,
            stages_completed=completed,
        )

    if token.cancelled:
        return finish(changes, complete=False)
    contextual = ContextCorrelator(ctx).correlate(changes)
    completed.append("correlate")
    if token.cancelled:
        return finish(contextual, complete=False)
    semantic = SemanticAnalyzer(ctx).analyze(contextual)
    completed.append("semantic")
    if token.cancelled:
        return finish(semantic, complete=False)
    classified = engine.apply_rules(semantic)
    completed.append("classify")
    if token.cancelled:
        return finish(classified, complete=False)
    scored = scoring.score(classified)
    completed.append("score")
    return finish(scored, complete=True)


def _cancelled(item: object) -> ClassifiedChange:
    """Carry a partially processed change through as an unclassified chore."""
    if isinstance(item, ClassifiedChange):
        return item
    if isinstance(item, FileChange):
        item = ContextualizedChange(change=item, content_analyzed=False)
    if isinstance(item, ContextualizedChange):
        item = SemanticChange(context=item)
    if not isinstance(item, SemanticChange):
        raise TypeError(f"unexpected stage output {item!r}")
    return ClassifiedChange(
        semantic=item,
        commit_type="chore",
        reason=CANCELLED_REASON,
        description=f"update {item.path}",
    )


def _open_cache(config: AppConfig, repo: Path | None) -> ResultCache | None:
    if not config.advanced.cache_results:
        return None
    if repo is None:
        return ResultCache(None)
    cache_dir = Path(config.advanced.cache_dir)
    if not cache_dir.is_absolute():
        cache_dir = repo / cache_dir
    return ResultCache.for_directory(cache_dir)
