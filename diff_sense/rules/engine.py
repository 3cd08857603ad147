"""First-match-wins classification of semantic changes."""

from __future__ import annotations

import posixpath
from collections.abc import Mapping, Sequence
from typing import Any

from diff_sense.logging import get_logger
from diff_sense.models import (
    BREAKING_ELIGIBLE_TYPES,
    SEVERITIES,
    ClassifiedChange,
    CommitType,
    SemanticChange,
    SemanticDelta,
)
from diff_sense.rules.globs import glob_match, prefix_match
from diff_sense.rules.heuristics import HeuristicExpr, change_facts, evaluate
from diff_sense.rules.schema import (
    PREDICATE_ORDER,
    AstPatternPredicate,
    GlobPredicate,
    PathGlobPredicate,
    Predicate,
    Rule,
    RuleSet,
)

NON_VERSIONING_RULE_ID = "non-versioning"
DEGRADED_RULE_ID = "degraded"
UNCLASSIFIED_REASON = "unclassified"
SCOPE_ROOTS = ("src", "lib", "packages", "tests")

logger = get_logger("rules")


class RulesEngine:
    """Assigns exactly one commit type to each change using an ordered RuleSet."""

    def __init__(self, rules: RuleSet) -> None:
        self._rules = rules
        for rule in rules.ambiguous_rules():
            logger.warning(
                "rule %r declares several predicate kinds; declaration order decides matches",
                rule.id,
            )

    def apply_rules(self, changes: Sequence[SemanticChange]) -> list[ClassifiedChange]:
        classified = [self.classify(change) for change in changes]
        logger.debug("classified %d changes with %d rules", len(classified), len(self._rules))
        return classified

    def classify(self, change: SemanticChange) -> ClassifiedChange:
        scope = commit_scope(change.path)
        description = describe_change(change)

        if self._rules.is_non_versioning(change.path):
            return ClassifiedChange(
                semantic=change,
                commit_type="chore",
                reason="non-versioning file",
                description=description,
                commit_scope=scope,
                applied_rules=(NON_VERSIONING_RULE_ID,),
                non_versioning=True,
            )

        if change.degraded:
            return ClassifiedChange(
                semantic=change,
                commit_type="chore",
                reason=UNCLASSIFIED_REASON,
                description=description,
                commit_scope=scope,
                applied_rules=(DEGRADED_RULE_ID,),
            )

        facts: dict[str, Any] | None = None
        for rule in self._rules:
            if not rule_matches(rule, change):
                continue
            commit_type: CommitType = rule.type
            applied = [rule.id]
            if rule.heuristics:
                facts = facts if facts is not None else change_facts(change)
                for index, heuristic in enumerate(rule.heuristics):
                    if evaluate(heuristic.condition, facts):
                        commit_type = heuristic.set_type
                        applied.append(f"{rule.id}#heuristics[{index}]")
            trigger = breaking_trigger(change, commit_type)
            return ClassifiedChange(
                semantic=change,
                commit_type=commit_type,
                reason=rule.reason,
                description=description,
                commit_scope=scope,
                breaking=trigger is not None,
                breaking_change_reason=trigger.description if trigger is not None else None,
                applied_rules=tuple(applied),
            )

        return ClassifiedChange(
            semantic=change,
            commit_type="chore",
            reason=UNCLASSIFIED_REASON,
            description=description,
            commit_scope=scope,
        )


def rule_matches(rule: Rule, change: SemanticChange) -> bool:
    ordered = sorted(rule.predicates, key=_predicate_rank)
    return any(evaluate_predicate(predicate, change) for predicate in ordered)


def evaluate_predicate(
    predicate: Predicate,
    change: SemanticChange,
    facts: Mapping[str, Any] | None = None,
) -> bool:
    """Single dispatch point for every predicate kind."""
    if isinstance(predicate, GlobPredicate):
        return glob_match(change.path, predicate.pattern)
    if isinstance(predicate, PathGlobPredicate):
        return prefix_match(change.path, predicate.pattern)
    if isinstance(predicate, AstPatternPredicate):
        return any(delta_matches(predicate, delta) for delta in change.semantic_changes)
    if isinstance(predicate, HeuristicExpr):
        return evaluate(predicate, facts if facts is not None else change_facts(change))
    raise TypeError(f"unknown predicate {predicate!r}")


def delta_matches(predicate: AstPatternPredicate, delta: SemanticDelta) -> bool:
    if predicate.delta_type is not None and delta.type != predicate.delta_type:
        return False
    for key, expected in predicate.constraints:
        if key == "kind" and delta.symbol_kind != expected:
            return False
        if key == "exported" and (
            delta.exported is None or delta.exported != (expected == "true")
        ):
            return False
        if key == "severity" and delta.severity != expected:
            return False
        if key == "detail" and delta.detail != expected:
            return False
    return True


def breaking_trigger(change: SemanticChange, commit_type: CommitType) -> SemanticDelta | None:
    if commit_type not in BREAKING_ELIGIBLE_TYPES:
        return None
    for delta in change.semantic_changes:
        if delta.severity == "high":
            return delta
    return None


def commit_scope(path: str) -> str | None:
    """Return the directory right below src/, lib/, packages/ or tests/."""
    segments = path.split("/")
    for index, segment in enumerate(segments[:-2]):
        if segment in SCOPE_ROOTS:
            return segments[index + 1]
    return None


def describe_change(change: SemanticChange) -> str:
    structural = [delta for delta in change.semantic_changes if delta.type != "non_code_change"]
    if structural:
        strongest = max(structural, key=lambda delta: SEVERITIES.index(delta.severity))
        return strongest.description

    name = posixpath.basename(change.path)
    if change.metadata.scope_hint == "test":
        return f"update tests in {name}"
    if change.status == "added":
        return f"add {name}"
    if change.status == "deleted":
        return f"remove {name}"
    if change.status == "renamed" and change.previous_path:
        return f"rename {posixpath.basename(change.previous_path)} to {name}"
    return f"update {name}"


def _predicate_rank(predicate: Predicate) -> int:
    for index, kind in enumerate(PREDICATE_ORDER):
        if isinstance(predicate, kind):
            return index
    return len(PREDICATE_ORDER)
