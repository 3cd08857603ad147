"""Rule records, predicate variants and rule-file loading."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from diff_sense.errors import RuleConfigError
from diff_sense.models import COMMIT_TYPES, DELTA_TYPES, SEVERITIES, CommitType
from diff_sense.rules.globs import glob_match
from diff_sense.rules.heuristics import HeuristicExpr, compile_expression

AST_PATTERN_KEYS = ("kind", "exported", "severity", "detail")
_AST_PATTERN_RE = re.compile(r"^\s*(?P<type>[a-z_]+|\*)\s*(?:\[(?P<constraints>[^\]]*)\])?\s*$")
_RULE_KEYS = frozenset(
    {
        "id",
        "match",
        "matchPath",
        "match_path",
        "matchAst",
        "match_ast",
        "type",
        "reason",
        "heuristics",
    }
)


@dataclass(frozen=True, slots=True)
class GlobPredicate:
    """``match``: glob against the full path."""

    pattern: str


@dataclass(frozen=True, slots=True)
class PathGlobPredicate:
    """``matchPath``: glob against a leading run of path segments."""

    pattern: str


@dataclass(frozen=True, slots=True)
class AstPatternPredicate:
    """``matchAst``: structural pattern against a change's semantic deltas."""

    pattern: str
    delta_type: str | None = None
    constraints: tuple[tuple[str, str], ...] = ()


Predicate = GlobPredicate | PathGlobPredicate | AstPatternPredicate | HeuristicExpr

# Evaluation order for rules that declare more than one predicate kind.
PREDICATE_ORDER: tuple[type, ...] = (GlobPredicate, PathGlobPredicate, AstPatternPredicate)


@dataclass(frozen=True, slots=True)
class Heuristic:
    condition: HeuristicExpr
    set_type: CommitType


@dataclass(frozen=True, slots=True)
class Rule:
    """A declarative match-to-classification mapping."""

    id: str
    type: CommitType
    reason: str
    predicates: tuple[Predicate, ...]
    heuristics: tuple[Heuristic, ...] = ()
    source: str = "defaults"

    @property
    def ambiguous(self) -> bool:
        return len({type(predicate) for predicate in self.predicates}) > 1

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": self.id, "type": self.type, "reason": self.reason}
        for predicate in self.predicates:
            if isinstance(predicate, GlobPredicate):
                payload["match"] = predicate.pattern
            elif isinstance(predicate, PathGlobPredicate):
                payload["matchPath"] = predicate.pattern
            elif isinstance(predicate, AstPatternPredicate):
                payload["matchAst"] = predicate.pattern
        if self.heuristics:
            payload["heuristics"] = [
                {"if": heuristic.condition.source, "set": heuristic.set_type}
                for heuristic in self.heuristics
            ]
        payload["source"] = self.source
        return payload


@dataclass(frozen=True, slots=True)
class RuleSet:
    """Ordered, immutable rules plus the non-versioning denylist for one run."""

    rules: tuple[Rule, ...] = ()
    non_versioning_patterns: tuple[str, ...] = ()
    _denylist_names: frozenset[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        names = frozenset(pattern for pattern in self.non_versioning_patterns if "/" not in pattern)
        object.__setattr__(self, "_denylist_names", names)

    def __iter__(self):
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    def is_non_versioning(self, path: str) -> bool:
        basename = path.rsplit("/", 1)[-1]
        if basename in self._denylist_names:
            return True
        for pattern in self.non_versioning_patterns:
            target = path if "/" in pattern else basename
            if glob_match(target, pattern):
                return True
        return False

    def ambiguous_rules(self) -> tuple[Rule, ...]:
        return tuple(rule for rule in self.rules if rule.ambiguous)


def load_rules_file(path: Path) -> list[dict[str, Any]]:
    """Read raw rule mappings from a YAML or JSON file."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise RuleConfigError(f"cannot read rules file {path}: {exc}") from exc

    try:
        if path.suffix.lower() == ".json":
            loaded = json.loads(text)
        else:
            loaded = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise RuleConfigError(f"invalid rules file {path}: {exc}") from exc

    if loaded is None:
        return []
    if isinstance(loaded, dict):
        loaded = loaded.get("rules", [])
    if not isinstance(loaded, list):
        raise RuleConfigError(f"rules file {path} must contain a list of rules")
    return loaded


def parse_rules(raw_rules: list[Any], *, source: str) -> tuple[Rule, ...]:
    """Validate raw mappings into Rule records, preserving declaration order."""
    rules: list[Rule] = []
    seen: set[str] = set()
    for index, raw in enumerate(raw_rules):
        rule = parse_rule(raw, source=source, index=index)
        if rule.id in seen:
            raise RuleConfigError(f"duplicate rule id {rule.id!r} in {source}")
        seen.add(rule.id)
        rules.append(rule)
    return tuple(rules)


def parse_rule(raw: Any, *, source: str, index: int = 0) -> Rule:
    if not isinstance(raw, dict):
        raise RuleConfigError(f"{source}: rule #{index + 1} must be a mapping")

    rule_id = raw.get("id")
    if not isinstance(rule_id, str) or not rule_id.strip():
        raise RuleConfigError(f"{source}: rule #{index + 1} needs a non-empty string 'id'")
    rule_id = rule_id.strip()

    unknown = sorted(str(key) for key in raw if key not in _RULE_KEYS)
    if unknown:
        raise RuleConfigError(f"rule {rule_id!r}: unknown keys {', '.join(unknown)}")

    commit_type = _as_commit_type(raw.get("type"), rule_id, "type")
    reason = raw.get("reason", "")
    if not isinstance(reason, str):
        raise RuleConfigError(f"rule {rule_id!r}: 'reason' must be a string")

    predicates: list[Predicate] = []
    match = _optional_pattern(raw, ("match",), rule_id)
    if match is not None:
        predicates.append(GlobPredicate(match))
    match_path = _optional_pattern(raw, ("matchPath", "match_path"), rule_id)
    if match_path is not None:
        predicates.append(PathGlobPredicate(match_path))
    match_ast = _optional_pattern(raw, ("matchAst", "match_ast"), rule_id)
    if match_ast is not None:
        predicates.append(parse_ast_pattern(match_ast, rule_id=rule_id))

    heuristics = _parse_heuristics(raw.get("heuristics"), rule_id)
    if not predicates:
        raise RuleConfigError(f"rule {rule_id!r} needs one of match, matchPath or matchAst")

    return Rule(
        id=rule_id,
        type=commit_type,
        reason=reason,
        predicates=tuple(predicates),
        heuristics=heuristics,
        source=source,
    )


def parse_ast_pattern(pattern: str, *, rule_id: str = "") -> AstPatternPredicate:
    """Parse ``<delta_type|*>[key=value,...]``."""
    found = _AST_PATTERN_RE.match(pattern)
    if found is None:
        raise RuleConfigError(f"rule {rule_id!r}: invalid matchAst pattern {pattern!r}")
    delta_type = found.group("type")
    if delta_type != "*" and delta_type not in DELTA_TYPES:
        raise RuleConfigError(f"rule {rule_id!r}: unknown delta type {delta_type!r} in matchAst")

    constraints: list[tuple[str, str]] = []
    body = found.group("constraints")
    for part in (body or "").split(","):
        if not part.strip():
            continue
        key, sep, value = part.partition("=")
        key, value = key.strip(), value.strip()
        if not sep or key not in AST_PATTERN_KEYS or not value:
            raise RuleConfigError(
                f"rule {rule_id!r}: invalid matchAst constraint {part.strip()!r}; "
                f"keys are {', '.join(AST_PATTERN_KEYS)}"
            )
        if key == "exported" and value not in {"true", "false"}:
            raise RuleConfigError(f"rule {rule_id!r}: exported must be true or false")
        if key == "severity" and value not in SEVERITIES:
            raise RuleConfigError(f"rule {rule_id!r}: unknown severity {value!r}")
        constraints.append((key, value))

    return AstPatternPredicate(
        pattern=pattern.strip(),
        delta_type=None if delta_type == "*" else delta_type,
        constraints=tuple(constraints),
    )


def _parse_heuristics(raw: Any, rule_id: str) -> tuple[Heuristic, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise RuleConfigError(f"rule {rule_id!r}: 'heuristics' must be a list")
    heuristics: list[Heuristic] = []
    for item in raw:
        if not isinstance(item, dict) or "if" not in item or "set" not in item:
            raise RuleConfigError(f"rule {rule_id!r}: each heuristic needs 'if' and 'set'")
        heuristics.append(
            Heuristic(
                condition=compile_expression(item["if"], rule_id=rule_id),
                set_type=_as_commit_type(item["set"], rule_id, "heuristics.set"),
            )
        )
    return tuple(heuristics)


def _optional_pattern(raw: dict[str, Any], keys: tuple[str, ...], rule_id: str) -> str | None:
    for key in keys:
        if key in raw:
            value = raw[key]
            if not isinstance(value, str) or not value.strip():
                raise RuleConfigError(f"rule {rule_id!r}: {key!r} must be a non-empty string")
            return value.strip()
    return None


def _as_commit_type(value: Any, rule_id: str, field_name: str) -> CommitType:
    if value not in COMMIT_TYPES:
        choices = ", ".join(COMMIT_TYPES)
        raise RuleConfigError(f"rule {rule_id!r}: {field_name} must be one of: {choices}")
    return value
