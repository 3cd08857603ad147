"""Heuristic ``if`` expressions evaluated against per-change facts.

Expressions use a small subset of Python expression syntax, parsed with the
``ast`` module and checked against a whitelist before any rule is used::

    has_removed_export and not is_new_file
    lines_added > 50 or status == "added"
    file_type in ("json", "yaml")

Only the fact names in ``FACT_NAMES`` may be referenced.
"""

from __future__ import annotations

import ast
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from diff_sense.errors import RuleConfigError
from diff_sense.models import SemanticChange

FACT_NAMES = frozenset(
    {
        "has_removed_export",
        "has_added_export",
        "has_signature_change",
        "has_high_severity",
        "lines_added",
        "lines_removed",
        "delta_count",
        "dependency_count",
        "status",
        "file_type",
        "is_new_file",
        "is_deleted_file",
        "containsDtoPropertyRemoved",
        "containsDtoAddedOptional",
    }
)

_CONSTANT_TYPES = (str, int, float, bool)
_COMPARISONS = (ast.Eq, ast.NotEq, ast.Lt, ast.LtE, ast.Gt, ast.GtE, ast.In, ast.NotIn)


@dataclass(frozen=True, slots=True)
class HeuristicExpr:
    """A validated heuristic expression."""

    source: str
    tree: ast.Expression = field(compare=False, repr=False)

    def names(self) -> frozenset[str]:
        return frozenset(node.id for node in ast.walk(self.tree) if isinstance(node, ast.Name))


def compile_expression(source: str, *, rule_id: str = "") -> HeuristicExpr:
    """Parse and validate ``source``; raise RuleConfigError when it is not allowed."""
    where = f"rule {rule_id!r}: " if rule_id else ""
    if not isinstance(source, str) or not source.strip():
        raise RuleConfigError(f"{where}heuristic 'if' must be a non-empty string")
    try:
        tree = ast.parse(source.strip(), mode="eval")
    except SyntaxError as exc:
        raise RuleConfigError(f"{where}invalid heuristic expression {source!r}: {exc.msg}") from exc
    _validate(tree.body, source, where)
    return HeuristicExpr(source=source.strip(), tree=tree)


def evaluate(expr: HeuristicExpr, facts: Mapping[str, Any]) -> bool:
    return bool(_eval(expr.tree.body, facts))


def change_facts(change: SemanticChange) -> dict[str, Any]:
    """Compute the named facts heuristics can reference for one change."""
    deltas = change.semantic_changes
    return {
        "has_removed_export": any(
            delta.type in {"symbol_removed", "symbol_renamed"} and delta.exported
            for delta in deltas
        ),
        "has_added_export": any(
            delta.type == "symbol_added" and delta.exported for delta in deltas
        ),
        "has_signature_change": any(delta.type == "signature_changed" for delta in deltas),
        "has_high_severity": any(delta.severity == "high" for delta in deltas),
        "lines_added": change.metadata.lines_added,
        "lines_removed": change.metadata.lines_removed,
        "delta_count": len(deltas),
        "dependency_count": len(change.dependencies),
        "status": change.status,
        "file_type": change.metadata.file_type,
        "is_new_file": change.status == "added",
        "is_deleted_file": change.status == "deleted",
        "containsDtoPropertyRemoved": any(
            delta.type == "signature_changed"
            and delta.detail == "member_removed"
            and delta.symbol_kind in {"interface", "class", "type"}
            for delta in deltas
        ),
        "containsDtoAddedOptional": any(
            delta.type == "signature_changed"
            and delta.detail == "member_added"
            and "(optional)" in delta.description
            for delta in deltas
        ),
    }


def _validate(node: ast.AST, source: str, where: str) -> None:
    if isinstance(node, ast.BoolOp):
        for value in node.values:
            _validate(value, source, where)
    elif isinstance(node, ast.UnaryOp) and isinstance(node.op, ast.Not):
        _validate(node.operand, source, where)
    elif isinstance(node, ast.Compare):
        if not all(isinstance(op, _COMPARISONS) for op in node.ops):
            raise RuleConfigError(f"{where}unsupported comparison in {source!r}")
        _validate(node.left, source, where)
        for comparator in node.comparators:
            _validate(comparator, source, where)
    elif isinstance(node, ast.Name):
        if node.id not in FACT_NAMES:
            known = ", ".join(sorted(FACT_NAMES))
            raise RuleConfigError(
                f"{where}unknown fact {node.id!r} in {source!r}; known facts: {known}"
            )
    elif isinstance(node, ast.Constant):
        if not isinstance(node.value, _CONSTANT_TYPES):
            raise RuleConfigError(f"{where}unsupported literal in {source!r}")
    elif isinstance(node, (ast.Tuple, ast.List)):
        for element in node.elts:
            if not isinstance(element, ast.Constant):
                raise RuleConfigError(f"{where}only literal collections are allowed in {source!r}")
            _validate(element, source, where)
    else:
        raise RuleConfigError(
            f"{where}unsupported syntax {type(node).__name__} in heuristic {source!r}"
        )


def _eval(node: ast.AST, facts: Mapping[str, Any]) -> Any:
    if isinstance(node, ast.BoolOp):
        if isinstance(node.op, ast.And):
            return all(_eval(value, facts) for value in node.values)
        return any(_eval(value, facts) for value in node.values)
    if isinstance(node, ast.UnaryOp):
        return not _eval(node.operand, facts)
    if isinstance(node, ast.Compare):
        left = _eval(node.left, facts)
        for op, comparator in zip(node.ops, node.comparators):
            right = _eval(comparator, facts)
            if not _compare(op, left, right):
                return False
            left = right
        return True
    if isinstance(node, ast.Name):
        return facts.get(node.id)
    if isinstance(node, ast.Constant):
        return node.value
    if isinstance(node, (ast.Tuple, ast.List)):
        return tuple(_eval(element, facts) for element in node.elts)
    raise RuleConfigError(f"unsupported syntax {type(node).__name__}")


def _compare(op: ast.cmpop, left: Any, right: Any) -> bool:
    try:
        if isinstance(op, ast.Eq):
            return left == right
        if isinstance(op, ast.NotEq):
            return left != right
        if isinstance(op, ast.In):
            return left in right
        if isinstance(op, ast.NotIn):
            return left not in right
        if isinstance(op, ast.Lt):
            return left < right
        if isinstance(op, ast.LtE):
            return left <= right
        if isinstance(op, ast.Gt):
            return left > right
        if isinstance(op, ast.GtE):
            return left >= right
    except TypeError:
        return False
    return False
