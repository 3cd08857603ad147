"""RulesEngine classification tests."""

from __future__ import annotations

import pytest

from diff_sense.models import COMMIT_TYPES, SemanticDelta
from diff_sense.rules import RulesEngine, load_rule_set
from diff_sense.rules.denylist import non_versioning_patterns
from diff_sense.rules.engine import commit_scope, describe_change, evaluate_predicate
from diff_sense.rules.schema import RuleSet, parse_rules
from tests.helpers_reader import high_delta, semantic_change


def _engine(raw_rules: list[dict]) -> RulesEngine:
    return RulesEngine(
        RuleSet(
            rules=parse_rules(raw_rules, source="test"),
            non_versioning_patterns=non_versioning_patterns(),
        )
    )


def _signature_delta(detail: str, severity: str = "high", description: str = "") -> SemanticDelta:
    return SemanticDelta(
        type="signature_changed",
        description=description or f"{detail} on exported function greet",
        severity=severity,
        affected_symbol="greet",
        symbol_kind="function",
        exported=True,
        detail=detail,
    )


def test_every_change_gets_exactly_one_valid_type() -> None:
    engine = RulesEngine(load_rule_set())
    paths = [
        "README.md",
        "src/api.ts",
        "src/app.test.ts",
        "package-lock.json",
        "assets/logo.png",
        "pyproject.toml",
        "src/styles/main.css",
        "unknown.bin",
    ]
    deltas = [(), (high_delta(),), (_signature_delta("parameters_changed"),)]
    for path in paths:
        for delta_set in deltas:
            classified = engine.classify(semantic_change(path, delta_set))
            assert classified.commit_type in COMMIT_TYPES
            assert classified.path == path


@pytest.mark.parametrize("path", ["package-lock.json", ".gitignore", "web/yarn.lock"])
def test_non_versioning_files_are_chore_and_never_breaking(path: str) -> None:
    engine = _engine([{"id": "everything", "match": "**", "type": "fix"}])
    classified = engine.classify(semantic_change(path, (high_delta(),)))
    assert classified.commit_type == "chore"
    assert classified.breaking is False
    assert classified.non_versioning is True
    assert classified.applied_rules == ("non-versioning",)


def test_high_severity_removal_on_fix_rule_is_breaking() -> None:
    engine = _engine([{"id": "ts", "match": "**/*.ts", "type": "fix", "reason": "ts"}])
    classified = engine.classify(semantic_change("src/api.ts", (high_delta(),)))
    assert classified.commit_type == "fix"
    assert classified.breaking is True
    assert classified.breaking_change_reason == "remove exported function run"
    assert classified.applied_rules == ("ts",)


def test_breaking_requires_eligible_type() -> None:
    engine = _engine([{"id": "docs", "match": "**/*.ts", "type": "docs"}])
    classified = engine.classify(semantic_change("src/api.ts", (high_delta(),)))
    assert classified.commit_type == "docs"
    assert classified.breaking is False


def test_first_matching_rule_wins_over_later_more_specific_rule() -> None:
    engine = _engine(
        [
            {"id": "broad", "match": "src/**", "type": "refactor", "reason": "broad"},
            {"id": "specific", "match": "src/api.ts", "type": "feat", "reason": "specific"},
        ]
    )
    classified = engine.classify(semantic_change("src/api.ts"))
    assert classified.commit_type == "refactor"
    assert classified.reason == "broad"
    assert classified.applied_rules == ("broad",)



def test_single_level_rule_leaves_nested_files_to_later_rules() -> None:
    engine = _engine(
        [
            {"id": "top-level-src", "match": "src/*.ts", "type": "feat", "reason": "top level"},
            {"id": "nested-src", "match": "src/**/*.ts", "type": "refactor", "reason": "nested"},
        ]
    )
    assert engine.classify(semantic_change("src/x.ts")).applied_rules == ("top-level-src",)
    nested = engine.classify(semantic_change("src/deep/nested/x.ts"))
    assert nested.commit_type == "refactor"
    assert nested.applied_rules == ("nested-src",)


def test_heuristics_override_type_but_keep_reason() -> None:
    engine = _engine(
        [
            {
                "id": "src",
                "match": "src/**",
                "type": "fix",
                "reason": "source change",
                "heuristics": [
                    {"if": "lines_added > 100", "set": "feat"},
                    {"if": "is_deleted_file", "set": "refactor"},
                ],
            }
        ]
    )
    classified = engine.classify(semantic_change("src/big.py", lines_added=150))
    assert classified.commit_type == "feat"
    assert classified.reason == "source change"
    assert classified.applied_rules == ("src", "src#heuristics[0]")

    untouched = engine.classify(semantic_change("src/small.py", lines_added=2))
    assert untouched.commit_type == "fix"
    assert untouched.applied_rules == ("src",)


def test_unmatched_change_defaults_to_unclassified_chore() -> None:
    engine = _engine([{"id": "docs", "match": "**/*.md", "type": "docs"}])
    classified = engine.classify(semantic_change("src/main.go"))
    assert classified.commit_type == "chore"
    assert classified.reason == "unclassified"
    assert classified.applied_rules == ()


def test_degraded_change_is_unclassified_chore() -> None:
    engine = RulesEngine(load_rule_set())
    change = semantic_change("src/broken.py", (high_delta(),), degraded=True)
    classified = engine.classify(change)
    assert classified.commit_type == "chore"
    assert classified.reason == "unclassified"
    assert classified.breaking is False
    assert classified.applied_rules == ("degraded",)


def test_default_public_api_rule_marks_parameter_removal_breaking() -> None:
    engine = RulesEngine(load_rule_set())
    classified = engine.classify(
        semantic_change("src/api.ts", (_signature_delta("parameters_changed"),))
    )
    assert classified.commit_type == "fix"
    assert classified.breaking is True
    assert classified.applied_rules == ("public-api",)


def test_default_public_api_rule_treats_optional_member_as_feature() -> None:
    engine = RulesEngine(load_rule_set())
    delta = _signature_delta(
        "member_added",
        severity="medium",
        description="add nickname to exported interface User (optional)",
    )
    classified = engine.classify(semantic_change("src/user.ts", (delta,)))
    assert classified.commit_type == "feat"
    assert classified.breaking is False
    assert classified.applied_rules == ("public-api", "public-api#heuristics[0]")


def test_default_rules_classify_docs_and_tests() -> None:
    engine = RulesEngine(load_rule_set())
    assert engine.classify(semantic_change("README.md")).commit_type == "docs"
    assert engine.classify(semantic_change("docs/setup/index.html")).commit_type == "docs"
    assert engine.classify(semantic_change("tests/test_api.py")).commit_type == "test"
    assert engine.classify(semantic_change("src/button.spec.tsx")).commit_type == "test"


def test_ast_pattern_exported_constraint_ignores_non_code_deltas() -> None:
    engine = _engine([{"id": "internal", "matchAst": "*[exported=false]", "type": "refactor"}])
    non_code = SemanticDelta(type="non_code_change", description="x", severity="minor")
    classified = engine.classify(semantic_change("assets/logo.svg", (non_code,)))
    assert classified.applied_rules == ()


def test_evaluate_predicate_rejects_unknown_kinds() -> None:
    with pytest.raises(TypeError):
        evaluate_predicate("not-a-predicate", semantic_change("a.py"))


def test_commit_scope_uses_directory_below_source_roots() -> None:
    assert commit_scope("src/payments/api.ts") == "payments"
    assert commit_scope("packages/core/src/index.ts") == "core"
    assert commit_scope("src/api.ts") is None
    assert commit_scope("README.md") is None


def test_describe_change_prefers_strongest_structural_delta() -> None:
    low = SemanticDelta(type="symbol_added", description="add function helper", severity="low")
    change = semantic_change("src/api.ts", (low, high_delta()))
    assert describe_change(change) == "remove exported function run"
    assert describe_change(semantic_change("docs/a.md", status="added")) == "add a.md"
    assert describe_change(semantic_change("old.md", status="deleted")) == "remove old.md"
    assert describe_change(semantic_change("README.md")) == "update README.md"
