"""End-to-end pipeline tests over an in-memory revision reader."""

from __future__ import annotations

from typing import Any

from diff_sense.config import AdvancedConfig, AppConfig, RulesConfig
from diff_sense.context import CancellationToken
from diff_sense.output import render_json
from diff_sense.pipeline import AnalysisFailure, AnalysisSuccess, run_pipeline
from tests.helpers_reader import FakeReader

API_BEFORE = "export function createUser(id: string, email: string): string {\n  return id;\n}\n"
API_AFTER = "export function createUser(id: string): string {\n  return id;\n}\n"


def _run(reader: FakeReader, **kwargs: Any) -> AnalysisSuccess:
    result = run_pipeline(base="base", head="head", reader=reader, **kwargs)
    assert isinstance(result, AnalysisSuccess)
    return result


def test_docs_only_change() -> None:
    reader = FakeReader({"base": {"README.md": "# a\n"}, "head": {"README.md": "# a\nmore\n"}})
    report = _run(reader).report

    assert report.complete
    assert report.stages_completed == (
        "detect",
        "correlate",
        "semantic",
        "classify",
        "score",
        "report",
    )
    assert report.summary == {"docs": 1}
    assert report.suggested_commit.message == "docs: update README.md"


def test_removed_parameter_is_a_breaking_fix() -> None:
    reader = FakeReader({"base": {"src/api.ts": API_BEFORE}, "head": {"src/api.ts": API_AFTER}})
    report = _run(reader).report

    (change,) = report.files_analyzed
    assert change.commit_type == "fix"
    assert change.breaking
    assert "createUser" in change.affected_symbols
    assert report.has_breaking_changes
    assert report.suggested_commit.header.startswith("fix!: ")
    assert report.suggested_commit.body is not None
    assert report.suggested_commit.body.startswith("BREAKING CHANGE: ")


def test_generic_arrow_parameter_removal_is_breaking() -> None:
    before = "export const pick = <T,>(items: T[], index: number): T => items[index];\n"
    after = "export const pick = <T,>(items: T[]): T => items[0];\n"
    reader = FakeReader({"base": {"src/pick.ts": before}, "head": {"src/pick.ts": after}})
    (change,) = _run(reader).report.files_analyzed

    details = [delta.detail for delta in change.semantic_changes]
    assert "parameters_changed" in details
    assert change.breaking
    assert change.commit_type == "fix"


def test_malformed_file_degrades_without_failing_the_run() -> None:
    reader = FakeReader(
        {
            "base": {"src/broken.ts": "export const a = 1;\n", "README.md": "a\n"},
            "head": {"src/broken.ts": "export function broken( {\n", "README.md": "b\n"},
        }
    )
    report = _run(reader).report

    by_path = {item.path: item for item in report.files_analyzed}
    assert by_path["src/broken.ts"].commit_type == "chore"
    assert by_path["src/broken.ts"].degraded
    assert by_path["README.md"].commit_type == "docs"
    assert report.degraded_files == ("src/broken.ts",)
    assert [(warning.path, warning.kind) for warning in report.warnings] == [
        ("src/broken.ts", "parse_error")
    ]


def test_parallel_run_keeps_detection_order() -> None:
    paths = [f"src/mod{index:03d}.ts" for index in range(100)]
    reader = FakeReader(
        {
            "base": {path: f"export const v{index} = 1;\n" for index, path in enumerate(paths)},
            "head": {path: f"export const v{index} = 2;\n" for index, path in enumerate(paths)},
        }
    )
    config = AppConfig(advanced=AdvancedConfig(parallel_analysis=True, max_parallel_processes=4))
    report = _run(reader, config=config).report
    assert [item.path for item in report.files_analyzed] == paths


def test_identical_runs_render_identical_json() -> None:
    revisions = {
        "base": {"src/api.ts": API_BEFORE, "docs/guide.md": "old\n"},
        "head": {
            "src/api.ts": API_AFTER,
            "docs/guide.md": "new\n",
            "src/new.ts": "export const fresh = 1;\n",
        },
    }
    first = render_json(_run(FakeReader(revisions)).report)
    second = render_json(_run(FakeReader(revisions)).report)
    assert first == second


def test_cancelled_run_returns_partial_report() -> None:
    reader = FakeReader({"base": {"src/api.ts": API_BEFORE}, "head": {"src/api.ts": API_AFTER}})
    token = CancellationToken()
    token.cancel()
    report = _run(reader, cancel_token=token).report

    assert report.complete is False
    assert report.stages_completed == ("detect",)
    (change,) = report.files_analyzed
    assert change.commit_type == "chore"
    assert change.reason == "analysis cancelled"


def test_unknown_revision_is_a_failure() -> None:
    result = run_pipeline(base="nope", head="head", reader=FakeReader({"head": {}}))
    assert isinstance(result, AnalysisFailure)
    assert result.ok is False
    assert result.kind == "revision"
    assert "nope" in result.message


def test_invalid_rule_config_is_a_failure() -> None:
    config = AppConfig(rules=RulesConfig(custom_rules=[{"id": "bad", "type": "feature"}]))
    reader = FakeReader({"base": {}, "head": {}})
    result = run_pipeline(base="base", head="head", reader=reader, config=config)
    assert isinstance(result, AnalysisFailure)
    assert result.kind == "rule_config"
    assert reader.reads == []


def test_empty_diff() -> None:
    report = _run(FakeReader({"base": {"a.py": "x = 1\n"}, "head": {"a.py": "x = 1\n"}})).report
    assert report.files_analyzed == ()
    assert report.suggested_commit.header == "chore: no changes detected"
