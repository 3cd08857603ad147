"""CLI tests against synthetic git repositories."""

from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from diff_sense import __version__
from diff_sense.cli import EXIT_BREAKING, EXIT_REVISION, EXIT_RULE_CONFIG, app
from tests.helpers_git import commit_all, init_repo, write_file

runner = CliRunner()

API_BEFORE = "export function createUser(id: string, email: string): string {\n  return id;\n}\n"
API_AFTER = "export function createUser(id: string): string {\n  return id;\n}\n"


def _breaking_repo(tmp_path: Path) -> Path:
    repo = init_repo(tmp_path)
    write_file(repo, "README.md", "# demo\n")
    write_file(repo, "src/api.ts", API_BEFORE)
    commit_all(repo, "initial")
    write_file(repo, "src/api.ts", API_AFTER)
    commit_all(repo, "drop email")
    return repo


def test_root_help_lists_commands() -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for command in ("analyze", "message", "rules", "config-init", "config-validate"):
        assert command in result.stdout


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.stdout.strip() == __version__


def test_analyze_json_between_commits(tmp_path: Path) -> None:
    repo = _breaking_repo(tmp_path)
    result = runner.invoke(
        app,
        ["analyze", "--repo", str(repo), "--base", "HEAD~1", "--head", "HEAD", "--format", "json"],
    )
    assert result.exit_code == 0, result.output

    payload = json.loads(result.stdout)
    assert payload["primaryType"] == "fix"
    assert payload["hasBreakingChanges"] is True
    assert [item["path"] for item in payload["filesAnalyzed"]] == ["src/api.ts"]
    assert payload["suggestedCommit"]["header"].startswith("fix!: ")


def test_fail_on_breaking_sets_exit_code(tmp_path: Path) -> None:
    repo = _breaking_repo(tmp_path)
    result = runner.invoke(
        app,
        [
            "analyze",
            "--repo",
            str(repo),
            "--base",
            "HEAD~1",
            "--head",
            "HEAD",
            "--format",
            "markdown",
            "--fail-on-breaking",
        ],
    )
    assert result.exit_code == EXIT_BREAKING
    assert "# DiffSense Report" in result.stdout


def test_message_prints_commit_with_body(tmp_path: Path) -> None:
    repo = _breaking_repo(tmp_path)
    result = runner.invoke(
        app, ["message", "--repo", str(repo), "--base", "HEAD~1", "--head", "HEAD"]
    )
    assert result.exit_code == 0, result.output
    lines = result.stdout.strip().splitlines()
    assert lines[0].startswith("fix!: ")
    assert lines[2].startswith("BREAKING CHANGE: ")


def test_analyze_working_tree_by_default(tmp_path: Path) -> None:
    repo = init_repo(tmp_path)
    write_file(repo, "README.md", "# demo\n")
    commit_all(repo, "initial")
    write_file(repo, "README.md", "# demo\n\nUsage notes.\n")

    result = runner.invoke(app, ["message", "--repo", str(repo)])
    assert result.exit_code == 0, result.output
    assert result.stdout.strip() == "docs: update README.md"


def test_unknown_revision_exits_with_revision_code(tmp_path: Path) -> None:
    repo = _breaking_repo(tmp_path)
    result = runner.invoke(app, ["analyze", "--repo", str(repo), "--base", "no-such-ref"])
    assert result.exit_code == EXIT_REVISION
    assert "Cannot resolve revision 'no-such-ref'" in result.output


def test_not_a_repository_exits_with_revision_code(tmp_path: Path) -> None:
    result = runner.invoke(app, ["analyze", "--repo", str(tmp_path)])
    assert result.exit_code == EXIT_REVISION


def test_invalid_rules_exit_with_rule_config_code(tmp_path: Path) -> None:
    repo = _breaking_repo(tmp_path)
    write_file(
        repo,
        ".diff-sense.toml",
        '[[rules.custom_rules]]\nid = "bad"\nmatch = "src/**"\ntype = "feature"\n',
    )
    analyze = runner.invoke(app, ["analyze", "--repo", str(repo), "--base", "HEAD~1"])
    assert analyze.exit_code == EXIT_RULE_CONFIG

    rules = runner.invoke(app, ["rules", "--repo", str(repo)])
    assert rules.exit_code == EXIT_RULE_CONFIG
    assert "bad" in rules.output


def test_invalid_format_is_rejected(tmp_path: Path) -> None:
    result = runner.invoke(app, ["analyze", "--repo", str(tmp_path), "--format", "xml"])
    assert result.exit_code == 2
    assert "format must be one of" in result.output


def test_rules_lists_custom_rules_first(tmp_path: Path) -> None:
    write_file(
        tmp_path,
        ".diff-sense.toml",
        '[[rules.custom_rules]]\nid = "payments"\nmatchPath = "src/payments"\ntype = "feat"\n',
    )
    result = runner.invoke(app, ["rules", "--repo", str(tmp_path), "--format", "json"])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    ids = [rule["id"] for rule in payload["rules"]]
    assert ids[0] == "payments"
    assert "docs" in ids

    human = runner.invoke(app, ["rules", "--repo", str(tmp_path)])
    assert human.exit_code == 0
    assert human.stdout.startswith("Rules (first match wins):\n1. payments -> feat")


def test_config_init_and_validate(tmp_path: Path) -> None:
    out = tmp_path / ".diff-sense.toml"
    created = runner.invoke(app, ["config-init", "--out", str(out)])
    assert created.exit_code == 0
    assert out.exists()

    refused = runner.invoke(app, ["config-init", "--out", str(out)])
    assert refused.exit_code != 0
    assert "Refusing to overwrite" in refused.output

    validated = runner.invoke(
        app, ["config-validate", "--repo", str(tmp_path), "--format", "json"]
    )
    assert validated.exit_code == 0, validated.output
    payload = json.loads(validated.stdout)
    assert payload["ok"] is True
    assert payload["active_rule_ids"][0] == "payments-api"


def test_config_json_shows_resolved_values(tmp_path: Path) -> None:
    result = runner.invoke(app, ["config", "--repo", str(tmp_path), "--format", "json"])
    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["source"] is None
    assert payload["analysis"]["max_files_to_analyze"] == 500
    assert payload["scoring"]["weights"]["breaking_penalty_bonus"] == 1.0
    assert "docs" in payload["active_rule_ids"]
