"""Pipeline runs against real git repositories."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from diff_sense.config import AdvancedConfig, AppConfig
from diff_sense.models import Report
from diff_sense.pipeline import AnalysisSuccess, run_pipeline
from tests.helpers_git import build_numbered_lines, commit_all, git, init_repo, write_file


def _report(repo: Path, base: str = "HEAD", head: str = "", **kwargs: Any) -> Report:
    result = run_pipeline(repo, base, head, **kwargs)
    assert isinstance(result, AnalysisSuccess), result
    return result.report


def test_working_tree_includes_untracked_files(tmp_path: Path) -> None:
    repo = init_repo(tmp_path)
    write_file(repo, "src/core/app.py", "def run():\n    return 1\n")
    commit_all(repo, "initial")

    write_file(repo, "src/core/app.py", "def run(verbose=False):\n    return 1\n")
    write_file(repo, "src/core/extra.py", "def helper():\n    return 2\n")

    report = _report(repo)
    by_path = {item.path: item for item in report.files_analyzed}

    assert by_path["src/core/extra.py"].status == "added"
    assert by_path["src/core/extra.py"].commit_type == "feat"
    assert by_path["src/core/app.py"].status == "modified"
    assert by_path["src/core/app.py"].commit_scope == "core"
    assert report.suggested_commit.scope == "core"


def test_rename_between_commits(tmp_path: Path) -> None:
    repo = init_repo(tmp_path)
    write_file(repo, "lib/old_name.py", build_numbered_lines("line", 30))
    commit_all(repo, "initial")
    git(repo, "mv", "lib/old_name.py", "lib/new_name.py")
    commit_all(repo, "rename")

    report = _report(repo, "HEAD~1", "HEAD")
    (change,) = report.files_analyzed
    assert change.status == "renamed"
    assert change.previous_path == "lib/old_name.py"
    assert change.commit_type == "refactor"
    assert [delta.type for delta in change.semantic_changes] == ["file_renamed"]


def test_binary_and_deleted_files(tmp_path: Path) -> None:
    repo = init_repo(tmp_path)
    write_file(repo, "docs/guide.md", "# Guide\n")
    write_file(repo, "assets/logo.png", b"\x89PNG\r\n\x1a\n\0\0\0")
    commit_all(repo, "initial")

    (repo / "docs" / "guide.md").unlink()
    write_file(repo, "assets/logo.png", b"\x89PNG\r\n\x1a\n\0\0\1")

    report = _report(repo)
    by_path = {item.path: item for item in report.files_analyzed}

    assert by_path["docs/guide.md"].status == "deleted"
    assert by_path["docs/guide.md"].commit_type == "docs"
    assert by_path["assets/logo.png"].metadata.is_binary
    assert by_path["assets/logo.png"].commit_type == "chore"
    assert not by_path["assets/logo.png"].degraded
    assert [warning.kind for warning in by_path["assets/logo.png"].warnings] == ["binary"]


def test_cache_persists_between_runs(tmp_path: Path) -> None:
    repo = init_repo(tmp_path)
    write_file(repo, ".gitignore", ".diff-sense/\n")
    write_file(repo, "src/api.py", "def run(a):\n    return a\n")
    commit_all(repo, "initial")
    write_file(repo, "src/api.py", "def run():\n    return 0\n")

    config = AppConfig(advanced=AdvancedConfig(cache_results=True))
    first = _report(repo, config=config)
    assert (repo / ".diff-sense" / "analysis-cache.json").exists()

    second = _report(repo, config=config)
    assert [item.semantic_changes for item in second.files_analyzed] == [
        item.semantic_changes for item in first.files_analyzed
    ]


def test_symlink_repointed_at_directory_degrades_only_that_file(tmp_path: Path) -> None:
    repo = init_repo(tmp_path)
    write_file(repo, "a.txt", "alpha\n")
    (repo / "link").symlink_to("a.txt")
    commit_all(repo, "initial")

    write_file(repo, "target/b.txt", "beta\n")
    (repo / "link").unlink()
    (repo / "link").symlink_to("target")

    report = _report(repo)
    by_path = {item.path: item for item in report.files_analyzed}

    assert by_path["link"].degraded
    assert [warning.kind for warning in by_path["link"].warnings] == ["unreadable"]
    assert by_path["target/b.txt"].status == "added"
    assert not by_path["target/b.txt"].degraded
    assert "link" in report.degraded_files
