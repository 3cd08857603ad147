"""Report synthesis tests."""

from __future__ import annotations

from diff_sense.models import AnalysisWarning, ClassifiedChange, ScoredChange
from diff_sense.reporter import Reporter, infer_scope, primary_type, summarize
from diff_sense.scoring import ScoringSystem
from tests.helpers_reader import classified_change


def _scored(*changes: ClassifiedChange) -> list[ScoredChange]:
    return ScoringSystem().score(list(changes))


def test_summary_counts_in_priority_order() -> None:
    changes = _scored(
        classified_change("docs/a.md", "docs"),
        classified_change("src/a.ts", "feat"),
        classified_change("docs/b.md", "docs"),
    )
    assert list(summarize(changes).items()) == [("feat", 1), ("docs", 2)]


def test_primary_type_prefers_highest_total_score() -> None:
    changes = _scored(
        classified_change("docs/a.md", "docs", lines_added=1),
        classified_change("docs/b.md", "docs", lines_added=1),
        classified_change("src/a.ts", "fix", lines_added=200),
    )
    assert primary_type(changes) == "fix"


def test_primary_type_ties_break_on_count_then_priority() -> None:
    by_count = _scored(
        classified_change("a.md", "docs"),
        classified_change("b.md", "docs"),
        classified_change("c.ts", "feat"),
    )
    assert primary_type(by_count) == "docs"

    by_priority = _scored(classified_change("a.md", "docs"), classified_change("c.ts", "feat"))
    assert primary_type(by_priority) == "feat"
    assert primary_type([]) == "chore"


def test_infer_scope() -> None:
    assert infer_scope(["src/auth/login.ts", "src/auth/token.ts"]) == "auth"
    assert infer_scope(["packages/ui/button.tsx"]) == "ui"
    assert infer_scope(["src/a.ts", "lib/b.ts"]) is None
    assert infer_scope(["README.md", "src/a.ts"]) is None


def test_docs_only_change_suggests_docs_commit() -> None:
    changes = _scored(classified_change("README.md", "docs", description="update README.md"))
    report = Reporter().generate_report(changes)

    assert report.summary == {"docs": 1}
    assert report.primary_type == "docs"
    assert not report.has_breaking_changes
    assert report.suggested_commit.message == "docs: update README.md"


def test_breaking_fix_gets_bang_and_body() -> None:
    changes = _scored(
        classified_change(
            "src/api.ts",
            "fix",
            breaking=True,
            lines_added=2,
            description="change signature of createUser",
        ),
        classified_change("src/other.ts", "fix", breaking=True),
    )
    report = Reporter().generate_report(changes)
    commit = report.suggested_commit

    assert report.has_breaking_changes
    assert commit.header == "fix!: change signature of createUser"
    assert commit.body == "BREAKING CHANGE: remove exported function run"


def test_empty_report() -> None:
    report = Reporter().generate_report([])
    assert report.files_analyzed == ()
    assert report.summary == {}
    assert report.primary_type == "chore"
    assert report.suggested_commit.header == "chore: no changes detected"


def test_report_collects_per_file_warnings() -> None:
    warning = AnalysisWarning(path="x", stage="detect", kind="skipped", message="skipped")
    report = Reporter().generate_report(
        _scored(classified_change("a.py")), warnings=[warning], complete=False
    )
    assert report.warnings == (warning,)
    assert report.complete is False
