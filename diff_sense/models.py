"""Per-stage value types for the analysis pipeline.

Every stage produces a new frozen record that embeds the previous stage's
record, so a stage can only read fields that an earlier stage has populated.
Convenience properties expose the embedded fields on the outer record.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

ChangeStatus = Literal["added", "modified", "deleted", "renamed"]
CommitType = Literal["feat", "fix", "docs", "refactor", "test", "chore"]
Severity = Literal["minor", "low", "medium", "high"]
DeltaType = Literal[
    "symbol_added",
    "symbol_removed",
    "symbol_renamed",
    "signature_changed",
    "file_added",
    "file_deleted",
    "file_renamed",
    "breaking_marker",
    "non_code_change",
]

# Priority order, highest first. Used for tie-breaks and stable summaries.
COMMIT_TYPES: tuple[CommitType, ...] = ("feat", "fix", "refactor", "docs", "test", "chore")
CHANGE_STATUSES: tuple[ChangeStatus, ...] = ("added", "modified", "deleted", "renamed")
SEVERITIES: tuple[Severity, ...] = ("minor", "low", "medium", "high")
DELTA_TYPES: tuple[DeltaType, ...] = (
    "symbol_added",
    "symbol_removed",
    "symbol_renamed",
    "signature_changed",
    "file_added",
    "file_deleted",
    "file_renamed",
    "breaking_marker",
    "non_code_change",
)
BREAKING_ELIGIBLE_TYPES: frozenset[CommitType] = frozenset({"feat", "fix", "refactor"})


@dataclass(frozen=True, slots=True)
class FileChange:
    """A file-level change between two revisions."""

    path: str
    status: ChangeStatus
    previous_path: str | None = None


@dataclass(frozen=True, slots=True)
class AnalysisWarning:
    """A recoverable per-file problem recorded instead of raised."""

    path: str
    stage: str
    kind: str
    message: str


@dataclass(frozen=True, slots=True)
class ChangeMetadata:
    """Line counts and file classification for one change."""

    lines_added: int = 0
    lines_removed: int = 0
    file_type: str = "unknown"
    language: str | None = None
    extension: str = ""
    is_binary: bool = False
    scope_hint: str = "unknown"


@dataclass(frozen=True, slots=True)
class ContextualizedChange:
    """A FileChange enriched with related-file context."""

    change: FileChange
    related_files: tuple[str, ...] = ()
    dependencies: tuple[str, ...] = ()
    metadata: ChangeMetadata = field(default_factory=ChangeMetadata)
    warnings: tuple[AnalysisWarning, ...] = ()
    degraded: bool = False
    content_analyzed: bool = True

    @property
    def path(self) -> str:
        return self.change.path

    @property
    def status(self) -> ChangeStatus:
        return self.change.status

    @property
    def previous_path(self) -> str | None:
        return self.change.previous_path


@dataclass(frozen=True, slots=True)
class SemanticDelta:
    """A single structural difference between two versions of a file."""

    type: DeltaType
    description: str
    severity: Severity
    affected_symbol: str | None = None
    symbol_kind: str | None = None
    exported: bool | None = None
    detail: str | None = None


@dataclass(frozen=True, slots=True)
class SemanticChange:
    """A contextualized change with its structural deltas."""

    context: ContextualizedChange
    semantic_changes: tuple[SemanticDelta, ...] = ()
    affected_symbols: frozenset[str] = frozenset()
    warnings: tuple[AnalysisWarning, ...] = ()
    degraded: bool = False

    @property
    def change(self) -> FileChange:
        return self.context.change

    @property
    def path(self) -> str:
        return self.context.path

    @property
    def status(self) -> ChangeStatus:
        return self.context.status

    @property
    def previous_path(self) -> str | None:
        return self.context.previous_path

    @property
    def related_files(self) -> tuple[str, ...]:
        return self.context.related_files

    @property
    def dependencies(self) -> tuple[str, ...]:
        return self.context.dependencies

    @property
    def metadata(self) -> ChangeMetadata:
        return self.context.metadata


@dataclass(frozen=True, slots=True)
class ClassifiedChange:
    """A semantic change with its commit classification."""

    semantic: SemanticChange
    commit_type: CommitType
    reason: str
    description: str
    commit_scope: str | None = None
    breaking: bool = False
    breaking_change_reason: str | None = None
    applied_rules: tuple[str, ...] = ()
    non_versioning: bool = False

    @property
    def change(self) -> FileChange:
        return self.semantic.change

    @property
    def path(self) -> str:
        return self.semantic.path

    @property
    def status(self) -> ChangeStatus:
        return self.semantic.status

    @property
    def previous_path(self) -> str | None:
        return self.semantic.previous_path

    @property
    def related_files(self) -> tuple[str, ...]:
        return self.semantic.related_files

    @property
    def dependencies(self) -> tuple[str, ...]:
        return self.semantic.dependencies

    @property
    def metadata(self) -> ChangeMetadata:
        return self.semantic.metadata

    @property
    def semantic_changes(self) -> tuple[SemanticDelta, ...]:
        return self.semantic.semantic_changes

    @property
    def affected_symbols(self) -> frozenset[str]:
        return self.semantic.affected_symbols

    @property
    def warnings(self) -> tuple[AnalysisWarning, ...]:
        return self.semantic.warnings

    @property
    def degraded(self) -> bool:
        return self.semantic.degraded


@dataclass(frozen=True, slots=True)
class ScoreFactor:
    """One explainable contribution to a change's score."""

    name: str
    value: float
    weight: float

    @property
    def contribution(self) -> float:
        return self.value * self.weight


@dataclass(frozen=True, slots=True)
class ScoredChange:
    """A classified change with its importance score."""

    classified: ClassifiedChange
    score: float
    score_factors: tuple[ScoreFactor, ...] = ()

    @property
    def change(self) -> FileChange:
        return self.classified.change

    @property
    def path(self) -> str:
        return self.classified.path

    @property
    def status(self) -> ChangeStatus:
        return self.classified.status

    @property
    def previous_path(self) -> str | None:
        return self.classified.previous_path

    @property
    def related_files(self) -> tuple[str, ...]:
        return self.classified.related_files

    @property
    def dependencies(self) -> tuple[str, ...]:
        return self.classified.dependencies

    @property
    def metadata(self) -> ChangeMetadata:
        return self.classified.metadata

    @property
    def semantic_changes(self) -> tuple[SemanticDelta, ...]:
        return self.classified.semantic_changes

    @property
    def affected_symbols(self) -> frozenset[str]:
        return self.classified.affected_symbols

    @property
    def warnings(self) -> tuple[AnalysisWarning, ...]:
        return self.classified.warnings

    @property
    def degraded(self) -> bool:
        return self.classified.degraded

    @property
    def commit_type(self) -> CommitType:
        return self.classified.commit_type

    @property
    def commit_scope(self) -> str | None:
        return self.classified.commit_scope

    @property
    def breaking(self) -> bool:
        return self.classified.breaking

    @property
    def breaking_change_reason(self) -> str | None:
        return self.classified.breaking_change_reason

    @property
    def applied_rules(self) -> tuple[str, ...]:
        return self.classified.applied_rules

    @property
    def description(self) -> str:
        return self.classified.description

    @property
    def reason(self) -> str:
        return self.classified.reason


@dataclass(frozen=True, slots=True)
class SuggestedCommit:
    """A conventional-commit message synthesized from a report."""

    type: CommitType
    subject: str
    breaking: bool = False
    scope: str | None = None
    body: str | None = None

    @property
    def header(self) -> str:
        scope = f"({self.scope})" if self.scope else ""
        bang = "!" if self.breaking else ""
        return f"{self.type}{scope}{bang}: {self.subject}"

    @property
    def message(self) -> str:
        if self.body:
            return f"{self.header}\n\n{self.body}"
        return self.header


@dataclass(frozen=True, slots=True)
class Report:
    """Aggregated result of one pipeline run."""

    files_analyzed: tuple[ScoredChange, ...]
    summary: dict[str, int]
    primary_type: CommitType
    has_breaking_changes: bool
    suggested_commit: SuggestedCommit
    warnings: tuple[AnalysisWarning, ...] = ()
    complete: bool = True
    stages_completed: tuple[str, ...] = ()
    base: str | None = None
    head: str | None = None

    @property
    def degraded_files(self) -> tuple[str, ...]:
        return tuple(item.path for item in self.files_analyzed if item.degraded)
