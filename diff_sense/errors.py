"""Error taxonomy for the analysis pipeline."""

from __future__ import annotations


class DiffSenseError(Exception):
    """Base class for all diff-sense errors."""


class RevisionResolutionError(DiffSenseError):
    """Raised when the diff base cannot be established. Fatal."""


class GitUnavailableError(RevisionResolutionError):
    """Raised when the repository cannot be queried at all."""


class InvalidRevisionError(RevisionResolutionError):
    """Raised when a revision identifier does not resolve."""

    def __init__(self, revision: str, detail: str = "") -> None:
        self.revision = revision
        message = f"Cannot resolve revision '{revision}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class RuleConfigError(DiffSenseError, ValueError):
    """Raised when a rule set fails schema validation. Fatal at load time."""


class FileReadError(DiffSenseError):
    """Raised when a file's content cannot be read or decoded."""

    def __init__(self, path: str, detail: str) -> None:
        self.path = path
        self.detail = detail
        super().__init__(f"{path}: {detail}")


class ParseError(DiffSenseError):
    """Raised when a structural parser rejects a file."""

    def __init__(self, path: str, detail: str) -> None:
        self.path = path
        self.detail = detail
        super().__init__(f"{path}: {detail}")


class AnalysisTimeoutError(DiffSenseError, TimeoutError):
    """Raised when a per-file parse exceeds its time budget."""

    def __init__(self, path: str, timeout_ms: int) -> None:
        self.path = path
        self.timeout_ms = timeout_ms
        super().__init__(f"{path}: structural parse exceeded {timeout_ms}ms")
