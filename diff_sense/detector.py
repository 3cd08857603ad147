"""File-level change detection between two revisions."""

from __future__ import annotations

from diff_sense.errors import GitUnavailableError, InvalidRevisionError
from diff_sense.git import WORKING_TREE, GitError, RevisionReader
from diff_sense.logging import get_logger
from diff_sense.models import ChangeStatus, FileChange

# Copies keep their source as previous_path but are new files at head.
STATUS_LETTERS: dict[str, ChangeStatus] = {
    "A": "added",
    "M": "modified",
    "D": "deleted",
    "R": "renamed",
    "C": "added",
    "T": "modified",
    "U": "modified",
    "X": "modified",
}

logger = get_logger("detector")


class ChangeDetector:
    """Enumerates file-level diffs through a RevisionReader."""

    def __init__(self, reader: RevisionReader) -> None:
        self._reader = reader

    def detect(self, base: str, head: str) -> list[FileChange]:
        """Return changes from ``base`` to ``head`` in diff order.

        ``head`` may be the empty string for the working tree. Raises
        GitUnavailableError or InvalidRevisionError when the range cannot be read.
        """
        if base == WORKING_TREE:
            raise InvalidRevisionError(base, "the working tree can only be used as head")
        self._reader.resolve(base)
        self._reader.resolve(head)

        try:
            output = self._reader.name_status(base, head)
        except GitError as exc:
            raise GitUnavailableError(f"cannot list changes {base}..{head}: {exc}") from exc

        changes = parse_name_status(output)
        logger.debug(
            "detected %d changed files between %s and %s", len(changes), base, head or "WORKTREE"
        )
        return changes


def parse_name_status(output: str) -> list[FileChange]:
    """Parse ``git diff --name-status`` output, NUL-separated (-z) or line based."""
    if "\0" in output:
        return _parse_nul_separated(output)
    return _parse_lines(output)


def _parse_nul_separated(output: str) -> list[FileChange]:
    tokens = output.split("\0")
    changes: list[FileChange] = []
    index = 0
    while index < len(tokens):
        letter = tokens[index].strip()
        index += 1
        if not letter:
            continue
        if letter[0] in {"R", "C"}:
            if index + 1 >= len(tokens):
                break
            previous_path, path = tokens[index], tokens[index + 1]
            index += 2
            if path:
                changes.append(_make_change(letter, path, previous_path))
            continue
        if index >= len(tokens):
            break
        path = tokens[index]
        index += 1
        if path:
            changes.append(_make_change(letter, path, None))
    return changes


def _parse_lines(output: str) -> list[FileChange]:
    changes: list[FileChange] = []
    for raw_line in output.splitlines():
        if not raw_line.strip():
            continue
        parts = raw_line.split("\t")
        letter = parts[0].strip()
        if letter[:1] in {"R", "C"} and len(parts) >= 3:
            changes.append(_make_change(letter, _unquote(parts[2]), _unquote(parts[1])))
        elif len(parts) >= 2:
            changes.append(_make_change(letter, _unquote(parts[1]), None))
    return changes


def _make_change(letter: str, path: str, previous_path: str | None) -> FileChange:
    status = STATUS_LETTERS.get(letter[:1].upper(), "modified")
    if status == "renamed" and previous_path == path:
        previous_path = None
    return FileChange(path=path, status=status, previous_path=previous_path)


def _unquote(path: str) -> str:
    stripped = path.strip()
    if len(stripped) >= 2 and stripped.startswith('"') and stripped.endswith('"'):
        return stripped[1:-1]
    return stripped
