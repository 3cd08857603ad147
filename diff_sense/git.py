"""Version-control read interface and its git subprocess implementation."""

from __future__ import annotations

from pathlib import Path
from subprocess import CalledProcessError, run
from typing import Protocol

from diff_sense.errors import FileReadError, GitUnavailableError, InvalidRevisionError

WORKING_TREE = ""


class GitError(RuntimeError):
    """Raised when git command execution fails."""


class RevisionReader(Protocol):
    """Read-only access to a repository at arbitrary revisions.

    The empty string denotes the working tree.
    """

    def resolve(self, revision: str) -> str:
        """Return a stable identifier for ``revision`` or raise InvalidRevisionError."""

    def name_status(self, base: str, head: str) -> str:
        """Return ``git diff --name-status -z`` style output between two revisions."""

    def read_file(self, revision: str, path: str) -> bytes | None:
        """Return raw content at ``revision`` or None if absent.

        Raises FileReadError when the entry exists but cannot be read.
        """


class GitRepository:
    """RevisionReader backed by the git command line."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self._available = False

    def ensure_available(self) -> None:
        try:
            _run_git(self.root, ["rev-parse", "--git-dir"])
        except FileNotFoundError as exc:
            raise GitUnavailableError("git executable or repository path not found") from exc
        except GitError as exc:
            raise GitUnavailableError(f"{self.root} is not a git repository: {exc}") from exc
        self._available = True

    def resolve(self, revision: str) -> str:
        if revision == WORKING_TREE:
            return "WORKTREE"
        if not self._available:
            self.ensure_available()
        try:
            return _run_git(self.root, ["rev-parse", "--verify", f"{revision}^{{commit}}"]).strip()
        except FileNotFoundError as exc:
            raise GitUnavailableError("git executable or repository path not found") from exc
        except GitError as exc:
            raise InvalidRevisionError(revision, str(exc)) from exc

    def name_status(self, base: str, head: str) -> str:
        if head == WORKING_TREE:
            tracked = _run_git(self.root, ["diff", "--name-status", "-z", "-M", base])
            untracked = _run_git(self.root, ["ls-files", "--others", "--exclude-standard", "-z"])
            extra = "".join(f"A\0{path}\0" for path in untracked.split("\0") if path)
            return tracked + extra
        return _run_git(self.root, ["diff", "--name-status", "-z", "-M", base, head])

    def read_file(self, revision: str, path: str) -> bytes | None:
        if revision == WORKING_TREE:
            target = self.root / path
            try:
                return target.read_bytes()
            except FileNotFoundError:
                return None
            except OSError as exc:
                raise FileReadError(path, exc.strerror or str(exc)) from exc
        try:
            return _run_git_bytes(self.root, ["show", f"{revision}:{path}"])
        except GitError:
            return None


def _run_git(repo: Path, args: list[str]) -> str:
    return _run_git_bytes(repo, args).decode("utf-8", errors="surrogateescape")


def _run_git_bytes(repo: Path, args: list[str]) -> bytes:
    try:
        completed = run(
            ["git", *args],
            cwd=repo,
            check=True,
            capture_output=True,
        )
    except CalledProcessError as exc:
        stderr = (exc.stderr or b"").decode("utf-8", errors="replace").strip()
        raise GitError(stderr or f"git {' '.join(args)} failed") from exc

    return completed.stdout
