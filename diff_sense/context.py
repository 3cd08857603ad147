"""Per-run pipeline context shared by every stage."""

from __future__ import annotations

import hashlib
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TypeVar

from diff_sense.cache import ResultCache
from diff_sense.config import AppConfig
from diff_sense.errors import FileReadError
from diff_sense.git import WORKING_TREE, RevisionReader
from diff_sense.rules.schema import RuleSet

T = TypeVar("T")
R = TypeVar("R")

BINARY_SNIFF_BYTES = 8000


class CancellationToken:
    """Cooperative cancellation flag checked between stages."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class ContentStore:
    """Memoized file reads keyed by (revision, path)."""

    def __init__(self, reader: RevisionReader) -> None:
        self._reader = reader
        self._raw: dict[tuple[str, str], bytes | None] = {}
        self._lock = threading.Lock()

    def read_bytes(self, revision: str, path: str) -> bytes | None:
        key = (revision, path)
        with self._lock:
            if key in self._raw:
                return self._raw[key]
        raw = self._reader.read_file(revision, path)
        with self._lock:
            self._raw.setdefault(key, raw)
        return raw

    def read_text(self, revision: str, path: str) -> str | None:
        """Return decoded text, None when absent; raise FileReadError for binary content."""
        raw = self.read_bytes(revision, path)
        if raw is None:
            return None
        if b"\0" in raw[:BINARY_SNIFF_BYTES]:
            raise FileReadError(path, "binary content")
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise FileReadError(path, f"not valid UTF-8 ({exc.reason})") from exc

    def exists(self, revision: str, path: str) -> bool:
        try:
            return self.read_bytes(revision, path) is not None
        except FileReadError:
            return False

    def content_hash(
        self, revision_pair: tuple[str, str], paths: tuple[str | None, str | None]
    ) -> str:
        digest = hashlib.sha256()
        for revision, path in zip(revision_pair, paths):
            raw = self.read_bytes(revision, path) if path is not None else None
            digest.update(b"\1" if raw is not None else b"\0")
            digest.update(raw or b"")
        return digest.hexdigest()


@dataclass(slots=True)
class PipelineContext:
    """Everything a stage may read during one run.

    One context per run. Nothing here is process-wide, so concurrent runs
    against different repositories do not interfere.
    """

    reader: RevisionReader
    rules: RuleSet
    config: AppConfig = field(default_factory=AppConfig)
    base: str = "HEAD"
    head: str = WORKING_TREE
    cache: ResultCache | None = None
    cancel_token: CancellationToken = field(default_factory=CancellationToken)
    contents: ContentStore = field(init=False)
    revision_key: str = field(init=False, default="")

    def __post_init__(self) -> None:
        self.contents = ContentStore(self.reader)
        self.revision_key = f"{self.base}..{self.head or 'WORKTREE'}"

    @property
    def max_workers(self) -> int:
        if not self.config.advanced.parallel_analysis:
            return 1
        return max(1, self.config.advanced.max_parallel_processes)

    @property
    def file_timeout_seconds(self) -> float:
        return self.config.analysis.file_analysis_timeout / 1000.0

    def map_per_file(self, func: Callable[[T], R], items: Iterable[T]) -> list[R]:
        """Apply ``func`` to each item, in parallel when configured, preserving input order."""
        work = list(items)
        if self.max_workers == 1 or len(work) <= 1:
            return [func(item) for item in work]
        with ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(work)),
            thread_name_prefix="diff-sense",
        ) as executor:
            return list(executor.map(func, work))
