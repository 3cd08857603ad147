from __future__ import annotations

import json
import threading
from pathlib import Path

from diff_sense.cache import CACHE_FILENAME, ResultCache
from diff_sense.models import SemanticDelta

DELTA = SemanticDelta(
    type="symbol_removed",
    description="remove exported function run",
    severity="high",
    affected_symbol="run",
    symbol_kind="function",
    exported=True,
)


def test_persist_and_reload(tmp_path: Path) -> None:
    cache = ResultCache.for_directory(tmp_path / ".diff-sense")
    key = ResultCache.make_key("a..b", "src/api.ts", "abc")
    cache.store(key, deltas=(DELTA,), affected_symbols=frozenset({"run"}))
    cache.persist()

    reloaded = ResultCache.for_directory(tmp_path / ".diff-sense")
    cached = reloaded.get(key)
    assert cached is not None
    assert cached.deltas == (DELTA,)
    assert cached.affected_symbols == frozenset({"run"})
    assert reloaded.get(ResultCache.make_key("a..b", "src/api.ts", "other")) is None


def test_persist_is_a_no_op_when_clean(tmp_path: Path) -> None:
    ResultCache.for_directory(tmp_path).persist()
    assert not (tmp_path / CACHE_FILENAME).exists()


def test_unreadable_or_foreign_cache_files_are_ignored(tmp_path: Path) -> None:
    path = tmp_path / CACHE_FILENAME
    path.write_text("{not json", encoding="utf-8")
    assert len(ResultCache(path)) == 0

    path.write_text(json.dumps({"version": 99, "entries": {"k": {}}}), encoding="utf-8")
    assert len(ResultCache(path)) == 0


def test_invalid_entries_read_as_misses(tmp_path: Path) -> None:
    path = tmp_path / CACHE_FILENAME
    payload = {
        "version": 1,
        "entries": {
            "bad-type": {
                "deltas": [{"type": "nope", "description": "x", "severity": "high"}],
                "affected_symbols": [],
            },
            "no-symbols": {"deltas": []},
        },
    }
    path.write_text(json.dumps(payload), encoding="utf-8")
    cache = ResultCache(path)

    assert len(cache) == 1
    assert cache.get("bad-type") is None
    assert cache.get("no-symbols") is None


def test_concurrent_stores_keep_every_key() -> None:
    cache = ResultCache(None)

    def writer(index: int) -> None:
        for round_ in range(20):
            key = ResultCache.make_key("a..b", f"f{index}.py", str(round_ % 3))
            cache.store(key, deltas=(DELTA,), affected_symbols=frozenset({"run"}))

    threads = [threading.Thread(target=writer, args=(index,)) for index in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(cache) == 8 * 3


def test_persist_drops_superseded_content_hashes(tmp_path: Path) -> None:
    cache = ResultCache.for_directory(tmp_path)
    first = ResultCache.make_key("HEAD..WORKTREE", "src/api.ts", "v1")
    other = ResultCache.make_key("HEAD..WORKTREE", "src/other.ts", "v1")
    cache.store(first, deltas=(DELTA,), affected_symbols=frozenset({"run"}))
    cache.store(other, deltas=(), affected_symbols=frozenset())
    cache.persist()

    reopened = ResultCache.for_directory(tmp_path)
    second = ResultCache.make_key("HEAD..WORKTREE", "src/api.ts", "v2")
    reopened.store(second, deltas=(), affected_symbols=frozenset())
    reopened.persist()

    final = ResultCache.for_directory(tmp_path)
    assert final.get(first) is None
    assert final.get(second) is not None
    assert final.get(other) is not None
    assert len(final) == 2


def test_persist_evicts_oldest_entries_beyond_limit(tmp_path: Path) -> None:
    path = tmp_path / CACHE_FILENAME
    entries = {
        ResultCache.make_key(f"r{index}..WORKTREE", "a.py", "h"): {
            "deltas": [],
            "affected_symbols": [],
            "updated_at": f"2024-01-0{index + 1}T00:00:00Z",
        }
        for index in range(3)
    }
    path.write_text(json.dumps({"version": 1, "entries": entries}), encoding="utf-8")

    cache = ResultCache(path, max_entries=2)
    fresh = ResultCache.make_key("r9..WORKTREE", "a.py", "h")
    cache.store(fresh, deltas=(), affected_symbols=frozenset())
    cache.persist()

    kept = ResultCache(path)
    assert len(kept) == 2
    assert kept.get(fresh) is not None
    assert kept.get(ResultCache.make_key("r2..WORKTREE", "a.py", "h")) is not None
    assert kept.get(ResultCache.make_key("r0..WORKTREE", "a.py", "h")) is None
