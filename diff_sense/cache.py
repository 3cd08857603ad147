"""Persistent cache for per-file structural analysis results."""

from __future__ import annotations

import json
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from diff_sense.logging import get_logger
from diff_sense.models import DELTA_TYPES, SEVERITIES, SemanticDelta

_CACHE_VERSION = 1
CACHE_FILENAME = "analysis-cache.json"
DEFAULT_MAX_ENTRIES = 2000

logger = get_logger("cache")


class CachedAnalysis:
    """Cached deltas and symbols for one (revision pair, path, content) key."""

    __slots__ = ("deltas", "affected_symbols")

    def __init__(self, deltas: tuple[SemanticDelta, ...], affected_symbols: frozenset[str]) -> None:
        self.deltas = deltas
        self.affected_symbols = affected_symbols


class ResultCache:
    """Stores semantic analysis results keyed by revision pair, path and content hash.

    Reads are lock-free. Writers serialize per key so at most one write per
    key is in flight. On persist, entries superseded by a newer content hash
    for the same revision pair and path are dropped, and the oldest entries
    are evicted beyond ``max_entries``.
    """

    def __init__(self, path: Path | None, *, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        self._path = path
        self._max_entries = max_entries
        self._written: dict[str, str] = {}
        self._entries: dict[str, dict[str, Any]] = {}
        self._dirty = False
        self._registry_lock = threading.Lock()
        self._key_locks: dict[str, threading.Lock] = {}
        if self._path is not None:
            self._load(self._path)

    @classmethod
    def for_directory(cls, directory: Path) -> ResultCache:
        return cls(directory / CACHE_FILENAME)

    @staticmethod
    def make_key(revision_key: str, path: str, content_hash: str) -> str:
        return f"{revision_key}|{path}|{content_hash}"

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> CachedAnalysis | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        deltas: list[SemanticDelta] = []
        for payload in entry.get("deltas", []):
            delta = _delta_from_dict(payload)
            if delta is None:
                return None
            deltas.append(delta)
        symbols = entry.get("affected_symbols", [])
        if not isinstance(symbols, list) or not all(isinstance(item, str) for item in symbols):
            return None
        return CachedAnalysis(tuple(deltas), frozenset(symbols))

    def store(
        self,
        key: str,
        *,
        deltas: tuple[SemanticDelta, ...],
        affected_symbols: frozenset[str],
    ) -> None:
        with self._lock_for(key):
            self._entries[key] = {
                "deltas": [_delta_to_dict(delta) for delta in deltas],
                "affected_symbols": sorted(affected_symbols),
                "updated_at": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            }
            self._dirty = True
        with self._registry_lock:
            self._written[_slot(key)] = key

    def persist(self) -> None:
        if not self._dirty or self._path is None:
            return
        self._prune()
        payload = {
            "version": _CACHE_VERSION,
            "entries": self._entries,
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        self._dirty = False
        logger.debug("persisted %d cache entries to %s", len(self._entries), self._path)

    def _prune(self) -> None:
        stale = [key for key in self._entries if self._written.get(_slot(key), key) != key]
        for key in stale:
            del self._entries[key]
        overflow = len(self._entries) - self._max_entries
        if overflow > 0:
            oldest = sorted(self._entries, key=lambda key: (_updated_at(self._entries[key]), key))
            for key in oldest[:overflow]:
                del self._entries[key]
        if stale or overflow > 0:
            logger.debug("evicted %d cache entries", len(stale) + max(overflow, 0))

    def _lock_for(self, key: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._key_locks[key] = lock
            return lock

    def _load(self, path: Path) -> None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("ignoring unreadable cache %s: %s", path, exc)
            return
        if not isinstance(data, dict) or data.get("version") != _CACHE_VERSION:
            return
        entries = data.get("entries")
        if not isinstance(entries, dict):
            return
        valid_entries: dict[str, dict[str, Any]] = {}
        for key, raw in entries.items():
            if not isinstance(key, str) or not isinstance(raw, dict):
                continue
            if "deltas" not in raw or "affected_symbols" not in raw:
                continue
            valid_entries[key] = raw
        self._entries = valid_entries
        self._dirty = False


def _delta_to_dict(delta: SemanticDelta) -> dict[str, Any]:
    return {
        "type": delta.type,
        "description": delta.description,
        "severity": delta.severity,
        "affected_symbol": delta.affected_symbol,
        "symbol_kind": delta.symbol_kind,
        "exported": delta.exported,
        "detail": delta.detail,
    }


def _delta_from_dict(payload: object) -> SemanticDelta | None:
    if not isinstance(payload, dict):
        return None
    delta_type = payload.get("type")
    severity = payload.get("severity")
    description = payload.get("description")
    if delta_type not in DELTA_TYPES or severity not in SEVERITIES:
        return None
    if not isinstance(description, str):
        return None
    exported = payload.get("exported")
    return SemanticDelta(
        type=delta_type,
        description=description,
        severity=severity,
        affected_symbol=_optional_str(payload.get("affected_symbol")),
        symbol_kind=_optional_str(payload.get("symbol_kind")),
        exported=exported if isinstance(exported, bool) else None,
        detail=_optional_str(payload.get("detail")),
    )


def _slot(key: str) -> str:
    return key.rsplit("|", 1)[0]


def _updated_at(entry: dict[str, Any]) -> str:
    value = entry.get("updated_at")
    return value if isinstance(value, str) else ""


def _optional_str(value: object) -> str | None:
    return value if isinstance(value, str) else None


__all__ = ["CACHE_FILENAME", "CachedAnalysis", "ResultCache"]
