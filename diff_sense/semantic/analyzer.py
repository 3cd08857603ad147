"""Structural analysis stage."""

from __future__ import annotations

import concurrent.futures
import posixpath
import re
from collections.abc import Callable, Sequence
from typing import TypeVar

from diff_sense.cache import ResultCache
from diff_sense.context import PipelineContext
from diff_sense.errors import AnalysisTimeoutError, FileReadError, ParseError
from diff_sense.logging import get_logger
from diff_sense.models import AnalysisWarning, ContextualizedChange, SemanticChange, SemanticDelta
from diff_sense.semantic.javascript import extract_script_symbols
from diff_sense.semantic.python import extract_python_symbols
from diff_sense.semantic.symbols import SymbolTable, diff_symbols
from diff_sense.textdiff import line_delta

STAGE = "semantic"
MARKER_PREVIEW_CHARS = 80

EXTRACTORS: dict[str, Callable[[str, str], SymbolTable]] = {
    "python": extract_python_symbols,
    "javascript": extract_script_symbols,
    "typescript": extract_script_symbols,
}

T = TypeVar("T")

logger = get_logger("semantic")


def run_with_timeout(func: Callable[[], T], timeout: float, *, path: str, timeout_ms: int) -> T:
    """Run ``func`` on a helper thread; raise AnalysisTimeoutError if it overruns."""
    executor = concurrent.futures.ThreadPoolExecutor(
        max_workers=1, thread_name_prefix="diff-sense-parse"
    )
    future = executor.submit(func)
    try:
        return future.result(timeout=timeout)
    except concurrent.futures.TimeoutError as exc:
        raise AnalysisTimeoutError(path, timeout_ms) from exc
    finally:
        executor.shutdown(wait=False, cancel_futures=True)


class SemanticAnalyzer:
    """Turns contextualized changes into symbol-level deltas.

    Files without a structural language, files past the analysis limit, and
    files that fail to read, parse or finish in time all take the non-code
    path: a single ``non_code_change`` delta of severity ``minor``.
    """

    def __init__(self, ctx: PipelineContext) -> None:
        self._ctx = ctx
        self._breaking_patterns = tuple(
            re.compile(pattern) for pattern in ctx.config.rules.breaking_change_patterns
        )

    def analyze(self, changes: Sequence[ContextualizedChange]) -> list[SemanticChange]:
        results = self._ctx.map_per_file(self.analyze_one, changes)
        degraded = sum(1 for item in results if item.degraded)
        logger.debug("analyzed %d files (%d degraded)", len(results), degraded)
        return results

    def analyze_one(self, change: ContextualizedChange) -> SemanticChange:
        if not change.content_analyzed:
            return _non_code(change, f"content of {change.path} not analyzed")
        if change.degraded:
            return _non_code(change, f"unreadable change in {change.path}", degraded=True)
        language = change.metadata.language
        if language is None or change.metadata.is_binary:
            return _non_code(change, f"non-code change in {change.path}")

        cache = self._ctx.cache
        cache_key = None
        if cache is not None:
            try:
                content_hash = self._content_hash(change)
            except FileReadError as exc:
                return _degrade(change, "unreadable", exc)
            cache_key = ResultCache.make_key(self._ctx.revision_key, change.path, content_hash)
            cached = cache.get(cache_key)
            if cached is not None:
                logger.debug("cache hit for %s", change.path)
                try:
                    markers = self._markers_for(change)
                except FileReadError as exc:
                    return _degrade(change, "unreadable", exc)
                return SemanticChange(
                    context=change,
                    semantic_changes=cached.deltas + markers,
                    affected_symbols=cached.affected_symbols,
                    warnings=change.warnings,
                )

        try:
            deltas, affected = run_with_timeout(
                lambda: self._structural_deltas(change, language),
                self._ctx.file_timeout_seconds,
                path=change.path,
                timeout_ms=self._ctx.config.analysis.file_analysis_timeout,
            )
        except AnalysisTimeoutError as exc:
            return _degrade(change, "timeout", exc)
        except ParseError as exc:
            return _degrade(change, "parse_error", exc)
        except FileReadError as exc:
            return _degrade(change, "unreadable", exc)

        if cache is not None and cache_key is not None:
            # Breaking markers are rescanned with the current patterns on every hit.
            structural = tuple(delta for delta in deltas if delta.type != "breaking_marker")
            cache.store(cache_key, deltas=structural, affected_symbols=affected)
        return SemanticChange(
            context=change,
            semantic_changes=deltas,
            affected_symbols=affected,
            warnings=change.warnings,
        )

    def _structural_deltas(
        self, change: ContextualizedChange, language: str
    ) -> tuple[tuple[SemanticDelta, ...], frozenset[str]]:
        extract = EXTRACTORS[language]
        contents = self._ctx.contents
        name = posixpath.basename(change.path)

        if change.status == "deleted":
            delta = SemanticDelta(
                type="file_deleted",
                description=f"remove {name}",
                severity="medium",
            )
            return (delta,), frozenset()

        new_text = contents.read_text(self._ctx.head, change.path) or ""
        if change.status == "added":
            table = extract(new_text, change.path)
            exported = [symbol.name for symbol in table.values() if symbol.exported]
            delta = SemanticDelta(
                type="file_added",
                description=f"add {name}",
                severity="medium" if exported else "low",
                exported=bool(exported),
            )
            markers = self._breaking_markers(None, new_text)
            return (delta, *markers), frozenset(exported)

        old_path = change.previous_path or change.path
        old_text = contents.read_text(self._ctx.base, old_path) or ""
        deltas: list[SemanticDelta] = []
        if change.status == "renamed":
            deltas.append(
                SemanticDelta(
                    type="file_renamed",
                    description=f"rename {old_path} to {change.path}",
                    severity="low",
                )
            )
            if old_text == new_text:
                return tuple(deltas), frozenset()

        deltas.extend(diff_symbols(extract(old_text, old_path), extract(new_text, change.path)))
        deltas.extend(self._breaking_markers(old_text, new_text))
        affected = frozenset(delta.affected_symbol for delta in deltas if delta.affected_symbol)
        return tuple(deltas), affected

    def _markers_for(self, change: ContextualizedChange) -> tuple[SemanticDelta, ...]:
        if change.status == "deleted" or not self._breaking_patterns:
            return ()
        contents = self._ctx.contents
        new_text = contents.read_text(self._ctx.head, change.path) or ""
        old_text = None
        if change.status != "added":
            old_path = change.previous_path or change.path
            old_text = contents.read_text(self._ctx.base, old_path) or ""
        return tuple(self._breaking_markers(old_text, new_text))

    def _breaking_markers(self, old_text: str | None, new_text: str) -> list[SemanticDelta]:
        if not self._breaking_patterns:
            return []
        markers: list[SemanticDelta] = []
        seen: set[str] = set()
        for line in line_delta(old_text, new_text).added:
            if not any(pattern.search(line) for pattern in self._breaking_patterns):
                continue
            text = line.strip()[:MARKER_PREVIEW_CHARS]
            if text in seen:
                continue
            seen.add(text)
            markers.append(
                SemanticDelta(
                    type="breaking_marker",
                    description=f"breaking change marker: {text}",
                    severity="high",
                )
            )
        return markers

    def _content_hash(self, change: ContextualizedChange) -> str:
        old_path = None if change.status == "added" else (change.previous_path or change.path)
        new_path = None if change.status == "deleted" else change.path
        return self._ctx.contents.content_hash(
            (self._ctx.base, self._ctx.head), (old_path, new_path)
        )


def _non_code(
    change: ContextualizedChange,
    description: str,
    *,
    degraded: bool = False,
    warnings: tuple[AnalysisWarning, ...] = (),
) -> SemanticChange:
    delta = SemanticDelta(type="non_code_change", description=description, severity="minor")
    return SemanticChange(
        context=change,
        semantic_changes=(delta,),
        warnings=change.warnings + warnings,
        degraded=degraded,
    )


def _degrade(change: ContextualizedChange, kind: str, exc: Exception) -> SemanticChange:
    logger.warning("%s degraded to non-code analysis: %s", change.path, exc)
    warning = AnalysisWarning(path=change.path, stage=STAGE, kind=kind, message=str(exc))
    return _non_code(
        change,
        f"unparsed change in {change.path}",
        degraded=True,
        warnings=(warning,),
    )
