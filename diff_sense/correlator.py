"""Related-file context for detected changes.

Follows static imports (JS/TS ``import``/``require`` and Python ``import``)
breadth-first up to ``analysis.context_depth`` hops, adds conventional test
counterparts, and records line counts and file classification. Per-file
problems become warnings on the change instead of exceptions.
"""

from __future__ import annotations

import ast
import posixpath
import re
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass, replace

from diff_sense.context import PipelineContext
from diff_sense.errors import FileReadError
from diff_sense.filetypes import classify_path, counterpart_paths, scope_hint
from diff_sense.logging import get_logger
from diff_sense.models import AnalysisWarning, ChangeMetadata, ContextualizedChange, FileChange
from diff_sense.semantic.javascript import grammar_for, script_imports
from diff_sense.textdiff import line_delta

STAGE = "correlate"
JS_RESOLVE_EXTENSIONS = (".ts", ".tsx", ".d.ts", ".js", ".jsx", ".mjs", ".cjs", ".mts", ".cts")

_PY_IMPORT_FALLBACK = re.compile(
    r"^"
    r"\s*(?:from\s+(?P<from>\.*[\w.]*)\s+import\s+(?P<names>[\w*, ()]+)"
    r"|import\s+(?P<modules>[\w., ]+))",
    re.M,
)

logger = get_logger("correlator")


@dataclass(frozen=True, slots=True)
class ImportRef:
    """One static import: the module specifier plus any imported names."""

    specifier: str
    names: tuple[str, ...] = ()
    level: int = 0


class ContextCorrelator:
    """Attaches related files, dependencies and metadata to each change."""

    def __init__(self, ctx: PipelineContext) -> None:
        self._ctx = ctx

    def correlate(
        self,
        changes: Sequence[FileChange],
        *,
        context_depth: int | None = None,
    ) -> list[ContextualizedChange]:
        depth = self._ctx.config.analysis.context_depth if context_depth is None else context_depth
        limit = self._ctx.config.analysis.max_files_to_analyze
        changed_paths = frozenset(change.path for change in changes)

        def work(item: tuple[int, FileChange]) -> ContextualizedChange:
            index, change = item
            return self._correlate_one(change, depth, changed_paths, within_limit=index < limit)

        results = self._ctx.map_per_file(work, enumerate(changes))
        if len(changes) > limit:
            logger.warning(
                "%d changed files exceed analysis.max_files_to_analyze=%d; "
                "the rest keep path-only context",
                len(changes),
                limit,
            )
        return results

    def _correlate_one(
        self,
        change: FileChange,
        depth: int,
        changed_paths: frozenset[str],
        *,
        within_limit: bool,
    ) -> ContextualizedChange:
        file_type, language, extension, is_binary = classify_path(change.path)
        metadata = ChangeMetadata(
            file_type=file_type,
            language=language,
            extension=extension,
            is_binary=is_binary,
            scope_hint=scope_hint(change.path),
        )

        if not within_limit:
            warning = AnalysisWarning(
                path=change.path,
                stage=STAGE,
                kind="limit_exceeded",
                message="content analysis skipped: analysis.max_files_to_analyze reached",
            )
            return ContextualizedChange(
                change=change, metadata=metadata, warnings=(warning,), content_analyzed=False
            )
        if is_binary:
            warning = AnalysisWarning(
                path=change.path,
                stage=STAGE,
                kind="binary",
                message="binary file; content not analyzed",
            )
            return ContextualizedChange(change=change, metadata=metadata, warnings=(warning,))

        try:
            old_text, new_text = self._read_versions(change)
        except FileReadError as exc:
            logger.warning("%s: %s", change.path, exc.detail)
            warning = AnalysisWarning(
                path=change.path, stage=STAGE, kind="unreadable", message=str(exc)
            )
            return ContextualizedChange(
                change=change,
                metadata=_mark_binary(metadata) if "binary" in exc.detail else metadata,
                warnings=(warning,),
                degraded=True,
            )

        lines = line_delta(old_text, new_text)
        metadata = replace(metadata, lines_added=len(lines.added), lines_removed=len(lines.removed))

        content = old_text if change.status == "deleted" else new_text
        related = self._related_files(change, content or "", language, depth)
        dependencies = tuple(path for path in related if path in changed_paths)
        return ContextualizedChange(
            change=change,
            related_files=related,
            dependencies=dependencies,
            metadata=metadata,
        )

    def _read_versions(self, change: FileChange) -> tuple[str | None, str | None]:
        contents = self._ctx.contents
        old_text = None
        new_text = None
        if change.status != "added":
            old_text = contents.read_text(self._ctx.base, change.previous_path or change.path)
        if change.status != "deleted":
            new_text = contents.read_text(self._ctx.head, change.path)
        return old_text, new_text

    def _related_files(
        self,
        change: FileChange,
        content: str,
        language: str | None,
        depth: int,
    ) -> tuple[str, ...]:
        if depth <= 0:
            return ()
        revision = self._ctx.base if change.status == "deleted" else self._ctx.head
        visited = {change.path}
        related: list[str] = []
        queue: deque[tuple[str, str, str | None, int]] = deque()
        queue.append((change.path, content, language, 0))

        while queue:
            current, text, current_language, level = queue.popleft()
            if current_language is None:
                continue
            for ref in extract_imports(text, current_language, current):
                for target in self._resolve(current, ref, current_language, revision):
                    if target in visited:
                        continue
                    visited.add(target)
                    related.append(target)
                    if level + 1 >= depth:
                        continue
                    try:
                        target_text = self._ctx.contents.read_text(revision, target)
                    except FileReadError:
                        continue
                    if target_text is not None:
                        queue.append((target, target_text, classify_path(target)[1], level + 1))

        for candidate in counterpart_paths(change.path):
            if candidate not in visited and self._ctx.contents.exists(revision, candidate):
                visited.add(candidate)
                related.append(candidate)
        return tuple(related)

    def _resolve(self, current: str, ref: ImportRef, language: str, revision: str) -> list[str]:
        if language == "python":
            candidates = python_candidates(current, ref)
        else:
            candidates = [js_candidates(current, ref.specifier)]
        resolved: list[str] = []
        for group in candidates:
            for path in group:
                if path not in resolved and self._ctx.contents.exists(revision, path):
                    resolved.append(path)
                    break
        return resolved


def extract_imports(text: str, language: str, path: str = "") -> list[ImportRef]:
    if language == "python":
        return _python_imports(text)
    grammar = grammar_for(path) if path else language
    return [ImportRef(specifier) for specifier in script_imports(text, grammar)]


def js_candidates(current: str, specifier: str) -> list[str]:
    """Candidate repository paths for a relative JS/TS specifier, in lookup order."""
    if not specifier.startswith("."):
        return []
    base = _normalize(posixpath.join(posixpath.dirname(current), specifier))
    if base is None:
        return []
    candidates = [base]
    stem, ext = posixpath.splitext(base)
    if ext in {".js", ".mjs", ".cjs", ".jsx"}:
        candidates.extend(stem + replacement for replacement in (".ts", ".tsx", ".mts", ".cts"))
    candidates.extend(base + extension for extension in JS_RESOLVE_EXTENSIONS)
    for extension in JS_RESOLVE_EXTENSIONS:
        candidates.append(posixpath.join(base, "index" + extension))
    return candidates


def python_candidates(current: str, ref: ImportRef) -> list[list[str]]:
    """Candidate groups for a Python import; the first existing path of each group wins."""
    if ref.level:
        package = posixpath.dirname(current)
        for _ in range(ref.level - 1):
            package = posixpath.dirname(package)
        roots = [package]
    else:
        roots = ["", "src"]

    module_path = ref.specifier.replace(".", "/") if ref.specifier else ""
    groups: list[list[str]] = []
    module_group: list[str] = []
    for root in roots:
        base = posixpath.join(root, module_path) if module_path else root
        if module_path:
            module_group.append(base + ".py")
        module_group.append(posixpath.join(base, "__init__.py"))
    groups.append([path for path in (_normalize(item) for item in module_group) if path])

    for name in ref.names:
        if name == "*":
            continue
        group: list[str] = []
        for root in roots:
            base = posixpath.join(root, module_path) if module_path else root
            group.append(posixpath.join(base, name + ".py"))
            group.append(posixpath.join(base, name, "__init__.py"))
        groups.append([path for path in (_normalize(item) for item in group) if path])
    return groups


def _python_imports(text: str) -> list[ImportRef]:
    try:
        tree = ast.parse(text)
    except (SyntaxError, ValueError):
        return _python_imports_fallback(text)

    refs: list[ImportRef] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            refs.extend(ImportRef(alias.name) for alias in node.names)
        elif isinstance(node, ast.ImportFrom):
            names = tuple(alias.name for alias in node.names)
            refs.append(ImportRef(node.module or "", names, node.level))
    return refs


def _python_imports_fallback(text: str) -> list[ImportRef]:
    refs: list[ImportRef] = []
    for found in _PY_IMPORT_FALLBACK.finditer(text):
        if found.group("from") is not None:
            raw = found.group("from")
            level = len(raw) - len(raw.lstrip("."))
            names = tuple(
                name.strip()
                for name in found.group("names").strip("() ").split(",")
                if name.strip()
            )
            refs.append(ImportRef(raw.lstrip("."), names, level))
        else:
            for module in found.group("modules").split(","):
                module = module.strip().split(" ")[0]
                if module:
                    refs.append(ImportRef(module))
    return refs


def _normalize(path: str) -> str | None:
    normalized = posixpath.normpath(path)
    if normalized.startswith("..") or normalized.startswith("/") or normalized == ".":
        return None
    return normalized


def _mark_binary(metadata: ChangeMetadata) -> ChangeMetadata:
    return replace(metadata, file_type="binary", language=None, is_binary=True)
