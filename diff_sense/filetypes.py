"""Extension-to-language mapping and path-based scope hints."""

from __future__ import annotations

import posixpath

# extension -> (file_type, structural language or None)
EXTENSION_TYPES: dict[str, tuple[str, str | None]] = {
    ".py": ("python", "python"),
    ".pyi": ("python", "python"),
    ".ts": ("typescript", "typescript"),
    ".tsx": ("typescript", "typescript"),
    ".mts": ("typescript", "typescript"),
    ".cts": ("typescript", "typescript"),
    ".js": ("javascript", "javascript"),
    ".jsx": ("javascript", "javascript"),
    ".mjs": ("javascript", "javascript"),
    ".cjs": ("javascript", "javascript"),
    ".md": ("markdown", None),
    ".mdx": ("markdown", None),
    ".rst": ("restructuredtext", None),
    ".adoc": ("asciidoc", None),
    ".txt": ("text", None),
    ".json": ("json", None),
    ".yaml": ("yaml", None),
    ".yml": ("yaml", None),
    ".toml": ("toml", None),
    ".ini": ("ini", None),
    ".cfg": ("ini", None),
    ".css": ("css", None),
    ".scss": ("css", None),
    ".less": ("css", None),
    ".html": ("html", None),
    ".htm": ("html", None),
    ".sh": ("shell", None),
    ".sql": ("sql", None),
    ".lock": ("lockfile", None),
}

BINARY_EXTENSIONS = frozenset(
    {
        ".png",
        ".jpg",
        ".jpeg",
        ".gif",
        ".bmp",
        ".ico",
        ".webp",
        ".pdf",
        ".zip",
        ".gz",
        ".tar",
        ".tgz",
        ".7z",
        ".jar",
        ".woff",
        ".woff2",
        ".ttf",
        ".otf",
        ".eot",
        ".mp3",
        ".mp4",
        ".mov",
        ".exe",
        ".dll",
        ".so",
        ".dylib",
        ".pyc",
        ".wasm",
        ".lockb",
    }
)

LOCKFILE_NAMES = frozenset(
    {"package-lock.json", "pnpm-lock.yaml", "yarn.lock", "poetry.lock", "Cargo.lock", "uv.lock"}
)

SOURCE_EXTENSIONS = tuple(ext for ext, (_, language) in EXTENSION_TYPES.items() if language)

_TEST_DIRS = {"test", "tests", "__tests__", "spec", "e2e"}
_DOC_DIRS = {"docs", "doc", "documentation"}
_EXAMPLE_DIRS = {"example", "examples", "demo", "demos", "samples"}
_INTERNAL_DIRS = {"internal", "private", "utils", "helpers", "_internal"}
_PUBLIC_NAMES = {"index", "__init__", "main", "api", "public"}


def split_extension(path: str) -> str:
    name = posixpath.basename(path)
    if name.endswith(".d.ts"):
        return ".ts"
    _, ext = posixpath.splitext(name)
    return ext.lower()


def classify_path(path: str) -> tuple[str, str | None, str, bool]:
    """Return ``(file_type, language, extension, is_binary)`` for ``path``."""
    name = posixpath.basename(path)
    ext = split_extension(path)
    if name in LOCKFILE_NAMES:
        return "lockfile", None, ext, False
    if ext in BINARY_EXTENSIONS:
        return "binary", None, ext, True
    file_type, language = EXTENSION_TYPES.get(ext, ("unknown", None))
    if name in {"Dockerfile", "Makefile"}:
        file_type = "build"
    return file_type, language, ext, False


def is_test_path(path: str) -> bool:
    segments = path.split("/")
    if any(segment in _TEST_DIRS for segment in segments[:-1]):
        return True
    name = segments[-1]
    stem = name.split(".", 1)[0]
    return (
        ".test." in name
        or ".spec." in name
        or stem.startswith("test_")
        or stem.endswith("_test")
        or name == "conftest.py"
    )


def scope_hint(path: str) -> str:
    """Coarse role of a file inferred from its location and name."""
    if is_test_path(path):
        return "test"
    segments = path.split("/")
    directories = set(segments[:-1])
    file_type, language, _, _ = classify_path(path)
    if directories & _DOC_DIRS or file_type in {"markdown", "restructuredtext", "asciidoc"}:
        return "documentation"
    if directories & _EXAMPLE_DIRS:
        return "example"
    config_types = {"json", "yaml", "toml", "ini", "lockfile", "build"}
    if file_type in config_types or segments[-1].startswith("."):
        return "configuration"
    if language is None:
        return "unknown"
    stem = posixpath.splitext(segments[-1])[0]
    if directories & _INTERNAL_DIRS or (stem.startswith("_") and stem != "__init__"):
        return "internal"
    if stem in _PUBLIC_NAMES or len(segments) <= 2:
        return "public"
    return "internal"


def counterpart_paths(path: str) -> list[str]:
    """Conventional test/implementation partner paths for ``path``, most likely first."""
    directory, name = posixpath.split(path)
    ext = split_extension(path)
    stem = name[: -len(ext)] if ext and name.lower().endswith(ext) else name

    if ext == ".py":
        if stem.startswith("test_"):
            target = stem[len("test_") :] + ".py"
            parent = posixpath.dirname(directory)
            return [posixpath.join(directory, target), posixpath.join(parent, target)]
        if stem.endswith("_test"):
            return [posixpath.join(directory, stem[: -len("_test")] + ".py")]
        return [
            posixpath.join(directory, f"test_{stem}.py"),
            posixpath.join("tests", f"test_{stem}.py"),
        ]

    if ext in SOURCE_EXTENSIONS:
        for marker in (".test", ".spec"):
            if stem.endswith(marker):
                return [posixpath.join(directory, stem[: -len(marker)] + ext)]
        return [
            posixpath.join(directory, f"{stem}.test{ext}"),
            posixpath.join(directory, f"{stem}.spec{ext}"),
            posixpath.join(directory, "__tests__", f"{stem}.test{ext}"),
        ]
    return []
