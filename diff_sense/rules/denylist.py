"""Paths that never affect versioning, whatever their content."""

from __future__ import annotations

from collections.abc import Iterable

# Bare names match the file name at any depth; patterns with "/" match the full path.
NON_VERSIONING_PATTERNS: tuple[str, ...] = (
    "package-lock.json",
    "npm-shrinkwrap.json",
    "pnpm-lock.yaml",
    "yarn.lock",
    "bun.lockb",
    "poetry.lock",
    "Pipfile.lock",
    "uv.lock",
    "Cargo.lock",
    "composer.lock",
    "Gemfile.lock",
    ".gitignore",
    ".gitattributes",
    ".DS_Store",
    ".editorconfig",
    ".env.example",
    ".env.sample",
    ".travis.yml",
    "azure-pipelines.yml",
    "*.min.js",
    "*.min.css",
    "*.map",
    ".github/**",
    ".vscode/**",
    ".idea/**",
    "**/.cache/**",
    "**/dist/**",
    "**/build/**",
    "**/coverage/**",
    "**/__pycache__/**",
    "scripts/**",
)


def non_versioning_patterns(extra: Iterable[str] = ()) -> tuple[str, ...]:
    patterns = list(NON_VERSIONING_PATTERNS)
    for pattern in extra:
        if pattern not in patterns:
            patterns.append(pattern)
    return tuple(patterns)
