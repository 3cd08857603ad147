"""Glob matching for rule predicates and the non-versioning denylist."""

from __future__ import annotations

from wcmatch import glob

GLOB_FLAGS = glob.GLOBSTAR | glob.BRACE | glob.DOTGLOB


def glob_match(path: str, pattern: str) -> bool:
    """Match ``path`` against a glob with minimatch semantics.

    ``*`` stays inside one path segment, ``**`` spans any number of
    directories (including none), and ``{a,b}`` expands to alternatives.
    Dotfiles match like any other name.
    """
    return glob.globmatch(path, pattern, flags=GLOB_FLAGS)


def prefix_match(path: str, pattern: str) -> bool:
    """Match ``pattern`` against any leading run of path segments."""
    segments = path.split("/")
    for end in range(1, len(segments) + 1):
        if glob_match("/".join(segments[:end]), pattern.rstrip("/")):
            return True
    return False
