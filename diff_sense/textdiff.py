"""Line-level diffs between two versions of a file."""

from __future__ import annotations

import difflib
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class LineDelta:
    added: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()


def line_delta(old_text: str | None, new_text: str | None) -> LineDelta:
    """Added and removed lines between two texts; ``None`` is an absent file."""
    old_lines = (old_text or "").splitlines()
    new_lines = (new_text or "").splitlines()
    if not old_lines:
        return LineDelta(added=tuple(new_lines))
    if not new_lines:
        return LineDelta(removed=tuple(old_lines))

    added: list[str] = []
    removed: list[str] = []
    matcher = difflib.SequenceMatcher(a=old_lines, b=new_lines, autojunk=False)
    for tag, old_start, old_end, new_start, new_end in matcher.get_opcodes():
        if tag in {"replace", "delete"}:
            removed.extend(old_lines[old_start:old_end])
        if tag in {"replace", "insert"}:
            added.extend(new_lines[new_start:new_end])
    return LineDelta(added=tuple(added), removed=tuple(removed))
