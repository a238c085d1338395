"""Line diff hunks for showing a proposed instance rewrite.

Only feeds the interaction layer; the merge result never depends on it.
"""

from __future__ import annotations

import difflib
from dataclasses import dataclass

from dwtsync.doc_types import RegionChange

_STATUS_MARK: dict[str, str] = {
    "unchanged": "=",
    "content_kept": "~",
    "added": "+",
    "removed": "-",
}


@dataclass(frozen=True, slots=True)
class Hunk:
    """One unified-diff hunk. Starts are 1-based, as in ``diff -u``."""

    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    lines: tuple[str, ...]

    @property
    def header(self) -> str:
        return f"@@ -{self.old_start},{self.old_lines} +{self.new_start},{self.new_lines} @@"


@dataclass(frozen=True, slots=True)
class DiffSummary:
    """What the user sees before deciding on one file."""

    path: str
    hunks: tuple[Hunk, ...]
    added: int
    removed: int
    region_changes: tuple[RegionChange, ...] = ()

    @property
    def has_changes(self) -> bool:
        return bool(self.hunks)

    def render(self) -> str:
        parts = [format_hunks(self.hunks, self.path)]
        if self.region_changes:
            parts.append(describe_changes(self.region_changes))
        return "\n".join(p for p in parts if p)


def _strip_eol(line: str) -> str:
    return line.rstrip("\r\n")


def compute_hunks(old_text: str, new_text: str, *, context: int = 3) -> list[Hunk]:
    """Group line differences between two texts into hunks.

    Lines are compared with their line endings, so a CRLF -> LF change shows
    up even though the rendered lines look identical.
    """
    old_lines = old_text.splitlines(keepends=True)
    new_lines = new_text.splitlines(keepends=True)
    matcher = difflib.SequenceMatcher(None, old_lines, new_lines, autojunk=False)

    hunks: list[Hunk] = []
    for group in matcher.get_grouped_opcodes(context):
        i1, i2 = group[0][1], group[-1][2]
        j1, j2 = group[0][3], group[-1][4]
        lines: list[str] = []
        for tag, a1, a2, b1, b2 in group:
            if tag == "equal":
                lines.extend(" " + _strip_eol(line) for line in old_lines[a1:a2])
                continue
            if tag in ("replace", "delete"):
                lines.extend("-" + _strip_eol(line) for line in old_lines[a1:a2])
            if tag in ("replace", "insert"):
                lines.extend("+" + _strip_eol(line) for line in new_lines[b1:b2])
        hunks.append(Hunk(
            old_start=i1 + 1 if i2 > i1 else i1,
            old_lines=i2 - i1,
            new_start=j1 + 1 if j2 > j1 else j1,
            new_lines=j2 - j1,
            lines=tuple(lines),
        ))
    return hunks


def format_hunks(hunks: tuple[Hunk, ...] | list[Hunk], path: str) -> str:
    """Render hunks as unified-diff text (no colour)."""
    if not hunks:
        return ""
    out = [f"--- {path} (original)", f"+++ {path} (updated)"]
    for hunk in hunks:
        out.append(hunk.header)
        out.extend(hunk.lines)
    return "\n".join(out)


def describe_changes(changes: tuple[RegionChange, ...] | list[RegionChange]) -> str:
    """One line per region: ``+ footer (added)``."""
    return "\n".join(
        f"  {_STATUS_MARK[c.status]} {c.name} ({c.status.replace('_', ' ')})"
        for c in changes
    )


def diff_summary(
    path: str,
    old_text: str,
    new_text: str,
    *,
    context: int = 3,
    region_changes: tuple[RegionChange, ...] = (),
) -> DiffSummary:
    hunks = tuple(compute_hunks(old_text, new_text, context=context))
    added = sum(1 for h in hunks for line in h.lines if line.startswith("+"))
    removed = sum(1 for h in hunks for line in h.lines if line.startswith("-"))
    return DiffSummary(
        path=path,
        hunks=hunks,
        added=added,
        removed=removed,
        region_changes=region_changes,
    )
