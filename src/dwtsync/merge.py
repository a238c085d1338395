"""Merge engine: re-derive an instance from the current template.

The template owns structure; the instance owns region content:

  1. Walk ``template.region_order``. A region the instance also has keeps
     the instance content (``content_kept`` when it differs from the
     template default, ``unchanged`` otherwise). A region the instance lacks
     gets the template default (``added``).
  2. Instance regions the template no longer declares are reported as
     ``removed``; their content is kept on the ``RegionChange`` only.
  3. Skeleton text comes from the template, converted to instance syntax
     (``TemplateBeginEditable`` -> ``InstanceBeginEditable``, ``TemplateParam``
     -> ``InstanceParam``, ``TemplateInfo`` dropped). Instance-side skeleton
     is discarded.
  4. The instance's ``InstanceBegin`` and ``InstanceEnd`` comments are put
     back verbatim next to the same tags they sat against in the instance
     (normally right after ``<html>`` and right before ``</html>``).

``merge`` never fails: both documents are already validated. Checking that
the instance is bound to this template is the caller's job.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from dwtsync.doc_types import (
    DocParam,
    EditableRegion,
    InstanceDocument,
    MarkerToken,
    MergeResult,
    RegionChange,
    TemplateDocument,
)
from dwtsync.markers import scan_markers

_START_TAG_RE = re.compile(r"<([A-Za-z][\w:-]*)\b[^>]*>")
_TAG_RE = re.compile(r"<(/?)([A-Za-z][\w:-]*)\b[^>]*>")
_TEMPLATE_INFO_RE = re.compile(r"<!--\s*TemplateInfo\b.*?-->", re.DOTALL | re.IGNORECASE)
_VALUE_ATTR_RE = re.compile(r'(\bvalue\s*=\s*")[^"]*(")', re.IGNORECASE)

_KEYWORD_SWAPS: dict[str, tuple[re.Pattern[str], str]] = {
    "template_region_begin": (
        re.compile(r"TemplateBeginEditable", re.IGNORECASE),
        "InstanceBeginEditable",
    ),
    "template_region_end": (
        re.compile(r"TemplateEndEditable", re.IGNORECASE),
        "InstanceEndEditable",
    ),
    "param_begin": (
        re.compile(r"TemplateParam", re.IGNORECASE),
        "InstanceParam",
    ),
}


# ---------------------------------------------------------------------------
# Skeleton conversion
# ---------------------------------------------------------------------------


def _convert_marker(token: MarkerToken, params: dict[str, DocParam]) -> str:
    swap = _KEYWORD_SWAPS.get(token.kind)
    if swap is None:
        return token.raw_text
    pattern, replacement = swap
    converted = pattern.sub(replacement, token.raw_text, count=1)
    if token.kind == "param_begin" and token.name in params:
        value = params[token.name].value
        converted = _VALUE_ATTR_RE.sub(
            lambda m: m.group(1) + value + m.group(2), converted, count=1,
        )
    return converted


def to_instance_skeleton(text: str, params: dict[str, DocParam] | None = None) -> str:
    """Rewrite template marker comments in skeleton text to instance syntax."""
    params = params or {}
    out: list[str] = []
    cursor = 0
    for token in scan_markers(text):
        out.append(text[cursor:token.offset_start])
        out.append(_convert_marker(token, params))
        cursor = token.offset_end
    out.append(text[cursor:])
    return _TEMPLATE_INFO_RE.sub("", "".join(out))


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class Assembly:
    """Output pieces in order; ``skeleton`` indexes the non-region pieces."""

    pieces: list[str] = field(default_factory=list)
    skeleton: list[int] = field(default_factory=list)

    def add_skeleton(self, text: str) -> None:
        self.skeleton.append(len(self.pieces))
        self.pieces.append(text)

    def add_region(self, text: str) -> None:
        self.pieces.append(text)

    def text(self) -> str:
        return "".join(self.pieces)


def assemble(
    template: TemplateDocument,
    contents: dict[str, str],
    params: dict[str, DocParam],
) -> tuple[Assembly, list[RegionChange]]:
    """Lay out the template skeleton with region content from ``contents``."""
    assembly = Assembly()
    changes: list[RegionChange] = []
    for seg in template.segments:
        if not isinstance(seg, EditableRegion):
            assembly.add_skeleton(to_instance_skeleton(seg.text, params))
            continue
        default = seg.content
        if seg.name in contents:
            current = contents[seg.name]
            status = "unchanged" if current == default else "content_kept"
            assembly.add_region(current)
            changes.append(RegionChange(seg.name, status, current, current))
        else:
            assembly.add_region(default)
            changes.append(RegionChange(seg.name, "added", None, default))
    return assembly, changes


def insert_after_start_tag(
    assembly: Assembly, tag: str, occurrence: int, insertion: str,
) -> bool:
    """Insert after the ``occurrence``-th (1-based) ``<tag ...>`` in the skeleton.

    Falls back to the last occurrence when there are fewer.
    """
    seen = 0
    hit: tuple[int, int] | None = None
    for idx in assembly.skeleton:
        for match in _START_TAG_RE.finditer(assembly.pieces[idx]):
            if match.group(1).lower() != tag:
                continue
            seen += 1
            hit = (idx, match.end())
            if seen == occurrence:
                break
        if seen == occurrence:
            break
    if hit is None:
        return False
    idx, at = hit
    piece = assembly.pieces[idx]
    assembly.pieces[idx] = piece[:at] + insertion + piece[at:]
    return True


def insert_before_end_tag(
    assembly: Assembly, tag: str, occurrence_from_end: int, insertion: str,
) -> bool:
    """Insert before the ``occurrence_from_end``-th ``</tag>`` counted from the end."""
    hits: list[tuple[int, int]] = []
    for idx in assembly.skeleton:
        for match in _TAG_RE.finditer(assembly.pieces[idx]):
            if match.group(1) == "/" and match.group(2).lower() == tag:
                hits.append((idx, match.start()))
    if not hits:
        return False
    pick = max(0, len(hits) - occurrence_from_end)
    idx, at = hits[pick]
    piece = assembly.pieces[idx]
    assembly.pieces[idx] = piece[:at] + insertion + piece[at:]
    return True


def place_binding(
    assembly: Assembly,
    raw: str,
    *,
    tag: str | None = "html",
    occurrence: int = 1,
    gap: str = "",
) -> None:
    """Put an ``InstanceBegin`` comment after its anchor tag, else at the start."""
    if tag is not None:
        if insert_after_start_tag(assembly, tag, occurrence, gap + raw):
            return
        if tag != "html" and insert_after_start_tag(assembly, "html", 1, raw):
            return
    assembly.pieces.insert(0, gap + raw if tag is None else raw)


def place_binding_end(
    assembly: Assembly,
    raw: str,
    *,
    tag: str | None = "html",
    occurrence_from_end: int = 1,
    gap: str = "",
) -> None:
    """Put an ``InstanceEnd`` comment before its anchor closing tag, else at the end."""
    if tag is not None:
        if insert_before_end_tag(assembly, tag, occurrence_from_end, raw + gap):
            return
        if tag != "html" and insert_before_end_tag(assembly, "html", 1, raw):
            return
    assembly.pieces.append(raw + gap if tag is None else raw)


def _binding_anchor(instance: InstanceDocument) -> tuple[str | None, int, str]:
    """(start tag name, its occurrence, whitespace gap) preceding the binding."""
    prefix = instance.text[:instance.binding.offset_start]
    last = None
    for match in _START_TAG_RE.finditer(prefix):
        last = match
    if last is None:
        return None, 0, prefix if not prefix.strip() else ""
    tag = last.group(1).lower()
    occurrence = sum(
        1 for m in _START_TAG_RE.finditer(prefix) if m.group(1).lower() == tag
    )
    gap = prefix[last.end():]
    return tag, occurrence, gap if not gap.strip() else ""


def _binding_end_anchor(instance: InstanceDocument, end: MarkerToken) -> tuple[str | None, int, str]:
    """(closing tag name, its occurrence counted from the end, gap) after InstanceEnd."""
    suffix = instance.text[end.offset_end:]
    first = _TAG_RE.search(suffix)
    if first is None or first.group(1) != "/":
        return None, 0, suffix if not suffix.strip() else ""
    tag = first.group(2).lower()
    occurrence = sum(
        1 for m in _TAG_RE.finditer(suffix)
        if m.group(1) == "/" and m.group(2).lower() == tag
    )
    gap = suffix[:first.start()]
    return tag, occurrence, gap if not gap.strip() else ""


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def merge(template: TemplateDocument, instance: InstanceDocument) -> MergeResult:
    """Rebuild ``instance`` against the current ``template``."""
    contents = instance.region_contents()
    params = {p.name: p for p in instance.params}
    assembly, changes = assemble(template, contents, params)

    kept = set(template.region_order)
    for name in instance.region_order:
        if name not in kept:
            changes.append(RegionChange(name, "removed", contents[name], None))

    # End marker first: placing the binding may prepend a piece.
    if instance.binding_end is not None:
        tag, occurrence, gap = _binding_end_anchor(instance, instance.binding_end)
        place_binding_end(
            assembly,
            instance.binding_end.raw_text,
            tag=tag,
            occurrence_from_end=occurrence,
            gap=gap,
        )
    tag, occurrence, gap = _binding_anchor(instance)
    place_binding(
        assembly,
        instance.binding.raw_text,
        tag=tag,
        occurrence=occurrence,
        gap=gap,
    )

    return MergeResult(new_text=assembly.text(), changes=tuple(changes))
