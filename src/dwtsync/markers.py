"""Marker scanner: lex Dreamweaver marker comments into typed tokens.

The scanner only finds markers; balance and nesting are enforced by
``dwtsync.document``. Comments that do not match the canonical grammar are
not emitted and stay inert literal text. The tag keyword and attribute keys
are matched case-insensitively; attribute values are returned verbatim.
"""

from __future__ import annotations

import bisect
import re

from dwtsync.doc_types import MarkerToken, Position, Range, TokenKind

# A comment body never spans another "<!--", so an unclosed opener cannot
# swallow the marker that follows it.
_COMMENT_RE = re.compile(r"<!--((?:(?!<!--).)*?)-->", re.DOTALL)
_KEYWORD_RE = re.compile(r"\s*([A-Za-z]+)(?=\s|$)(.*)", re.DOTALL)
_ATTR_RE = re.compile(r'([A-Za-z_][\w.:-]*)\s*=\s*"([^"]*)"')

_KIND_BY_KEYWORD: dict[str, TokenKind] = {
    "templatebegineditable": "template_region_begin",
    "templateendeditable": "template_region_end",
    "instancebegineditable": "instance_region_begin",
    "instanceendeditable": "instance_region_end",
    "instancebegin": "instance_binding",
    "instanceend": "instance_binding_end",
    "templateparam": "param_begin",
    "instanceparam": "param_end",
}

# Attribute that carries ``MarkerToken.name`` for each kind.
_NAME_ATTR: dict[TokenKind, str] = {
    "template_region_begin": "name",
    "instance_region_begin": "name",
    "instance_binding": "template",
    "param_begin": "name",
    "param_end": "name",
}

_BARE_KINDS: frozenset[str] = frozenset(
    {"template_region_end", "instance_region_end", "instance_binding_end"}
)


def compute_line_starts(text: str) -> list[int]:
    """Char offsets of every line start. Offset 0 is always a line start."""
    starts = [0]
    for i, ch in enumerate(text):
        if ch == "\n":
            starts.append(i + 1)
    return starts


def position_at(offset: int, line_starts: list[int]) -> Position:
    """Convert a char offset to a Position via binary search on line starts."""
    line = bisect.bisect_right(line_starts, offset) - 1
    line = max(0, line)
    return Position(line, offset - line_starts[line])


def _parse_attributes(rest: str) -> dict[str, str]:
    attrs: dict[str, str] = {}
    for match in _ATTR_RE.finditer(rest):
        key = match.group(1).lower()
        attrs.setdefault(key, match.group(2))
    return attrs


def _classify(body: str) -> tuple[TokenKind, dict[str, str]] | None:
    head = _KEYWORD_RE.match(body)
    if head is None:
        return None
    kind = _KIND_BY_KEYWORD.get(head.group(1).lower())
    if kind is None:
        return None
    rest = head.group(2)
    if kind in _BARE_KINDS:
        return (kind, {}) if not rest.strip() else None

    attrs = _parse_attributes(rest)
    name_attr = _NAME_ATTR[kind]
    if name_attr not in attrs:
        return None
    if kind != "instance_binding":
        # Region and param markers carry attributes only.
        leftover = _ATTR_RE.sub("", rest).strip()
        if leftover:
            return None
    return kind, attrs


def scan_markers(text: str) -> list[MarkerToken]:
    """Lex ``text`` into an ordered list of marker tokens. Never raises."""
    if "<!--" not in text:
        return []

    line_starts = compute_line_starts(text)
    tokens: list[MarkerToken] = []
    for match in _COMMENT_RE.finditer(text):
        classified = _classify(match.group(1))
        if classified is None:
            continue
        kind, attrs = classified
        start, end = match.start(), match.end()
        start_pos = position_at(start, line_starts)
        tokens.append(
            MarkerToken(
                kind=kind,
                name=attrs.get(_NAME_ATTR.get(kind, ""), ""),
                position=start_pos,
                raw_span=Range(start_pos, position_at(end, line_starts)),
                offset_start=start,
                offset_end=end,
                raw_text=match.group(0),
                attributes=attrs,
            )
        )
    return tokens


def first_binding(tokens: list[MarkerToken]) -> MarkerToken | None:
    """The authoritative ``InstanceBegin`` token (the first one), if any."""
    for token in tokens:
        if token.kind == "instance_binding":
            return token
    return None


def read_binding(text: str) -> str | None:
    """Return the ``template=`` path of the first binding in ``text``."""
    token = first_binding(scan_markers(text))
    return token.name if token is not None else None
