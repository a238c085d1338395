"""Core types for the template/instance pipeline.

Every layer (scanner, builder, merge engine, workflow) shares these types.
Positions are 0-based (line, character) pairs; raw offsets into the source
text travel alongside them on tokens so the builder can slice without
re-deriving coordinates.

Type hierarchy:
  Ok[T] / Err[E]     - Strict algebraic Result type
  Position / Range   - Line/character coordinates, half-open ranges
  MarkerToken        - One recognised Dreamweaver marker comment
  LiteralSegment     - Skeleton text (marker comments included)
  EditableRegion     - Named region content between two markers
  DocParam           - TemplateParam / InstanceParam declaration
  TemplateDocument   - Parsed template (.dwt)
  InstanceDocument   - Parsed instance bound to a template
  ParseError         - Typed failure for document building
  RegionChange       - Per-region merge outcome
  MergeResult        - New instance text plus the change report
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Literal

# ---------------------------------------------------------------------------
# Result ADT
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Ok[T]:
    """Success case of Result[T, E].

    Usage::

        match build_instance(text):
            case Ok(value=doc): ...
            case Err(error=err): print(err.message)
    """
    value: T


@dataclass(frozen=True, slots=True)
class Err[E]:
    """Failure case of Result[T, E]. Keeps the typed reason instead of None."""
    error: E


type Result[T, E] = Ok[T] | Err[E]


# ---------------------------------------------------------------------------
# Coordinates
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True, order=True)
class Position:
    """0-based line/character coordinate, ordered by (line, character)."""

    line: int
    character: int

    def __post_init__(self) -> None:
        if self.line < 0 or self.character < 0:
            raise ValueError(
                f"Position must be non-negative, got ({self.line}, {self.character})"
            )


@dataclass(frozen=True, slots=True)
class Range:
    """Half-open range [start, end) over Positions."""

    start: Position
    end: Position

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"Range end {self.end} is before start {self.start}")

    @property
    def is_empty(self) -> bool:
        return self.start == self.end

    def contains(self, position: Position) -> bool:
        return self.start <= position < self.end

    def contains_range(self, other: Range) -> bool:
        return self.start <= other.start and other.end <= self.end

    def intersects(self, other: Range) -> bool:
        return self.start < other.end and other.start < self.end


# ---------------------------------------------------------------------------
# Marker tokens
# ---------------------------------------------------------------------------

type TokenKind = Literal[
    "template_region_begin",
    "template_region_end",
    "instance_region_begin",
    "instance_region_end",
    "instance_binding",
    "instance_binding_end",
    "param_begin",
    "param_end",
]

REGION_BEGIN_KINDS: frozenset[str] = frozenset(
    {"template_region_begin", "instance_region_begin"}
)
REGION_END_KINDS: frozenset[str] = frozenset(
    {"template_region_end", "instance_region_end"}
)


@dataclass(frozen=True, slots=True)
class MarkerToken:
    """A recognised marker comment.

    ``name`` is the region name for region markers, the ``template=`` path
    for bindings and the parameter name for params. It is empty for end
    markers. ``attributes`` holds every attribute value verbatim.
    """

    kind: TokenKind
    name: str
    position: Position
    raw_span: Range
    offset_start: int
    offset_end: int
    raw_text: str
    attributes: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.offset_start < 0:
            raise ValueError("offset_start must be >= 0")
        if self.offset_end <= self.offset_start:
            raise ValueError("offset_end must be > offset_start")


# ---------------------------------------------------------------------------
# Segments
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class LiteralSegment:
    """Skeleton text, including the marker comments around regions."""

    text: str


@dataclass(frozen=True, slots=True)
class EditableRegion:
    """Content of one named editable region, markers excluded."""

    name: str
    content: str
    span: Range

    @property
    def text(self) -> str:
        return self.content


type Segment = LiteralSegment | EditableRegion


def render_segments(segments: tuple[Segment, ...] | list[Segment]) -> str:
    """Concatenate segment text; reproduces the parsed document exactly."""
    return "".join(seg.text for seg in segments)


@dataclass(frozen=True, slots=True)
class DocParam:
    """Template parameter declaration (TemplateParam or InstanceParam)."""

    name: str
    type: str
    value: str


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


def template_basename(template_ref: str) -> str:
    """Basename of a ``template=`` attribute, tolerant of Windows separators."""
    return PurePosixPath(template_ref.replace("\\", "/")).name


@dataclass(frozen=True, slots=True)
class TemplateDocument:
    """Parsed template: ordered segments plus unique region names."""

    source_path: str
    text: str
    segments: tuple[Segment, ...]
    region_order: tuple[str, ...]
    params: tuple[DocParam, ...] = ()

    def region(self, name: str) -> EditableRegion | None:
        for seg in self.segments:
            if isinstance(seg, EditableRegion) and seg.name == name:
                return seg
        return None

    def region_contents(self) -> dict[str, str]:
        return region_contents(self.segments)


@dataclass(frozen=True, slots=True)
class InstanceDocument:
    """Parsed instance bound to a template through ``InstanceBegin``."""

    source_path: str
    text: str
    bound_template_path: str
    binding: MarkerToken
    segments: tuple[Segment, ...]
    region_order: tuple[str, ...]
    params: tuple[DocParam, ...] = ()
    binding_end: MarkerToken | None = None

    @property
    def bound_template_name(self) -> str:
        return template_basename(self.bound_template_path)

    def region(self, name: str) -> EditableRegion | None:
        for seg in self.segments:
            if isinstance(seg, EditableRegion) and seg.name == name:
                return seg
        return None

    def region_contents(self) -> dict[str, str]:
        return region_contents(self.segments)


def region_contents(segments: tuple[Segment, ...]) -> dict[str, str]:
    """Map region name -> content, in document order."""
    return {
        seg.name: seg.content
        for seg in segments
        if isinstance(seg, EditableRegion)
    }


# ---------------------------------------------------------------------------
# Parse errors
# ---------------------------------------------------------------------------

type ParseErrorReason = Literal[
    "unterminated_region",
    "dangling_end_marker",
    "nested_region",
    "duplicate_region_name",
    "missing_binding",
]


@dataclass(frozen=True, slots=True)
class ParseError:
    """Typed failure for document building. Always recoverable per file."""

    reason: ParseErrorReason
    name: str = ""
    position: Position | None = None
    detail: str = ""

    @property
    def message(self) -> str:
        where = (
            f" at line {self.position.line + 1}, column {self.position.character + 1}"
            if self.position is not None
            else ""
        )
        label = self.reason.replace("_", " ")
        subject = f" {self.name!r}" if self.name else ""
        extra = f" ({self.detail})" if self.detail else ""
        return f"{label}{subject}{where}{extra}"


# ---------------------------------------------------------------------------
# Merge results
# ---------------------------------------------------------------------------

type RegionStatus = Literal["unchanged", "content_kept", "added", "removed"]


@dataclass(frozen=True, slots=True)
class RegionChange:
    """Merge outcome for one region name.

    ``old_content`` is the instance content (None when the region is new);
    ``new_content`` is what was written (None when the region was removed).
    """

    name: str
    status: RegionStatus
    old_content: str | None = None
    new_content: str | None = None


@dataclass(frozen=True, slots=True)
class MergeResult:
    """New instance text plus per-region change report."""

    new_text: str
    changes: tuple[RegionChange, ...]

    def by_status(self, status: RegionStatus) -> list[RegionChange]:
        return [c for c in self.changes if c.status == status]
