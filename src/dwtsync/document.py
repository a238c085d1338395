"""Document model builder: turn marker tokens into segmented documents.

Walks scanner tokens in offset order. A ``*BeginEditable`` of the document's
own kind opens a region and the next same-kind ``*EndEditable`` closes it.
Region content is the exact text between the two markers; the marker
comments themselves stay in the neighbouring ``LiteralSegment`` so that
``render_segments(doc.segments) == text`` always holds.

Markers of the other document kind are left as literal text: a template may
carry instance markers (nested templates) and an instance may carry
template markers inside region content.
"""

from __future__ import annotations

from dwtsync.doc_types import (
    DocParam,
    EditableRegion,
    Err,
    InstanceDocument,
    LiteralSegment,
    MarkerToken,
    Ok,
    ParseError,
    Range,
    Result,
    Segment,
    TemplateDocument,
    TokenKind,
)
from dwtsync.markers import first_binding, scan_markers

type _Built = tuple[tuple[Segment, ...], tuple[str, ...]]


def _build_segments(
    text: str,
    tokens: list[MarkerToken],
    *,
    begin_kind: TokenKind,
    end_kind: TokenKind,
) -> Result[_Built, ParseError]:
    segments: list[Segment] = []
    order: list[str] = []
    seen: set[str] = set()
    cursor = 0
    open_token: MarkerToken | None = None

    for token in tokens:
        if token.kind == begin_kind:
            if open_token is not None:
                return Err(ParseError(
                    reason="nested_region",
                    name=token.name,
                    position=token.position,
                    detail=f"opened inside region {open_token.name!r}",
                ))
            if token.name in seen:
                return Err(ParseError(
                    reason="duplicate_region_name",
                    name=token.name,
                    position=token.position,
                ))
            open_token = token
        elif token.kind == end_kind:
            if open_token is None:
                return Err(ParseError(
                    reason="dangling_end_marker",
                    position=token.position,
                ))
            literal = text[cursor:open_token.offset_end]
            if literal:
                segments.append(LiteralSegment(literal))
            segments.append(EditableRegion(
                name=open_token.name,
                content=text[open_token.offset_end:token.offset_start],
                span=Range(open_token.raw_span.end, token.position),
            ))
            seen.add(open_token.name)
            order.append(open_token.name)
            cursor = token.offset_start
            open_token = None

    if open_token is not None:
        return Err(ParseError(
            reason="unterminated_region",
            name=open_token.name,
            position=open_token.position,
        ))

    tail = text[cursor:]
    if tail:
        segments.append(LiteralSegment(tail))
    return Ok((tuple(segments), tuple(order)))


def _collect_params(tokens: list[MarkerToken], kind: TokenKind) -> tuple[DocParam, ...]:
    params: dict[str, DocParam] = {}
    for token in tokens:
        if token.kind != kind or token.name in params:
            continue
        params[token.name] = DocParam(
            name=token.name,
            type=token.attributes.get("type", "text"),
            value=token.attributes.get("value", ""),
        )
    return tuple(params.values())


def build_template(text: str, source_path: str = "") -> Result[TemplateDocument, ParseError]:
    """Parse template text into a ``TemplateDocument``."""
    tokens = scan_markers(text)
    built = _build_segments(
        text,
        tokens,
        begin_kind="template_region_begin",
        end_kind="template_region_end",
    )
    match built:
        case Err(error=error):
            return Err(error)
        case Ok(value=(segments, order)):
            return Ok(TemplateDocument(
                source_path=source_path,
                text=text,
                segments=segments,
                region_order=order,
                params=_collect_params(tokens, "param_begin"),
            ))


def build_instance(text: str, source_path: str = "") -> Result[InstanceDocument, ParseError]:
    """Parse instance text into an ``InstanceDocument``.

    The first ``InstanceBegin template=`` comment is authoritative and must
    appear before the first instance region marker.
    """
    tokens = scan_markers(text)
    binding = first_binding(tokens)
    first_region = next(
        (
            t for t in tokens
            if t.kind in ("instance_region_begin", "instance_region_end")
        ),
        None,
    )
    if binding is None:
        return Err(ParseError(
            reason="missing_binding",
            detail="no InstanceBegin template= comment",
        ))
    if first_region is not None and binding.offset_start > first_region.offset_start:
        return Err(ParseError(
            reason="missing_binding",
            position=first_region.position,
            detail="InstanceBegin appears after the first editable region",
        ))

    built = _build_segments(
        text,
        tokens,
        begin_kind="instance_region_begin",
        end_kind="instance_region_end",
    )
    match built:
        case Err(error=error):
            return Err(error)
        case Ok(value=(segments, order)):
            binding_end = next(
                (
                    t for t in tokens
                    if t.kind == "instance_binding_end"
                    and t.offset_start > binding.offset_start
                ),
                None,
            )
            return Ok(InstanceDocument(
                source_path=source_path,
                text=text,
                bound_template_path=binding.name,
                binding=binding,
                segments=segments,
                region_order=order,
                params=_collect_params(tokens, "param_end"),
                binding_end=binding_end,
            ))
