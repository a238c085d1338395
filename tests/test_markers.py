"""Tests for dwtsync.markers scanner."""
from __future__ import annotations

from dwtsync.doc_types import Position
from dwtsync.markers import (
    compute_line_starts,
    first_binding,
    position_at,
    read_binding,
    scan_markers,
)

BINDING = '<!-- InstanceBegin template="/Templates/main.dwt" codeOutsideHTMLIsLocked="false" -->'


class TestScanMarkers:
    def test_template_region_pair(self) -> None:
        text = '<html><!-- TemplateBeginEditable name="body" -->x<!-- TemplateEndEditable --></html>'
        tokens = scan_markers(text)
        assert [t.kind for t in tokens] == ["template_region_begin", "template_region_end"]
        assert tokens[0].name == "body"
        assert tokens[1].name == ""
        assert tokens[0].position == Position(0, 6)
        assert text[tokens[0].offset_start:tokens[0].offset_end] == tokens[0].raw_text

    def test_no_comments(self) -> None:
        assert scan_markers("<p>plain</p>") == []

    def test_keyword_case_insensitive(self) -> None:
        tokens = scan_markers('<!-- templatebegineditable NAME="a" -->')
        assert len(tokens) == 1
        assert tokens[0].kind == "template_region_begin"
        assert tokens[0].name == "a"

    def test_attribute_value_verbatim(self) -> None:
        tokens = scan_markers('<!-- InstanceBeginEditable name="Main Content" -->')
        assert tokens[0].name == "Main Content"

    def test_non_canonical_comments_are_inert(self) -> None:
        text = (
            "<!-- TemplateBeginEditable -->"
            '<!-- TemplateBeginEditable name="a" extra -->'
            "<!-- InstanceEndEditable trailing -->"
            "<!-- just a comment -->"
            "<!-- TemplateBeginEditableX name=\"a\" -->"
        )
        assert scan_markers(text) == []

    def test_unclosed_opener_does_not_hide_next_marker(self) -> None:
        text = (
            '<!-- InstanceBeginEditable name="body" -->'
            '<script>if (s.indexOf("<!--") >= 0) {}</script>'
            "<!-- InstanceEndEditable -->"
        )
        tokens = scan_markers(text)
        assert [t.kind for t in tokens] == ["instance_region_begin", "instance_region_end"]
        assert tokens[1].offset_start == text.rindex("<!--")

    def test_compact_end_marker(self) -> None:
        tokens = scan_markers("<!--InstanceEndEditable-->")
        assert [t.kind for t in tokens] == ["instance_region_end"]

    def test_positions_across_lines(self) -> None:
        text = "a\nb\n<!-- InstanceEndEditable -->"
        (token,) = scan_markers(text)
        assert token.position == Position(2, 0)
        assert token.raw_span.end == Position(2, len("<!-- InstanceEndEditable -->"))

    def test_binding_and_end(self) -> None:
        tokens = scan_markers(f"<html>{BINDING}<body></body><!-- InstanceEnd --></html>")
        assert [t.kind for t in tokens] == ["instance_binding", "instance_binding_end"]
        assert tokens[0].name == "/Templates/main.dwt"
        assert tokens[0].attributes["codeoutsidehtmlislocked"] == "false"

    def test_params(self) -> None:
        text = (
            '<!-- TemplateParam name="showNav" type="boolean" value="true" -->'
            '<!-- InstanceParam name="showNav" type="boolean" value="false" -->'
        )
        begin, end = scan_markers(text)
        assert begin.kind == "param_begin"
        assert end.kind == "param_end"
        assert begin.attributes["value"] == "true"
        assert end.attributes["value"] == "false"


class TestBinding:
    def test_first_binding_wins(self) -> None:
        text = BINDING + '<!-- InstanceBegin template="/Templates/other.dwt" -->'
        assert read_binding(text) == "/Templates/main.dwt"
        assert first_binding(scan_markers(text)).offset_start == 0

    def test_no_binding(self) -> None:
        assert read_binding("<html></html>") is None


class TestPositions:
    def test_line_starts(self) -> None:
        assert compute_line_starts("a\nbc\n") == [0, 2, 5]

    def test_position_at(self) -> None:
        starts = compute_line_starts("a\nbc\n")
        assert position_at(0, starts) == Position(0, 0)
        assert position_at(3, starts) == Position(1, 1)
        assert position_at(5, starts) == Position(2, 0)
